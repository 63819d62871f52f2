"""
epg.db.identifiers

SQL identifier quoting for statements that cannot take bound parameters
(CREATE DATABASE, CREATE EXTENSION).
"""

from __future__ import annotations


def quote_identifier(name: str) -> str:
    if not name or "\x00" in name:
        raise ValueError(f"invalid SQL identifier: {name!r}")
    return '"' + name.replace('"', '""') + '"'
