"""
epg.engine.version

Exact version requirements.

The engine and the extension are both pinned to one exact release, so a
requirement is either `MAJOR.MINOR.PATCH` or `=MAJOR.MINOR.PATCH`; ranges are
rejected.
"""

from __future__ import annotations

import re

_EXACT = re.compile(r"^\s*=?\s*v?(\d+)\.(\d+)\.(\d+)\s*$")


def parse_exact_version(requirement: str) -> str:
    """Return the bare `X.Y.Z` version pinned by `requirement`."""

    match = _EXACT.match(requirement or "")
    if match is None:
        raise ValueError(f"expected an exact version like '=16.4.0', got {requirement!r}")
    return ".".join(str(int(part)) for part in match.groups())


def major_version(version: str) -> int:
    return int(parse_exact_version(version).split(".", 1)[0])
