"""
epg.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Expose the pool injected at app construction time.
"""

from __future__ import annotations

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine


def pool_from_app(request: Request) -> AsyncEngine:
    # Set once in `epg.api.app.create_app`; handlers never build their own pool.
    return request.app.state.pool  # type: ignore[attr-defined]
