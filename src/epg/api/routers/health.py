"""
epg.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`) that checks the engine through the pool.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.status import HTTP_503_SERVICE_UNAVAILABLE

from epg.api.deps import pool_from_app
from epg.errors import describe

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(pool: AsyncEngine = Depends(pool_from_app)) -> dict[str, str]:
    try:
        async with pool.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        raise HTTPException(status_code=HTTP_503_SERVICE_UNAVAILABLE, detail=describe(e)) from e
    return {"status": "ready"}
