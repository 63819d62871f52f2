"""
epg.api.routers.extensions

Extension catalog endpoint.

Responsibilities:
- `GET /`: names of all extensions available to the engine, sorted ascending.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR

from epg.api.deps import pool_from_app
from epg.db.repositories.extensions import ExtensionRepo
from epg.errors import RequestQueryError
from epg.observability.logging import get_logger

log = get_logger(__name__)

router = APIRouter()


@router.get("/", response_model=list[str])
async def list_extensions(pool: AsyncEngine = Depends(pool_from_app)) -> list[str]:
    try:
        return await ExtensionRepo(pool).list_available_names()
    except RequestQueryError as e:
        log.warning("extension_query_failed", error=str(e))
        raise HTTPException(status_code=HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e


# --- Module Notes -----------------------------------------------------------
# Failures never crash the serve loop; they end at this request boundary.
