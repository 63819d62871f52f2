"""
epg.db.repositories.extensions

Extension catalog queries.

Responsibilities:
- List the extensions available to the engine, alphabetically.
- Convert driver/pool failures into `RequestQueryError`.
"""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from epg.errors import RequestQueryError, describe


class ExtensionRepo:
    def __init__(self, pool: AsyncEngine) -> None:
        self._pool = pool

    async def list_available_names(self) -> list[str]:
        # The connection is held for this one query only.
        try:
            async with self._pool.connect() as conn:
                result = await conn.execute(
                    text("SELECT name FROM pg_available_extensions ORDER BY name")
                )
                return [str(name) for name in result.scalars().all()]
        except (SQLAlchemyError, OSError) as exc:
            raise RequestQueryError(describe(exc)) from exc


# --- Module Notes -----------------------------------------------------------
# There is no partial result: callers get the full sorted list or an error.
