"""
epg.db.session

Connection pool adapter (SQLAlchemy async engine).

Responsibilities:
- Open the bounded pool handed to the service layer.
- Open-and-close a throwaway connection (extension activation probe).
- Enable a SQL extension through the pool.
"""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from epg.db.identifiers import quote_identifier
from epg.errors import ExtensionInstallError, PoolConnectError, describe
from epg.observability.logging import get_logger

log = get_logger(__name__)


class PoolAdapter:
    def __init__(self, *, max_connections: int = 5, acquire_timeout: float = 3.0) -> None:
        self._max_connections = max_connections
        self._acquire_timeout = acquire_timeout

    async def probe(self, url: URL | str) -> None:
        engine = create_async_engine(url, poolclass=NullPool)
        try:
            async with engine.connect():
                pass
        except (SQLAlchemyError, OSError) as exc:
            raise PoolConnectError(f"probe connection failed: {describe(exc)}") from exc
        finally:
            await engine.dispose()

    async def open(self, url: URL | str) -> AsyncEngine:
        """
        Create the pool and verify one connection can be checked out.

        The pool never grows past `max_connections` (no overflow); a checkout
        that waits longer than `acquire_timeout` fails instead of hanging.
        """

        pool = create_async_engine(
            url,
            pool_size=self._max_connections,
            max_overflow=0,
            pool_timeout=self._acquire_timeout,
            pool_pre_ping=True,
        )
        try:
            async with pool.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            await pool.dispose()
            raise PoolConnectError(f"failed to open connection pool: {describe(exc)}") from exc

        log.info("pool_ready", max_connections=self._max_connections)
        return pool

    async def enable_extension(self, pool: AsyncEngine, name: str) -> None:
        try:
            async with pool.begin() as conn:
                await conn.execute(text(f"CREATE EXTENSION IF NOT EXISTS {quote_identifier(name)}"))
        except (SQLAlchemyError, OSError, ValueError) as exc:
            raise ExtensionInstallError(f"failed to enable extension {name}: {describe(exc)}") from exc
        log.info("extension_enabled", extension=name)


# --- Module Notes -----------------------------------------------------------
# The service layer owns the pool returned by `open`; it is disposed in the app
# lifespan (see `epg.api.app`).
