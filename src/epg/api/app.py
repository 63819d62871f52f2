"""
epg.api.app

FastAPI app factory for the extension catalog service.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Hold the injected connection pool and dispose it when the app shuts down.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine

from epg import __version__
from epg.api.routers.extensions import router as extensions_router
from epg.api.routers.health import router as health_router
from epg.observability.logging import get_logger
from epg.observability.middleware import RequestContextMiddleware
from epg.settings import Settings

log = get_logger(__name__)


def create_app(*, settings: Settings, pool: AsyncEngine) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", service_port=settings.service_port)
        try:
            yield
        finally:
            # Runs after uvicorn has drained in-flight requests.
            await app.state.pool.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="epg",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.pool = pool

    app.add_middleware(RequestContextMiddleware)
    app.include_router(extensions_router, tags=["extensions"])
    app.include_router(health_router, tags=["health"])
    return app


# --- Module Notes -----------------------------------------------------------
# The pool is created by the provisioner before the app exists; the app only
# owns it from here on.
