"""
epg.api.server

uvicorn server wiring.

Responsibilities:
- Bind the listening socket up front so port conflicts surface before serving.
- Run uvicorn without its own signal handlers; `ShutdownCoordinator` owns them.
"""

from __future__ import annotations

import contextlib
import socket
from collections.abc import Iterator

import uvicorn
from fastapi import FastAPI

from epg.errors import StartError, describe
from epg.observability.logging import get_logger
from epg.settings import Settings

log = get_logger(__name__)


def bind_socket(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    try:
        sock = socket.create_server((host, port), family=family)
    except OSError as exc:
        raise StartError(f"cannot listen on {host}:{port}: {describe(exc)}") from exc
    bound = sock.getsockname()
    log.info("listening", address=f"{bound[0]}:{bound[1]}")
    return sock


class ManagedServer(uvicorn.Server):
    def __init__(self, config: uvicorn.Config, *, sockets: list[socket.socket]) -> None:
        super().__init__(config)
        self._sockets = sockets

    async def serve(self, sockets: list[socket.socket] | None = None) -> None:
        await super().serve(sockets=sockets or self._sockets)

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield

    def install_signal_handlers(self) -> None:
        return None


def build_server(app: FastAPI, settings: Settings) -> ManagedServer:
    sock = bind_socket(settings.service_host, settings.service_port)
    config = uvicorn.Config(
        app,
        log_config=None,  # structlog
        lifespan="on",
    )
    return ManagedServer(config, sockets=[sock])


# --- Module Notes -----------------------------------------------------------
# `should_exit = True` triggers uvicorn's graceful shutdown: stop accepting,
# finish in-flight requests, run the app lifespan shutdown.
