"""
epg.engine.handle

Engine handle for one managed PostgreSQL instance.

Responsibilities:
- Install the pinned binaries and initialise the data directory (`setup`).
- Start/stop the server process through `pg_ctl`.
- Answer administrative queries (database existence/creation) while running.
- Enforce the uninitialized -> installed -> running -> stopped state machine.
"""

from __future__ import annotations

import enum
import os
import shutil
import tempfile
from pathlib import Path

import httpx
from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from epg.db.identifiers import quote_identifier
from epg.engine.archive import install_binaries
from epg.engine.process import run_command
from epg.engine.settings import EngineSettings
from epg.errors import AdminQueryError, InstallError, StartError, StopError, describe
from epg.observability.logging import get_logger

log = get_logger(__name__)

ADMIN_DATABASE = "postgres"


class EngineState(enum.StrEnum):
    uninitialized = "UNINITIALIZED"
    installed = "INSTALLED"
    running = "RUNNING"
    stopped = "STOPPED"


class PostgreSQL:
    """
    Owned handle around the engine's installation, data directory and process.

    The handle is not safe for concurrent use; the provisioner drives it
    sequentially and the shutdown path only calls `stop()` after serving ends.
    """

    def __init__(
        self,
        settings: EngineSettings,
        *,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._http_transport = http_transport
        self._state = EngineState.uninitialized

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def state(self) -> EngineState:
        return self._state

    def is_installed(self) -> bool:
        return self._settings.version_dir.exists()

    def is_initialized(self) -> bool:
        return (self._settings.data_dir / "PG_VERSION").exists()

    async def setup(self) -> None:
        if self._state is EngineState.running:
            return

        if not self.is_installed():
            log.info("installing_postgresql", version=self._settings.version)
            await install_binaries(
                self._settings.version,
                self._settings.version_dir,
                transport=self._http_transport,
            )
        if not self.is_initialized():
            await self._initdb()

        if self._state is EngineState.uninitialized:
            self._state = EngineState.installed

    async def _initdb(self) -> None:
        s = self._settings
        log.info("initializing_data_directory", data_dir=str(s.data_dir))
        s.data_dir.parent.mkdir(parents=True, exist_ok=True)

        fd, pwfile = tempfile.mkstemp(prefix="epg-", suffix=".pgpass")
        try:
            with os.fdopen(fd, "w") as fh:
                fh.write(s.password)
            await run_command(
                s.binary("initdb"),
                f"--pgdata={s.data_dir}",
                f"--username={s.username}",
                "--auth=password",
                f"--pwfile={pwfile}",
                "--encoding=UTF8",
                error=InstallError,
            )
        finally:
            Path(pwfile).unlink(missing_ok=True)

    async def start(self) -> None:
        if self._state not in (EngineState.installed, EngineState.stopped):
            raise StartError(f"cannot start PostgreSQL from state {self._state}")

        s = self._settings
        await run_command(
            s.binary("pg_ctl"),
            "start",
            f"--pgdata={s.data_dir}",
            f"--log={s.data_dir / 'start.log'}",
            f"--options=-F -p {s.port}",
            "--wait",
            error=StartError,
        )
        self._state = EngineState.running
        log.info("postgresql_started", port=s.port)

    async def stop(self) -> None:
        if self._state is not EngineState.running:
            raise StopError(f"cannot stop PostgreSQL from state {self._state}")

        s = self._settings
        await run_command(
            s.binary("pg_ctl"),
            "stop",
            f"--pgdata={s.data_dir}",
            "--mode=fast",
            "--wait",
            error=StopError,
        )
        self._state = EngineState.stopped
        log.info("postgresql_stopped")

    def destroy(self) -> None:
        # Only temporary instances give up their data; never touch a running server.
        if not self._settings.temporary or self._state is EngineState.running:
            return
        shutil.rmtree(self._settings.data_dir, ignore_errors=True)
        log.info("data_directory_removed", data_dir=str(self._settings.data_dir))

    def connection_url(self, database: str) -> URL:
        return self._settings.url(database)

    async def database_exists(self, name: str) -> bool:
        rows = await self._admin(
            "SELECT 1 FROM pg_database WHERE datname = :name",
            {"name": name},
        )
        return bool(rows)

    async def create_database(self, name: str) -> None:
        try:
            statement = f"CREATE DATABASE {quote_identifier(name)}"
        except ValueError as exc:
            raise AdminQueryError(str(exc)) from exc
        log.info("creating_database", database=name)
        await self._admin(statement)

    async def _admin(self, sql: str, params: dict[str, str] | None = None) -> list[tuple]:
        if self._state is not EngineState.running:
            raise AdminQueryError(f"PostgreSQL is not running (state {self._state})")

        # CREATE DATABASE cannot run inside a transaction block.
        engine = create_async_engine(
            self.connection_url(ADMIN_DATABASE),
            poolclass=NullPool,
            isolation_level="AUTOCOMMIT",
        )
        try:
            async with engine.connect() as conn:
                result = await conn.execute(text(sql), params or {})
                return [tuple(row) for row in result.all()] if result.returns_rows else []
        except (SQLAlchemyError, OSError) as exc:
            raise AdminQueryError(describe(exc)) from exc
        finally:
            await engine.dispose()


# --- Module Notes -----------------------------------------------------------
# Data directories created by a previous run are reused as-is; only a missing
# PG_VERSION file triggers initdb.
