"""
epg.services.provisioning

Provisioning orchestrator (engine lifecycle owner).

Responsibilities:
- Drive the engine from nothing to a running server with reconciled databases.
- Stage and activate the optional extension (install, restart, CREATE EXTENSION).
- Open the connection pool handed to the service layer.
- Tear the engine down exactly once when serving ends.
"""

from __future__ import annotations

import enum
from collections.abc import Sequence

from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncEngine

from epg.db.session import PoolAdapter
from epg.engine.handle import EngineState, PostgreSQL
from epg.errors import EpgError, StopError
from epg.extensions.installer import ExtensionInstaller, ExtensionRequest
from epg.observability.logging import get_logger
from epg.settings import Settings

log = get_logger(__name__)


class ProvisioningStage(enum.StrEnum):
    start = "START"
    installed = "INSTALLED"
    extension_staged = "EXTENSION_STAGED"
    running = "RUNNING"
    databases_reconciled = "DATABASES_RECONCILED"
    extension_activated = "EXTENSION_ACTIVATED"
    pool_ready = "POOL_READY"
    serving = "SERVING"
    draining = "DRAINING"
    stopped = "STOPPED"


def requested_databases(names: Sequence[str], *, default: str) -> list[str]:
    # Order is kept (the first name is the one the pool connects to); duplicates dropped.
    unique = list(dict.fromkeys(names))
    return unique or [default]


def extension_request(settings: Settings) -> ExtensionRequest:
    return ExtensionRequest(
        publisher=settings.extension_publisher,
        package=settings.extension_package,
        version=settings.extension_version,
        name=settings.extension_name,
    )


class Provisioner:
    """
    Sequential startup procedure; every step depends on engine state left by
    the previous one, so nothing here runs concurrently.

    This class is the only owner of the engine handle: it starts the engine,
    and its `teardown` is the only path that stops it after serving.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        engine: PostgreSQL,
        installer: ExtensionInstaller,
        pools: PoolAdapter,
    ) -> None:
        self._settings = settings
        self._engine = engine
        self._installer = installer
        self._pools = pools
        self._stage = ProvisioningStage.start
        self._torn_down = False

    @property
    def stage(self) -> ProvisioningStage:
        return self._stage

    def _advance(self, stage: ProvisioningStage) -> None:
        self._stage = stage
        log.info("provisioning_stage", stage=str(stage))

    async def provision(self, databases: Sequence[str] = ()) -> AsyncEngine:
        names = requested_databases(databases, default=self._settings.default_database)
        with_extensions = self._settings.with_extensions

        try:
            await self._engine.setup()
            self._advance(ProvisioningStage.installed)

            if with_extensions:
                await self._installer.install(self._engine.settings, extension_request(self._settings))
                self._advance(ProvisioningStage.extension_staged)

            log.info("starting_postgresql")
            await self._engine.start()
            self._advance(ProvisioningStage.running)

            await self.reconcile_databases(names)
            self._advance(ProvisioningStage.databases_reconciled)

            url = self._engine.connection_url(names[0])
            if with_extensions:
                await self._activate_extension(url)
                self._advance(ProvisioningStage.extension_activated)

            pool = await self._pools.open(url)
            if with_extensions:
                try:
                    await self._pools.enable_extension(pool, self._settings.extension_name)
                except EpgError:
                    await pool.dispose()
                    raise
            self._advance(ProvisioningStage.pool_ready)
            return pool
        except EpgError as exc:
            log.error("provisioning_failed", stage=str(self._stage), error=str(exc))
            await self._abort()
            raise

    async def reconcile_databases(self, names: Sequence[str]) -> list[str]:
        """
        Create every name that does not exist yet; existing databases are left alone.

        Fails fast: names created before a failure stay created.
        """

        created: list[str] = []
        for name in names:
            if await self._engine.database_exists(name):
                continue
            await self._engine.create_database(name)
            created.append(name)
        return created

    async def _activate_extension(self, url: URL | str) -> None:
        # The shared library is only loadable after a restart of the server
        # process that staged it, so the restart always runs.
        log.info("configuring_extension")
        await self._pools.probe(url)

        log.info("restarting_postgresql")
        await self._engine.stop()
        await self._engine.start()

    def begin_serving(self) -> None:
        self._advance(ProvisioningStage.serving)

    async def teardown(self) -> None:
        if self._torn_down:
            return
        self._torn_down = True

        self._advance(ProvisioningStage.draining)
        try:
            if self._engine.state is EngineState.running:
                await self._engine.stop()
        finally:
            self._engine.destroy()
            self._advance(ProvisioningStage.stopped)

    async def _abort(self) -> None:
        # Nothing to undo before the first start.
        if self._engine.state in (EngineState.uninitialized, EngineState.installed):
            return
        if self._engine.state is EngineState.running:
            try:
                await self._engine.stop()
            except StopError as exc:
                log.warning("stop_after_failure_failed", error=str(exc))
        # A failed restart leaves the engine stopped; temporary data still goes.
        self._engine.destroy()


# --- Module Notes -----------------------------------------------------------
# After `provision` returns, the service layer owns the pool and the shutdown
# coordinator calls `teardown` once the listener has drained.
