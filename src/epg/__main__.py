"""
epg.__main__

Entrypoint: `python -m epg [--version | DATABASE ...]`.

Responsibilities:
- Handle `--version` without touching the engine.
- Load settings, configure logging, provision, serve, shut down.
- Map fatal lifecycle errors to a non-zero exit status.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Sequence

from pydantic import ValidationError

from epg import __version__
from epg.api.app import create_app
from epg.api.server import build_server
from epg.db.session import PoolAdapter
from epg.engine.handle import PostgreSQL
from epg.engine.settings import EngineSettings
from epg.errors import EpgError
from epg.extensions.installer import ExtensionInstaller
from epg.observability.logging import configure_logging, get_logger
from epg.services.provisioning import Provisioner
from epg.services.shutdown import ShutdownCoordinator
from epg.settings import Settings, get_settings

log = get_logger(__name__)


def build_provisioner(settings: Settings) -> Provisioner:
    return Provisioner(
        settings=settings,
        engine=PostgreSQL(EngineSettings.from_settings(settings)),
        installer=ExtensionInstaller(github_token=settings.github_token),
        pools=PoolAdapter(
            max_connections=settings.pool_max_connections,
            acquire_timeout=settings.pool_acquire_timeout,
        ),
    )


async def serve(settings: Settings, databases: Sequence[str]) -> None:
    provisioner = build_provisioner(settings)
    pool = await provisioner.provision(databases)

    try:
        server = build_server(create_app(settings=settings, pool=pool), settings)
    except EpgError:
        await pool.dispose()
        await provisioner.teardown()
        raise

    provisioner.begin_serving()
    await ShutdownCoordinator(server=server, teardown=provisioner.teardown).run()


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)

    if args and args[0] == "--version":
        print(f"epg v{__version__}")
        return 0

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"epg: invalid configuration\n{e}", file=sys.stderr)
        return 2

    configure_logging(
        service_name=settings.service_name,
        level=settings.log_level,
        fmt=settings.log_format,
    )

    try:
        asyncio.run(serve(settings, args))
    except EpgError as e:
        log.error("fatal", error=str(e), error_type=type(e).__name__)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())


# --- Module Notes -----------------------------------------------------------
# Only the first argument is checked for `--version`; every other argument is a
# database name, even when it starts with dashes.
