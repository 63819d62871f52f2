"""
tests.conftest

Shared fixtures and recording fakes.

Responsibilities:
- Isolate settings from the developer's environment.
- Provide fakes for the engine handle, extension installer and pool adapter
  that record the order in which the provisioner calls them.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from epg.engine.handle import EngineState
from epg.engine.settings import EngineSettings
from epg.errors import AdminQueryError, StartError, StopError
from epg.settings import get_settings

ENV_VARS = (
    "PGPORT",
    "PGDIR",
    "PGDATA",
    "POSTGRES_USER",
    "POSTGRES_PASSWORD",
    "WITH_EXTENSIONS",
    "GITHUB_TOKEN",
    "EPG_TEMPORARY",
    "EPG_LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def engine_settings(tmp_path: Path) -> EngineSettings:
    return EngineSettings(
        version="=16.4.0",
        installation_dir=tmp_path / "install",
        data_dir=tmp_path / "data",
        port=5016,
        username="postgres",
        password="root_pw",
    )


class FakeEngine:
    def __init__(
        self,
        calls: list[str],
        settings: EngineSettings,
        *,
        existing: tuple[str, ...] = ("postgres",),
        fail_create: str | None = None,
        fail_setup: Exception | None = None,
        fail_stop: bool = False,
        fail_start_on: int | None = None,
    ) -> None:
        self.calls = calls
        self.settings = settings
        self.databases = set(existing)
        self.state = EngineState.uninitialized
        self.fail_create = fail_create
        self.fail_setup = fail_setup
        self.fail_stop = fail_stop
        self.fail_start_on = fail_start_on
        self.starts = 0
        self.destroyed = 0

    async def setup(self) -> None:
        self.calls.append("setup")
        if self.fail_setup is not None:
            raise self.fail_setup
        self.state = EngineState.installed

    async def start(self) -> None:
        self.calls.append("start")
        self.starts += 1
        if self.starts == self.fail_start_on:
            raise StartError("pg_ctl start exited with status 1")
        self.state = EngineState.running

    async def stop(self) -> None:
        self.calls.append("stop")
        if self.fail_stop:
            raise StopError("pg_ctl exited with status 1")
        self.state = EngineState.stopped

    def destroy(self) -> None:
        self.destroyed += 1

    def connection_url(self, database: str) -> str:
        return f"postgresql+asyncpg://postgres@localhost:5016/{database}"

    async def database_exists(self, name: str) -> bool:
        self.calls.append(f"exists:{name}")
        return name in self.databases

    async def create_database(self, name: str) -> None:
        self.calls.append(f"create:{name}")
        if name == self.fail_create:
            raise AdminQueryError(f"cannot create {name}")
        self.databases.add(name)


class FakeInstaller:
    def __init__(self, calls: list[str]) -> None:
        self.calls = calls
        self.requests = []

    async def install(self, settings, request) -> list[Path]:
        self.calls.append("install_extension")
        self.requests.append(request)
        return []


class FakePool:
    def __init__(self, url: str) -> None:
        self.url = url
        self.disposed = False

    async def dispose(self) -> None:
        self.disposed = True


class FakePools:
    def __init__(self, calls: list[str]) -> None:
        self.calls = calls
        self.opened: list[FakePool] = []

    async def probe(self, url) -> None:
        self.calls.append("probe")

    async def open(self, url) -> FakePool:
        self.calls.append("open_pool")
        pool = FakePool(str(url))
        self.opened.append(pool)
        return pool

    async def enable_extension(self, pool, name: str) -> None:
        self.calls.append(f"create_extension:{name}")


# --- Module Notes -----------------------------------------------------------
# Fakes share one `calls` list so ordering across collaborators can be asserted.
