"""
tests.test_provisioning

Provisioning orchestrator: step ordering, reconciliation, failure handling.
"""

from __future__ import annotations

import pytest

from conftest import FakeEngine, FakeInstaller, FakePools
from epg.engine.handle import EngineState
from epg.engine.settings import EngineSettings
from epg.errors import AdminQueryError, InstallError, StartError, StopError
from epg.services.provisioning import Provisioner, ProvisioningStage, requested_databases
from epg.settings import Settings


def _provisioner(
    engine_settings: EngineSettings,
    *,
    with_extensions: bool = False,
    **engine_kwargs,
) -> tuple[Provisioner, list[str], FakeEngine, FakeInstaller, FakePools]:
    calls: list[str] = []
    engine = FakeEngine(calls, engine_settings, **engine_kwargs)
    installer = FakeInstaller(calls)
    pools = FakePools(calls)
    provisioner = Provisioner(
        settings=Settings(with_extensions=with_extensions),
        engine=engine,  # type: ignore[arg-type]
        installer=installer,  # type: ignore[arg-type]
        pools=pools,  # type: ignore[arg-type]
    )
    return provisioner, calls, engine, installer, pools


def test_requested_databases() -> None:
    assert requested_databases([], default="postgres") == ["postgres"]
    assert requested_databases(["b", "a", "b"], default="postgres") == ["b", "a"]


@pytest.mark.asyncio
async def test_sequence_without_extensions(engine_settings: EngineSettings) -> None:
    provisioner, calls, _, installer, pools = _provisioner(engine_settings)

    pool = await provisioner.provision(["app"])

    assert calls == ["setup", "start", "exists:app", "create:app", "open_pool"]
    assert installer.requests == []
    assert "probe" not in calls and "stop" not in calls
    assert pool.url.endswith("/app")
    assert provisioner.stage is ProvisioningStage.pool_ready


@pytest.mark.asyncio
async def test_sequence_with_extensions(engine_settings: EngineSettings) -> None:
    provisioner, calls, _, installer, _ = _provisioner(engine_settings, with_extensions=True)

    await provisioner.provision(["app"])

    assert calls == [
        "setup",
        "install_extension",
        "start",
        "exists:app",
        "create:app",
        "probe",
        "stop",
        "start",
        "open_pool",
        "create_extension:vector",
    ]
    [request] = installer.requests
    assert (request.publisher, request.package, request.version) == (
        "portal-corp",
        "pgvector_compiled",
        "=0.16.12",
    )


@pytest.mark.asyncio
async def test_default_database_when_none_requested(engine_settings: EngineSettings) -> None:
    provisioner, calls, engine, _, pools = _provisioner(engine_settings)

    await provisioner.provision([])

    assert calls == ["setup", "start", "exists:postgres", "open_pool"]
    assert pools.opened[0].url.endswith("/postgres")
    assert engine.databases == {"postgres"}


@pytest.mark.asyncio
async def test_reconcile_is_idempotent(engine_settings: EngineSettings) -> None:
    provisioner, calls, engine, _, _ = _provisioner(engine_settings)
    engine.state = EngineState.running

    assert await provisioner.reconcile_databases(["app"]) == ["app"]
    assert await provisioner.reconcile_databases(["app"]) == []
    assert calls.count("create:app") == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("names", [[], ["a"], ["a", "b"], ["legacy", "a", "b", "c"]])
async def test_reconcile_leaves_every_name_existing(
    engine_settings: EngineSettings, names: list[str]
) -> None:
    provisioner, calls, engine, _, _ = _provisioner(
        engine_settings, existing=("postgres", "legacy", "unrelated")
    )
    engine.state = EngineState.running

    await provisioner.reconcile_databases(names)

    assert set(names) <= engine.databases
    assert {"postgres", "legacy", "unrelated"} <= engine.databases
    assert "create:legacy" not in calls and "create:unrelated" not in calls


@pytest.mark.asyncio
async def test_reconcile_failure_is_fatal_without_rollback(engine_settings: EngineSettings) -> None:
    provisioner, calls, engine, _, pools = _provisioner(engine_settings, fail_create="b")

    with pytest.raises(AdminQueryError):
        await provisioner.provision(["a", "b", "c"])

    assert "a" in engine.databases
    assert "create:c" not in calls
    assert pools.opened == []
    # The engine was started, so the failed startup stops it again.
    assert calls[-1] == "stop"
    assert calls.count("stop") == 1


@pytest.mark.asyncio
async def test_install_failure_stops_nothing(engine_settings: EngineSettings) -> None:
    provisioner, calls, _, _, _ = _provisioner(
        engine_settings, fail_setup=InstallError("download failed")
    )

    with pytest.raises(InstallError):
        await provisioner.provision(["app"])

    assert calls == ["setup"]
    assert provisioner.stage is ProvisioningStage.start


@pytest.mark.asyncio
async def test_failed_activation_restart_still_destroys(engine_settings: EngineSettings) -> None:
    provisioner, calls, engine, _, pools = _provisioner(
        engine_settings, with_extensions=True, fail_start_on=2
    )

    with pytest.raises(StartError):
        await provisioner.provision(["app"])

    # Stop succeeded, the second start failed: nothing left to stop, data still removed.
    assert engine.state is EngineState.stopped
    assert calls.count("stop") == 1
    assert calls[-1] == "start"
    assert engine.destroyed == 1
    assert pools.opened == []


@pytest.mark.asyncio
async def test_teardown_stops_once(engine_settings: EngineSettings) -> None:
    provisioner, calls, engine, _, _ = _provisioner(engine_settings)
    await provisioner.provision(["app"])
    provisioner.begin_serving()
    assert provisioner.stage is ProvisioningStage.serving

    await provisioner.teardown()
    await provisioner.teardown()

    assert calls.count("stop") == 1
    assert engine.destroyed == 1
    assert provisioner.stage is ProvisioningStage.stopped


@pytest.mark.asyncio
async def test_teardown_surfaces_stop_failure(engine_settings: EngineSettings) -> None:
    provisioner, calls, _, _, _ = _provisioner(engine_settings, fail_stop=True)
    await provisioner.provision(["app"])

    with pytest.raises(StopError):
        await provisioner.teardown()

    assert calls.count("stop") == 1
    assert provisioner.stage is ProvisioningStage.stopped
