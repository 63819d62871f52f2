"""
tests.test_pool

Connection pool adapter against aiosqlite.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from epg.db.identifiers import quote_identifier
from epg.db.session import PoolAdapter
from epg.errors import ExtensionInstallError, PoolConnectError


def test_quote_identifier() -> None:
    assert quote_identifier("app") == '"app"'
    assert quote_identifier('we"ird') == '"we""ird"'
    with pytest.raises(ValueError):
        quote_identifier("")


@pytest.mark.asyncio
async def test_open_and_probe(tmp_path: Path) -> None:
    url = f"sqlite+aiosqlite:///{tmp_path / 'pool.db'}"
    adapter = PoolAdapter(max_connections=5, acquire_timeout=3.0)

    await adapter.probe(url)
    pool = await adapter.open(url)
    try:
        assert pool.pool.size() == 5
    finally:
        await pool.dispose()


@pytest.mark.asyncio
async def test_open_unreachable_database(tmp_path: Path) -> None:
    url = f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'dir' / 'pool.db'}"
    with pytest.raises(PoolConnectError):
        await PoolAdapter().open(url)
    with pytest.raises(PoolConnectError):
        await PoolAdapter().probe(url)


@pytest.mark.asyncio
async def test_enable_extension_failure(tmp_path: Path) -> None:
    adapter = PoolAdapter()
    pool = await adapter.open(f"sqlite+aiosqlite:///{tmp_path / 'ext.db'}")
    try:
        with pytest.raises(ExtensionInstallError, match="vector"):
            await adapter.enable_extension(pool, "vector")
    finally:
        await pool.dispose()
