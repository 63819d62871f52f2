"""
epg.engine.archive

PostgreSQL binary archives.

Responsibilities:
- Map the running platform to the release target triple.
- Download a release archive and verify it against its published SHA-256.
- Unpack the archive into `<installation_dir>/<version>`.
"""

from __future__ import annotations

import hashlib
import io
import platform
import shutil
import sys
import tarfile
import tempfile
from pathlib import Path

import httpx

from epg.errors import InstallError, describe
from epg.observability.logging import get_logger

log = get_logger(__name__)

RELEASES_URL = "https://github.com/theseus-rs/postgresql-binaries/releases/download"

_ARCHES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
}


def target_triple(system: str | None = None, machine: str | None = None) -> str:
    system = system or sys.platform
    machine = (machine or platform.machine()).lower()
    arch = _ARCHES.get(machine)
    if arch is None:
        raise InstallError(f"unsupported CPU architecture: {machine}")

    if system.startswith("linux"):
        return f"{arch}-unknown-linux-gnu"
    if system == "darwin":
        return f"{arch}-apple-darwin"
    if system == "win32":
        return f"{arch}-pc-windows-msvc"
    raise InstallError(f"unsupported platform: {system}")


def archive_url(version: str, target: str, *, base_url: str = RELEASES_URL) -> str:
    return f"{base_url}/{version}/postgresql-{version}-{target}.tar.gz"


async def download_archive(client: httpx.AsyncClient, url: str) -> bytes:
    """Fetch `url` and its `.sha256` companion; return the verified archive bytes."""

    try:
        resp = await client.get(url)
        resp.raise_for_status()
        digest_resp = await client.get(f"{url}.sha256")
        digest_resp.raise_for_status()
    except httpx.HTTPError as exc:
        raise InstallError(f"failed to download {url}: {describe(exc)}") from exc

    data = resp.content
    expected = (digest_resp.text.split() or [""])[0].strip().lower()
    actual = hashlib.sha256(data).hexdigest()
    if expected != actual:
        raise InstallError(f"checksum mismatch for {url}: expected {expected!r}, got {actual!r}")
    return data


def extract_archive(data: bytes, destination: Path) -> None:
    """
    Unpack a release tarball so its single top-level directory becomes `destination`.

    Extraction happens in a staging directory next to `destination`, so a failed
    extraction never leaves a half-populated version directory behind (the
    existence of that directory is what marks the version as installed).
    """

    destination.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{destination.name}-", dir=destination.parent))
    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as archive:
            archive.extractall(staging, filter="data")

        entries = list(staging.iterdir())
        root = entries[0] if len(entries) == 1 and entries[0].is_dir() else staging
        if not (root / "bin").is_dir():
            raise InstallError("archive does not contain a bin/ directory")
        shutil.move(str(root), str(destination))
    except (tarfile.TarError, OSError) as exc:
        raise InstallError(f"failed to extract archive into {destination}: {describe(exc)}") from exc
    finally:
        shutil.rmtree(staging, ignore_errors=True)


async def install_binaries(
    version: str,
    destination: Path,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    base_url: str = RELEASES_URL,
) -> None:
    url = archive_url(version, target_triple(), base_url=base_url)
    log.info("downloading_postgresql", url=url)
    async with httpx.AsyncClient(
        transport=transport,
        follow_redirects=True,
        timeout=httpx.Timeout(30.0, read=300.0),
    ) as client:
        data = await download_archive(client, url)
    extract_archive(data, destination)
    log.info("postgresql_installed", path=str(destination))


# --- Module Notes -----------------------------------------------------------
# When the archive's top level is a single directory it is moved into place;
# otherwise the staging directory itself becomes the version directory.
