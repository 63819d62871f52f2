"""
epg.extensions.installer

Binary extension installer (GitHub release repositories).

Responsibilities:
- Locate the release and asset of a compiled extension for this engine.
- Download and unpack it into the engine installation (`pg_config` dirs).
- Report every failure as `ExtensionInstallError`.
"""

from __future__ import annotations

import io
import tarfile
import zipfile
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

import httpx

from epg.engine.archive import target_triple
from epg.engine.process import run_command
from epg.engine.settings import EngineSettings
from epg.engine.version import major_version, parse_exact_version
from epg.errors import EngineError, ExtensionInstallError, describe
from epg.observability.logging import get_logger

log = get_logger(__name__)

GITHUB_API_URL = "https://api.github.com"

LIBRARY_SUFFIXES = (".so", ".dylib", ".dll")
EXTENSION_SUFFIXES = (".control", ".sql")
ARCHIVE_SUFFIXES = (".tar.gz", ".tgz", ".zip")


@dataclass(frozen=True, slots=True)
class ExtensionRequest:
    publisher: str
    package: str
    version: str
    # Name used in CREATE EXTENSION once the artifact is in place.
    name: str


@dataclass(frozen=True, slots=True)
class InstallDirs:
    library_dir: Path
    extension_dir: Path


class ExtensionInstaller:
    """
    Installs compiled extensions published as GitHub release assets.

    Purely additive: files are written into the engine installation, the
    engine process itself is never touched.
    """

    def __init__(
        self,
        *,
        github_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        api_base_url: str = GITHUB_API_URL,
    ) -> None:
        self._github_token = github_token
        self._transport = transport
        self._api_base_url = api_base_url

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self._github_token:
            headers["Authorization"] = f"Bearer {self._github_token}"
        return headers

    async def install(self, settings: EngineSettings, request: ExtensionRequest) -> list[Path]:
        log.info(
            "installing_extension",
            publisher=request.publisher,
            package=request.package,
            version=request.version,
        )
        dirs = await self.install_dirs(settings)
        try:
            version = parse_exact_version(request.version)
            pg_major = major_version(settings.version)
        except ValueError as exc:
            raise ExtensionInstallError(str(exc)) from exc

        async with httpx.AsyncClient(
            base_url=self._api_base_url,
            transport=self._transport,
            headers=self._headers(),
            follow_redirects=True,
            timeout=httpx.Timeout(30.0, read=300.0),
        ) as client:
            release = await self._find_release(client, request, version)
            asset = select_asset(release.get("assets") or [], target_triple(), pg_major)
            if asset is None:
                raise ExtensionInstallError(
                    f"{request.publisher}/{request.package} {version} has no asset for "
                    f"{target_triple()} and PostgreSQL {pg_major}"
                )
            data = await self._download(client, asset)

        written = unpack_extension(str(asset["name"]), data, dirs)
        log.info("extension_installed", package=request.package, files=len(written))
        return written

    async def install_dirs(self, settings: EngineSettings) -> InstallDirs:
        pg_config = settings.binary("pg_config")
        try:
            library_dir = (await run_command(pg_config, "--pkglibdir")).strip()
            share_dir = (await run_command(pg_config, "--sharedir")).strip()
        except EngineError as exc:
            raise ExtensionInstallError(f"cannot locate install directories: {exc}") from exc
        return InstallDirs(
            library_dir=Path(library_dir),
            extension_dir=Path(share_dir) / "extension",
        )

    async def _find_release(
        self,
        client: httpx.AsyncClient,
        request: ExtensionRequest,
        version: str,
    ) -> dict[str, Any]:
        try:
            resp = await client.get(
                f"/repos/{request.publisher}/{request.package}/releases",
                params={"per_page": 100},
            )
        except httpx.HTTPError as exc:
            raise ExtensionInstallError(f"failed to list releases: {describe(exc)}") from exc

        if resp.status_code != 200:
            raise ExtensionInstallError(
                f"listing releases of {request.publisher}/{request.package} failed: "
                f"{resp.status_code} {resp.text[:300]}"
            )

        for release in resp.json():
            tag = str(release.get("tag_name") or "").removeprefix("v")
            if tag == version:
                return release
        raise ExtensionInstallError(
            f"{request.publisher}/{request.package} has no release {version}"
        )

    async def _download(self, client: httpx.AsyncClient, asset: dict[str, Any]) -> bytes:
        url = str(asset.get("browser_download_url") or "")
        if not url:
            raise ExtensionInstallError(f"asset {asset.get('name')} has no download url")
        try:
            resp = await client.get(url, headers={"Accept": "application/octet-stream"})
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise ExtensionInstallError(f"failed to download {url}: {describe(exc)}") from exc
        return resp.content


def select_asset(assets: list[dict[str, Any]], target: str, pg_major: int) -> dict[str, Any] | None:
    for asset in assets:
        name = str(asset.get("name") or "")
        if target in name and f"pg{pg_major}" in name and name.endswith(ARCHIVE_SUFFIXES):
            return asset
    return None


def _archive_members(filename: str, data: bytes) -> Iterator[tuple[str, bytes]]:
    if filename.endswith(".zip"):
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            for info in archive.infolist():
                if not info.is_dir():
                    yield info.filename, archive.read(info)
        return

    with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as archive:
        for member in archive.getmembers():
            if not member.isfile():
                continue
            fh = archive.extractfile(member)
            if fh is not None:
                yield member.name, fh.read()


def unpack_extension(filename: str, data: bytes, dirs: InstallDirs) -> list[Path]:
    """
    Write libraries into the pkglibdir and control/SQL files into the extension dir.

    Archive layout is ignored; only file names and suffixes matter.
    """

    written: list[Path] = []
    try:
        for member_name, payload in _archive_members(filename, data):
            basename = PurePosixPath(member_name.replace("\\", "/")).name
            if basename.endswith(LIBRARY_SUFFIXES):
                target = dirs.library_dir / basename
            elif basename.endswith(EXTENSION_SUFFIXES):
                target = dirs.extension_dir / basename
            else:
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(payload)
            written.append(target)
    except (tarfile.TarError, zipfile.BadZipFile, OSError) as exc:
        raise ExtensionInstallError(f"failed to unpack {filename}: {describe(exc)}") from exc

    if not written:
        raise ExtensionInstallError(f"{filename} contains no extension files")
    return written


# --- Module Notes -----------------------------------------------------------
# Asset names are matched on the target triple and "pg<major>", e.g.
# "pgvector-x86_64-unknown-linux-gnu-pg16.tar.gz".
