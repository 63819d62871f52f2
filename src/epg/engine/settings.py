"""
epg.engine.settings

Immutable engine settings handed to the engine handle.

Responsibilities:
- Validate the port and pin one exact engine version.
- Derive filesystem locations inside the installation.
- Derive connection URLs (no I/O).
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy.engine import URL

from epg.engine.version import parse_exact_version

if TYPE_CHECKING:
    from epg.settings import Settings

DRIVER = "postgresql+asyncpg"


@dataclass(frozen=True, slots=True)
class EngineSettings:
    version: str
    installation_dir: Path
    data_dir: Path
    port: int
    username: str
    password: str = field(repr=False)
    temporary: bool = False
    host: str = "localhost"

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port must fit in 16 bits, got {self.port}")
        # Normalise "=16.4.0" to "16.4.0" so paths and archive names agree.
        object.__setattr__(self, "version", parse_exact_version(self.version))

    @classmethod
    def from_settings(cls, settings: Settings) -> EngineSettings:
        return cls(
            version=settings.pg_version,
            installation_dir=Path(settings.installation_dir),
            data_dir=Path(settings.data_dir),
            port=settings.pg_port,
            username=settings.username,
            password=settings.password,
            temporary=settings.temporary,
        )

    @property
    def version_dir(self) -> Path:
        return self.installation_dir / self.version

    @property
    def bin_dir(self) -> Path:
        return self.version_dir / "bin"

    def binary(self, name: str) -> Path:
        if sys.platform == "win32":
            name = f"{name}.exe"
        return self.bin_dir / name

    def url(self, database: str) -> URL:
        return URL.create(
            DRIVER,
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=database,
        )


# --- Module Notes -----------------------------------------------------------
# URLs carry the password; render them with `hide_password=True` when logging.
