"""
epg.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for every layer.
- Keep the historical PostgreSQL env var names (PGPORT, PGDATA, ...) working.
- Hide secrets from repr/logging (database password, GitHub token).
- Offer a cached settings instance; components receive it explicitly.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from epg.engine.version import parse_exact_version

SERVICE_PORT_OFFSET = 3000
MAX_PORT = 65535


def default_installation_dir() -> Path:
    try:
        return Path.home() / ".theseus" / "postgresql"
    except RuntimeError:
        # No resolvable home directory (e.g. minimal containers).
        return Path("target/epg/install")


class Settings(BaseSettings):
    """
    Immutable configuration record, constructed once at startup.

    Nothing below `epg.__main__` reads the environment; the orchestrator,
    engine handle and service layer all receive values from this object.
    """

    model_config = SettingsConfigDict(env_prefix="EPG_", case_sensitive=False, frozen=True)

    service_name: str = "epg"
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    service_host: str = "0.0.0.0"

    # Engine
    pg_version: str = "=16.4.0"
    pg_port: int = Field(
        default=5016,
        ge=0,
        le=MAX_PORT,
        validation_alias=AliasChoices("PGPORT", "pg_port"),
    )
    installation_dir: Path = Field(
        default_factory=default_installation_dir,
        validation_alias=AliasChoices("PGDIR", "installation_dir"),
    )
    data_dir: Path = Field(
        default=Path("target/epg/data"),
        validation_alias=AliasChoices("PGDATA", "data_dir"),
    )
    username: str = Field(
        default="postgres",
        validation_alias=AliasChoices("POSTGRES_USER", "username"),
    )
    password: str = Field(
        default="root_pw",
        repr=False,
        validation_alias=AliasChoices("POSTGRES_PASSWORD", "password"),
    )
    temporary: bool = False

    # Databases
    default_database: str = "postgres"

    # Extensions
    with_extensions: bool = Field(
        default=False,
        validation_alias=AliasChoices("WITH_EXTENSIONS", "with_extensions"),
    )
    extension_publisher: str = "portal-corp"
    extension_package: str = "pgvector_compiled"
    extension_version: str = "=0.16.12"
    extension_name: str = "vector"
    github_token: str | None = Field(
        default=None,
        repr=False,
        validation_alias=AliasChoices("GITHUB_TOKEN", "github_token"),
    )

    # Pool (constants, not derived at runtime)
    pool_max_connections: int = Field(default=5, ge=1)
    pool_acquire_timeout: float = Field(default=3.0, gt=0)

    @field_validator("with_extensions", mode="before")
    @classmethod
    def _truthy(cls, value: Any) -> bool:
        # Only "1" and "true" enable extensions; any other value means off.
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true")

    @field_validator("pg_version", "extension_version")
    @classmethod
    def _exact_version(cls, value: str) -> str:
        parse_exact_version(value)
        return value

    @model_validator(mode="after")
    def _service_port_fits(self) -> Settings:
        if self.service_port > MAX_PORT:
            raise ValueError(
                f"PGPORT={self.pg_port} leaves no room for the service port "
                f"(PGPORT + {SERVICE_PORT_OFFSET} must be <= {MAX_PORT})"
            )
        return self

    @property
    def service_port(self) -> int:
        return self.pg_port + SERVICE_PORT_OFFSET


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# `epg.engine.settings.EngineSettings.from_settings` narrows this record down to
# what the engine handle needs; keep the two in sync when adding engine options.
