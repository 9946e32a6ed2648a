"""
Centralized settings for cluster-healer.

Manifesto:
    The supervisor reads its whole configuration once, validates it, and
    treats it as immutable for the life of the process. The desired worker
    count in particular never changes under a running supervisor.

Every field can be set through ``HEALER_*`` environment variables (e.g.
``HEALER_DESIRED_WORKERS=5``) or a ``.env`` file; CLI options override them
through :func:`get_settings` keyword overrides.

Tags:
    configuration, settings, pydantic, cluster-healer

Doc-Types:
    api-reference
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from healer.core.errors import ConfigError

DEFAULT_PROGRAM = "./target/cluster-healer-1.0-SNAPSHOT-jar-with-dependencies.jar"


class HealerSettings(BaseSettings):
    """cluster-healer configuration.

    Fields
    ──────
    hosts               : ZooKeeper connect string (``host:port[,host:port]``)
    session_timeout_ms  : Session timeout negotiated with the ensemble
    connect_timeout     : Seconds to wait for the first connection
    parent_path         : Persistent znode workers register under
    desired_workers     : Target number of registered workers
    program_path        : Worker program artifact
    launch_command      : Command template (``{program}``, ``{path}``, ``{python}``)
    log_level           : structlog level
    log_format          : ``console`` or ``json``
    """

    model_config = SettingsConfigDict(
        env_prefix="HEALER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ── Coordination ─────────────────────────────────────────────
    hosts: str = Field(default="localhost:2181")
    session_timeout_ms: int = Field(default=3000, gt=0)
    connect_timeout: float = Field(default=15.0, gt=0)
    parent_path: str = Field(default="/workers")

    # ── Pool ─────────────────────────────────────────────────────
    desired_workers: int = Field(default=3, ge=0)
    program_path: Path = Field(default=Path(DEFAULT_PROGRAM))
    launch_command: str = Field(default="java -jar {program}")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: Literal["console", "json"] = Field(default="console")

    @field_validator("parent_path")
    @classmethod
    def _absolute_znode_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("parent_path must be an absolute znode path")
        if len(value) > 1 and value.endswith("/"):
            raise ValueError("parent_path must not end with '/'")
        return value

    @field_validator("hosts")
    @classmethod
    def _non_empty_hosts(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("hosts must not be empty")
        return value.strip()

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @property
    def session_timeout_seconds(self) -> float:
        """Session timeout in seconds, the unit kazoo expects."""
        return self.session_timeout_ms / 1000.0


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, HealerSettings] = {}


def get_settings(*, _force_reload: bool = False, **overrides: Any) -> HealerSettings:
    """Load, validate, and cache a :class:`HealerSettings` instance.

    Keyword overrides whose value is ``None`` are ignored so CLI options that
    were not given fall through to the environment.

    Raises:
        ConfigError: If validation fails.
    """
    given = {key: value for key, value in overrides.items() if value is not None}
    cache_key = repr(sorted(given.items()))

    if not _force_reload and cache_key in _settings_cache:
        return _settings_cache[cache_key]

    try:
        settings = HealerSettings(**given)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}", cause=exc) from exc

    _settings_cache[cache_key] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()
