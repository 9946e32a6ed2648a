"""Core primitives shared by every healer module: errors, logging, settings."""

from healer.core.errors import (
    ConfigError,
    CoordinationConnectionError,
    CoordinationError,
    ErrorCategory,
    HealerError,
    LaunchError,
    NodeExistsError,
    NoNodeError,
    SessionLostError,
)
from healer.core.logging import configure_logging, get_logger

__all__ = [
    "ConfigError",
    "CoordinationConnectionError",
    "CoordinationError",
    "ErrorCategory",
    "HealerError",
    "LaunchError",
    "NodeExistsError",
    "NoNodeError",
    "SessionLostError",
    "configure_logging",
    "get_logger",
]
