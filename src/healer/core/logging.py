"""
Structured logging for cluster-healer.

Manifesto:
    A supervisor that runs unattended is only as good as its logs. Every
    session transition, registration, reconciliation pass and launch is
    emitted as a structured event so a human at a terminal and a log
    aggregator read the same facts.

    - **Structures:** key/value events (``reconcile.launching``, ``deficit=2``)
    - **Correlates:** ``hosts`` / ``parent_path`` bound once per supervisor run
    - **Flexes:** colored console output for terminals, JSON for aggregation

Architecture:
    ::

        configure_logging(level="INFO", json_format=False, service="cluster-healer")
            │
            ▼
        structlog processor chain:
          1. TimeStamper(iso)
          2. merge_contextvars
          3. add_log_level
          4. add_service_metadata
          5. ecs field names (JSON only)
          6. JSONRenderer | ConsoleRenderer

Examples:
    >>> from healer.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> logger.info("reconcile.completed", observed=3, desired=3)

Tags:
    logging, structlog, observability, cluster-healer

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Store service name for metadata
_SERVICE_NAME = "cluster-healer"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def _ecs_compatible(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Rename fields to ECS names for JSON output."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")
    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")
    if "logger_name" in event_dict:
        event_dict["log.logger"] = event_dict.pop("logger_name")
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "cluster-healer",
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the process.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stderr.isatty()

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        shared_processors.append(structlog.processors.format_exc_info)
        shared_processors.append(_ecs_compatible)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # kazoo logs through the standard library
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        level=numeric_level,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``).

    The name is carried as the ``logger_name`` key of every event.
    """
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(logger_name=name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(hosts="zk1:2181", parent_path="/workers"):
            logger.info("supervisor.started")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
