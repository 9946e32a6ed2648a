"""
Structured error types for cluster-healer.

Every failure the supervisor can hit is classified before it is handled.
The recovery action for several of them collapses to "log and wait for the
next event", but they stay distinct kinds so logs and callers can tell a
transient read failure from a structural problem.

Manifesto:
    - **Typed Error Hierarchy:** One class per failure the supervisor reacts to
    - **Explicit Retry Semantics:** Each error knows if a later event may fix it
    - **Rich Context:** Errors carry the znode path / command for logging
    - **Error Chaining:** kazoo and OS exceptions are kept as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                          HealerError                             │
        │              (category, retryable, context, cause)               │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  CoordinationError          LaunchError        ConfigError       │
        │  (COORDINATION)             (LAUNCH)           (CONFIG)          │
        │       │                                                          │
        │  CoordinationConnectionError   fatal at startup                  │
        │  NoNodeError                   transient, pass aborted           │
        │  NodeExistsError               benign on create                  │
        │  SessionLostError              terminal for the process          │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = NoNodeError("parent missing").with_context(path="/workers")
    >>> error.retryable
    True
    >>> error.context.path
    '/workers'

    Wrapping a kazoo exception:

    >>> from kazoo.exceptions import NodeExistsError as KazooNodeExists
    >>> try:
    ...     raise KazooNodeExists()
    ... except KazooNodeExists as e:
    ...     error = NodeExistsError("already registered", cause=e)
    >>> error.cause is not None
    True

Tags:
    error-handling, exception-hierarchy, zookeeper, cluster-healer

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and log routing.

    Attributes:
        COORDINATION: ZooKeeper session or tree operation failures
        LAUNCH: Worker process could not be started
        CONFIG: Missing or invalid settings
        INTERNAL: Bugs, unexpected state
    """

    COORDINATION = "COORDINATION"
    LAUNCH = "LAUNCH"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        path: znode path the failing operation targeted
        hosts: ZooKeeper connect string
        command: Launch command that failed
        metadata: Additional key-value pairs
    """

    path: str | None = None
    hosts: str | None = None
    command: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["path", "hosts", "command"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class HealerError(Exception):
    """
    Base exception for all cluster-healer errors.

    Subclasses set ``default_category`` and ``default_retryable`` so call
    sites only pass the message, and optionally ``cause``.

    Examples:
        >>> error = HealerError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.to_dict()["retryable"]
        False
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> HealerError:
        """
        Add context to this error (fluent API).

        Usage:
            raise NoNodeError("gone").with_context(path="/workers")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = repr(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# COORDINATION ERRORS
# =============================================================================


class CoordinationError(HealerError):
    """A ZooKeeper session or tree operation failed."""

    default_category = ErrorCategory.COORDINATION


class CoordinationConnectionError(CoordinationError):
    """
    The ZooKeeper ensemble could not be reached at the transport level.

    Raised by ``CoordinationClient.connect()``. Fatal at startup: bootstrap
    aborts and the process exits.
    """

    default_retryable = False


class NoNodeError(CoordinationError):
    """
    A read targeted a znode that does not exist.

    Transient for the supervisor: the current reconciliation pass aborts and
    a later parent notification retries.
    """

    default_retryable = True


class NodeExistsError(CoordinationError):
    """A create targeted a znode that already exists (benign on registration)."""


class SessionLostError(CoordinationError):
    """The session was suspended or expired; watches can no longer be trusted."""


# =============================================================================
# LAUNCH / CONFIG ERRORS
# =============================================================================


class LaunchError(HealerError):
    """A worker process could not be started."""

    default_category = ErrorCategory.LAUNCH


class ConfigError(HealerError):
    """Settings are missing or invalid."""

    default_category = ErrorCategory.CONFIG


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "HealerError",
    "CoordinationError",
    "CoordinationConnectionError",
    "NoNodeError",
    "NodeExistsError",
    "SessionLostError",
    "LaunchError",
    "ConfigError",
]
