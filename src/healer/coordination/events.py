"""Typed session events and the handler that routes them.

kazoo delivers two kinds of notification on its own threads: connection
state changes (``KazooState``) to listeners, and one-shot ``WatchedEvent``s
to watch callbacks. Both are translated here into a single
:class:`SessionEvent` type, pushed onto the supervisor's channel, and
classified by :class:`SessionEventHandler` into the action the supervisor
loop takes.

::

    kazoo listener ──► from_kazoo_state() ──┐
                                            ├──► EventSink (queue.put)
    kazoo watch    ──► from_watched_event() ┘          │
                                                       ▼
                                       SessionEventHandler.handle()
                                                       │
                          IGNORE / RECONCILE / REREGISTER / SHUTDOWN
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from kazoo.protocol.states import EventType, KazooState, WatchedEvent

from healer.core.logging import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionEventKind(str, Enum):
    """Event categories the supervisor distinguishes."""

    # Session category (no node)
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    EXPIRED = "expired"

    # Tree mutations on a watched path
    NODE_CREATED = "node_created"
    NODE_DELETED = "node_deleted"
    NODE_DATA_CHANGED = "node_data_changed"
    CHILDREN_CHANGED = "children_changed"

    # Local stop request (signal / caller)
    SHUTDOWN = "shutdown"


@dataclass(frozen=True)
class SessionEvent:
    """One notification from the coordination client (or a local stop request)."""

    kind: SessionEventKind
    path: str | None = None
    state: str | None = None
    received_at: datetime = field(default_factory=_utcnow, compare=False)


EventSink = Callable[[SessionEvent], None]


_WATCH_KINDS = {
    EventType.CREATED: SessionEventKind.NODE_CREATED,
    EventType.DELETED: SessionEventKind.NODE_DELETED,
    EventType.CHANGED: SessionEventKind.NODE_DATA_CHANGED,
    EventType.CHILD: SessionEventKind.CHILDREN_CHANGED,
}

_STATE_KINDS = {
    KazooState.CONNECTED: SessionEventKind.CONNECTED,
    KazooState.SUSPENDED: SessionEventKind.DISCONNECTED,
    KazooState.LOST: SessionEventKind.EXPIRED,
}


def from_watched_event(event: WatchedEvent) -> SessionEvent | None:
    """Translate a kazoo ``WatchedEvent``; ``None`` for types we do not route."""
    kind = _WATCH_KINDS.get(event.type)
    if kind is None:
        return None
    return SessionEvent(kind=kind, path=event.path, state=str(event.state))


def from_kazoo_state(state: str) -> SessionEvent:
    """Translate a kazoo connection state (``KazooState``)."""
    kind = _STATE_KINDS.get(state, SessionEventKind.DISCONNECTED)
    return SessionEvent(kind=kind, state=str(state))


# ── Handler ──────────────────────────────────────────────────────────────


class HandlerAction(str, Enum):
    """What the supervisor loop does in response to an event.

    Ordered by precedence when a batch of events is coalesced.
    """

    IGNORE = "ignore"
    RECONCILE = "reconcile"
    REREGISTER = "reregister"
    SHUTDOWN = "shutdown"

    @property
    def priority(self) -> int:
        return _PRIORITY[self]


_PRIORITY = {
    HandlerAction.IGNORE: 0,
    HandlerAction.RECONCILE: 1,
    HandlerAction.REREGISTER: 2,
    HandlerAction.SHUTDOWN: 3,
}


class SessionEventHandler:
    """State machine over event categories.

    Connectivity transitions decide whether the supervisor keeps running;
    tree mutations decide whether it reconciles. Mutations of the parent
    node itself (deleted or data changed) consume its existence watch, so
    the registration is checked again, which re-arms it, before the children
    are read. A creation of the parent is ignored: the watch
    reporting it was armed by registration, which re-arms it after creating.
    """

    def __init__(self, parent_path: str) -> None:
        self._parent_path = parent_path
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    def handle(self, event: SessionEvent) -> HandlerAction:
        kind = event.kind

        if kind == SessionEventKind.CONNECTED:
            self._connected = True
            logger.info("session.connected", state=event.state)
            return HandlerAction.IGNORE

        if kind in (SessionEventKind.DISCONNECTED, SessionEventKind.EXPIRED):
            self._connected = False
            logger.warning("session.lost", kind=kind.value, state=event.state)
            return HandlerAction.SHUTDOWN

        if kind == SessionEventKind.SHUTDOWN:
            logger.info("session.shutdown_requested")
            return HandlerAction.SHUTDOWN

        if event.path == self._parent_path:
            if kind == SessionEventKind.NODE_CREATED:
                # Registration re-arms its own watch after creating the parent
                logger.debug("session.parent_created", path=event.path)
                return HandlerAction.IGNORE
            if kind in (SessionEventKind.NODE_DELETED, SessionEventKind.NODE_DATA_CHANGED):
                logger.info("session.parent_changed", kind=kind.value, path=event.path)
                return HandlerAction.REREGISTER

        if kind in (SessionEventKind.NODE_DELETED, SessionEventKind.CHILDREN_CHANGED):
            logger.debug("session.tree_changed", kind=kind.value, path=event.path)
            return HandlerAction.RECONCILE

        logger.debug("session.event_ignored", kind=kind.value, path=event.path)
        return HandlerAction.IGNORE

    def handle_batch(self, events: Iterable[SessionEvent]) -> HandlerAction:
        """Collapse a batch of events into the single highest-precedence action."""
        action = HandlerAction.IGNORE
        for event in events:
            candidate = self.handle(event)
            if candidate.priority > action.priority:
                action = candidate
        return action


__all__ = [
    "EventSink",
    "HandlerAction",
    "SessionEvent",
    "SessionEventHandler",
    "SessionEventKind",
    "from_kazoo_state",
    "from_watched_event",
]
