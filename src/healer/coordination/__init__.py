"""ZooKeeper session adapter and session-event routing."""

from healer.coordination.client import (
    ChildrenView,
    CoordinationClient,
    Durability,
    NodeStatus,
    SessionState,
    WatchKind,
    WatchRegistration,
)
from healer.coordination.events import (
    EventSink,
    HandlerAction,
    SessionEvent,
    SessionEventHandler,
    SessionEventKind,
)

__all__ = [
    "ChildrenView",
    "CoordinationClient",
    "Durability",
    "EventSink",
    "HandlerAction",
    "NodeStatus",
    "SessionEvent",
    "SessionEventHandler",
    "SessionEventKind",
    "SessionState",
    "WatchKind",
    "WatchRegistration",
]
