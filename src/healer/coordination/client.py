"""ZooKeeper client adapter.

Wraps :class:`kazoo.client.KazooClient` behind the handful of operations the
supervisor needs: session lifecycle, ``exists``, ``get_children`` and
``create``. kazoo exceptions are translated into :mod:`healer.core.errors`
types, and every notification kazoo delivers is translated into a
:class:`~healer.coordination.events.SessionEvent` and handed to the event
sink. Nothing here reacts to events; that is the supervisor loop's job.

Watches are one-shot. ``get_children(path, watch=True)`` is the
read-with-subscribe primitive: the children and the freshly armed
:class:`WatchRegistration` come back from the same request, so there is no
window between "watch fired" and "new watch installed" that a separate
subscribe step would open.

Example::

    client = CoordinationClient("localhost:2181", 3000, event_sink=queue.put)
    client.connect()
    view = client.get_children("/workers", watch=True)
    print(view.children, view.watch)
    client.close()
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from kazoo.client import KazooClient
from kazoo.exceptions import (
    ConnectionLoss,
    KazooException,
    SessionExpiredError,
)
from kazoo.exceptions import NodeExistsError as KazooNodeExistsError
from kazoo.exceptions import NoNodeError as KazooNoNodeError
from kazoo.handlers.threading import KazooTimeoutError
from kazoo.protocol.states import KazooState, WatchedEvent

from healer.coordination.events import EventSink, from_kazoo_state, from_watched_event
from healer.core.errors import (
    CoordinationConnectionError,
    CoordinationError,
    NodeExistsError,
    NoNodeError,
    SessionLostError,
)
from healer.core.logging import get_logger

logger = get_logger(__name__)

ClientFactory = Callable[..., Any]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    CLOSED = "closed"


class Durability(str, Enum):
    """Lifetime of a created znode."""

    PERSISTENT = "persistent"
    EPHEMERAL = "ephemeral"


class WatchKind(str, Enum):
    """Event class a one-shot watch is bound to."""

    EXISTS = "exists"  # created / deleted / data changed
    CHILDREN = "children"  # children changed / node deleted


@dataclass
class WatchRegistration:
    """A one-shot subscription on one path.

    Once ``fired_at`` is set the registration is consumed; observing the path
    again requires another watched read.
    """

    path: str
    kind: WatchKind
    armed_at: datetime = field(default_factory=_utcnow)
    fired_at: datetime | None = None

    @property
    def fired(self) -> bool:
        return self.fired_at is not None


@dataclass(frozen=True)
class NodeStatus:
    """Subset of a kazoo ``ZnodeStat`` the supervisor cares about."""

    path: str
    version: int
    num_children: int
    ephemeral: bool

    @classmethod
    def from_stat(cls, path: str, stat: Any) -> NodeStatus:
        return cls(
            path=path,
            version=stat.version,
            num_children=stat.numChildren,
            ephemeral=bool(stat.ephemeralOwner),
        )


@dataclass(frozen=True)
class ChildrenView:
    """Result of a children read: the names and the watch armed with it."""

    path: str
    children: tuple[str, ...]
    watch: WatchRegistration | None = None

    @property
    def count(self) -> int:
        return len(self.children)


class CoordinationClient:
    """Session owner and tree-operation adapter over kazoo.

    Args:
        hosts: ZooKeeper connect string (``host:port[,host:port]``).
        session_timeout_ms: Session timeout, converted to kazoo's seconds.
        event_sink: Callable receiving every translated ``SessionEvent``.
        connect_timeout: Seconds :meth:`connect` waits for the first session.
        client_factory: Builds the underlying kazoo client (tests inject a fake).
    """

    def __init__(
        self,
        hosts: str,
        session_timeout_ms: int = 3000,
        event_sink: EventSink | None = None,
        *,
        connect_timeout: float = 15.0,
        client_factory: ClientFactory = KazooClient,
    ) -> None:
        self._hosts = hosts
        self._session_timeout_ms = session_timeout_ms
        self._event_sink = event_sink
        self._connect_timeout = connect_timeout
        self._client_factory = client_factory

        self._zk: Any | None = None
        self._state = SessionState.CLOSED
        self._closing = False
        self._armed: dict[tuple[str, WatchKind], WatchRegistration] = {}
        self._lock = threading.Lock()

    @property
    def hosts(self) -> str:
        return self._hosts

    @property
    def state(self) -> SessionState:
        return self._state

    # ------------------------------------------------------------------ #
    # Session lifecycle
    # ------------------------------------------------------------------ #

    def connect(self) -> None:
        """Establish the session.

        The CONNECTED notification reaches the event sink through the state
        listener, like every later transition.

        Raises:
            CoordinationConnectionError: The host string is invalid or the
                ensemble did not answer within ``connect_timeout``.
        """
        if self._zk is not None and self._state != SessionState.CLOSED:
            return

        self._state = SessionState.CONNECTING
        self._closing = False
        logger.info(
            "coordination.connecting",
            hosts=self._hosts,
            session_timeout_ms=self._session_timeout_ms,
        )

        try:
            self._zk = self._client_factory(
                hosts=self._hosts,
                timeout=self._session_timeout_ms / 1000.0,
            )
        except ValueError as exc:
            self._state = SessionState.CLOSED
            raise CoordinationConnectionError(
                f"Invalid ZooKeeper hosts {self._hosts!r}", cause=exc
            ).with_context(hosts=self._hosts) from exc

        self._zk.add_listener(self._on_state_change)

        try:
            self._zk.start(timeout=self._connect_timeout)
        except KazooTimeoutError as exc:
            self._state = SessionState.CLOSED
            self._zk = None
            raise CoordinationConnectionError(
                f"Could not reach ZooKeeper at {self._hosts} within {self._connect_timeout}s",
                cause=exc,
            ).with_context(hosts=self._hosts) from exc

        # start() returns once connected; the listener may not have run yet
        if self._state == SessionState.CONNECTING:
            self._state = SessionState.CONNECTED

    def close(self) -> None:
        """Release the session. Safe to call more than once."""
        if self._zk is None or self._state == SessionState.CLOSED:
            self._state = SessionState.CLOSED
            return

        self._closing = True
        zk, self._zk = self._zk, None
        try:
            zk.stop()
            zk.close()
        finally:
            self._state = SessionState.CLOSED
            with self._lock:
                self._armed.clear()
            logger.info("coordination.closed", hosts=self._hosts)

    # ------------------------------------------------------------------ #
    # Tree operations
    # ------------------------------------------------------------------ #

    def exists(self, path: str, watch: bool = False) -> NodeStatus | None:
        """Read existence of *path*, optionally arming a one-shot existence watch.

        The watch is armed whether or not the node exists, so a later create
        is observed as well as a delete.
        """
        zk = self._require_session()
        registration = self._arm(path, WatchKind.EXISTS) if watch else None
        try:
            with self._translated("exists", path):
                stat = zk.exists(path, watch=self._on_exists_watch if watch else None)
        except CoordinationError:
            self._disarm(registration)
            raise
        return NodeStatus.from_stat(path, stat) if stat is not None else None

    def get_children(self, path: str, watch: bool = False) -> ChildrenView:
        """Read the children of *path*, optionally re-arming the children watch.

        Raises:
            NoNodeError: *path* does not exist (no watch is armed).
        """
        zk = self._require_session()
        registration = self._arm(path, WatchKind.CHILDREN) if watch else None
        try:
            with self._translated("get_children", path):
                children = zk.get_children(path, watch=self._on_children_watch if watch else None)
        except CoordinationError:
            self._disarm(registration)
            raise
        return ChildrenView(path=path, children=tuple(sorted(children)), watch=registration)

    def create(
        self,
        path: str,
        data: bytes = b"",
        durability: Durability = Durability.PERSISTENT,
        sequence: bool = False,
    ) -> str:
        """Create *path* and return the created path (differs when ``sequence``).

        Raises:
            NodeExistsError: *path* is already present.
            NoNodeError: The parent of *path* is missing.
        """
        zk = self._require_session()
        with self._translated("create", path):
            created = zk.create(
                path,
                data,
                ephemeral=durability == Durability.EPHEMERAL,
                sequence=sequence,
            )
        logger.debug("coordination.created", path=created, durability=durability.value)
        return created

    def armed_watches(self) -> list[WatchRegistration]:
        """Watches armed and not yet fired."""
        with self._lock:
            return list(self._armed.values())

    # ------------------------------------------------------------------ #
    # kazoo callbacks (run on kazoo's threads)
    # ------------------------------------------------------------------ #

    def _on_state_change(self, state: str) -> None:
        if self._closing:
            return
        if state == KazooState.CONNECTED:
            self._state = SessionState.CONNECTED
        else:
            self._state = SessionState.DISCONNECTED
        self._emit(from_kazoo_state(state))

    def _on_exists_watch(self, event: WatchedEvent) -> None:
        self._fire(event, WatchKind.EXISTS)

    def _on_children_watch(self, event: WatchedEvent) -> None:
        self._fire(event, WatchKind.CHILDREN)

    def _fire(self, event: WatchedEvent, kind: WatchKind) -> None:
        with self._lock:
            registration = self._armed.pop((event.path, kind), None)
        if registration is not None:
            registration.fired_at = _utcnow()
        translated = from_watched_event(event)
        if translated is not None and not self._closing:
            self._emit(translated)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _emit(self, event: Any) -> None:
        if self._event_sink is not None:
            self._event_sink(event)

    def _require_session(self) -> Any:
        if self._zk is None or self._state == SessionState.CLOSED:
            raise SessionLostError("No open ZooKeeper session").with_context(hosts=self._hosts)
        return self._zk

    def _arm(self, path: str, kind: WatchKind) -> WatchRegistration:
        # Recorded before the request so a watch firing immediately still finds it
        registration = WatchRegistration(path=path, kind=kind)
        with self._lock:
            self._armed[(path, kind)] = registration
        return registration

    def _disarm(self, registration: WatchRegistration | None) -> None:
        if registration is None:
            return
        with self._lock:
            if self._armed.get((registration.path, registration.kind)) is registration:
                del self._armed[(registration.path, registration.kind)]

    @contextmanager
    def _translated(self, operation: str, path: str) -> Iterator[None]:
        try:
            yield
        except KazooNoNodeError as exc:
            raise NoNodeError(f"{operation}: {path} does not exist", cause=exc).with_context(
                path=path
            ) from exc
        except KazooNodeExistsError as exc:
            raise NodeExistsError(f"{operation}: {path} already exists", cause=exc).with_context(
                path=path
            ) from exc
        except (ConnectionLoss, SessionExpiredError) as exc:
            raise SessionLostError(f"{operation}: session lost", cause=exc).with_context(
                path=path, hosts=self._hosts
            ) from exc
        except KazooException as exc:
            raise CoordinationError(f"{operation}: {exc!r}", cause=exc).with_context(
                path=path
            ) from exc


__all__ = [
    "ChildrenView",
    "CoordinationClient",
    "Durability",
    "NodeStatus",
    "SessionState",
    "WatchKind",
    "WatchRegistration",
]
