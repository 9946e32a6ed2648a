"""
In-memory ZooKeeper stand-in that speaks kazoo's client API.

``FakeZooKeeper`` is the shared tree (one per test); every
``FakeKazooClient`` built by :meth:`FakeZooKeeper.client_factory` is one
session against it. It keeps the properties the supervisor depends on:

- watches are one-shot and fire after the mutation that triggers them
- ``get_children`` on a missing node raises and arms nothing
- ephemeral nodes vanish when their owning session stops or expires
- errors are kazoo's own exception types

Usage::

    zk = FakeZooKeeper()
    client = CoordinationClient("fake:2181", event_sink=events.append,
                                client_factory=zk.client_factory)
"""

from __future__ import annotations

import itertools
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable

from kazoo.exceptions import NodeExistsError, NoNodeError, NotEmptyError
from kazoo.handlers.threading import KazooTimeoutError
from kazoo.protocol.states import (
    EventType,
    KazooState,
    KeeperState,
    WatchedEvent,
    ZnodeStat,
)


def _parent_of(path: str) -> str:
    parent = path.rsplit("/", 1)[0]
    return parent or "/"


@dataclass
class _Node:
    data: bytes = b""
    owner: int = 0
    version: int = 0


class FakeZooKeeper:
    """Shared znode tree with one-shot watches."""

    def __init__(self, reachable: bool = True) -> None:
        self.reachable = reachable
        self.clients: list[FakeKazooClient] = []
        self.create_calls: list[str] = []
        self.delete_calls: list[str] = []
        self._nodes: dict[str, _Node] = {"/": _Node()}
        self._data_watchers: dict[str, set[Callable]] = defaultdict(set)
        self._child_watchers: dict[str, set[Callable]] = defaultdict(set)
        self._sequences: dict[str, itertools.count] = defaultdict(itertools.count)
        self._session_ids = itertools.count(1)
        self._lock = threading.RLock()

    # ── client factory (matches KazooClient(hosts=..., timeout=...)) ───

    def client_factory(self, hosts: str = "fake:2181", timeout: float = 10.0, **kwargs: Any) -> FakeKazooClient:
        if not hosts.strip():
            raise ValueError("bad hosts")
        client = FakeKazooClient(self, hosts=hosts, timeout=timeout, session_id=next(self._session_ids))
        self.clients.append(client)
        return client

    # ── inspection helpers for tests ──────────────────────────────────

    def node_exists(self, path: str) -> bool:
        with self._lock:
            return path in self._nodes

    def children_of(self, path: str) -> list[str]:
        with self._lock:
            prefix = path.rstrip("/") + "/"
            return sorted(
                p[len(prefix):] for p in self._nodes
                if p.startswith(prefix) and "/" not in p[len(prefix):] and p != "/"
            )

    def watch_count(self, path: str) -> tuple[int, int]:
        """(data watches, child watches) currently armed on *path*."""
        with self._lock:
            return len(self._data_watchers.get(path, ())), len(self._child_watchers.get(path, ()))

    # ── tree operations ───────────────────────────────────────────────

    def exists(self, path: str, watch: Callable | None) -> ZnodeStat | None:
        with self._lock:
            if watch is not None:
                self._data_watchers[path].add(watch)
            node = self._nodes.get(path)
            if node is None:
                return None
            return ZnodeStat(0, 0, 0, 0, node.version, 0, 0, node.owner, len(node.data),
                             len(self.children_of(path)), 0)

    def get_children(self, path: str, watch: Callable | None) -> list[str]:
        with self._lock:
            if path not in self._nodes:
                raise NoNodeError()
            if watch is not None:
                self._child_watchers[path].add(watch)
            return self.children_of(path)

    def create(self, path: str, value: bytes, owner: int, sequence: bool) -> str:
        with self._lock:
            if sequence:
                path = f"{path}{next(self._sequences[_parent_of(path)]):010d}"
            parent = _parent_of(path)
            if parent not in self._nodes:
                raise NoNodeError()
            if path in self._nodes:
                raise NodeExistsError()
            self._nodes[path] = _Node(data=value, owner=owner)
            self.create_calls.append(path)
            fired = self._take(self._data_watchers, path, EventType.CREATED)
            fired += self._take(self._child_watchers, parent, EventType.CHILD, event_path=parent)
        self._deliver(fired)
        return path

    def delete(self, path: str) -> None:
        with self._lock:
            if path not in self._nodes:
                raise NoNodeError()
            if self.children_of(path):
                raise NotEmptyError()
            del self._nodes[path]
            self.delete_calls.append(path)
            parent = _parent_of(path)
            fired = self._take(self._data_watchers, path, EventType.DELETED)
            fired += self._take(self._child_watchers, path, EventType.DELETED)
            fired += self._take(self._child_watchers, parent, EventType.CHILD, event_path=parent)
        self._deliver(fired)

    def drop_session(self, session_id: int) -> None:
        with self._lock:
            owned = [p for p, node in self._nodes.items() if node.owner == session_id]
        for path in sorted(owned, reverse=True):
            self.delete(path)

    # ── internals ─────────────────────────────────────────────────────

    def _take(self, registry: dict[str, set[Callable]], path: str, event_type: str,
              event_path: str | None = None) -> list[tuple[Callable, WatchedEvent]]:
        watchers = registry.pop(path, set())
        event = WatchedEvent(event_type, KeeperState.CONNECTED, event_path or path)
        return [(watcher, event) for watcher in watchers]

    @staticmethod
    def _deliver(fired: list[tuple[Callable, WatchedEvent]]) -> None:
        for watcher, event in fired:
            watcher(event)


class FakeKazooClient:
    """One session against a :class:`FakeZooKeeper`."""

    def __init__(self, server: FakeZooKeeper, hosts: str, timeout: float, session_id: int) -> None:
        self.server = server
        self.hosts = hosts
        self.timeout = timeout
        self.session_id = session_id
        self.started = False
        self.closed = False
        self._listeners: list[Callable[[str], Any]] = []

    def add_listener(self, listener: Callable[[str], Any]) -> None:
        self._listeners.append(listener)

    def start(self, timeout: float = 15) -> None:
        if not self.server.reachable:
            raise KazooTimeoutError("Connection time-out")
        self.started = True
        self._notify(KazooState.CONNECTED)

    def stop(self) -> None:
        if not self.started:
            return
        self.started = False
        self.server.drop_session(self.session_id)
        self._notify(KazooState.LOST)

    def close(self) -> None:
        self.closed = True

    def exists(self, path: str, watch: Callable | None = None) -> ZnodeStat | None:
        return self.server.exists(path, watch)

    def get_children(self, path: str, watch: Callable | None = None) -> list[str]:
        return self.server.get_children(path, watch)

    def create(self, path: str, value: bytes = b"", acl: Any = None, ephemeral: bool = False,
               sequence: bool = False, makepath: bool = False) -> str:
        owner = self.session_id if ephemeral else 0
        return self.server.create(path, value, owner, sequence)

    def delete(self, path: str, version: int = -1, recursive: bool = False) -> None:
        self.server.delete(path)

    # ── session fault helpers ─────────────────────────────────────────

    def suspend(self) -> None:
        """Connection dropped (kazoo SUSPENDED)."""
        self._notify(KazooState.SUSPENDED)

    def expire(self) -> None:
        """Session expired: ephemerals are gone (kazoo LOST)."""
        self.started = False
        self.server.drop_session(self.session_id)
        self._notify(KazooState.LOST)

    def _notify(self, state: str) -> None:
        for listener in list(self._listeners):
            listener(state)
