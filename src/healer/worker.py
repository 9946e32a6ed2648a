"""Sample worker — registers itself and stays alive until its session ends.

This is the counterpart the supervisor watches: a process that announces
itself with an ephemeral, sequential child of the parent node
(``/workers/worker_0000000007``). When the process dies, ZooKeeper removes
the child once the session times out, and the supervisor launches a
replacement. Any program that does the same can be supervised; this one
exists so ``cluster-healer worker`` can be used as the launch command.
"""

from __future__ import annotations

import queue
import signal

from kazoo.client import KazooClient

from healer.coordination.client import ClientFactory, CoordinationClient, Durability
from healer.coordination.events import SessionEvent, SessionEventKind
from healer.core.logging import get_logger
from healer.core.settings import HealerSettings, get_settings
from healer.supervisor import ExitReason

logger = get_logger(__name__)

_TERMINAL = (SessionEventKind.DISCONNECTED, SessionEventKind.EXPIRED, SessionEventKind.SHUTDOWN)


class SampleWorker:
    """Holds one ephemeral registration under ``parent_path``."""

    def __init__(
        self,
        settings: HealerSettings | None = None,
        *,
        name_prefix: str = "worker_",
        client_factory: ClientFactory = KazooClient,
    ) -> None:
        self._settings = settings or get_settings()
        self._name_prefix = name_prefix
        self._events: queue.Queue[SessionEvent] = queue.Queue()
        self._stop_requested = False
        self._node_path: str | None = None
        self._client = CoordinationClient(
            self._settings.hosts,
            self._settings.session_timeout_ms,
            event_sink=self._events.put,
            connect_timeout=self._settings.connect_timeout,
            client_factory=client_factory,
        )

    @property
    def node_path(self) -> str | None:
        return self._node_path

    def register(self) -> str:
        """Connect and create the ephemeral sequential registration node.

        Raises:
            NoNodeError: The parent node does not exist yet.
        """
        self._client.connect()
        self._node_path = self._client.create(
            f"{self._settings.parent_path}/{self._name_prefix}",
            b"",
            Durability.EPHEMERAL,
            sequence=True,
        )
        logger.info("worker.registered", path=self._node_path)
        return self._node_path

    def run(self) -> ExitReason:
        """Register, then block until stopped or the session is lost."""
        try:
            signal.signal(signal.SIGINT, self._handle_signal)
            signal.signal(signal.SIGTERM, self._handle_signal)
        except (ValueError, OSError):
            pass

        try:
            self.register()
            while True:
                event = self._events.get()
                if event.kind in _TERMINAL:
                    break
        finally:
            self._client.close()
            logger.info("worker.stopped", path=self._node_path)

        if self._stop_requested:
            return ExitReason.SHUTDOWN_REQUESTED
        return ExitReason.SESSION_LOST

    def stop(self) -> None:
        self._stop_requested = True
        self._events.put(SessionEvent(kind=SessionEventKind.SHUTDOWN))

    def _handle_signal(self, signum, frame):
        logger.info("worker.signal_received", signal=signum)
        self.stop()
