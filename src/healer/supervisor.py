"""Supervisor — bootstrap and the event loop that keeps the pool healed.

The Supervisor bridges the coordination session to the reconciliation
engine. kazoo's threads only push typed :class:`SessionEvent`s onto a queue;
the thread that calls :meth:`Supervisor.run` is the single consumer, so at
most one reconciliation pass is ever in flight.

Usage (programmatic)::

    from healer.core.settings import get_settings
    from healer.supervisor import Supervisor

    supervisor = Supervisor(get_settings(desired_workers=3))
    reason = supervisor.run()  # blocks until SIGINT/SIGTERM or session loss

Usage (CLI)::

    cluster-healer run --workers 3 --program ./target/worker.jar

Architecture:
    1. ``bootstrap()`` connects, ensures the parent node, runs the first pass.
    2. ``step()`` blocks for one event, drains everything already queued and
       collapses the batch into one action (SHUTDOWN > REREGISTER > RECONCILE).
    3. ``run()`` repeats ``step()`` until the action is SHUTDOWN, then closes
       the session. There is no reconnect: a lost session ends the process.
"""

from __future__ import annotations

import queue
import signal
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from kazoo.client import KazooClient

from healer.coordination.client import ClientFactory, CoordinationClient
from healer.coordination.events import (
    HandlerAction,
    SessionEvent,
    SessionEventHandler,
    SessionEventKind,
)
from healer.core.errors import SessionLostError
from healer.core.logging import LogContext, get_logger
from healer.core.settings import HealerSettings, get_settings
from healer.execution.launcher import ProcessLauncher, WorkerLauncher
from healer.reconcile import ReconciliationEngine, ReconcileResult
from healer.registration import RegistrationManager

logger = get_logger(__name__)


class ExitReason(str, Enum):
    """Why :meth:`Supervisor.run` returned."""

    SHUTDOWN_REQUESTED = "shutdown_requested"
    SESSION_LOST = "session_lost"


@dataclass
class SupervisorStats:
    """Aggregate counters for one supervisor run."""

    reconciliations: int = 0
    launches: int = 0
    launch_failures: int = 0
    aborted_passes: int = 0
    events_received: int = 0
    coalesced_events: int = 0
    last_reconcile_at: datetime | None = None
    last_observed: int | None = None

    def record(self, result: ReconcileResult) -> None:
        self.reconciliations += 1
        self.launches += len(result.launched)
        self.launch_failures += result.failed
        if result.aborted:
            self.aborted_passes += 1
        else:
            self.last_observed = result.observed
        self.last_reconcile_at = result.finished_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "reconciliations": self.reconciliations,
            "launches": self.launches,
            "launch_failures": self.launch_failures,
            "aborted_passes": self.aborted_passes,
            "events_received": self.events_received,
            "coalesced_events": self.coalesced_events,
            "last_reconcile_at": self.last_reconcile_at.isoformat() if self.last_reconcile_at else None,
            "last_observed": self.last_observed,
        }


class Supervisor:
    """Keeps ``desired_workers`` workers registered under ``parent_path``."""

    def __init__(
        self,
        settings: HealerSettings | None = None,
        *,
        launcher: WorkerLauncher | None = None,
        client_factory: ClientFactory = KazooClient,
    ) -> None:
        """
        Args:
            settings: Validated settings. Falls back to :func:`get_settings`.
            launcher: Optional launcher. If ``None``, a :class:`ProcessLauncher`
                is built from ``program_path`` and ``launch_command``.
            client_factory: Builds the kazoo client (tests inject a fake).
        """
        self._settings = settings or get_settings()
        self._events: queue.Queue[SessionEvent] = queue.Queue()
        self._stop_requested = False
        self._stats = SupervisorStats()

        self._client = CoordinationClient(
            self._settings.hosts,
            self._settings.session_timeout_ms,
            event_sink=self._events.put,
            connect_timeout=self._settings.connect_timeout,
            client_factory=client_factory,
        )
        self._launcher = launcher or ProcessLauncher(
            self._settings.program_path,
            self._settings.launch_command,
        )
        self._registration = RegistrationManager(self._client, self._settings.parent_path)
        self._engine = ReconciliationEngine(
            self._client,
            self._launcher,
            self._settings.parent_path,
            self._settings.desired_workers,
        )
        self._handler = SessionEventHandler(self._settings.parent_path)

    @property
    def client(self) -> CoordinationClient:
        return self._client

    @property
    def stats(self) -> SupervisorStats:
        return self._stats

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def run(self) -> ExitReason:
        """Bootstrap, then consume events until shutdown (blocking).

        Installs signal handlers for graceful shutdown on SIGINT / SIGTERM
        when called from the main thread.

        Raises:
            CoordinationConnectionError: The ensemble could not be reached.
        """
        try:
            signal.signal(signal.SIGINT, self._handle_signal)
            signal.signal(signal.SIGTERM, self._handle_signal)
        except (ValueError, OSError):
            pass  # Not in main thread; skip signal registration

        with LogContext(hosts=self._settings.hosts, parent_path=self._settings.parent_path):
            try:
                self.bootstrap()
                while self.step() != HandlerAction.SHUTDOWN:
                    pass
            finally:
                self._client.close()
                logger.info("supervisor.stopped", **self._stats.to_dict())

        if self._stop_requested:
            return ExitReason.SHUTDOWN_REQUESTED
        return ExitReason.SESSION_LOST

    def bootstrap(self) -> ReconcileResult | None:
        """Connect, register the parent node, and run the first pass."""
        logger.info(
            "supervisor.starting",
            desired_workers=self._settings.desired_workers,
            program=str(self._settings.program_path),
            session_timeout_s=self._settings.session_timeout_seconds,
        )
        self._client.connect()
        self._registration.ensure_parent_registered()
        return self._reconcile()

    def stop(self) -> None:
        """Request graceful shutdown; the loop exits after the current pass."""
        logger.info("supervisor.stop_requested")
        self._stop_requested = True
        self._events.put(SessionEvent(kind=SessionEventKind.SHUTDOWN))

    # ------------------------------------------------------------------ #
    # Event loop
    # ------------------------------------------------------------------ #

    def step(self, timeout: float | None = None) -> HandlerAction | None:
        """Handle one batch of queued events.

        Blocks up to *timeout* seconds (forever when ``None``) for the first
        event, then takes everything else already queued without blocking.

        Returns:
            The action taken, or ``None`` if no event arrived in time.
        """
        try:
            first = self._events.get(timeout=timeout)
        except queue.Empty:
            return None

        batch = [first]
        while True:
            try:
                batch.append(self._events.get_nowait())
            except queue.Empty:
                break

        self._stats.events_received += len(batch)
        self._stats.coalesced_events += len(batch) - 1

        action = self._handler.handle_batch(batch)
        if action == HandlerAction.REREGISTER:
            self._reregister()
        elif action == HandlerAction.RECONCILE:
            self._reconcile()
        return action

    def _reregister(self) -> None:
        try:
            self._registration.ensure_parent_registered()
        except SessionLostError as exc:
            logger.warning("supervisor.session_lost_during_registration", error=str(exc))
            return
        except Exception:
            logger.exception("supervisor.registration_error")
            return
        self._reconcile()

    def _reconcile(self) -> ReconcileResult | None:
        try:
            result = self._engine.reconcile()
        except SessionLostError as exc:
            # The state listener delivers the matching DISCONNECTED / EXPIRED event
            logger.warning("supervisor.session_lost_during_reconcile", error=str(exc))
            return None
        except Exception:
            logger.exception("supervisor.reconcile_error")
            return None
        self._stats.record(result)
        return result

    # ------------------------------------------------------------------ #
    # Signal handling
    # ------------------------------------------------------------------ #

    def _handle_signal(self, signum, frame):
        logger.info("supervisor.signal_received", signal=signum)
        self.stop()
