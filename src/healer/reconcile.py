"""Reconciliation engine — converge registered workers on the desired count.

One pass::

    view    = get_children(parent, watch=True)   # read + re-arm, one request
    deficit = desired - len(view.children)
    deficit > 0  → launch() x deficit, sequentially
    deficit <= 0 → nothing; surplus workers are never terminated

The engine never deletes a znode. It does not correlate launches with the
worker that died; it only closes the gap between the two counts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from healer.coordination.client import CoordinationClient
from healer.core.errors import LaunchError, NoNodeError
from healer.core.logging import get_logger
from healer.execution.launcher import LaunchRecord, WorkerLauncher

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass."""

    desired: int
    observed: int = 0
    children: tuple[str, ...] = ()
    launched: list[LaunchRecord] = field(default_factory=list)
    failed: int = 0
    aborted: bool = False
    finished_at: datetime = field(default_factory=_utcnow)

    @property
    def deficit(self) -> int:
        return self.desired - self.observed

    def to_dict(self) -> dict[str, Any]:
        return {
            "desired": self.desired,
            "observed": self.observed,
            "deficit": self.deficit,
            "launched": len(self.launched),
            "failed": self.failed,
            "aborted": self.aborted,
            "finished_at": self.finished_at.isoformat(),
        }


class ReconciliationEngine:
    """Reads the registered workers and launches the missing ones.

    Not re-entrant: callers run at most one pass at a time (the supervisor
    loop is the only caller).
    """

    def __init__(
        self,
        client: CoordinationClient,
        launcher: WorkerLauncher,
        parent_path: str,
        desired_count: int,
    ) -> None:
        if desired_count < 0:
            raise ValueError("desired_count must be >= 0")
        self._client = client
        self._launcher = launcher
        self._parent_path = parent_path
        self._desired_count = desired_count

    @property
    def desired_count(self) -> int:
        return self._desired_count

    def reconcile(self) -> ReconcileResult:
        """Run one pass.

        A missing parent aborts the pass without launching; the parent's
        existence watch brings the supervisor back once it reappears.
        """
        result = ReconcileResult(desired=self._desired_count)

        try:
            view = self._client.get_children(self._parent_path, watch=True)
        except NoNodeError as exc:
            logger.warning("reconcile.parent_missing", path=self._parent_path, error=str(exc))
            result.aborted = True
            return result

        result.observed = view.count
        result.children = view.children

        if result.deficit <= 0:
            logger.info(
                "reconcile.satisfied",
                observed=result.observed,
                desired=result.desired,
            )
            return result

        logger.info(
            "reconcile.launching",
            observed=result.observed,
            desired=result.desired,
            deficit=result.deficit,
            children=list(view.children),
        )
        for _ in range(result.deficit):
            try:
                result.launched.append(self._launcher.launch())
            except LaunchError as exc:
                result.failed += 1
                logger.error("reconcile.launch_failed", **exc.to_dict())

        result.finished_at = _utcnow()
        logger.info("reconcile.completed", **result.to_dict())
        return result
