"""Worker process launching."""

from healer.execution.launcher import LaunchRecord, ProcessLauncher, WorkerLauncher

__all__ = ["LaunchRecord", "ProcessLauncher", "WorkerLauncher"]
