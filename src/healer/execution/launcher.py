"""Worker launcher — starts one detached worker process per call.

The launcher is the only place the supervisor touches the OS process API.
It is fire-and-forget: no exit code, output or crash feedback flows back.
The supervisor learns that a worker died only when the worker's ephemeral
znode disappears.

ARCHITECTURE
────────────
::

    ProcessLauncher(program, command_template)
      └── .launch()
            ├── resolve program (must exist)
            ├── render template  {program} {path} {python}
            ├── shlex.split
            └── Popen(cwd=program.parent, start_new_session=True)

Related modules:
    healer.reconcile — calls ``launch()`` once per missing worker

Example::

    launcher = ProcessLauncher("./target/worker.jar", "java -jar {program}")
    record = launcher.launch()
    print(record.pid, record.command)
"""

from __future__ import annotations

import shlex
import subprocess
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from healer.core.errors import LaunchError
from healer.core.logging import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class LaunchRecord:
    """What was started. Used for logging only."""

    pid: int
    command: tuple[str, ...]
    cwd: Path
    started_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, object]:
        return {
            "pid": self.pid,
            "command": " ".join(self.command),
            "cwd": str(self.cwd),
            "started_at": self.started_at.isoformat(),
        }


@runtime_checkable
class WorkerLauncher(Protocol):
    """Starts one new worker instance per call."""

    def launch(self) -> LaunchRecord:
        """Start a worker.

        Raises:
            LaunchError: The process could not be started.
        """
        ...


class ProcessLauncher:
    """Launches the worker program as a detached OS process.

    Parameters
    ----------
    program : str | Path
        Worker program artifact. Its directory becomes the working directory.
    command_template : str
        Command line with ``{program}`` (file name), ``{path}`` (absolute
        path) and ``{python}`` (current interpreter) placeholders. Values are
        shell-quoted before the line is split, so paths with spaces stay one
        argument.
    """

    def __init__(self, program: str | Path, command_template: str = "java -jar {program}") -> None:
        self._program = Path(program)
        self._command_template = command_template

    @property
    def program(self) -> Path:
        return self._program

    def build_command(self) -> tuple[list[str], Path]:
        """Resolve the program and render the command line.

        Raises:
            LaunchError: The program does not exist or the template is invalid.
        """
        path = self._program.expanduser().resolve()
        if not path.is_file():
            raise LaunchError(f"Worker program not found: {path}").with_context(
                command=self._command_template, program=str(path)
            )

        try:
            rendered = self._command_template.format(
                program=shlex.quote(path.name),
                path=shlex.quote(str(path)),
                python=shlex.quote(sys.executable),
            )
            argv = shlex.split(rendered)
        except (KeyError, IndexError, ValueError) as exc:
            raise LaunchError(
                f"Invalid launch command template {self._command_template!r}", cause=exc
            ).with_context(command=self._command_template) from exc

        if not argv:
            raise LaunchError("Launch command is empty").with_context(command=rendered)
        return argv, path.parent

    def launch(self) -> LaunchRecord:
        argv, cwd = self.build_command()
        logger.info("launcher.launching", command=" ".join(argv), cwd=str(cwd))

        try:
            process = subprocess.Popen(
                argv,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as exc:
            raise LaunchError(f"Could not start worker: {exc}", cause=exc).with_context(
                command=" ".join(argv)
            ) from exc

        record = LaunchRecord(pid=process.pid, command=tuple(argv), cwd=cwd)
        logger.info("launcher.launched", **record.to_dict())
        return record
