"""
CLI: ``cluster-healer worker`` — run the sample self-registering worker.
"""

from __future__ import annotations

import typer

from healer.cli.utils import console, err_console, load_settings
from healer.core.errors import HealerError, NoNodeError


def worker(
    hosts: str | None = typer.Option(None, "--hosts", help="ZooKeeper connect string"),  # noqa: UP007
    parent_path: str | None = typer.Option(None, "--parent-path", help="Parent registration znode"),  # noqa: UP007
    prefix: str = typer.Option("worker_", "--prefix", help="Registration node name prefix"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines"),
) -> None:
    """Register an ephemeral worker node and block until stopped.

    Example::

        cluster-healer run -w 3 -p "$(which cluster-healer)" -c "{path} worker"
    """
    from healer.supervisor import ExitReason
    from healer.worker import SampleWorker

    settings = load_settings(json_logs=json_logs, hosts=hosts, parent_path=parent_path)

    try:
        reason = SampleWorker(settings, name_prefix=prefix).run()
    except NoNodeError:
        err_console.print(f"[red]Parent node {settings.parent_path} does not exist[/red]")
        raise typer.Exit(code=1)
    except HealerError as exc:
        err_console.print(f"[red]Worker error: {exc.message}[/red]")
        raise typer.Exit(code=1)

    if reason == ExitReason.SESSION_LOST:
        raise typer.Exit(code=2)
    console.print("[yellow]Worker stopped[/yellow]")
