"""
CLI: ``cluster-healer run`` / ``cluster-healer status`` — supervise the pool.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer

from healer.cli.utils import console, err_console, load_settings, print_children
from healer.core.errors import CoordinationConnectionError, HealerError


def run(
    workers: int | None = typer.Option(None, "--workers", "-w", help="Desired number of workers"),  # noqa: UP007
    program: Path | None = typer.Option(None, "--program", "-p", help="Worker program artifact"),  # noqa: UP007
    hosts: str | None = typer.Option(None, "--hosts", help="ZooKeeper connect string"),  # noqa: UP007
    session_timeout: int | None = typer.Option(  # noqa: UP007
        None, "--session-timeout", help="Session timeout in milliseconds"
    ),
    parent_path: str | None = typer.Option(None, "--parent-path", help="Parent registration znode"),  # noqa: UP007
    command: str | None = typer.Option(  # noqa: UP007
        None, "--command", "-c", help="Launch command template ({program}, {path}, {python})"
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Log level"),  # noqa: UP007
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines"),
) -> None:
    """Supervise the worker pool until interrupted or the session is lost.

    Exit codes: 0 after a requested shutdown, 1 when startup fails,
    2 when the ZooKeeper session is lost.

    Example::

        cluster-healer run --workers 3 --program ./target/worker.jar
        cluster-healer run -w 5 -p ./worker.py -c "{python} {program}"
    """
    from healer.supervisor import ExitReason, Supervisor

    settings = load_settings(
        json_logs=json_logs,
        desired_workers=workers,
        program_path=program,
        hosts=hosts,
        session_timeout_ms=session_timeout,
        parent_path=parent_path,
        launch_command=command,
        log_level=log_level,
    )

    console.print(
        f"[bold green]Starting cluster-healer[/bold green] "
        f"(workers={settings.desired_workers}, hosts={settings.hosts}, "
        f"parent={settings.parent_path})"
    )

    try:
        reason = Supervisor(settings).run()
    except CoordinationConnectionError as exc:
        err_console.print(f"[red]Cannot connect to ZooKeeper: {exc.message}[/red]")
        raise typer.Exit(code=1)
    except HealerError as exc:
        err_console.print(f"[red]Supervisor error: {exc.message}[/red]")
        raise typer.Exit(code=1)

    if reason == ExitReason.SESSION_LOST:
        err_console.print("[yellow]ZooKeeper session lost, exiting[/yellow]")
        raise typer.Exit(code=2)

    console.print("[yellow]Supervisor stopped[/yellow]")


def status(
    hosts: str | None = typer.Option(None, "--hosts", help="ZooKeeper connect string"),  # noqa: UP007
    parent_path: str | None = typer.Option(None, "--parent-path", help="Parent registration znode"),  # noqa: UP007
    workers: int | None = typer.Option(None, "--workers", "-w", help="Desired number of workers"),  # noqa: UP007
    as_json: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Show registered workers and the current deficit (read-only, no watches)."""
    from healer.coordination.client import CoordinationClient

    settings = load_settings(hosts=hosts, parent_path=parent_path, desired_workers=workers)
    client = CoordinationClient(
        settings.hosts,
        settings.session_timeout_ms,
        connect_timeout=settings.connect_timeout,
    )

    try:
        client.connect()
        registered = client.exists(settings.parent_path) is not None
        children = client.get_children(settings.parent_path).children if registered else ()
    except HealerError as exc:
        err_console.print(f"[red]Status error: {exc.message}[/red]")
        raise typer.Exit(code=1)
    finally:
        client.close()

    payload = {
        "hosts": settings.hosts,
        "parent_path": settings.parent_path,
        "registered": registered,
        "desired": settings.desired_workers,
        "observed": len(children),
        "deficit": settings.desired_workers - len(children),
        "workers": list(children),
    }

    if as_json:
        console.print_json(json.dumps(payload))
        return

    if not registered:
        console.print(f"[yellow]Parent node {settings.parent_path} is not registered[/yellow]")
    print_children(children, title=f"Workers under {settings.parent_path}")
    console.print(
        f"desired=[bold]{payload['desired']}[/bold]  observed=[bold]{payload['observed']}[/bold]  "
        f"deficit=[bold]{payload['deficit']}[/bold]"
    )
