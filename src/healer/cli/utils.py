"""
CLI utility helpers — consoles, settings loading, logging setup.
"""

from __future__ import annotations

from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from healer.core.errors import ConfigError
from healer.core.logging import configure_logging
from healer.core.settings import HealerSettings, get_settings

console = Console()
err_console = Console(stderr=True)


def load_settings(*, json_logs: bool = False, **overrides: Any) -> HealerSettings:
    """Resolve settings from env + CLI overrides and configure logging.

    Exits with code 1 on invalid configuration.
    """
    if json_logs:
        overrides["log_format"] = "json"
    try:
        settings = get_settings(**overrides)
    except ConfigError as exc:
        err_console.print(f"[bold red]Configuration error[/bold red]: {exc.message}")
        raise typer.Exit(code=1) from exc

    configure_logging(
        level=settings.log_level,
        json_format=settings.log_format == "json",
    )
    return settings


def print_children(children: list[str] | tuple[str, ...], *, title: str = "") -> None:
    """Render registered worker names as a Rich table."""
    if not children:
        console.print("[dim]No registered workers.[/dim]")
        return

    table = Table(title=title or None, show_lines=False, pad_edge=False)
    table.add_column("#", justify="right")
    table.add_column("worker", overflow="fold")
    for index, name in enumerate(children, start=1):
        table.add_row(str(index), name)
    console.print(table)
