"""
Root Typer application for the cluster-healer CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from healer.cli.supervise import run, status
from healer.cli.worker import worker

app = Typer(
    name="cluster-healer",
    help="cluster-healer — keep a ZooKeeper-registered worker pool at its target size.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from healer import __version__

        typer.echo(f"cluster-healer {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """cluster-healer CLI — supervise the pool and run workers."""


app.command("run")(run)
app.command("status")(status)
app.command("worker")(worker)
