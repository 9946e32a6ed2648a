"""cluster-healer command-line interface."""

from healer.cli.app import app

__all__ = ["app"]
