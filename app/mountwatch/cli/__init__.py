"""CLI package for mountwatch.

This package contains the Typer application and all subcommands.
"""

from mountwatch.cli.main import app

__all__ = ["app"]
