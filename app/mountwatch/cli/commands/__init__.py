"""CLI commands for mountwatch.

This package contains all subcommand implementations.
"""

from mountwatch.cli.commands import config, lookup, volumes, watch

__all__ = ["config", "lookup", "volumes", "watch"]
