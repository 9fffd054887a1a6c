"""Shared types and helpers for CLI commands."""

import asyncio
from enum import Enum

import typer

from mountwatch.core.config import MonitorConfig, MonitorConfigError, load_config_or_default
from mountwatch.deletion import DeletionStrategy
from mountwatch.utils.formatting import print_error
from mountwatch.volumes.provider import (
    SystemVolumeProvider,
    VolumeEnumerationError,
    VolumeProvider,
)
from mountwatch.volumes.reconciler import VolumeReconciler


class OutputFormat(str, Enum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"


def get_provider() -> VolumeProvider:
    """Get the volume provider for the running system."""
    return SystemVolumeProvider()


def load_config_or_exit() -> MonitorConfig:
    """Load the monitor configuration, exiting on invalid files.

    Returns:
        Loaded or default MonitorConfig.

    Raises:
        typer.Exit: If the config file exists but cannot be loaded.
    """
    try:
        return load_config_or_default()
    except MonitorConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


async def _single_pass(config: MonitorConfig) -> VolumeReconciler:
    # Polling watchers are cheap to tear down and need no observer thread
    reconciler = VolumeReconciler(
        get_provider(),
        interval=config.interval_seconds,
        strategy=DeletionStrategy.POLLING,
        polling_interval=config.polling_interval_seconds,
        ignore_patterns=config.ignore_patterns,
        sort=config.sort_volumes,
    )
    try:
        await reconciler.refresh()
    finally:
        await reconciler.close()
    return reconciler


def run_single_pass(config: MonitorConfig) -> VolumeReconciler:
    """Run one reconciliation pass and return the closed reconciler.

    The returned reconciler keeps the state of that pass, so it can be
    queried with current_state() and lookup().

    Args:
        config: Monitor configuration.

    Returns:
        Closed VolumeReconciler holding the mounted volumes.

    Raises:
        typer.Exit: If the volumes cannot be enumerated.
    """
    try:
        return asyncio.run(_single_pass(config))
    except VolumeEnumerationError as e:
        print_error(f"Cannot enumerate volumes: {e}")
        raise typer.Exit(code=1) from e
