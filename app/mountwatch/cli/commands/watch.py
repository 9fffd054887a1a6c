"""Watch command implementation.

Runs the reconciler and prints every volume event until interrupted.
"""

import asyncio
import json
import logging
from typing import Annotated

import typer

from mountwatch.cli.display import format_event
from mountwatch.cli.types import OutputFormat, get_provider, load_config_or_exit
from mountwatch.core.config import MonitorConfig
from mountwatch.deletion import DeletionStrategy
from mountwatch.utils.formatting import console, print_info
from mountwatch.volumes.models import MonitorTopic, VolumeEvent
from mountwatch.volumes.reconciler import VolumeReconciler

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Watch volumes and print events.",
    invoke_without_command=True,
)


async def _watch(
    config: MonitorConfig,
    output_format: OutputFormat,
    max_events: int | None,
) -> None:
    reconciler = VolumeReconciler.from_config(config, get_provider())
    done = asyncio.Event()
    seen = 0

    def on_event(event: VolumeEvent) -> None:
        nonlocal seen
        if output_format == OutputFormat.JSON:
            console.print_json(json.dumps(event.to_dict()))
        else:
            console.print(format_event(event))
        seen += 1
        if max_events is not None and seen >= max_events:
            done.set()

    reconciler.on(MonitorTopic.ANY, on_event)
    reconciler.start()
    try:
        await done.wait()
    finally:
        await reconciler.close()


@app.callback(invoke_without_command=True)
def watch_volumes(
    interval: Annotated[
        float | None,
        typer.Option(
            "--interval",
            "-i",
            help="Seconds between reconciliation passes.",
            min=1.0,
        ),
    ] = None,
    strategy: Annotated[
        DeletionStrategy | None,
        typer.Option(
            "--strategy",
            "-s",
            help="Deletion detection strategy: ancestors or polling.",
            case_sensitive=False,
        ),
    ] = None,
    max_events: Annotated[
        int | None,
        typer.Option(
            "--count",
            "-n",
            help="Exit after this many events.",
            min=1,
        ),
    ] = None,
    output_format: Annotated[
        OutputFormat,
        typer.Option(
            "--format",
            "-f",
            help="Output format: table or json.",
            case_sensitive=False,
        ),
    ] = OutputFormat.TABLE,
) -> None:
    """Print volume events as they happen.

    Volumes mounted before the watch starts are reported as mounted by the
    first pass. Press Ctrl+C to stop.

    Examples:
        mountwatch watch                        # Use configured settings
        mountwatch watch --interval 2           # Reconcile every 2 seconds
        mountwatch watch --strategy polling     # Poll mount folders
        mountwatch watch --format json -n 1     # Print first event as JSON
    """
    config = load_config_or_exit()
    overrides: dict[str, object] = {}
    if interval is not None:
        overrides["interval_seconds"] = interval
    if strategy is not None:
        overrides["deletion_strategy"] = strategy.value
    if overrides:
        config = config.model_copy(update=overrides)

    if output_format == OutputFormat.TABLE:
        print_info(
            f"Watching volumes every {config.interval_seconds:g}s "
            f"({config.deletion_strategy} deletion detection). Press Ctrl+C to stop."
        )

    try:
        asyncio.run(_watch(config, output_format, max_events))
    except KeyboardInterrupt:
        logger.debug("Watch interrupted")
        print_info("Stopped.")
