"""List command implementation.

Runs one reconciliation pass and shows the mounted volumes.
"""

from typing import Annotated

import typer

from mountwatch.cli.display import create_volume_table, volumes_to_json
from mountwatch.cli.types import OutputFormat, load_config_or_exit, run_single_pass
from mountwatch.utils.formatting import console, print_info

app = typer.Typer(
    help="List mounted volumes.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def list_volumes(
    ctx: typer.Context,
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
    """List the currently mounted volumes.

    Examples:
        mountwatch list                 # Show table
        mountwatch list --format json   # Output as JSON
    """
    if ctx.invoked_subcommand is not None:
        return

    config = load_config_or_exit()
    volumes = run_single_pass(config).current_state()

    if output_format == OutputFormat.JSON:
        console.print_json(volumes_to_json(volumes))
        return

    if not volumes:
        print_info("No mounted volumes found.")
        return

    console.print(create_volume_table(volumes))
    console.print(f"\n[muted]{len(volumes)} volume(s)[/muted]")
