"""Lookup command implementation.

Finds the mounted volume containing a path.
"""

import json
import os
from typing import Annotated

import typer

from mountwatch.cli.display import create_volume_table
from mountwatch.cli.types import OutputFormat, load_config_or_exit, run_single_pass
from mountwatch.utils.formatting import console, print_error


def lookup_path(
    path: Annotated[
        str,
        typer.Argument(help="Path to look up."),
    ],
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
    """Show the mounted volume that contains PATH.

    The most specific mount path wins, so a volume mounted inside another
    one is reported for paths below its own mount path.
    """
    target = os.path.abspath(os.path.expanduser(path))
    config = load_config_or_exit()
    volume = run_single_pass(config).lookup(target)

    if volume is None:
        print_error(f"No mounted volume contains {target}")
        raise typer.Exit(code=1)

    if output_format == OutputFormat.JSON:
        console.print_json(json.dumps(volume.to_dict()))
        return

    console.print(create_volume_table([volume], title=f"Volume containing {target}"))
