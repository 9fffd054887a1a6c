"""Config commands.

Shows and initializes the monitor configuration file.
"""

from typing import Annotated

import typer
from rich.table import Table

from mountwatch.cli.types import OutputFormat, load_config_or_exit
from mountwatch.core.config import MonitorConfig, MonitorConfigError, save_monitor_config
from mountwatch.core.paths import ensure_config_dir, get_config_path
from mountwatch.utils.formatting import console, print_error, print_success, print_warning

app = typer.Typer(
    help="Show or initialize the configuration.",
    no_args_is_help=True,
)


@app.command()
def show(
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
    """Show the effective configuration."""
    config_path = get_config_path()
    config = load_config_or_exit()

    if output_format == OutputFormat.JSON:
        console.print_json(config.model_dump_json())
        return

    source = str(config_path) if config_path.exists() else "built-in defaults"
    table = Table(
        title="Monitor Configuration",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Setting", style="bold")
    table.add_column("Value", style="info")
    table.add_column("Description", style="muted")

    for name, field in MonitorConfig.model_fields.items():
        value = getattr(config, name)
        if isinstance(value, list):
            value_str = ", ".join(value) or "-"
        else:
            value_str = str(value)
        table.add_row(name, value_str, field.description or "")

    console.print(table)
    console.print(f"\n[muted]Source: {source}[/muted]")


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            help="Overwrite an existing configuration file.",
        ),
    ] = False,
) -> None:
    """Write a configuration file with the default settings."""
    config_path = get_config_path()
    if config_path.exists() and not force:
        print_warning(f"Config already exists: {config_path}")
        print_warning("Use --force to overwrite it.")
        raise typer.Exit(code=1)

    try:
        ensure_config_dir()
        saved_path = save_monitor_config(MonitorConfig(), config_path)
    except (MonitorConfigError, RuntimeError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    print_success(f"Created config: {saved_path}")
