"""Shared Rich display functions for volumes and volume events."""

import json
from collections.abc import Sequence

from rich.markup import escape
from rich.table import Table

from mountwatch.volumes.models import Volume, VolumeEvent, VolumeEventType

_EVENT_MARKERS: dict[VolumeEventType, tuple[str, str]] = {
    VolumeEventType.MOUNTED: ("mounted", "+mount"),
    VolumeEventType.UNMOUNTED: ("unmounted", "-unmount"),
    VolumeEventType.RENAMED: ("renamed", "~rename"),
}


def create_volume_table(volumes: Sequence[Volume], title: str = "Mounted Volumes") -> Table:
    """Create a Rich table displaying volumes.

    Removable media are flagged in the first column.

    Args:
        volumes: Volumes to display, in display order.
        title: Table title.

    Returns:
        Rich Table configured for volume display.
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=["", "on grey7"],
    )
    table.add_column("", width=2, justify="center")
    table.add_column("Label", no_wrap=True)
    table.add_column("Mount Path", style="volume.path")
    table.add_column("Filesystem", style="muted")
    table.add_column("Protocol", style="muted")
    table.add_column("Size", style="volume.size", justify="right")
    table.add_column("Device", style="muted", overflow="ellipsis")

    for volume in volumes:
        icon = "[removable]●[/]" if volume.removable else "[muted]○[/]"
        table.add_row(
            icon,
            f"[volume.label]{escape(volume.display_label)}[/]",
            escape(volume.mount_path),
            volume.filesystem_type or "-",
            volume.protocol or "-",
            volume.size_human,
            escape(volume.device),
        )

    return table


def format_event(event: VolumeEvent) -> str:
    """Format a volume event as a single line of Rich markup.

    Args:
        event: The event to format.

    Returns:
        Markup string, e.g. "[mounted]+mount[/] Backup at /media/backup".
    """
    style, marker = _EVENT_MARKERS[event.type]
    volume = event.volume
    label = escape(volume.display_label)
    line = f"[{style}]{marker}[/] [volume.label]{label}[/] at {escape(volume.mount_path)}"
    if event.previous_volume is not None:
        line += f" [muted](was {escape(event.previous_volume.display_label)})[/]"
    return line


def volumes_to_json(volumes: Sequence[Volume]) -> str:
    """Serialize volumes to a JSON array."""
    return json.dumps([v.to_dict() for v in volumes])
