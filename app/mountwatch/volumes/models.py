"""Volume domain models.

This module defines the data structures for mounted volumes, the raw
records reported by enumeration providers, and the events produced when
the set of mounted volumes changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

UNTITLED_LABEL = "Untitled"


@dataclass(frozen=True, slots=True)
class MountPoint:
    """A path at which a volume is attached.

    Attributes:
        path: Absolute mount path.
        label: Label shown for the volume at this path.
    """

    path: str
    label: str


@dataclass(frozen=True, slots=True)
class Volume:
    """A mounted storage resource.

    Attributes:
        device: Backing device (e.g. "sdb1") or share name (e.g. "//nas/media").
        label: Human-readable volume name, may be empty.
        filesystem_type: Filesystem type (e.g. "ext4", "apfs", "cifs").
        mount_path: Canonical absolute mount path.
        mountpoints: Mount points of the volume; exactly one is populated.
        protocol: Transport type (e.g. "usb", "nvme", "SMB").
        removable: Whether the medium is removable.
        serial: Device serial number, may be empty.
        size_bytes: Volume size in bytes.
        identity: Stable UUID used as the primary key when diffing.
    """

    device: str
    label: str
    filesystem_type: str
    mount_path: str
    mountpoints: tuple[MountPoint, ...]
    protocol: str
    removable: bool
    serial: str
    size_bytes: int
    identity: str

    def __post_init__(self) -> None:
        """Validate volume data after initialization."""
        if not self.mount_path:
            msg = "Volume mount path cannot be empty"
            raise ValueError(msg)
        if not self.identity:
            msg = "Volume identity cannot be empty"
            raise ValueError(msg)

    @property
    def display_label(self) -> str:
        """Label for display, "Untitled" when the volume has none."""
        return self.label or UNTITLED_LABEL

    @property
    def size_human(self) -> str:
        """Return human-readable size string."""
        size = float(self.size_bytes)
        for unit in ("B", "KB", "MB", "GB", "TB"):
            if size < 1024:
                return f"{size:.1f} {unit}"
            size /= 1024
        return f"{size:.1f} PB"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "device": self.device,
            "label": self.label,
            "filesystem": self.filesystem_type,
            "mount": self.mount_path,
            "mountpoints": [{"path": mp.path, "label": mp.label} for mp in self.mountpoints],
            "protocol": self.protocol,
            "removable": self.removable,
            "serial": self.serial,
            "size": self.size_bytes,
            "uuid": self.identity,
        }


@dataclass(frozen=True, slots=True)
class BlockDeviceRecord:
    """Raw block device record from an enumeration provider.

    Attributes:
        name: Kernel device name (e.g. "sdb1", "disk2s1").
        label: Filesystem label, may be empty.
        fs_type: Filesystem type, may be empty.
        mount: Mount path, empty when not mounted.
        size: Size in bytes, None when not reported.
        physical: Physical medium ("SSD", "HDD", "CD/DVD", "Network", ...).
        protocol: Transport ("usb", "sata", "nvme", "Disk Image", ...).
        removable: Whether the medium is removable.
        serial: Device serial, may be empty.
        uuid: Filesystem UUID, may be empty.
    """

    name: str
    label: str
    fs_type: str
    mount: str
    size: int | None
    physical: str
    protocol: str
    removable: bool
    serial: str
    uuid: str


@dataclass(frozen=True, slots=True)
class FilesystemRecord:
    """Raw mounted filesystem record from an enumeration provider.

    Attributes:
        fs: Backing device or share name (e.g. "/dev/loop3", "//nas/media").
        fs_type: Filesystem type (e.g. "cifs", "nfs4", "ext4").
        mount: Mount path.
        size: Size in bytes, None when not reported.
    """

    fs: str
    fs_type: str
    mount: str
    size: int | None


class VolumeEventType(str, Enum):
    """Type of change to the set of mounted volumes.

    Attributes:
        MOUNTED: A volume appeared.
        UNMOUNTED: A volume disappeared or its mount folder was deleted.
        RENAMED: A volume's label changed.
    """

    MOUNTED = "mount"
    UNMOUNTED = "unmount"
    RENAMED = "rename"


class MonitorTopic(str, Enum):
    """Streams a VolumeReconciler publishes on.

    Attributes:
        MOUNTED: Each Mounted event.
        UNMOUNTED: Each Unmounted event.
        RENAMED: Each Renamed event.
        ANY: Every volume event.
        CHANGED: After a pass or deletion that produced events.
        REFRESH_COMPLETED: After every completed reconciliation pass.
    """

    MOUNTED = "mount"
    UNMOUNTED = "unmount"
    RENAMED = "rename"
    ANY = "all"
    CHANGED = "changed"
    REFRESH_COMPLETED = "refresh"


@dataclass(frozen=True, slots=True)
class VolumeEvent:
    """A single change to the set of mounted volumes.

    Attributes:
        type: Kind of change.
        volume: The volume as it is now (for unmount: as it was last seen).
        previous_volume: The volume before a rename; only set for RENAMED.
    """

    type: VolumeEventType
    volume: Volume
    previous_volume: Volume | None = None

    def __post_init__(self) -> None:
        """Validate that only renames carry a previous volume."""
        if self.type is VolumeEventType.RENAMED and self.previous_volume is None:
            msg = "Rename event requires the previous volume"
            raise ValueError(msg)
        if self.type is not VolumeEventType.RENAMED and self.previous_volume is not None:
            msg = f"{self.type.value} event cannot carry a previous volume"
            raise ValueError(msg)

    @classmethod
    def mounted(cls, volume: Volume) -> VolumeEvent:
        """Create a Mounted event."""
        return cls(VolumeEventType.MOUNTED, volume)

    @classmethod
    def unmounted(cls, volume: Volume) -> VolumeEvent:
        """Create an Unmounted event."""
        return cls(VolumeEventType.UNMOUNTED, volume)

    @classmethod
    def renamed(cls, volume: Volume, previous_volume: Volume) -> VolumeEvent:
        """Create a Renamed event."""
        return cls(VolumeEventType.RENAMED, volume, previous_volume)

    @property
    def topic(self) -> MonitorTopic:
        """Typed stream this event is published on."""
        return MonitorTopic(self.type.value)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "type": self.type.value,
            "filesystem": self.volume.to_dict(),
        }
        if self.previous_volume is not None:
            result["previous_filesystem"] = self.previous_volume.to_dict()
        return result
