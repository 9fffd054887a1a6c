"""Volume enumeration providers.

A VolumeProvider reports the raw block device and mounted filesystem
records the reconciler turns into volumes. SystemVolumeProvider reads
block devices from lsblk and mounted filesystems from psutil.
"""

import asyncio
import json
import logging
import os
import subprocess
from abc import ABC, abstractmethod
from typing import Any

import psutil

from mountwatch.utils.shell import command_exists, run_command
from mountwatch.volumes.filters import DISK_IMAGE_PROTOCOL
from mountwatch.volumes.models import BlockDeviceRecord, FilesystemRecord

logger = logging.getLogger(__name__)

_LSBLK_COLUMNS = "NAME,LABEL,FSTYPE,MOUNTPOINT,SIZE,TYPE,TRAN,RM,ROTA,SERIAL,UUID"

# Disk properties partitions report as empty
_INHERITED_COLUMNS = ("tran", "serial", "rm", "rota")

# Network filesystem types reported even though they have no device node
NETWORK_FS_TYPES: frozenset[str] = frozenset(
    {"cifs", "smbfs", "smb3", "nfs", "nfs4", "afpfs", "webdav", "davfs", "fuse.sshfs"}
)

# Read-only package images (snaps, live media) are never user volumes
_EXCLUDED_FS_TYPES: frozenset[str] = frozenset({"squashfs"})


class VolumeEnumerationError(RuntimeError):
    """Raised when the system cannot be queried for volumes."""


class VolumeProvider(ABC):
    """Abstract source of raw volume records.

    Example:
        >>> provider = SystemVolumeProvider()
        >>> devices, filesystems = await asyncio.gather(
        ...     provider.block_devices(), provider.filesystems()
        ... )
    """

    @abstractmethod
    async def block_devices(self) -> list[BlockDeviceRecord]:
        """Return raw block device records.

        Raises:
            VolumeEnumerationError: If the devices cannot be listed.
        """

    @abstractmethod
    async def filesystems(self) -> list[FilesystemRecord]:
        """Return raw mounted filesystem records.

        Raises:
            VolumeEnumerationError: If the filesystems cannot be listed.
        """

    def is_available(self) -> bool:
        """Check if this provider can enumerate volumes on this system."""
        return True


class SystemVolumeProvider(VolumeProvider):
    """Enumerates volumes of the running system.

    Block devices come from ``lsblk`` where it is installed (Linux);
    without it every mount is reported through its filesystem record.
    Mounted filesystems come from psutil on every platform.
    """

    def __init__(self, *, lsblk_timeout: float | None = 30.0) -> None:
        self._lsblk_timeout = lsblk_timeout

    async def block_devices(self) -> list[BlockDeviceRecord]:
        if not command_exists("lsblk"):
            return []
        return await asyncio.to_thread(self._read_block_devices)

    async def filesystems(self) -> list[FilesystemRecord]:
        return await asyncio.to_thread(self._read_filesystems)

    def _read_block_devices(self) -> list[BlockDeviceRecord]:
        try:
            result = run_command(
                ["lsblk", "--json", "--bytes", "--output", _LSBLK_COLUMNS],
                timeout=self._lsblk_timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise VolumeEnumerationError(f"Cannot run lsblk: {e}") from e

        if not result.success:
            msg = f"lsblk failed: {result.stderr.strip()}"
            raise VolumeEnumerationError(msg)

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise VolumeEnumerationError(f"Invalid lsblk output: {e}") from e

        return parse_lsblk_devices(data)

    def _read_filesystems(self) -> list[FilesystemRecord]:
        try:
            partitions = psutil.disk_partitions(all=True)
        except (OSError, psutil.Error) as e:
            raise VolumeEnumerationError(f"Cannot list mounted filesystems: {e}") from e

        records: list[FilesystemRecord] = []
        for part in partitions:
            fs_type = part.fstype.lower()
            if fs_type in _EXCLUDED_FS_TYPES:
                continue
            if fs_type not in NETWORK_FS_TYPES and not os.path.isabs(part.device):
                # Virtual filesystems (proc, tmpfs, overlay, ...)
                continue
            records.append(
                FilesystemRecord(
                    fs=part.device,
                    fs_type=part.fstype,
                    mount=part.mountpoint,
                    size=_disk_size(part.mountpoint),
                )
            )
        return records


def _disk_size(mount: str) -> int | None:
    """Total size of the filesystem mounted at a path, None if unavailable."""
    try:
        return int(psutil.disk_usage(mount).total)
    except OSError as e:
        logger.debug("No size for %s: %s", mount, e)
        return None


def parse_lsblk_devices(data: dict[str, Any]) -> list[BlockDeviceRecord]:
    """Flatten ``lsblk --json --bytes`` output into device records.

    Partitions inherit transport, serial and removable flag from their
    parent disk when lsblk leaves them empty.

    Args:
        data: Parsed lsblk JSON document.

    Returns:
        One record per device or partition, in lsblk order.

    Raises:
        VolumeEnumerationError: If the document has no "blockdevices" list.
    """
    devices = data.get("blockdevices")
    if not isinstance(devices, list):
        msg = "Invalid lsblk output: missing 'blockdevices'"
        raise VolumeEnumerationError(msg)

    records: list[BlockDeviceRecord] = []

    def walk(nodes: list[dict[str, Any]], parent: dict[str, Any]) -> None:
        for node in nodes:
            inherited = {key: parent[key] for key in _INHERITED_COLUMNS if key in parent}
            merged = {**inherited, **{k: v for k, v in node.items() if v is not None}}
            records.append(_record_from_node(merged))
            children = node.get("children")
            if isinstance(children, list):
                walk(children, merged)

    walk(devices, {})
    return records


def _record_from_node(node: dict[str, Any]) -> BlockDeviceRecord:
    dev_type = str(node.get("type") or "")
    if dev_type == "loop":
        protocol = DISK_IMAGE_PROTOCOL
    else:
        protocol = str(node.get("tran") or "")

    if dev_type == "rom":
        physical = "CD/DVD"
    elif _as_bool(node.get("rota")):
        physical = "HDD"
    else:
        physical = "SSD"

    return BlockDeviceRecord(
        name=str(node.get("name") or ""),
        label=str(node.get("label") or ""),
        fs_type=str(node.get("fstype") or ""),
        mount=str(node.get("mountpoint") or ""),
        size=_as_int(node.get("size")),
        physical=physical,
        protocol=protocol,
        removable=_as_bool(node.get("rm")),
        serial=str(node.get("serial") or "").strip(),
        uuid=str(node.get("uuid") or ""),
    )


def _as_bool(value: object) -> bool:
    # Older lsblk releases print booleans as "0"/"1" strings
    if isinstance(value, str):
        return value.strip() in ("1", "true")
    return bool(value)


def _as_int(value: object) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return None

