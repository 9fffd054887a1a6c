"""Pure filtering, mapping and sorting of raw enumeration records.

Every function here is deterministic: the same records and platform
always yield the same volumes in the same order.
"""

import ntpath
import posixpath
import re
import sys
import uuid
from collections.abc import Iterable, Sequence

from mountwatch.volumes.models import (
    UNTITLED_LABEL,
    BlockDeviceRecord,
    FilesystemRecord,
    MountPoint,
    Volume,
)

# Namespace for identities of volumes without a native UUID (next above the
# RFC 4122 predefined namespaces)
IDENTITY_NAMESPACE = uuid.UUID("6ba7b815-9dad-11d1-80b4-00c04fd430c8")

NETWORK_PHYSICAL = "Network"
DISK_IMAGE_PROTOCOL = "Disk Image"

# Mount paths never reported as volumes, per platform (regular expressions).
IGNORED_MOUNT_PATTERNS: dict[str, list[str]] = {
    "darwin": [
        r"^$",
        r"^/private/",
        r"^/Volumes/Recovery$",
        r"^/System/",
    ],
    "linux": [
        r"^$",
        r"^/snap/",
        r"^/boot(/|$)",
        r"^\[SWAP\]$",
    ],
    "win32": [
        r"^$",
    ],
}

# Filesystem types reported as network shares
_SHARE_PROTOCOLS: dict[str, str] = {
    "cifs": "SMB",
    "smbfs": "SMB",
    "smb3": "SMB",
    "nfs": "NFS",
    "nfs4": "NFS",
    "afpfs": "AFP",
    "webdav": "WebDAV",
    "davfs": "WebDAV",
    "fuse.sshfs": "SSHFS",
}


def ignore_patterns_for(platform: str, extra: Iterable[str] = ()) -> list[re.Pattern[str]]:
    """Compile the ignore list for a platform.

    Args:
        platform: sys.platform style name ("darwin", "linux", "win32").
        extra: Additional user-configured patterns.

    Returns:
        Compiled patterns; unknown platforms only ignore empty paths.
    """
    patterns = IGNORED_MOUNT_PATTERNS.get(platform, [r"^$"])
    return [re.compile(p) for p in (*patterns, *extra)]


def is_ignored_mount(mount: str, patterns: Sequence[re.Pattern[str]]) -> bool:
    """Check whether a mount path matches any ignore pattern.

    Args:
        mount: Mount path to check.
        patterns: Compiled ignore patterns.

    Returns:
        True if the mount path must not be reported.
    """
    return any(p.search(mount) for p in patterns)


def filter_devices(
    devices: Iterable[BlockDeviceRecord],
    patterns: Sequence[re.Pattern[str]],
) -> list[BlockDeviceRecord]:
    """Keep device records that should become volumes.

    Drops ignored mount paths, records without a size, network media and
    disk images. Network shares and images are reported through their
    filesystem records instead, so each mount appears once.

    Args:
        devices: Raw block device records.
        patterns: Compiled ignore patterns.

    Returns:
        Surviving records in input order.
    """
    return [
        dev
        for dev in devices
        if not is_ignored_mount(dev.mount, patterns)
        and dev.size is not None
        and dev.physical != NETWORK_PHYSICAL
        and dev.protocol != DISK_IMAGE_PROTOCOL
    ]


def filter_filesystems(
    filesystems: Iterable[FilesystemRecord],
    devices: Sequence[BlockDeviceRecord],
    patterns: Sequence[re.Pattern[str]],
) -> list[FilesystemRecord]:
    """Keep filesystem records not already covered by a device record.

    Args:
        filesystems: Raw filesystem records.
        devices: Surviving device records (from filter_devices).
        patterns: Compiled ignore patterns.

    Returns:
        Surviving records in input order.
    """
    device_mounts = {dev.mount for dev in devices}
    return [
        fs
        for fs in filesystems
        if not is_ignored_mount(fs.mount, patterns)
        and fs.size is not None
        and fs.mount not in device_mounts
    ]


def derive_identity(name: str) -> str:
    """Derive a stable identity from a device or share name.

    Args:
        name: Share path or device name.

    Returns:
        UUIDv5 string in IDENTITY_NAMESPACE.
    """
    return str(uuid.uuid5(IDENTITY_NAMESPACE, name))


def share_label(fs: str) -> str:
    """Label for a network share: the last component of its name.

    Args:
        fs: Share name (e.g. "//nas/media", "nas:/export/backup", "\\\\nas\\docs").

    Returns:
        Last non-empty path component, or the whole name if it has none.
    """
    separator = ntpath.sep if ntpath.sep in fs else posixpath.sep
    parts = [p for p in fs.split(separator) if p]
    return parts[-1] if parts else fs


def share_protocol(fs_type: str) -> str:
    """Transport protocol of a filesystem record.

    Args:
        fs_type: Filesystem type as reported by the provider.

    Returns:
        Protocol name; unknown network types default to "SMB".
    """
    return _SHARE_PROTOCOLS.get(fs_type.lower(), "SMB")


def device_to_volume(dev: BlockDeviceRecord) -> Volume:
    """Map a block device record to a Volume.

    Devices without a filesystem UUID get an identity derived from their
    device name.
    """
    assert dev.size is not None
    return Volume(
        device=dev.name,
        label=dev.label,
        filesystem_type=dev.fs_type,
        mount_path=dev.mount,
        mountpoints=(MountPoint(path=dev.mount, label=dev.label),),
        protocol=dev.protocol,
        removable=dev.removable,
        serial=dev.serial,
        size_bytes=dev.size,
        identity=dev.uuid or derive_identity(dev.name),
    )


def filesystem_to_volume(fs: FilesystemRecord) -> Volume:
    """Map a filesystem record to a network share Volume.

    The identity is derived from the share name, so the same share keeps
    the same identity across passes.
    """
    assert fs.size is not None
    label = share_label(fs.fs)
    return Volume(
        device=fs.fs,
        label=label,
        filesystem_type=fs.fs_type or "SMB",
        mount_path=fs.mount,
        mountpoints=(MountPoint(path=fs.mount, label=label),),
        protocol=share_protocol(fs.fs_type),
        removable=True,
        serial="",
        size_bytes=fs.size,
        identity=derive_identity(fs.fs),
    )


def build_candidates(
    devices: Iterable[BlockDeviceRecord],
    filesystems: Iterable[FilesystemRecord],
    patterns: Sequence[re.Pattern[str]],
) -> list[Volume]:
    """Filter and map raw records to unique candidate volumes.

    Devices come before shares. When two candidates share a mount path or
    an identity, the first one wins.

    Args:
        devices: Raw block device records.
        filesystems: Raw filesystem records.
        patterns: Compiled ignore patterns.

    Returns:
        Unsorted candidate volumes.
    """
    kept_devices = filter_devices(devices, patterns)
    kept_filesystems = filter_filesystems(filesystems, kept_devices, patterns)

    candidates: list[Volume] = []
    seen_paths: set[str] = set()
    seen_identities: set[str] = set()
    for volume in [
        *(device_to_volume(d) for d in kept_devices),
        *(filesystem_to_volume(f) for f in kept_filesystems),
    ]:
        if volume.mount_path in seen_paths or volume.identity in seen_identities:
            continue
        seen_paths.add(volume.mount_path)
        seen_identities.add(volume.identity)
        candidates.append(volume)
    return candidates


def sort_volumes(volumes: Iterable[Volume], platform: str | None = None) -> list[Volume]:
    """Sort volumes by the platform policy.

    macOS shows volume labels to users, so volumes are ordered by label
    (empty labels as "Untitled"); elsewhere by mount path. Both compare
    case-insensitively, with the mount path breaking ties.

    Args:
        volumes: Volumes to sort.
        platform: sys.platform style name. Defaults to the running platform.

    Returns:
        New sorted list.
    """
    platform = platform or sys.platform
    if platform == "darwin":
        return sorted(
            volumes,
            key=lambda v: ((v.label or UNTITLED_LABEL).casefold(), v.mount_path),
        )
    return sorted(volumes, key=lambda v: (v.mount_path.casefold(), v.mount_path))
