"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

import uuid
from collections.abc import Callable
from typing import Any

import pytest
from mountwatch.deletion.primitives import (
    DirectoryWatch,
    ErrorCallback,
    WatchCallback,
    WatchEventKind,
    WatchLostError,
    WatchSubscription,
)
from mountwatch.volumes.models import (
    BlockDeviceRecord,
    FilesystemRecord,
    MountPoint,
    Volume,
)
from mountwatch.volumes.provider import VolumeEnumerationError, VolumeProvider


class FakeDirectoryWatch(DirectoryWatch):
    """In-memory DirectoryWatch driven by the test."""

    def __init__(self) -> None:
        self.subscriptions: list[tuple[WatchSubscription, WatchCallback]] = []
        self.error_callbacks: dict[WatchSubscription, ErrorCallback] = {}
        self.closed = False
        self.fail_on: set[str] = set()

    def subscribe(
        self,
        directory: str,
        callback: WatchCallback,
        on_error: ErrorCallback | None = None,
    ) -> WatchSubscription:
        if directory in self.fail_on:
            raise PermissionError(13, "Permission denied", directory)
        subscription = WatchSubscription(directory, lambda _: None)
        self.subscriptions.append((subscription, callback))
        if on_error is not None:
            self.error_callbacks[subscription] = on_error
        return subscription

    def close(self) -> None:
        self.closed = True

    @property
    def active_directories(self) -> list[str]:
        """Directories with at least one open subscription."""
        return [s.directory for s, _ in self.subscriptions if not s.closed]

    def emit(self, directory: str, kind: WatchEventKind, name: str) -> None:
        """Deliver an entry change to every open subscription of a directory."""
        for subscription, callback in list(self.subscriptions):
            if subscription.directory == directory and not subscription.closed:
                callback(kind, name)

    def lose(self, directory: str) -> None:
        """Report a lost watch to every open subscription of a directory."""
        error = WatchLostError(f"Watch on {directory} stopped")
        for subscription, on_error in list(self.error_callbacks.items()):
            if subscription.directory == directory and not subscription.closed:
                on_error(error)


class FakeVolumeProvider(VolumeProvider):
    """VolumeProvider returning records set by the test."""

    def __init__(self) -> None:
        self.devices: list[BlockDeviceRecord] = []
        self.filesystems_: list[FilesystemRecord] = []
        self.error: Exception | None = None
        self.calls = 0

    async def block_devices(self) -> list[BlockDeviceRecord]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.devices)

    async def filesystems(self) -> list[FilesystemRecord]:
        if self.error is not None:
            raise self.error
        return list(self.filesystems_)

    def fail(self, message: str = "lsblk failed") -> None:
        """Make the next enumerations raise VolumeEnumerationError."""
        self.error = VolumeEnumerationError(message)


@pytest.fixture
def fake_watch() -> FakeDirectoryWatch:
    """A directory watch whose events are emitted by the test."""
    return FakeDirectoryWatch()


@pytest.fixture
def fake_provider() -> FakeVolumeProvider:
    """A provider with no records."""
    return FakeVolumeProvider()


@pytest.fixture
def make_device() -> Callable[..., BlockDeviceRecord]:
    """Factory for block device records with sensible defaults."""

    def factory(mount: str, **overrides: Any) -> BlockDeviceRecord:
        fields: dict[str, Any] = {
            "name": "sdb1",
            "label": "USB",
            "fs_type": "ext4",
            "mount": mount,
            "size": 32 * 1024**3,
            "physical": "SSD",
            "protocol": "usb",
            "removable": True,
            "serial": "ABC123",
            "uuid": str(uuid.uuid4()),
        }
        fields.update(overrides)
        return BlockDeviceRecord(**fields)

    return factory


@pytest.fixture
def make_volume() -> Callable[..., Volume]:
    """Factory for volumes with sensible defaults."""

    def factory(mount_path: str, label: str = "Data", **overrides: Any) -> Volume:
        fields: dict[str, Any] = {
            "device": "sdb1",
            "label": label,
            "filesystem_type": "ext4",
            "mount_path": mount_path,
            "mountpoints": (MountPoint(path=mount_path, label=label),),
            "protocol": "usb",
            "removable": True,
            "serial": "",
            "size_bytes": 1024,
            "identity": str(uuid.uuid5(uuid.NAMESPACE_URL, mount_path)),
        }
        fields.update(overrides)
        return Volume(**fields)

    return factory


@pytest.fixture
def lsblk_output() -> dict[str, Any]:
    """Parsed `lsblk --json --bytes` output with a disk, a USB stick and a loop."""
    return {
        "blockdevices": [
            {
                "name": "nvme0n1",
                "label": None,
                "fstype": None,
                "mountpoint": None,
                "size": 512110190592,
                "type": "disk",
                "tran": "nvme",
                "rm": False,
                "rota": False,
                "serial": "S4EWNX0R123456",
                "uuid": None,
                "children": [
                    {
                        "name": "nvme0n1p1",
                        "label": None,
                        "fstype": "vfat",
                        "mountpoint": "/boot/efi",
                        "size": 536870912,
                        "type": "part",
                        "tran": None,
                        "rm": False,
                        "rota": False,
                        "serial": None,
                        "uuid": "B2C1-0F3E",
                    },
                    {
                        "name": "nvme0n1p2",
                        "label": "root",
                        "fstype": "ext4",
                        "mountpoint": "/",
                        "size": 511571222528,
                        "type": "part",
                        "tran": None,
                        "rm": False,
                        "rota": False,
                        "serial": None,
                        "uuid": "4f1c2a9e-8d3b-4c6a-9f2e-1a2b3c4d5e6f",
                    },
                ],
            },
            {
                "name": "sdb",
                "label": None,
                "fstype": None,
                "mountpoint": None,
                "size": "31037849600",
                "type": "disk",
                "tran": "usb",
                "rm": "1",
                "rota": "1",
                "serial": "4C530001230711",
                "uuid": None,
                "children": [
                    {
                        "name": "sdb1",
                        "label": "BACKUP",
                        "fstype": "exfat",
                        "mountpoint": "/media/user/BACKUP",
                        "size": "31036800000",
                        "type": "part",
                        "tran": None,
                        "rm": None,
                        "rota": None,
                        "serial": None,
                        "uuid": "64E1-A0B2",
                    }
                ],
            },
            {
                "name": "loop0",
                "label": None,
                "fstype": "squashfs",
                "mountpoint": "/snap/core/17200",
                "size": 109744128,
                "type": "loop",
                "tran": None,
                "rm": False,
                "rota": False,
                "serial": None,
                "uuid": None,
            },
        ]
    }
