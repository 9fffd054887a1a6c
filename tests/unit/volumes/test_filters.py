"""Unit tests for record filtering, mapping and sorting."""

import uuid
from collections.abc import Callable

import pytest
from mountwatch.volumes.filters import (
    IDENTITY_NAMESPACE,
    build_candidates,
    derive_identity,
    filter_devices,
    filter_filesystems,
    ignore_patterns_for,
    is_ignored_mount,
    share_label,
    share_protocol,
    sort_volumes,
)
from mountwatch.volumes.models import BlockDeviceRecord, FilesystemRecord, Volume


class TestIgnorePatterns:
    """Tests for platform ignore lists."""

    @pytest.mark.parametrize(
        ("platform", "mount", "ignored"),
        [
            ("darwin", "/private/var/vm", True),
            ("darwin", "/Volumes/Recovery", True),
            ("darwin", "/Volumes/Recovery Disk", False),
            ("darwin", "/System/Volumes/Data", True),
            ("darwin", "/Volumes/Backup", False),
            ("linux", "/snap/core/17200", True),
            ("linux", "/boot", True),
            ("linux", "/boot/efi", True),
            ("linux", "/bootcamp", False),
            ("linux", "[SWAP]", True),
            ("linux", "/media/user/USB", False),
            ("win32", "", True),
            ("win32", "D:\\", False),
            ("sunos5", "", True),
            ("sunos5", "/export", False),
        ],
    )
    def test_platform_lists(self, platform: str, mount: str, ignored: bool) -> None:
        """Built-in patterns match the expected mount paths."""
        patterns = ignore_patterns_for(platform)

        assert is_ignored_mount(mount, patterns) is ignored

    def test_extra_patterns(self) -> None:
        """Configured patterns extend the built-in list."""
        patterns = ignore_patterns_for("linux", ["^/mnt/scratch"])

        assert is_ignored_mount("/mnt/scratch/x", patterns)
        assert is_ignored_mount("/snap/core", patterns)


class TestFilterDevices:
    """Tests for filter_devices function."""

    def test_drops_unwanted_records(self, make_device: Callable[..., BlockDeviceRecord]) -> None:
        """Ignored, sizeless, network and disk image records are dropped."""
        keep = make_device("/media/usb")
        devices = [
            keep,
            make_device(""),
            make_device("/media/nosize", size=None),
            make_device("/media/net", physical="Network"),
            make_device("/media/img", protocol="Disk Image"),
            make_device("/snap/core/1"),
        ]

        assert filter_devices(devices, ignore_patterns_for("linux")) == [keep]


class TestFilterFilesystems:
    """Tests for filter_filesystems function."""

    def test_drops_covered_and_sizeless(
        self, make_device: Callable[..., BlockDeviceRecord]
    ) -> None:
        """Filesystems already covered by a device, or without size, are dropped."""
        share = FilesystemRecord("//nas/media", "cifs", "/mnt/media", 100)
        filesystems = [
            share,
            FilesystemRecord("/dev/sdb1", "ext4", "/media/usb", 100),
            FilesystemRecord("//nas/gone", "cifs", "/mnt/gone", None),
        ]

        result = filter_filesystems(
            filesystems, [make_device("/media/usb")], ignore_patterns_for("linux")
        )

        assert result == [share]


class TestIdentityAndShares:
    """Tests for identity derivation and share mapping helpers."""

    def test_identity_is_uuid5(self) -> None:
        """Identities are UUIDv5 in the fixed namespace."""
        expected = str(uuid.uuid5(uuid.UUID("6ba7b815-9dad-11d1-80b4-00c04fd430c8"), "//nas/a"))

        assert IDENTITY_NAMESPACE == uuid.UUID("6ba7b815-9dad-11d1-80b4-00c04fd430c8")
        assert derive_identity("//nas/a") == expected
        assert derive_identity("//nas/a") == derive_identity("//nas/a")
        assert derive_identity("//nas/a") != derive_identity("//nas/b")

    @pytest.mark.parametrize(
        ("fs", "label"),
        [
            ("//nas/media", "media"),
            ("nas:/export/backup", "backup"),
            ("\\\\nas\\docs", "docs"),
            ("//nas/media/", "media"),
            ("share", "share"),
        ],
    )
    def test_share_label(self, fs: str, label: str) -> None:
        """The share label is the last name component."""
        assert share_label(fs) == label

    def test_share_protocol(self) -> None:
        """Filesystem types map to share protocols."""
        assert share_protocol("nfs4") == "NFS"
        assert share_protocol("CIFS") == "SMB"
        assert share_protocol("unknownfs") == "SMB"


class TestBuildCandidates:
    """Tests for build_candidates function."""

    def test_maps_devices_and_shares(
        self, make_device: Callable[..., BlockDeviceRecord]
    ) -> None:
        """Devices keep their UUID; shares get a derived identity."""
        device = make_device("/media/usb", uuid="64E1-A0B2", label="USB")
        share = FilesystemRecord("//nas/media", "cifs", "/mnt/media", 2048)

        volumes = build_candidates([device], [share], ignore_patterns_for("linux"))

        assert [v.mount_path for v in volumes] == ["/media/usb", "/mnt/media"]
        usb, media = volumes
        assert usb.identity == "64E1-A0B2"
        assert usb.label == "USB"
        assert media.identity == derive_identity("//nas/media")
        assert media.label == "media"
        assert media.protocol == "SMB"
        assert media.size_bytes == 2048

    def test_device_without_uuid(self, make_device: Callable[..., BlockDeviceRecord]) -> None:
        """Devices without a UUID get one derived from their name."""
        device = make_device("/media/cd", name="sr0", uuid="")

        (volume,) = build_candidates([device], [], ignore_patterns_for("linux"))

        assert volume.identity == derive_identity("sr0")

    def test_deduplicates(self, make_device: Callable[..., BlockDeviceRecord]) -> None:
        """Duplicate mount paths and identities keep the first candidate."""
        first = make_device("/media/a", uuid="u1")
        same_identity = make_device("/media/b", uuid="u1")
        same_path = make_device("/media/a", uuid="u2")

        volumes = build_candidates(
            [first, same_identity, same_path], [], ignore_patterns_for("linux")
        )

        assert [(v.mount_path, v.identity) for v in volumes] == [("/media/a", "u1")]


class TestSortVolumes:
    """Tests for sort_volumes function."""

    def test_darwin_sorts_by_label(self, make_volume: Callable[..., Volume]) -> None:
        """On macOS volumes sort case-insensitively by label."""
        volumes = [
            make_volume("/Volumes/z", label="beta"),
            make_volume("/Volumes/y", label=""),
            make_volume("/Volumes/x", label="Alpha"),
        ]

        result = sort_volumes(volumes, "darwin")

        assert [v.display_label for v in result] == ["Alpha", "beta", "Untitled"]

    def test_linux_sorts_by_mount_path(self, make_volume: Callable[..., Volume]) -> None:
        """Elsewhere volumes sort case-insensitively by mount path."""
        volumes = [
            make_volume("/media/b"),
            make_volume("/media/C"),
            make_volume("/media/a"),
        ]

        result = sort_volumes(volumes, "linux")

        assert [v.mount_path for v in result] == ["/media/a", "/media/b", "/media/C"]

    def test_ties_broken_by_mount_path(self, make_volume: Callable[..., Volume]) -> None:
        """Equal labels are ordered by mount path."""
        volumes = [
            make_volume("/Volumes/USB 1", label="USB"),
            make_volume("/Volumes/USB", label="usb"),
        ]

        result = sort_volumes(volumes, "darwin")

        assert [v.mount_path for v in result] == ["/Volumes/USB", "/Volumes/USB 1"]

    def test_returns_new_list(self, make_volume: Callable[..., Volume]) -> None:
        """The input is not modified."""
        volumes = [make_volume("/b"), make_volume("/a")]

        sort_volumes(volumes, "linux")

        assert [v.mount_path for v in volumes] == ["/b", "/a"]
