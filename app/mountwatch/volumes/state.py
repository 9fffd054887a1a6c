"""Live state of a volume reconciler.

MonitorState holds the volumes currently considered mounted together with
the deletion watcher of each mount path. Both maps are keyed by mount path
and always hold the same keys.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mountwatch.deletion.watcher import DeletionWatcher
    from mountwatch.volumes.models import Volume


class MonitorState:
    """Volumes and deletion watchers owned by one reconciler.

    Attributes:
        volumes: Mounted volumes by mount path.
        watchers: Deletion watcher of each mounted volume by mount path.
    """

    def __init__(self) -> None:
        self.volumes: dict[str, Volume] = {}
        self.watchers: dict[str, DeletionWatcher] = {}

    def __len__(self) -> int:
        return len(self.volumes)

    def __contains__(self, mount_path: object) -> bool:
        return mount_path in self.volumes

    def get(self, mount_path: str) -> Volume | None:
        """Return the volume mounted at a path, if any."""
        return self.volumes.get(mount_path)

    def add(self, volume: Volume, watcher: DeletionWatcher) -> None:
        """Insert a volume and its watcher.

        Args:
            volume: Newly mounted volume.
            watcher: Deletion watcher for the volume's mount path.

        Raises:
            ValueError: If a volume is already held at that mount path.
        """
        if volume.mount_path in self.volumes:
            msg = f"Volume already mounted at {volume.mount_path}"
            raise ValueError(msg)
        self.volumes[volume.mount_path] = volume
        self.watchers[volume.mount_path] = watcher

    def remove(self, mount_path: str) -> tuple[Volume, DeletionWatcher] | None:
        """Remove a volume and its watcher.

        The watcher is returned as-is; stopping it is up to the caller.

        Args:
            mount_path: Mount path to remove.

        Returns:
            The removed (volume, watcher) pair, or None if nothing was held.
        """
        volume = self.volumes.pop(mount_path, None)
        if volume is None:
            return None
        watcher = self.watchers.pop(mount_path)
        return volume, watcher

    def replace(self, volume: Volume, watcher: DeletionWatcher) -> DeletionWatcher:
        """Swap the volume and watcher held at the volume's mount path.

        Args:
            volume: Updated volume, same mount path as the held one.
            watcher: Watcher replacing the held one.

        Returns:
            The previous watcher, not stopped.

        Raises:
            KeyError: If no volume is held at that mount path.
        """
        previous = self.watchers[volume.mount_path]
        self.volumes[volume.mount_path] = volume
        self.watchers[volume.mount_path] = watcher
        return previous
