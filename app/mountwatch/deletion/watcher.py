"""Folder deletion watcher.

Watches one directory and fires a callback exactly once, the first time
the directory can no longer be confirmed to exist. Two strategies share
the same contract:

- ANCESTORS watches the parent of every level from the target up to the
  filesystem root, so removing the target or any of its ancestors is
  reported without polling.
- POLLING re-checks the target on a fixed interval. Slower, but also
  notices a filesystem that was forcibly unmounted.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import os
from collections.abc import Callable
from enum import Enum

from mountwatch.core.probe import is_directory
from mountwatch.core.signals import CancellationToken, CompleteOnce
from mountwatch.deletion.primitives import (
    DirectoryWatch,
    WatchdogDirectoryWatch,
    WatchEventKind,
    run_detached,
)

logger = logging.getLogger(__name__)

DEFAULT_POLLING_INTERVAL = 5.0


class DeletionStrategy(str, Enum):
    """How a DeletionWatcher detects that its folder is gone."""

    ANCESTORS = "ancestors"
    POLLING = "polling"


class DeletionWatcher:
    """Fires a callback once when a watched folder disappears.

    Use create() to build a started watcher. The callback runs at most
    once and never after stop() has returned.

    Example:
        >>> watcher = await DeletionWatcher.create("/media/usb", on_gone)
        >>> ...
        >>> watcher.stop()
    """

    def __init__(
        self,
        path: str,
        on_deleted: Callable[[], None],
        *,
        strategy: DeletionStrategy = DeletionStrategy.ANCESTORS,
        polling_interval: float = DEFAULT_POLLING_INTERVAL,
        directory_watch: DirectoryWatch | None = None,
    ) -> None:
        """Initialize an unstarted watcher.

        Args:
            path: Directory to watch.
            on_deleted: Zero-argument callback run once on deletion.
            strategy: Detection strategy.
            polling_interval: Seconds between probes for POLLING.
            directory_watch: Watch primitive for ANCESTORS. If None, the
                watcher creates and owns a WatchdogDirectoryWatch.
        """
        self._path = os.path.abspath(path)
        self._on_deleted = on_deleted
        self._strategy = strategy
        self._polling_interval = polling_interval
        self._directory_watch = directory_watch
        self._owns_directory_watch = False
        self._token: CancellationToken | None = None
        self._stopped = False

    @classmethod
    async def create(
        cls,
        path: str,
        on_deleted: Callable[[], None],
        *,
        strategy: DeletionStrategy = DeletionStrategy.ANCESTORS,
        polling_interval: float = DEFAULT_POLLING_INTERVAL,
        directory_watch: DirectoryWatch | None = None,
    ) -> DeletionWatcher:
        """Create a watcher and start watching immediately.

        If path is not a directory right now, the returned watcher is
        already stopped and the callback will never run.

        Args:
            path: Directory to watch.
            on_deleted: Zero-argument callback run once on deletion.
            strategy: Detection strategy.
            polling_interval: Seconds between probes for POLLING.
            directory_watch: Watch primitive shared with other watchers.

        Returns:
            The started (or already stopped) watcher.
        """
        watcher = cls(
            path,
            on_deleted,
            strategy=strategy,
            polling_interval=polling_interval,
            directory_watch=directory_watch,
        )
        await watcher.start()
        return watcher

    @property
    def path(self) -> str:
        """Absolute path being watched."""
        return self._path

    @property
    def strategy(self) -> DeletionStrategy:
        """Detection strategy in use."""
        return self._strategy

    @property
    def stopped(self) -> bool:
        """Whether the watcher is permanently inert."""
        return self._stopped

    async def start(self) -> None:
        """Start watching. Does nothing if already started or stopped."""
        if self._token is not None or self._stopped:
            return
        self._token = CancellationToken()

        if not await is_directory(self._path):
            logger.debug("Not watching %s: not a directory", self._path)
            self.stop()
            return
        # stop() may have been called while the probe was pending
        if self._stopped:
            return

        if self._strategy is DeletionStrategy.POLLING:
            self._start_polling()
        else:
            self._start_ancestors()

    def stop(self) -> None:
        """Stop watching. Idempotent and safe to call from the callback."""
        if self._stopped:
            return
        self._stopped = True
        if self._token is not None:
            self._token.cancel()

    def _fire(self) -> None:
        if self._stopped:
            return
        self.stop()
        logger.debug("Folder deleted: %s", self._path)
        self._on_deleted()

    def _start_polling(self) -> None:
        assert self._token is not None
        task = asyncio.get_running_loop().create_task(self._poll())
        self._token.register(task.cancel)

    async def _poll(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self._polling_interval)
            try:
                present = await is_directory(self._path)
            except OSError as e:
                logger.warning("Cannot probe %s, no longer watching: %s", self._path, e)
                self.stop()
                return
            if not present:
                self._fire()
                return

    def _start_ancestors(self) -> None:
        assert self._token is not None
        if self._directory_watch is None:
            self._directory_watch = WatchdogDirectoryWatch()
            self._owns_directory_watch = True
            self._token.register(functools.partial(run_detached, self._directory_watch.close))

        deleted = CompleteOnce()
        deleted.on_complete(self._fire)

        level = self._path
        parent = os.path.dirname(level)
        while parent != level:
            try:
                self._watch_level(parent, os.path.basename(level), deleted)
            except OSError as e:
                # Partial ancestor coverage would silently miss deletions
                logger.warning("Cannot watch %s for %s: %s", parent, self._path, e)
                self.stop()
                return
            level = parent
            parent = os.path.dirname(level)

    def _watch_level(self, parent: str, name: str, deleted: CompleteOnce) -> None:
        assert self._token is not None and self._directory_watch is not None

        def on_entry(kind: WatchEventKind, entry: str) -> None:
            if kind is WatchEventKind.REMOVED and entry == name:
                deleted.resolve()

        subscription = self._directory_watch.subscribe(parent, on_entry, self._on_watch_lost)
        self._token.register(subscription.close)

    def _on_watch_lost(self, error: Exception) -> None:
        if self._stopped:
            return
        logger.warning("Lost watch for %s, no longer watching: %s", self._path, error)
        self.stop()
