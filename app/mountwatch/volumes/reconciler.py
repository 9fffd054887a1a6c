"""Interval-driven volume reconciliation.

VolumeReconciler periodically enumerates the mounted volumes, diffs the
snapshot against its MonitorState and publishes the resulting mount,
unmount and rename events. Each mounted volume also gets a
DeletionWatcher, so a deleted mount folder is reported between passes.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import os
import sys
from collections.abc import Callable, Iterable
from typing import Any

from mountwatch.core.config import DEFAULT_INTERVAL_SECONDS, MonitorConfig
from mountwatch.core.probe import is_directory
from mountwatch.deletion import (
    DeletionStrategy,
    DeletionWatcher,
    DirectoryWatch,
    WatchdogDirectoryWatch,
)
from mountwatch.deletion.watcher import DEFAULT_POLLING_INTERVAL
from mountwatch.volumes.diff import diff_volumes
from mountwatch.volumes.filters import build_candidates, ignore_patterns_for, sort_volumes
from mountwatch.volumes.models import MonitorTopic, Volume, VolumeEvent, VolumeEventType
from mountwatch.volumes.provider import (
    SystemVolumeProvider,
    VolumeEnumerationError,
    VolumeProvider,
)
from mountwatch.volumes.state import MonitorState

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class VolumeReconciler:
    """Keeps a MonitorState in sync with the mounted volumes.

    Listeners subscribe per MonitorTopic. Event topics (MOUNTED,
    UNMOUNTED, RENAMED, ANY) receive the VolumeEvent; CHANGED and
    REFRESH_COMPLETED receive no argument.

    Example:
        >>> reconciler = VolumeReconciler()
        >>> reconciler.on(MonitorTopic.ANY, print)
        >>> reconciler.start()
        >>> ...
        >>> await reconciler.close()
    """

    def __init__(
        self,
        provider: VolumeProvider | None = None,
        *,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        strategy: DeletionStrategy = DeletionStrategy.ANCESTORS,
        polling_interval: float = DEFAULT_POLLING_INTERVAL,
        ignore_patterns: Iterable[str] = (),
        sort: bool = True,
        platform: str | None = None,
        directory_watch: DirectoryWatch | None = None,
    ) -> None:
        """Initialize a stopped reconciler with empty state.

        Args:
            provider: Source of raw volume records. Defaults to the system.
            interval: Seconds between scheduled passes.
            strategy: Deletion detection strategy for mount folders.
            polling_interval: Probe interval of the POLLING strategy.
            ignore_patterns: Extra mount path regexes to ignore.
            sort: Order volumes by the platform sort policy.
            platform: sys.platform style name. Defaults to the running one.
            directory_watch: Watch primitive shared by ANCESTORS watchers.
                If None, one is created on first use and closed by close().

        Raises:
            ValueError: If interval is not positive.
        """
        if interval <= 0:
            msg = f"Interval must be positive, got {interval}"
            raise ValueError(msg)

        self._provider = provider or SystemVolumeProvider()
        self._interval = interval
        self._strategy = strategy
        self._polling_interval = polling_interval
        self._platform = platform or sys.platform
        self._patterns = ignore_patterns_for(self._platform, ignore_patterns)
        self._sort = sort
        self._directory_watch = directory_watch
        self._owns_directory_watch = False

        self._state = MonitorState()
        self._listeners: dict[MonitorTopic, list[tuple[Listener, bool]]] = {}
        self._refresh_waiters: list[asyncio.Future[None]] = []
        self._pending_watchers: list[DeletionWatcher] = []

        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None

    @classmethod
    def from_config(
        cls,
        config: MonitorConfig,
        provider: VolumeProvider | None = None,
        **kwargs: Any,
    ) -> VolumeReconciler:
        """Create a reconciler from a MonitorConfig.

        Args:
            config: Loaded monitor configuration.
            provider: Source of raw volume records. Defaults to the system.
            **kwargs: Passed through to the constructor.

        Returns:
            A stopped reconciler.
        """
        return cls(
            provider,
            interval=config.interval_seconds,
            strategy=DeletionStrategy(config.deletion_strategy),
            polling_interval=config.polling_interval_seconds,
            ignore_patterns=config.ignore_patterns,
            sort=config.sort_volumes,
            **kwargs,
        )

    @property
    def running(self) -> bool:
        """Whether passes are currently scheduled."""
        return (
            self._task is not None
            and not self._task.done()
            and self._stop_event is not None
            and not self._stop_event.is_set()
        )

    @property
    def state(self) -> MonitorState:
        """The live state. Mutated only by passes and deletion callbacks."""
        return self._state

    # Scheduling

    def start(self) -> None:
        """Run a pass now and then every interval until stop().

        Idempotent. Must be called with a running event loop.

        Raises:
            RuntimeError: If no event loop is running.
        """
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        self._task = loop.create_task(self._run(self._stop_event))
        logger.debug("Reconciler started, interval %.1fs", self._interval)

    def stop(self) -> None:
        """Stop scheduling passes.

        Idempotent. A pass already in progress completes; state and
        deletion watchers are left untouched.
        """
        if self._stop_event is not None and not self._stop_event.is_set():
            self._stop_event.set()
            logger.debug("Reconciler stopped")

    async def close(self) -> None:
        """Stop scheduling, wait for the scheduler and stop every watcher."""
        self.stop()
        if self._task is not None:
            await self._task
            self._task = None
        for watcher in self._state.watchers.values():
            watcher.stop()
        self._pending_watchers.clear()
        if self._owns_directory_watch and self._directory_watch is not None:
            watch, self._directory_watch = self._directory_watch, None
            self._owns_directory_watch = False
            await asyncio.to_thread(watch.close)

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await self.refresh()
            except VolumeEnumerationError as e:
                logger.warning("Volume enumeration failed, skipping pass: %s", e)
            except Exception:
                logger.exception("Reconciliation pass failed, retrying next interval")
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                pass

    # Reconciliation

    async def refresh(self) -> list[VolumeEvent]:
        """Run one reconciliation pass now.

        Waits for a pass already in progress to finish first.

        Returns:
            The events applied and published by this pass.

        Raises:
            VolumeEnumerationError: If the volumes cannot be enumerated.
                State is unchanged and nothing is published.
        """
        async with self._lock:
            devices, filesystems = await asyncio.gather(
                self._provider.block_devices(),
                self._provider.filesystems(),
            )
            candidates = self._order(build_candidates(devices, filesystems, self._patterns))
            confirmed = await self._confirm_new(candidates)

            # No awaits between diff and apply, so the diff sees live state
            events = diff_volumes(
                self._state.volumes,
                self._order(self._state.volumes.values()),
                candidates,
                confirmed,
            )
            applied = [event for event in events if self._apply(event)]

            await self._start_pending_watchers()
            self._publish(applied)
            self._emit(MonitorTopic.REFRESH_COMPLETED)
            self._resolve_refresh_waiters()

        if applied:
            logger.info("Pass applied %d volume event(s)", len(applied))
        return applied

    async def _confirm_new(self, candidates: list[Volume]) -> set[str]:
        paths = [c.mount_path for c in candidates if c.mount_path not in self._state]
        results = await asyncio.gather(*(self._confirm_directory(p) for p in paths))
        return {path for path, ok in zip(paths, results, strict=True) if ok}

    async def _confirm_directory(self, path: str) -> bool:
        try:
            return await is_directory(path)
        except OSError as e:
            logger.warning("Cannot probe mount path %s: %s", path, e)
            return False

    def _apply(self, event: VolumeEvent) -> bool:
        """Apply one event to the state.

        Returns:
            False if the event no longer applies to the live state.
        """
        volume = event.volume
        current = self._state.get(volume.mount_path)

        if event.type is VolumeEventType.MOUNTED:
            if current is not None:
                return False
            self._state.add(volume, self._new_watcher(volume.mount_path))
            return True

        if current is None or current.identity != volume.identity:
            return False

        if event.type is VolumeEventType.UNMOUNTED:
            removed = self._state.remove(volume.mount_path)
            assert removed is not None
            removed[1].stop()
        else:
            # Renames restart the watcher on the same path
            previous = self._state.replace(volume, self._new_watcher(volume.mount_path))
            previous.stop()
        return True

    def _new_watcher(self, mount_path: str) -> DeletionWatcher:
        watcher = DeletionWatcher(
            mount_path,
            functools.partial(self._on_folder_deleted, mount_path),
            strategy=self._strategy,
            polling_interval=self._polling_interval,
            directory_watch=self._shared_directory_watch(),
        )
        self._pending_watchers.append(watcher)
        return watcher

    def _shared_directory_watch(self) -> DirectoryWatch | None:
        if self._strategy is not DeletionStrategy.ANCESTORS:
            return None
        if self._directory_watch is None:
            self._directory_watch = WatchdogDirectoryWatch()
            self._owns_directory_watch = True
        return self._directory_watch

    async def _start_pending_watchers(self) -> None:
        pending, self._pending_watchers = self._pending_watchers, []
        await asyncio.gather(*(self._start_watcher(w) for w in pending))

    async def _start_watcher(self, watcher: DeletionWatcher) -> None:
        try:
            await watcher.start()
        except OSError as e:
            # The volume stays tracked; the next passes still report it
            logger.warning("Cannot watch %s for deletion: %s", watcher.path, e)
            watcher.stop()

    def _on_folder_deleted(self, mount_path: str) -> None:
        volume = self._state.get(mount_path)
        if volume is None:
            return
        event = VolumeEvent.unmounted(volume)
        if self._apply(event):
            logger.info("Mount folder deleted: %s", mount_path)
            self._publish([event])

    def _order(self, volumes: Iterable[Volume]) -> list[Volume]:
        if self._sort:
            return sort_volumes(volumes, self._platform)
        return list(volumes)

    # Queries

    def current_state(self) -> list[Volume]:
        """Snapshot of the mounted volumes in sort order."""
        return self._order(self._state.volumes.values())

    def lookup(self, path: str) -> Volume | None:
        """Find the volume containing a path.

        Mount paths are matched by whole path components, and the longest
        matching mount path wins.

        Args:
            path: Any path, inside a mounted volume or not.

        Returns:
            The containing volume, or None.
        """
        path = os.path.normpath(path)
        best: Volume | None = None
        for mount_path, volume in self._state.volumes.items():
            prefix = mount_path.rstrip(os.sep) + os.sep
            if path != mount_path and not path.startswith(prefix):
                continue
            if best is None or len(mount_path) > len(best.mount_path):
                best = volume
        return best

    def is_mounted(self, path: str) -> bool:
        """Check whether a volume is mounted exactly at a path."""
        return os.path.normpath(path) in self._state

    # Subscriptions

    def on(self, topic: MonitorTopic, listener: Listener) -> None:
        """Subscribe a listener to a topic."""
        self._listeners.setdefault(topic, []).append((listener, False))

    def once(self, topic: MonitorTopic, listener: Listener) -> None:
        """Subscribe a listener for the next publication on a topic only."""
        self._listeners.setdefault(topic, []).append((listener, True))

    def off(self, topic: MonitorTopic, listener: Listener) -> None:
        """Unsubscribe every registration of a listener from a topic."""
        entries = self._listeners.get(topic, [])
        self._listeners[topic] = [entry for entry in entries if entry[0] is not listener]

    async def next_refresh(self) -> None:
        """Wait until the next reconciliation pass completes."""
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._refresh_waiters.append(future)
        await future

    def _resolve_refresh_waiters(self) -> None:
        waiters, self._refresh_waiters = self._refresh_waiters, []
        for future in waiters:
            if not future.done():
                future.set_result(None)

    def _publish(self, events: list[VolumeEvent]) -> None:
        for event in events:
            self._emit(event.topic, event)
            self._emit(MonitorTopic.ANY, event)
        if events:
            self._emit(MonitorTopic.CHANGED)

    def _emit(self, topic: MonitorTopic, *args: Any) -> None:
        entries = self._listeners.get(topic)
        if not entries:
            return
        if any(once for _, once in entries):
            self._listeners[topic] = [entry for entry in entries if not entry[1]]
        for listener, _ in entries:
            try:
                listener(*args)
            except Exception:
                logger.exception("Listener for %s failed", topic.value)
