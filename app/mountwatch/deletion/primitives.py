"""Directory watch primitives.

A DirectoryWatch subscribes to one directory and reports changes to its
direct entries as (WatchEventKind, entry_name) pairs on the asyncio event
loop. WatchdogDirectoryWatch is the production implementation built on a
single watchdog Observer shared by all of its subscriptions.
"""

import asyncio
import logging
import os
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch

logger = logging.getLogger(__name__)

DEFAULT_HEALTH_INTERVAL = 1.0


class WatchEventKind(str, Enum):
    """Kind of change to a directory entry.

    Attributes:
        REMOVED: Entry was deleted or renamed away.
        ADDED: Entry was created or renamed into the directory.
        CHANGED: Entry contents or metadata changed.
    """

    REMOVED = "removed"
    ADDED = "added"
    CHANGED = "changed"


WatchCallback = Callable[[WatchEventKind, str], None]
ErrorCallback = Callable[[Exception], None]


class WatchLostError(OSError):
    """Raised to subscribers when a directory is no longer being watched."""


def run_detached(func: Callable[..., object], *args: object) -> None:
    """Run a blocking teardown call off the event loop.

    Without a running loop the call runs inline.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        func(*args)
        return
    loop.run_in_executor(None, func, *args)


class WatchSubscription:
    """Handle for one directory subscription.

    close() is idempotent; after it returns the callback receives no
    further notifications.
    """

    def __init__(self, directory: str, on_close: Callable[["WatchSubscription"], None]) -> None:
        self.directory = directory
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether close() has been called."""
        return self._closed

    def close(self) -> None:
        """Unsubscribe from the directory."""
        if self._closed:
            return
        self._closed = True
        self._on_close(self)


class DirectoryWatch(ABC):
    """Abstract directory entry watch.

    Implementations deliver callbacks on the event loop that was running
    when subscribe() was called.
    """

    @abstractmethod
    def subscribe(
        self,
        directory: str,
        callback: WatchCallback,
        on_error: ErrorCallback | None = None,
    ) -> WatchSubscription:
        """Watch a directory's direct entries.

        Args:
            directory: Absolute path of the directory to watch.
            callback: Receives (kind, entry_name) for each entry change.
            on_error: Called once if the directory stops being watched
                after setup. No entry changes are delivered afterwards.

        Returns:
            Subscription handle; close() it to stop receiving events.

        Raises:
            OSError: If the directory cannot be watched.
        """

    @abstractmethod
    def close(self) -> None:
        """Release every subscription and the underlying resources."""


class _DirectoryHandler(FileSystemEventHandler):
    """Translates watchdog events for one directory into entry changes.

    Runs on the observer thread and hands every change to the event loop.
    """

    def __init__(
        self,
        directory: str,
        loop: asyncio.AbstractEventLoop,
        deliver: Callable[[str, WatchEventKind, str], None],
    ) -> None:
        self._directory = directory
        self._loop = loop
        self._deliver = deliver

    def on_any_event(self, event: FileSystemEvent) -> None:
        for kind, path in _translate(event):
            # Events about the watched directory itself belong to the level above
            if os.path.dirname(path) != self._directory:
                continue
            name = os.path.basename(path)
            if self._loop.is_closed():
                return
            self._loop.call_soon_threadsafe(self._deliver, self._directory, kind, name)


def _translate(event: FileSystemEvent) -> list[tuple[WatchEventKind, str]]:
    """Map a watchdog event to (kind, absolute path) pairs."""
    src = os.path.normpath(os.fsdecode(event.src_path))
    if event.event_type == EVENT_TYPE_DELETED:
        return [(WatchEventKind.REMOVED, src)]
    if event.event_type == EVENT_TYPE_CREATED:
        return [(WatchEventKind.ADDED, src)]
    if event.event_type == EVENT_TYPE_MODIFIED:
        return [(WatchEventKind.CHANGED, src)]
    if event.event_type == EVENT_TYPE_MOVED:
        dest = os.path.normpath(os.fsdecode(event.dest_path))
        return [(WatchEventKind.REMOVED, src), (WatchEventKind.ADDED, dest)]
    return []


class WatchdogDirectoryWatch(DirectoryWatch):
    """DirectoryWatch backed by one watchdog Observer.

    Each watched directory is scheduled once (non-recursive) no matter how
    many subscriptions share it. The observer thread starts lazily with
    the first subscription.

    Emitter threads end on their own when the kernel drops a watch or a
    read fails. A background task checks every health_interval seconds
    that each subscribed directory still has a live emitter; a directory
    that still exists but lost its emitter is reported through on_error.
    A deleted directory is left to the watch on its parent.

    Unscheduling joins the emitter thread, so it runs in the default
    executor rather than on the event loop.
    """

    def __init__(self, *, health_interval: float = DEFAULT_HEALTH_INTERVAL) -> None:
        self._health_interval = health_interval
        self._observer: BaseObserver | None = None
        self._health_task: asyncio.Task[None] | None = None
        self._lock = threading.Lock()
        self._watches: dict[str, ObservedWatch] = {}
        self._subscribers: dict[
            str, dict[WatchSubscription, tuple[WatchCallback, ErrorCallback | None]]
        ] = {}

    def subscribe(
        self,
        directory: str,
        callback: WatchCallback,
        on_error: ErrorCallback | None = None,
    ) -> WatchSubscription:
        """Watch a directory's direct entries.

        Must be called from a running event loop.

        Args:
            directory: Absolute path of the directory to watch.
            callback: Receives (kind, entry_name) for each entry change.
            on_error: Receives a WatchLostError if the watch dies later.

        Returns:
            Subscription handle.

        Raises:
            OSError: If watchdog cannot watch the directory.
        """
        loop = asyncio.get_running_loop()
        directory = os.path.normpath(directory)
        subscription = WatchSubscription(directory, self._unsubscribe)

        with self._lock:
            if directory not in self._watches:
                observer = self._ensure_observer()
                handler = _DirectoryHandler(directory, loop, self._deliver)
                self._watches[directory] = observer.schedule(handler, directory, recursive=False)
                logger.debug("Watching directory %s", directory)
            self._subscribers.setdefault(directory, {})[subscription] = (callback, on_error)

        if self._health_task is None:
            self._health_task = loop.create_task(self._check_health())
        return subscription

    def close(self) -> None:
        """Stop the observer and drop every subscription.

        Blocks until the observer thread ends (at most five seconds).
        Safe to call from a worker thread.
        """
        with self._lock:
            observer = self._observer
            self._observer = None
            self._watches.clear()
            self._subscribers.clear()
            task, self._health_task = self._health_task, None
        if task is not None and not task.done():
            loop = task.get_loop()
            if not loop.is_closed():
                loop.call_soon_threadsafe(task.cancel)
        if observer is not None:
            observer.stop()
            observer.join(timeout=5.0)

    @property
    def watched_directories(self) -> list[str]:
        """Directories with at least one open subscription."""
        with self._lock:
            return sorted(d for d, subscribers in self._subscribers.items() if subscribers)

    def _ensure_observer(self) -> BaseObserver:
        # Started before any schedule() so that watch setup errors raise here
        if self._observer is None:
            self._observer = Observer()
            self._observer.daemon = True
            self._observer.start()
        return self._observer

    def _deliver(self, directory: str, kind: WatchEventKind, name: str) -> None:
        # Per-directory subscriber maps only change on the loop thread
        subscribers = list(self._subscribers.get(directory, {}).items())
        for subscription, (callback, _) in subscribers:
            if not subscription.closed:
                callback(kind, name)

    def _unsubscribe(self, subscription: WatchSubscription) -> None:
        directory = subscription.directory
        with self._lock:
            subscribers = self._subscribers.get(directory)
            if subscribers is None or subscription not in subscribers:
                return
            del subscribers[subscription]
            if subscribers:
                return
        run_detached(self._unschedule_if_unused, directory)

    def _unschedule_if_unused(self, directory: str) -> None:
        with self._lock:
            # Resubscribed while the teardown was queued
            if self._subscribers.get(directory):
                return
            self._subscribers.pop(directory, None)
            watch = self._watches.pop(directory, None)
            observer = self._observer
            if watch is None or observer is None:
                return
            try:
                observer.unschedule(watch)
            except (KeyError, OSError) as e:
                # Directory already gone; the kernel dropped the watch with it
                logger.debug("Unschedule of %s failed: %s", directory, e)
        logger.debug("Stopped watching directory %s", directory)

    async def _check_health(self) -> None:
        while True:
            await asyncio.sleep(self._health_interval)
            for directory in await asyncio.to_thread(self._lost_directories):
                self._fail(directory, WatchLostError(f"Watch on {directory} stopped"))

    def _lost_directories(self) -> list[str]:
        """Subscribed directories that still exist but have no live emitter."""
        with self._lock:
            observer = self._observer
            if observer is None:
                return []
            watched = {d: w for d, w in self._watches.items() if self._subscribers.get(d)}
            if observer.is_alive():
                live = {e.watch for e in observer.emitters if e.is_alive()}
            else:
                live = set()
        return sorted(
            directory
            for directory, watch in watched.items()
            if watch not in live and os.path.isdir(directory)
        )

    def _fail(self, directory: str, error: WatchLostError) -> None:
        with self._lock:
            subscribers = self._subscribers.get(directory)
            if not subscribers:
                return
            self._subscribers[directory] = {}
        logger.warning("%s", error)
        run_detached(self._unschedule_if_unused, directory)
        for subscription, (_, on_error) in subscribers.items():
            if not subscription.closed and on_error is not None:
                on_error(error)
