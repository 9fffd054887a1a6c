"""Folder deletion detection.

This module provides the DeletionWatcher and the directory watch
primitives it is built on.
"""

from mountwatch.deletion.primitives import (
    DirectoryWatch,
    WatchdogDirectoryWatch,
    WatchEventKind,
    WatchLostError,
    WatchSubscription,
)
from mountwatch.deletion.watcher import DeletionStrategy, DeletionWatcher

__all__ = [
    "DeletionStrategy",
    "DeletionWatcher",
    "DirectoryWatch",
    "WatchEventKind",
    "WatchLostError",
    "WatchSubscription",
    "WatchdogDirectoryWatch",
]
