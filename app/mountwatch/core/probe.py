"""Path existence probing.

Stateless checks of whether a filesystem path exists and is a directory.
Missing paths are reported as results, not errors; any other I/O failure
propagates to the caller.
"""

import asyncio
import os
import stat
from enum import Enum


class PathKind(str, Enum):
    """What a path currently resolves to.

    Attributes:
        DIRECTORY: Path exists and is a directory.
        OTHER: Path exists but is not a directory (file, symlink, device).
        MISSING: Nothing exists at the path.
    """

    DIRECTORY = "directory"
    OTHER = "other"
    MISSING = "missing"


def probe_path(path: str) -> PathKind:
    """Classify a path without following a final symlink.

    Args:
        path: Filesystem path to check.

    Returns:
        PathKind for the path.

    Raises:
        OSError: For any failure other than the path not existing
            (e.g. PermissionError on an unreadable parent).
    """
    try:
        st = os.lstat(path)
    except (FileNotFoundError, NotADirectoryError):
        return PathKind.MISSING
    if stat.S_ISDIR(st.st_mode):
        return PathKind.DIRECTORY
    return PathKind.OTHER


async def is_directory(path: str) -> bool:
    """Check off the event loop whether a path is an existing directory.

    Args:
        path: Filesystem path to check.

    Returns:
        True if the path is a directory, False if missing or not a directory.

    Raises:
        OSError: For failures other than the path not existing.
    """
    kind = await asyncio.to_thread(probe_path, path)
    return kind is PathKind.DIRECTORY
