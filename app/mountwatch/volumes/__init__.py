"""Mounted volume monitoring.

This module provides the volume models, the enumeration provider and the
VolumeReconciler that turns periodic snapshots into volume events.
"""

from mountwatch.volumes.models import (
    MonitorTopic,
    MountPoint,
    Volume,
    VolumeEvent,
    VolumeEventType,
)
from mountwatch.volumes.provider import (
    SystemVolumeProvider,
    VolumeEnumerationError,
    VolumeProvider,
)
from mountwatch.volumes.reconciler import VolumeReconciler
from mountwatch.volumes.state import MonitorState

__all__ = [
    "MonitorState",
    "MonitorTopic",
    "MountPoint",
    "SystemVolumeProvider",
    "Volume",
    "VolumeEnumerationError",
    "VolumeEvent",
    "VolumeEventType",
    "VolumeProvider",
    "VolumeReconciler",
]
