"""mountwatch - Mounted volume monitoring for Linux, macOS and Windows.

Detects mount, unmount and relabel events for storage volumes and
reports folder deletion faster than polling alone.
"""

__version__ = "0.1.0"
