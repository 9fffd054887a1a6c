"""Diff of a fresh volume snapshot against the known state.

The diff is keyed by volume identity; mount paths only decide whether a
candidate is new.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence

from mountwatch.volumes.models import Volume, VolumeEvent


def diff_volumes(
    known: Mapping[str, Volume],
    previous_order: Sequence[Volume],
    candidates: Sequence[Volume],
    confirmed: Collection[str],
) -> list[VolumeEvent]:
    """Compute the events that turn the known state into the snapshot.

    Rules:
        - A candidate whose mount path is not known and was confirmed to
          be a directory is Mounted.
        - A known volume whose identity is missing from the candidates, or
          present at a different mount path, is Unmounted.
        - A known volume whose identity is present at the same mount path
          with a different label is Renamed.

    Mounted events come first in candidate order, followed by Unmounted
    and Renamed events in the order of previous_order.

    Args:
        known: Known volumes by mount path.
        previous_order: The known volumes in the order events are reported.
        candidates: Fresh candidates, already filtered and ordered.
        confirmed: Mount paths the existence probe confirmed as directories.

    Returns:
        Ordered list of events; empty when nothing changed.
    """
    events: list[VolumeEvent] = [
        VolumeEvent.mounted(candidate)
        for candidate in candidates
        if candidate.mount_path not in known and candidate.mount_path in confirmed
    ]

    by_identity = {candidate.identity: candidate for candidate in candidates}
    for old in previous_order:
        new = by_identity.get(old.identity)
        if new is None or new.mount_path != old.mount_path:
            events.append(VolumeEvent.unmounted(old))
        elif new.label != old.label:
            events.append(VolumeEvent.renamed(new, old))

    return events
