"""Derive the idle / pending / syncing status shown to the user."""

from __future__ import annotations

from .models import StatusState, SyncStatus


def derive_status(
    syncing: bool, cycle_size: int, queue_size: int
) -> SyncStatus:
    """Map engine state onto a ``SyncStatus``.

    Args:
        syncing: Whether a publish cycle is in flight.
        cycle_size: Number of targets in the in-flight cycle.
        queue_size: Number of paths waiting in the pending queue.
    """
    if syncing:
        return SyncStatus(state=StatusState.SYNCING, count=cycle_size)
    if queue_size > 0:
        return SyncStatus(state=StatusState.PENDING, count=queue_size)
    return SyncStatus()
