"""Replay of submissions queued while offline."""

from .coordinator import SYNC_TAG, SyncCoordinator, SyncReport

__all__ = ["SYNC_TAG", "SyncCoordinator", "SyncReport"]
