"""Sync engine module."""

from autoreject.sync.engine import reject_bad_invites, run_sync_cycle

__all__ = ["reject_bad_invites", "run_sync_cycle"]
