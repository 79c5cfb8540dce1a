"""Timestamped snapshots of CLI install paths."""

from .store import SnapshotStore, SourceResolver

__all__ = ["SnapshotStore", "SourceResolver"]
