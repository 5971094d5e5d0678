"""Snapshot persistence layer.

Append-only storage of timestamped indicator rows, queried for the freshest
row within a window and for per-indicator historical series.
"""

from cryptodash.data.database import SnapshotDatabase
from cryptodash.data.store import HISTORY_INDICATORS, SnapshotStore

__all__ = ["HISTORY_INDICATORS", "SnapshotDatabase", "SnapshotStore"]
