"""
Core indexer components.
"""

from .types import Checkpoint, RawLog, SyncResult, SyncStats
from .event_classifier import EventClassifier, EventKind

__all__ = [
    "Checkpoint",
    "RawLog",
    "SyncResult",
    "SyncStats",
    "EventClassifier",
    "EventKind",
]
