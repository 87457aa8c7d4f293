"""
Core types for event log synchronization.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from fundsync.models.sync_run_log import SyncRunStatus


@dataclass(frozen=True)
class RawLog:
    """A raw EVM log as returned by the log fetcher."""
    address: str
    data: str
    topics: Tuple[str, ...]
    block_number: int
    block_hash: str
    transaction_hash: str
    transaction_index: int
    log_index: int

    @property
    def signature(self) -> Optional[str]:
        """topics[0], the event signature hash."""
        return self.topics[0] if self.topics else None

    @property
    def position(self) -> Tuple[int, int]:
        return (self.block_number, self.log_index)


@dataclass(frozen=True, order=True)
class Checkpoint:
    """(block_number, log_index) of the last applied log."""
    block_number: int = 0
    log_index: int = 0

    def covers(self, raw_log: RawLog) -> bool:
        """
        True when the log was already applied.

        Fetches start at this checkpoint's block inclusive, so only logs in
        the same block at or below the checkpoint's log index are skipped.
        """
        return (
            raw_log.block_number == self.block_number
            and raw_log.log_index <= self.log_index
        )


@dataclass
class SyncStats:
    """Counters for a single sync run."""
    total_synced: int = 0
    skipped: int = 0
    unknown_events: int = 0
    unmatched_funds: int = 0
    applied: Counter = field(default_factory=Counter)
    misses: Counter = field(default_factory=Counter)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    def record_miss(self, what: str) -> None:
        """Count a missing linked entity (token, wallet, referral...)."""
        self.misses[what] += 1

    def as_dict(self) -> dict:
        return {
            "total_synced": self.total_synced,
            "skipped": self.skipped,
            "unknown_events": self.unknown_events,
            "unmatched_funds": self.unmatched_funds,
            "applied": dict(self.applied),
            "misses": dict(self.misses),
        }


@dataclass
class SyncResult:
    """Outcome of one sync run, mirroring the persisted SyncRunLog."""
    status: SyncRunStatus
    message: str
    checkpoint: Checkpoint
    total_synced: int
    stats: SyncStats

    @property
    def fulfilled(self) -> bool:
        return self.status == SyncRunStatus.FULFILLED
