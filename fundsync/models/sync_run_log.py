"""
SyncRunLog model - one summary row per sync invocation.
"""

from enum import Enum

from sqlalchemy import Integer, BigInteger, Text, Index, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, TimestampMixin


class SyncTrigger(str, Enum):
    """What started the sync run."""
    MANUAL = "Manual"
    CRON_JOB = "CronJob"


class SyncRunStatus(str, Enum):
    """Terminal run status."""
    FULFILLED = "Fulfilled"
    REJECTED = "Rejected"


class SyncRunLog(BaseModel, TimestampMixin):
    """Run summary. Written exactly once per invocation."""

    __tablename__ = "sync_run_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    trigger: Mapped[SyncTrigger] = mapped_column(
        SQLEnum(
            SyncTrigger,
            native_enum=False,
            length=20,
            values_callable=lambda triggers: [t.value for t in triggers],
        )
    )

    message: Mapped[str] = mapped_column(Text, default="")

    latest_token_event_log_block_number: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        comment="Checkpoint block captured at run start"
    )

    latest_token_event_log_index: Mapped[int] = mapped_column(
        Integer,
        default=0,
        comment="Checkpoint log index captured at run start"
    )

    total_synced: Mapped[int] = mapped_column(Integer, default=0)

    status: Mapped[SyncRunStatus] = mapped_column(
        SQLEnum(
            SyncRunStatus,
            native_enum=False,
            length=20,
            values_callable=lambda statuses: [s.value for s in statuses],
        )
    )

    __table_args__ = (
        Index("idx_sync_run_log_prune", "trigger", "status", "created_at"),
    )

    @property
    def is_fulfilled(self) -> bool:
        return self.status == SyncRunStatus.FULFILLED

    def __repr__(self) -> str:
        return f"<SyncRunLog(trigger={self.trigger}, status={self.status}, total_synced={self.total_synced})>"
