"""
Checkpoint store - resume cursor and run-log housekeeping.
"""

from datetime import datetime

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fundsync.models.event_log import EventLog
from fundsync.models.sync_run_log import SyncRunLog, SyncRunStatus, SyncTrigger

from .types import Checkpoint


logger = structlog.get_logger(__name__)


class CheckpointStore:
    """
    Reads the sync checkpoint and prunes old run logs.

    The checkpoint is not stored on its own: it is the position of the
    most recently created EventLog row, so it advances as logs are applied.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker
        self.logger = logger.bind(service="checkpoint_store")

    async def current_checkpoint(self) -> Checkpoint:
        """(block_number, log_index) of the latest EventLog, or (0, 0)."""
        async with self.session_maker() as db:
            result = await db.execute(
                select(EventLog.block_number, EventLog.log_index)
                .order_by(EventLog.id.desc())
                .limit(1)
            )
            row = result.first()

        if row is None:
            return Checkpoint()
        return Checkpoint(block_number=row.block_number, log_index=row.log_index)

    async def prune_stale_runs(
        self,
        older_than: datetime,
        trigger: SyncTrigger = SyncTrigger.CRON_JOB,
        status: SyncRunStatus = SyncRunStatus.FULFILLED,
    ) -> int:
        """
        Delete run logs with the given trigger and status created before older_than.

        Returns:
            Number of deleted rows
        """
        async with self.session_maker() as db:
            async with db.begin():
                result = await db.execute(
                    delete(SyncRunLog).where(
                        SyncRunLog.trigger == trigger,
                        SyncRunLog.status == status,
                        SyncRunLog.created_at < older_than,
                    )
                )

        deleted = result.rowcount or 0
        if deleted:
            self.logger.info(
                "Pruned stale run logs",
                deleted=deleted,
                trigger=trigger.value,
                status=status.value,
                older_than=older_than.isoformat()
            )
        return deleted
