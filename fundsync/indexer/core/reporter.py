"""
Sync run reporter - persists the single SyncRunLog of each run.
"""

from typing import List

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fundsync.models.sync_run_log import SyncRunLog, SyncRunStatus, SyncTrigger

from .types import Checkpoint


logger = structlog.get_logger(__name__)


class SyncRunReporter:
    """Writes run outcomes; the SyncRunLog is the run's only external summary."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker
        self.logger = logger.bind(service="sync_run_reporter")

    async def report(
        self,
        trigger: SyncTrigger,
        status: SyncRunStatus,
        message: str,
        checkpoint: Checkpoint,
        total_synced: int,
    ) -> SyncRunLog:
        """Create the run's SyncRunLog."""
        run_log = SyncRunLog(
            trigger=trigger,
            message=message,
            latest_token_event_log_block_number=checkpoint.block_number,
            latest_token_event_log_index=checkpoint.log_index,
            total_synced=total_synced,
            status=status,
        )
        async with self.session_maker() as db:
            async with db.begin():
                db.add(run_log)

        log = self.logger.info if status == SyncRunStatus.FULFILLED else self.logger.warning
        log(
            "Sync run recorded",
            trigger=trigger.value,
            status=status.value,
            message=message,
            block_number=checkpoint.block_number,
            log_index=checkpoint.log_index,
            total_synced=total_synced
        )
        return run_log

    async def recent_runs(self, limit: int = 20) -> List[SyncRunLog]:
        """Most recent run logs, newest first."""
        async with self.session_maker() as db:
            result = await db.execute(
                select(SyncRunLog).order_by(SyncRunLog.id.desc()).limit(limit)
            )
            return list(result.scalars().all())
