"""
Periodic sync scheduler - runs the event log sync as a CronJob.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from fundsync.core.config import settings
from fundsync.indexer.core.sync_engine import EventLogSyncEngine
from fundsync.indexer.core.types import SyncResult
from fundsync.models.sync_run_log import SyncTrigger

logger = structlog.get_logger(__name__)


class ScheduledTask:
    """Represents a scheduled task."""

    def __init__(
        self,
        name: str,
        func: Callable[[], Awaitable[Any]],
        interval_seconds: int,
        enabled: bool = True,
        run_immediately: bool = False
    ):
        self.name = name
        self.func = func
        self.interval_seconds = interval_seconds
        self.enabled = enabled
        self.last_run: Optional[datetime] = None
        self.next_run = datetime.utcnow()
        self.run_count = 0
        self.error_count = 0
        self.last_error: Optional[str] = None

        if not run_immediately:
            self.next_run = datetime.utcnow() + timedelta(seconds=interval_seconds)

    def should_run(self, now: Optional[datetime] = None) -> bool:
        """Check if task should run now."""
        return self.enabled and (now or datetime.utcnow()) >= self.next_run

    def schedule_next_run(self):
        self.next_run = datetime.utcnow() + timedelta(seconds=self.interval_seconds)

    async def run(self) -> Any:
        """Execute the task; failures are counted and re-raised."""
        start_time = datetime.utcnow()
        try:
            logger.debug(f"Running scheduled task: {self.name}")
            result = await self.func()
        except Exception as e:
            self.error_count += 1
            self.last_error = str(e)
            self.schedule_next_run()

            logger.error(
                f"Task failed: {self.name}",
                error=str(e),
                error_count=self.error_count
            )
            raise

        self.last_run = start_time
        self.run_count += 1
        self.schedule_next_run()

        logger.debug(
            f"Task completed: {self.name}",
            duration=(datetime.utcnow() - start_time).total_seconds(),
            run_count=self.run_count
        )
        return result

    def status(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "next_run": self.next_run.isoformat(),
            "run_count": self.run_count,
            "error_count": self.error_count,
            "last_error": self.last_error,
        }


class SyncScheduler:
    """
    Runs the event log sync every sync_interval seconds.

    A failing tick is logged and counted; the loop keeps going and the
    next run resumes from the checkpoint.
    """

    TASK_NAME = "sync_event_log"

    def __init__(
        self,
        engine: EventLogSyncEngine,
        interval_seconds: Optional[int] = None,
        run_on_start: Optional[bool] = None,
        loop_interval: float = 10,
    ):
        self.engine = engine
        self.running = False
        self.loop_interval = loop_interval
        self.last_result: Optional[SyncResult] = None
        self.task = ScheduledTask(
            self.TASK_NAME,
            self._sync_event_log,
            interval_seconds=interval_seconds or settings.sync_interval,
            run_immediately=(
                settings.sync_run_on_start if run_on_start is None else run_on_start
            ),
        )

    async def _sync_event_log(self) -> SyncResult:
        result = await self.engine.run(trigger=SyncTrigger.CRON_JOB)
        self.last_result = result
        return result

    async def tick(self) -> Optional[SyncResult]:
        """Run the sync task if it is due."""
        if not self.task.should_run():
            return None
        try:
            return await self.task.run()
        except Exception as e:
            logger.error("Scheduled sync failed", error=str(e))
            return None

    async def start(self):
        """Loop until stopped."""
        logger.info(
            "Starting sync scheduler",
            interval=self.task.interval_seconds,
            next_run=self.task.next_run.isoformat()
        )
        self.running = True

        while self.running:
            try:
                await self.tick()
                await asyncio.sleep(self.loop_interval)
            except asyncio.CancelledError:
                break

        logger.info("Sync scheduler stopped")

    async def stop(self):
        logger.info("Stopping sync scheduler")
        self.running = False

    async def health_check(self) -> Dict[str, Any]:
        """Get health status of the sync scheduler."""
        return {
            "healthy": self.running and self.task.error_count <= self.task.run_count,
            "running": self.running,
            "last_status": self.last_result.status.value if self.last_result else None,
            "last_message": self.last_result.message if self.last_result else None,
            "task": self.task.status(),
        }
