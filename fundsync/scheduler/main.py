"""
Main entry point for the scheduler service.
Runs the event log sync periodically until interrupted.
"""

import asyncio
import signal
from typing import List, Optional

import structlog

from fundsync.core.database import close_database, init_database
from fundsync.core.logging import setup_logging
from fundsync.indexer.core.sync_engine import build_sync_engine

from .sync_scheduler import SyncScheduler

logger = structlog.get_logger(__name__)


class SchedulerMain:
    """Main scheduler service coordinator."""

    def __init__(self, health_check_interval: int = 300):
        self.sync_scheduler: Optional[SyncScheduler] = None
        self.health_check_interval = health_check_interval
        self.running = False
        self.tasks: List[asyncio.Task] = []

    async def initialize(self):
        """Initialize database and scheduler components."""
        try:
            logger.info("Initializing scheduler service")

            await init_database()
            self.sync_scheduler = SyncScheduler(build_sync_engine())

            logger.info("Scheduler service initialized successfully")

        except Exception as e:
            logger.error("Failed to initialize scheduler", error=str(e))
            raise

    async def start(self):
        """Start the scheduler loop and the health check."""
        logger.info("Starting scheduler service")
        self.running = True

        self.tasks.append(asyncio.create_task(self.sync_scheduler.start()))
        self.tasks.append(asyncio.create_task(self._periodic_health_check()))

        logger.info("Scheduler service started")
        await asyncio.gather(*self.tasks, return_exceptions=True)

    async def stop(self):
        """Stop the scheduler service."""
        logger.info("Stopping scheduler service")

        self.running = False
        if self.sync_scheduler:
            await self.sync_scheduler.stop()

        for task in self.tasks:
            if not task.done():
                task.cancel()
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks = []

        await close_database()
        logger.info("Scheduler service stopped")

    async def _periodic_health_check(self):
        while self.running:
            try:
                await asyncio.sleep(self.health_check_interval)
                if not self.running:
                    break

                health = await self.sync_scheduler.health_check()
                logger.info("Scheduler health check", sync_scheduler=health)

                if not health["healthy"]:
                    logger.warning(
                        "Sync scheduler unhealthy",
                        error_count=health["task"]["error_count"],
                        last_error=health["task"]["last_error"]
                    )

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Health check error", error=str(e))


async def main():
    """Run the scheduler service until SIGINT/SIGTERM."""
    setup_logging()

    scheduler = SchedulerMain()
    loop = asyncio.get_running_loop()

    def signal_handler(signum):
        logger.info(f"Received signal {signum}, shutting down...")
        asyncio.ensure_future(scheduler.stop())

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, signal_handler, signum)

    try:
        await scheduler.initialize()
        await scheduler.start()
    except Exception as e:
        logger.error("Scheduler service failed", error=str(e))
        raise
    finally:
        await scheduler.stop()


if __name__ == "__main__":
    asyncio.run(main())
