"""
Scheduled sync runs.
"""

from .sync_scheduler import ScheduledTask, SyncScheduler

__all__ = ["ScheduledTask", "SyncScheduler"]
