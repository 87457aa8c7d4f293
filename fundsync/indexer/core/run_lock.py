"""
Single-flight guard so two sync runs never overlap.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine


logger = structlog.get_logger(__name__)

_local_locks: Dict[int, asyncio.Lock] = {}


class SyncRunLock:
    """
    Run-level lock keyed on a fixed id.

    PostgreSQL uses a session advisory lock held on a dedicated connection,
    which also guards against runs in other processes. Other dialects fall
    back to a process-wide asyncio lock.
    """

    def __init__(self, engine: AsyncEngine, key: int):
        self.engine = engine
        self.key = key
        self.logger = logger.bind(service="sync_run_lock", key=key)
        self._connection: Optional[AsyncConnection] = None
        self._local: Optional[asyncio.Lock] = None

    @property
    def uses_advisory_lock(self) -> bool:
        return self.engine.dialect.name == "postgresql"

    async def acquire(self) -> bool:
        """Try to take the lock without waiting."""
        if self.uses_advisory_lock:
            connection = await self.engine.connect()
            try:
                result = await connection.execute(
                    text("SELECT pg_try_advisory_lock(:key)"), {"key": self.key}
                )
                acquired = bool(result.scalar())
            except Exception:
                await connection.close()
                raise
            if not acquired:
                await connection.close()
                self.logger.warning("Advisory lock held by another run")
                return False
            self._connection = connection
            return True

        lock = _local_locks.setdefault(self.key, asyncio.Lock())
        if lock.locked():
            self.logger.warning("Sync lock held by another run")
            return False
        await lock.acquire()
        self._local = lock
        return True

    async def release(self) -> None:
        """Release the lock if held."""
        if self._connection is not None:
            try:
                await self._connection.execute(
                    text("SELECT pg_advisory_unlock(:key)"), {"key": self.key}
                )
            finally:
                await self._connection.close()
                self._connection = None

        if self._local is not None:
            self._local.release()
            self._local = None

    @asynccontextmanager
    async def hold(self) -> AsyncGenerator[bool, None]:
        """Context manager yielding whether the lock was acquired."""
        acquired = await self.acquire()
        try:
            yield acquired
        finally:
            if acquired:
                await self.release()
