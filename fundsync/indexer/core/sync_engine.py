"""
Event log sync engine.

Pulls SFT and vault logs from the chain, skips what the checkpoint already
covers and applies the rest to the token, referral and reward state.
"""

from datetime import timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fundsync.core.config import settings
from fundsync.core.exceptions import FundSyncException
from fundsync.models.base import utcnow
from fundsync.models.fund import Fund
from fundsync.models.sync_run_log import SyncRunStatus, SyncTrigger
from fundsync.services.earning_service import EarningRecordService
from fundsync.services.log_fetcher import LogFetcher

from .checkpoint_store import CheckpointStore
from .event_classifier import (
    SFT_EVENT_HASHES,
    VAULT_EVENT_HASHES,
    DecodedEvent,
    EventClassifier,
    EventKind,
    is_same_address,
)
from .reporter import SyncRunReporter
from .run_lock import SyncRunLock
from .types import Checkpoint, RawLog, SyncResult, SyncStats
from ..handlers.reward_handlers import RewardHandlers
from ..handlers.token_handlers import TokenHandlers


logger = structlog.get_logger(__name__)

SYNC_SUCCESS_MESSAGE = "Sync event log successfully"
FUND_NOT_INITIALIZED_MESSAGE = "Fund not initialized"
NO_SFT_CONTRACT_MESSAGE = "No SFT contract found"
NO_VAULT_CONTRACT_MESSAGE = "No Vault contract found"
SYNC_IN_PROGRESS_MESSAGE = "Sync already in progress"

EventHandler = Callable[[AsyncSession, RawLog, DecodedEvent, Optional[Fund]], Awaitable[None]]


class EventLogSyncEngine:
    """
    Reconciles on-chain SFT/vault logs into the domain store.

    One run:
    - takes the run lock
    - checks that funds with SFT and vault contracts exist
    - reads the checkpoint and prunes old CronJob run logs
    - fetches SFT logs, then vault logs, from the checkpoint block
    - applies every log past the checkpoint, each in its own transaction
    - writes exactly one SyncRunLog
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        log_fetcher: LogFetcher,
        run_lock: SyncRunLock,
        classifier: Optional[EventClassifier] = None,
        reporter: Optional[SyncRunReporter] = None,
        checkpoint_store: Optional[CheckpointStore] = None,
        earning_service: Optional[EarningRecordService] = None,
        retention_days: Optional[int] = None,
        token_decimals: Optional[int] = None,
        exp_multiplier: Optional[int] = None,
    ):
        self.logger = logger.bind(service="sync_engine")
        self.session_maker = session_maker
        self.log_fetcher = log_fetcher
        self.run_lock = run_lock
        self.classifier = classifier or EventClassifier()
        self.reporter = reporter or SyncRunReporter(session_maker)
        self.checkpoint_store = checkpoint_store or CheckpointStore(session_maker)
        self.earning_service = earning_service or EarningRecordService()
        self.retention_days = (
            settings.task_log_retention_days if retention_days is None else retention_days
        )
        self.token_decimals = token_decimals
        self.exp_multiplier = exp_multiplier

    def _build_handlers(self, stats: SyncStats) -> Dict[EventKind, EventHandler]:
        token_handlers = TokenHandlers(stats, token_decimals=self.token_decimals)
        reward_handlers = RewardHandlers(
            stats,
            self.earning_service,
            token_decimals=self.token_decimals,
            exp_multiplier=self.exp_multiplier,
        )
        return {
            EventKind.TRANSFER_VALUE: token_handlers.handle_transfer_value,
            EventKind.SLOT_CHANGED: token_handlers.handle_slot_changed,
            EventKind.TRANSFER_TOKEN: token_handlers.handle_transfer_token,
            EventKind.CLAIM: reward_handlers.handle_claim,
        }

    async def run(self, trigger: SyncTrigger = SyncTrigger.MANUAL) -> SyncResult:
        """
        Run one sync.

        Args:
            trigger: Label persisted on the run log (Manual or CronJob)

        Returns:
            The run outcome, matching the SyncRunLog written
        """
        stats = SyncStats(start_time=utcnow())
        self.logger.info("Sync run started", trigger=trigger.value)

        async with self.run_lock.hold() as acquired:
            if not acquired:
                return await self._reject(trigger, SYNC_IN_PROGRESS_MESSAGE, stats)
            return await self._run_locked(trigger, stats)

    async def _run_locked(self, trigger: SyncTrigger, stats: SyncStats) -> SyncResult:
        funds = await self._load_funds()
        if not funds:
            return await self._reject(trigger, FUND_NOT_INITIALIZED_MESSAGE, stats)

        sft_addresses = [fund.sft_address for fund in funds if fund.sft_address]
        if not sft_addresses:
            return await self._reject(trigger, NO_SFT_CONTRACT_MESSAGE, stats)

        vault_addresses = [fund.vault_address for fund in funds if fund.vault_address]
        if not vault_addresses:
            return await self._reject(trigger, NO_VAULT_CONTRACT_MESSAGE, stats)

        handlers = self._build_handlers(stats)
        checkpoint = Checkpoint()

        try:
            checkpoint = await self.checkpoint_store.current_checkpoint()
            await self.checkpoint_store.prune_stale_runs(
                older_than=utcnow() - timedelta(days=self.retention_days),
                trigger=SyncTrigger.CRON_JOB,
                status=SyncRunStatus.FULFILLED,
            )

            sft_logs = await self.log_fetcher.fetch_logs(
                checkpoint.block_number, sft_addresses, SFT_EVENT_HASHES
            )
            vault_logs = await self.log_fetcher.fetch_logs(
                checkpoint.block_number, vault_addresses, VAULT_EVENT_HASHES
            )

            await self._apply_logs(
                sft_logs, checkpoint, funds, lambda fund: fund.sft_address, handlers, stats
            )
            await self._apply_logs(
                vault_logs, checkpoint, funds, lambda fund: fund.vault_address, handlers, stats
            )

        except Exception as e:
            message = e.message if isinstance(e, FundSyncException) else str(e)
            self.logger.error(
                "Sync run failed",
                trigger=trigger.value,
                error=message,
                partial_total_synced=stats.total_synced,
                checkpoint_block=checkpoint.block_number,
                checkpoint_log_index=checkpoint.log_index,
                exc_info=True
            )
            return await self._finish(
                trigger, SyncRunStatus.REJECTED, message or type(e).__name__,
                Checkpoint(), 0, stats
            )

        self.logger.info("Sync run applied logs", trigger=trigger.value, **stats.as_dict())
        return await self._finish(
            trigger, SyncRunStatus.FULFILLED, SYNC_SUCCESS_MESSAGE,
            checkpoint, stats.total_synced, stats
        )

    async def _load_funds(self) -> List[Fund]:
        async with self.session_maker() as db:
            result = await db.execute(select(Fund).order_by(Fund.id))
            return list(result.scalars().all())

    async def _apply_logs(
        self,
        raw_logs: Sequence[RawLog],
        checkpoint: Checkpoint,
        funds: Sequence[Fund],
        contract_address_of: Callable[[Fund], Optional[str]],
        handlers: Dict[EventKind, EventHandler],
        stats: SyncStats,
    ) -> None:
        """Fold over one fetched sequence in the order the fetcher returned it."""
        for raw_log in raw_logs:
            if checkpoint.covers(raw_log):
                stats.skipped += 1
                continue
            stats.total_synced += 1

            event = self.classifier.classify(raw_log)
            if event is None:
                stats.unknown_events += 1
                continue

            fund = next(
                (f for f in funds if is_same_address(contract_address_of(f), raw_log.address)),
                None,
            )
            if fund is None:
                stats.unmatched_funds += 1
                self.logger.warning(
                    "No fund for log address",
                    address=raw_log.address,
                    block_number=raw_log.block_number,
                    log_index=raw_log.log_index
                )

            async with self.session_maker() as db:
                async with db.begin():
                    await handlers[event.kind](db, raw_log, event, fund)

    async def _reject(self, trigger: SyncTrigger, message: str, stats: SyncStats) -> SyncResult:
        self.logger.warning("Sync run rejected", trigger=trigger.value, reason=message)
        return await self._finish(trigger, SyncRunStatus.REJECTED, message, Checkpoint(), 0, stats)

    async def _finish(
        self,
        trigger: SyncTrigger,
        status: SyncRunStatus,
        message: str,
        checkpoint: Checkpoint,
        total_synced: int,
        stats: SyncStats,
    ) -> SyncResult:
        stats.end_time = utcnow()
        await self.reporter.report(
            trigger=trigger,
            status=status,
            message=message,
            checkpoint=checkpoint,
            total_synced=total_synced,
        )
        return SyncResult(
            status=status,
            message=message,
            checkpoint=checkpoint,
            total_synced=total_synced,
            stats=stats,
        )


def build_sync_engine(log_fetcher: Optional[LogFetcher] = None) -> EventLogSyncEngine:
    """Engine wired to the initialized database and the configured RPC node."""
    from fundsync.core.database import get_engine, get_session_maker
    from fundsync.services.log_fetcher import Web3LogFetcher

    return EventLogSyncEngine(
        session_maker=get_session_maker(),
        log_fetcher=log_fetcher or Web3LogFetcher(),
        run_lock=SyncRunLock(get_engine(), settings.sync_lock_key),
    )
