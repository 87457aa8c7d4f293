"""
Shared lookups and audit writes for event handlers.
"""

from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fundsync.indexer.core.types import RawLog, SyncStats
from fundsync.models.event_log import EventAction, EventLog
from fundsync.models.fund import Fund
from fundsync.models.referral import Referral
from fundsync.models.token import Token
from fundsync.models.user import User, Wallet


logger = structlog.get_logger(__name__)


class BaseHandlers:
    """
    Base class for event handlers.

    Every handler records the EventLog first; later lookups that find
    nothing are no-ops, reported through stats.misses and a debug line.
    """

    service_name = "handlers"

    def __init__(self, stats: SyncStats):
        self.stats = stats
        self.logger = logger.bind(service=self.service_name)

    async def record_event_log(
        self,
        db: AsyncSession,
        action: EventAction,
        raw_log: RawLog,
    ) -> EventLog:
        """Append the audit record for an applied log."""
        event_log = EventLog(
            action=action,
            block_number=raw_log.block_number,
            block_hash=raw_log.block_hash,
            transaction_index=raw_log.transaction_index,
            transaction_hash=raw_log.transaction_hash,
            log_index=raw_log.log_index,
            contract_address=raw_log.address,
            data=raw_log.data,
            topics=list(raw_log.topics),
        )
        db.add(event_log)
        await db.flush()
        self.stats.applied[action.value] += 1
        return event_log

    def miss(self, what: str, **context) -> None:
        """Record a missing linked entity."""
        self.stats.record_miss(what)
        self.logger.debug(f"{what} not found, skipping mutation", **context)

    def require_fund(self, fund: Optional[Fund], raw_log: RawLog) -> bool:
        """True if the log resolved to a fund; otherwise counts the miss."""
        if fund is not None:
            return True
        self.miss(
            "fund",
            contract_address=raw_log.address,
            block_number=raw_log.block_number,
            log_index=raw_log.log_index
        )
        return False

    async def find_token(
        self,
        db: AsyncSession,
        contract_address: str,
        token_id: str,
    ) -> Optional[Token]:
        """Token by (contract, token id), compared case-insensitively."""
        result = await db.execute(
            select(Token)
            .where(
                func.lower(Token.contract_address) == contract_address.lower(),
                func.lower(Token.token_id) == token_id.lower(),
            )
            .order_by(Token.id)
            .limit(1)
        )
        token = result.scalar_one_or_none()
        if token is None:
            self.miss("token", contract_address=contract_address, token_id=token_id)
        return token

    async def find_user_by_address(
        self,
        db: AsyncSession,
        address: str,
    ) -> Optional[User]:
        """User linked to a wallet address, compared case-insensitively."""
        result = await db.execute(
            select(Wallet)
            .where(func.lower(Wallet.address) == address.lower())
            .order_by(Wallet.id)
            .limit(1)
        )
        wallet = result.scalar_one_or_none()
        if wallet is None:
            self.miss("wallet", address=address)
            return None
        if wallet.user is None:
            self.miss("user", address=address)
            return None
        return wallet.user

    async def find_referral(self, db: AsyncSession, user: User) -> Optional[Referral]:
        """Referral record of a user."""
        result = await db.execute(
            select(Referral).where(Referral.user_id == user.id).limit(1)
        )
        referral = result.scalar_one_or_none()
        if referral is None:
            self.miss("referral", user_id=user.id)
        return referral
