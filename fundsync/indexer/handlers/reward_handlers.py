"""
Event handlers for vault reward events.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fundsync.core.config import settings
from fundsync.indexer.core.event_classifier import ClaimEvent
from fundsync.indexer.core.types import RawLog, SyncStats
from fundsync.models.event_log import EventAction
from fundsync.models.fund import Fund
from fundsync.models.reward import ClaimedRewardRecord
from fundsync.services.earning_service import EarningRecordService
from fundsync.utils.amounts import from_wei, round_to_int

from .base import BaseHandlers


CLAIM_REWARD_EARNING_TYPE = "ClaimReward"


class RewardHandlers(BaseHandlers):
    """
    Handles vault Claim events.
    """

    service_name = "reward_handlers"

    def __init__(
        self,
        stats: SyncStats,
        earning_service: EarningRecordService,
        token_decimals: Optional[int] = None,
        exp_multiplier: Optional[int] = None,
    ):
        super().__init__(stats)
        self.earning_service = earning_service
        self.token_decimals = (
            settings.token_decimals if token_decimals is None else token_decimals
        )
        self.exp_multiplier = (
            settings.claim_exp_multiplier if exp_multiplier is None else exp_multiplier
        )

    async def handle_claim(
        self,
        db: AsyncSession,
        raw_log: RawLog,
        event: ClaimEvent,
        fund: Optional[Fund],
    ):
        """Record the claimed reward and award exp to referral members."""
        await self.record_event_log(db, EventAction.CLAIM, raw_log)
        if not self.require_fund(fund, raw_log):
            return

        user = await self.find_user_by_address(db, event.owner)
        if user is None:
            return

        claimed_balance = round_to_int(from_wei(event.amount, self.token_decimals))

        db.add(
            ClaimedRewardRecord(
                user_id=user.id,
                fund_id=fund.id,
                chain=fund.chain,
                reward_currency=fund.base_currency,
                balance=str(claimed_balance),
            )
        )

        self.logger.info(
            "Reward claimed",
            user_id=user.id,
            fund_id=fund.id,
            balance=claimed_balance
        )

        referral = await self.find_referral(db, user)
        if referral is None:
            return

        earning_exp = claimed_balance * self.exp_multiplier
        await self.earning_service.log_earning_record(
            db,
            type=CLAIM_REWARD_EARNING_TYPE,
            user=user,
            earning_exp=earning_exp,
            earning_points=0,
            receipt={"userId": user.id, "exp": earning_exp, "points": 0},
        )
