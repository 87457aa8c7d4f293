"""
Earning record service - records user progression (exp / points).
"""

from typing import Any, Dict, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from fundsync.models.reward import EarningRecord
from fundsync.models.user import User


logger = structlog.get_logger(__name__)


class EarningRecordService:
    """
    Persists earning records and keeps the user's exp/points totals in step.

    Runs inside the caller's session, so a failing record rolls back with
    the rest of the caller's transaction.
    """

    def __init__(self):
        self.logger = logger.bind(service="earning_record_service")

    async def log_earning_record(
        self,
        db: AsyncSession,
        type: str,
        user: User,
        earning_exp: int,
        earning_points: int = 0,
        receipt: Optional[Dict[str, Any]] = None,
    ) -> EarningRecord:
        """
        Record an earning and credit it to the user.

        Args:
            db: Active session
            type: Earning source label, e.g. "ClaimReward"
            user: Credited user
            earning_exp: Experience points earned
            earning_points: Reward points earned
            receipt: Free-form receipt stored with the record

        Returns:
            The created record
        """
        record = EarningRecord(
            type=type,
            user_id=user.id,
            earning_exp=earning_exp,
            earning_points=earning_points,
            receipt=receipt or {},
        )
        db.add(record)

        user.exp = (user.exp or 0) + earning_exp
        user.points = (user.points or 0) + earning_points
        await db.flush()

        self.logger.info(
            "Earning recorded",
            type=type,
            user_id=user.id,
            exp=earning_exp,
            points=earning_points
        )
        return record
