"""
Reward ledger models: claimed vault rewards and user earning records.
"""

from typing import Any, Dict, Optional

from sqlalchemy import String, Integer, BigInteger, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, TimestampMixin
from .fund import Fund
from .user import User


class ClaimedRewardRecord(BaseModel, TimestampMixin):
    """Append-only ledger entry created for each resolved vault Claim."""

    __tablename__ = "claimed_reward_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True
    )

    fund_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("funds.id", ondelete="SET NULL"),
        index=True
    )

    chain: Mapped[Optional[str]] = mapped_column(String(50))

    reward_currency: Mapped[Optional[str]] = mapped_column(String(20))

    balance: Mapped[str] = mapped_column(
        String(100),
        comment="Claimed balance in whole units"
    )

    user: Mapped[User] = relationship(User)
    fund: Mapped[Optional[Fund]] = relationship(Fund)

    def __repr__(self) -> str:
        return f"<ClaimedRewardRecord(user={self.user_id}, balance={self.balance})>"


class EarningRecord(BaseModel, TimestampMixin):
    """User progression entry (exp / points) with the receipt that produced it."""

    __tablename__ = "earning_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    type: Mapped[str] = mapped_column(
        String(50),
        index=True,
        comment="Earning source, e.g. ClaimReward"
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True
    )

    earning_exp: Mapped[int] = mapped_column(BigInteger, default=0)

    earning_points: Mapped[int] = mapped_column(BigInteger, default=0)

    receipt: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)

    user: Mapped[User] = relationship(User)

    def __repr__(self) -> str:
        return f"<EarningRecord(type={self.type}, user={self.user_id}, exp={self.earning_exp})>"
