"""
Referral aggregate - per-user staking total used by the referral bonus program.
"""

from sqlalchemy import Integer, BigInteger, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, TimestampMixin
from .user import User


class Referral(BaseModel, TimestampMixin):
    """Per-user referral stats."""

    __tablename__ = "referrals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        index=True
    )

    staked_value: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        comment="Currently staked token value in whole units (not wei)"
    )

    user: Mapped[User] = relationship(User)

    def __repr__(self) -> str:
        return f"<Referral(user={self.user_id}, staked_value={self.staked_value})>"
