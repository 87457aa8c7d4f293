"""
Platform users and the wallets linked to them.
"""

from typing import List, Optional

from sqlalchemy import String, Integer, BigInteger, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, TimestampMixin


class User(BaseModel, TimestampMixin):
    """Platform user. Progression totals are fed by earning records."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    username: Mapped[Optional[str]] = mapped_column(
        String(64),
        unique=True,
        comment="Display name"
    )

    exp: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        comment="Accumulated experience points"
    )

    points: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        comment="Accumulated reward points"
    )

    wallets: Mapped[List["Wallet"]] = relationship(
        "Wallet", back_populates="user"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username})>"


class Wallet(BaseModel, TimestampMixin):
    """Maps an on-chain address to a user. Read-only for the sync engine."""

    __tablename__ = "wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    address: Mapped[str] = mapped_column(
        String(42),
        unique=True,
        index=True,
        comment="Wallet address"
    )

    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        index=True
    )

    user: Mapped[Optional[User]] = relationship(
        User, back_populates="wallets", lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Wallet(address={self.address}, user={self.user_id})>"
