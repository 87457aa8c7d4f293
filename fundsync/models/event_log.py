"""
EventLog model - append-only audit of every on-chain log the sync engine applied.
"""

from enum import Enum
from typing import List

from sqlalchemy import (
    String, Integer, BigInteger, Text, Index, JSON, Enum as SQLEnum
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, TimestampMixin


class EventAction(str, Enum):
    """Action recorded for an applied log."""
    MINT_PACKAGE = "MintPackage"
    TRANSFER_TOKEN = "TransferToken"
    TRANSFER_VALUE = "TransferValue"
    CHANGE_SLOT = "ChangeSlot"
    STAKE = "Stake"
    UNSTAKE = "Unstake"
    BURN = "Burn"
    CLAIM = "Claim"


class EventLog(BaseModel, TimestampMixin):
    """One row per applied log. Rows are never updated after insert."""

    __tablename__ = "event_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    action: Mapped[EventAction] = mapped_column(
        SQLEnum(
            EventAction,
            native_enum=False,
            length=20,
            values_callable=lambda actions: [a.value for a in actions],
        ),
        comment="Classified action"
    )

    block_number: Mapped[int] = mapped_column(BigInteger, comment="Block number")

    block_hash: Mapped[str] = mapped_column(String(66), comment="Block hash")

    transaction_index: Mapped[int] = mapped_column(
        Integer,
        comment="Transaction index within block"
    )

    transaction_hash: Mapped[str] = mapped_column(
        String(66),
        index=True,
        comment="Transaction hash"
    )

    log_index: Mapped[int] = mapped_column(Integer, comment="Log index within block")

    contract_address: Mapped[str] = mapped_column(
        String(42),
        comment="Emitting contract address"
    )

    data: Mapped[str] = mapped_column(Text, comment="Raw log data (hex)")

    topics: Mapped[List[str]] = mapped_column(JSON, comment="Raw log topics (hex)")

    __table_args__ = (
        Index("idx_event_log_position", "block_number", "log_index"),
    )

    def __repr__(self) -> str:
        return f"<EventLog(action={self.action}, block={self.block_number}, log_index={self.log_index})>"
