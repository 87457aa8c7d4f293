"""
Token model - semi-fungible token instances mirrored from the SFT contract.
"""

from enum import Enum
from typing import Optional

from sqlalchemy import String, Integer, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, TimestampMixin
from .fund import Fund, Package


class TokenStatus(str, Enum):
    """Token lifecycle status."""
    HOLDING = "Holding"
    STAKING = "Staking"
    BURNED = "Burned"


class Token(BaseModel, TimestampMixin):
    """Semi-fungible token record. Burn is a status change, rows are never deleted."""

    __tablename__ = "tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    fund_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("funds.id", ondelete="SET NULL"),
        index=True,
        comment="Owning fund"
    )

    contract_address: Mapped[str] = mapped_column(
        String(42),
        comment="SFT contract address"
    )

    token_id: Mapped[str] = mapped_column(
        String(66),
        comment="Token id as 0x + 64 hex digits"
    )

    owner: Mapped[Optional[str]] = mapped_column(
        String(42),
        index=True,
        comment="Current owner address"
    )

    token_value: Mapped[str] = mapped_column(
        String(100),
        default="0",
        comment="Token value in wei as an exact decimal string"
    )

    package_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("packages.id", ondelete="SET NULL"),
        comment="Package matching the token's slot"
    )

    status: Mapped[TokenStatus] = mapped_column(
        SQLEnum(
            TokenStatus,
            native_enum=False,
            length=20,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=TokenStatus.HOLDING,
        comment="Holding, Staking or Burned"
    )

    fund: Mapped[Optional[Fund]] = relationship(Fund)
    package: Mapped[Optional[Package]] = relationship(Package)

    __table_args__ = (
        Index("idx_token_contract_token_id", "contract_address", "token_id"),
    )

    @property
    def is_burned(self) -> bool:
        return self.status == TokenStatus.BURNED

    def __repr__(self) -> str:
        return f"<Token(contract={self.contract_address}, token_id={self.token_id}, status={self.status})>"
