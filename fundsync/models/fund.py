"""
Fund configuration models - funds, their watched contracts and package catalog.
"""

from enum import Enum
from typing import List, Optional

from sqlalchemy import String, Integer, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import BaseModel, TimestampMixin


class ContractKind(str, Enum):
    """Kind of on-chain contract a fund is wired to."""
    SFT = "SFT"
    VAULT = "Vault"


class Contract(BaseModel, TimestampMixin):
    """An on-chain contract watched by the sync engine."""

    __tablename__ = "contracts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    kind: Mapped[ContractKind] = mapped_column(
        SQLEnum(
            ContractKind,
            native_enum=False,
            length=20,
            values_callable=lambda kinds: [k.value for k in kinds],
        ),
        comment="SFT or Vault"
    )

    contract_address: Mapped[Optional[str]] = mapped_column(
        String(42),
        comment="Contract address (0x-prefixed)"
    )

    chain: Mapped[Optional[str]] = mapped_column(
        String(50),
        comment="Chain the contract is deployed on"
    )

    def __repr__(self) -> str:
        return f"<Contract(kind={self.kind}, address={self.contract_address})>"


class Fund(BaseModel, TimestampMixin):
    """Fund configuration root."""

    __tablename__ = "funds"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(100), default="", comment="Display name")

    chain: Mapped[Optional[str]] = mapped_column(String(50), comment="Chain name")

    base_currency: Mapped[Optional[str]] = mapped_column(
        String(20),
        comment="Currency rewards are paid in"
    )

    sft_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("contracts.id", ondelete="SET NULL"),
        comment="Semi-fungible token contract"
    )

    vault_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("contracts.id", ondelete="SET NULL"),
        comment="Staking vault contract"
    )

    sft: Mapped[Optional[Contract]] = relationship(
        Contract, foreign_keys=[sft_id], lazy="selectin"
    )

    vault: Mapped[Optional[Contract]] = relationship(
        Contract, foreign_keys=[vault_id], lazy="selectin"
    )

    default_packages: Mapped[List["Package"]] = relationship(
        "Package",
        back_populates="fund",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def sft_address(self) -> Optional[str]:
        """SFT contract address, or None when not configured."""
        if self.sft and self.sft.contract_address:
            return self.sft.contract_address
        return None

    @property
    def vault_address(self) -> Optional[str]:
        """Vault contract address, or None when not configured."""
        if self.vault and self.vault.contract_address:
            return self.vault.contract_address
        return None

    def find_package(self, package_id: str) -> Optional["Package"]:
        """Find a default package by its on-chain slot id."""
        for package in self.default_packages:
            if package.package_id == package_id:
                return package
        return None

    def __repr__(self) -> str:
        return f"<Fund(id={self.id}, name={self.name})>"


class Package(BaseModel, TimestampMixin):
    """A fund's default package; the SFT slot maps onto package_id."""

    __tablename__ = "packages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    fund_id: Mapped[int] = mapped_column(
        ForeignKey("funds.id", ondelete="CASCADE"),
        index=True
    )

    package_id: Mapped[str] = mapped_column(
        String(78),
        comment="On-chain slot identifier (decimal string)"
    )

    name: Mapped[str] = mapped_column(String(100), default="")

    fund: Mapped[Fund] = relationship(Fund, back_populates="default_packages")

    __table_args__ = (
        Index("idx_package_fund_package_id", "fund_id", "package_id"),
    )

    def __repr__(self) -> str:
        return f"<Package(fund={self.fund_id}, package_id={self.package_id})>"
