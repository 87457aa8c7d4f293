"""
Database models for the fund event sync service.

Contains SQLAlchemy models for the fund configuration, the token/referral
domain state mirrored from chain, and the audit trail of applied events.
"""

from .base import Base, BaseModel, TimestampMixin
from .fund import Contract, ContractKind, Fund, Package
from .token import Token, TokenStatus
from .event_log import EventLog, EventAction
from .user import User, Wallet
from .referral import Referral
from .reward import ClaimedRewardRecord, EarningRecord
from .sync_run_log import SyncRunLog, SyncTrigger, SyncRunStatus

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "Contract",
    "ContractKind",
    "Fund",
    "Package",
    "Token",
    "TokenStatus",
    "EventLog",
    "EventAction",
    "User",
    "Wallet",
    "Referral",
    "ClaimedRewardRecord",
    "EarningRecord",
    "SyncRunLog",
    "SyncTrigger",
    "SyncRunStatus",
]
