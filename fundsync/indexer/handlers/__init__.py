"""
Event handlers for watched contract events.
"""

from .base import BaseHandlers
from .token_handlers import TokenHandlers
from .reward_handlers import RewardHandlers

__all__ = [
    "BaseHandlers",
    "TokenHandlers",
    "RewardHandlers",
]
