"""
Fund yield utilities: bonus APY tables and expected interest estimates.
"""

from decimal import Decimal
from typing import Union

from fundsync.utils.amounts import format_decimal, mul_amounts

# Lock period (days) -> bonus APY percent
PERIOD_BONUS_APY = {
    7: Decimal("0"),
    30: Decimal("0.5"),
    60: Decimal("1.2"),
    180: Decimal("2.4"),
}

# User level -> bonus APY percent
LEVEL_BONUS_APY = {
    1: Decimal("0"),
    2: Decimal("0.3"),
    3: Decimal("0.6"),
    4: Decimal("0.9"),
    5: Decimal("1.25"),
    6: Decimal("1.6"),
    7: Decimal("2.2"),
    8: Decimal("2.8"),
    9: Decimal("5"),
}

MIN_APY = 1
MAX_APY = 24


def period_bonus_apy(period_in_days: int = 7) -> Decimal:
    """Bonus APY for a lock period; unknown periods earn no bonus."""
    return PERIOD_BONUS_APY.get(period_in_days, Decimal("0"))


def level_bonus_apy(current_level: int = 1) -> Decimal:
    """Bonus APY for a user level; unknown levels earn no bonus."""
    return LEVEL_BONUS_APY.get(current_level, Decimal("0"))


def expected_interest_balance(
    balance: Union[int, str, Decimal],
    apy: Union[float, Decimal],
    period_in_days: int,
) -> str:
    """
    Interest a balance earns over a period with daily compounding.

    The APY percent is clamped to [1, 24] and the period multiplier is
    rounded to 6 decimals before it is applied to the exact balance.

    Args:
        balance: Principal, usually in wei
        apy: Annual percentage yield, in percent
        period_in_days: Compounding period

    Returns:
        Interest as an exact decimal string
    """
    clamped = min(max(float(apy), MIN_APY), MAX_APY)
    formatted_apy = 1 + clamped / 100
    interest_rate_per_day = formatted_apy ** (1 / 365)
    multiplier = interest_rate_per_day ** period_in_days

    interest = mul_amounts(balance, Decimal(f"{multiplier:.6f}") - 1)
    return format_decimal(interest)
