"""
Exact decimal arithmetic helpers for on-chain amounts.
"""

from decimal import Decimal, Context, ROUND_HALF_UP, localcontext
from typing import Union

# Enough digits for uint256 values with 18 decimals and headroom
AMOUNT_CONTEXT = Context(prec=100, rounding=ROUND_HALF_UP)

Amount = Union[int, str, Decimal]


def to_decimal(value: Amount) -> Decimal:
    """Parse an amount exactly; empty values count as zero."""
    if value is None or value == "":
        return Decimal(0)
    return Decimal(value)


def format_decimal(value: Decimal) -> str:
    """Plain (non-exponent) decimal string without trailing zeros."""
    if value == 0:
        return "0"
    return format(value.normalize(AMOUNT_CONTEXT), "f")


def add_amounts(a: Amount, b: Amount) -> str:
    with localcontext(AMOUNT_CONTEXT):
        return format_decimal(to_decimal(a) + to_decimal(b))


def sub_amounts(a: Amount, b: Amount) -> str:
    with localcontext(AMOUNT_CONTEXT):
        return format_decimal(to_decimal(a) - to_decimal(b))


def mul_amounts(a: Amount, b: Amount) -> Decimal:
    with localcontext(AMOUNT_CONTEXT):
        return to_decimal(a) * to_decimal(b)


def from_wei(value: Amount, decimals: int = 18) -> Decimal:
    """Scale a fixed-point integer amount down to whole units."""
    with localcontext(AMOUNT_CONTEXT):
        return to_decimal(value) / (Decimal(10) ** decimals)


def round_to_int(value: Decimal) -> int:
    """Round half away from zero to an integer."""
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))
