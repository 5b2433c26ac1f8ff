"""
Amount Handling Module

Decimal coercion, validation and display rounding for ledger amounts.
NEVER uses float for monetary values: floats are converted through str()
so that 0.1 becomes Decimal('0.1') rather than its binary approximation.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from typing import Union

from .errors import InvalidAmount

# High precision for interest calculations; display rounding is separate
getcontext().prec = 28

ZERO = Decimal('0')
DISPLAY_PLACES = 2

AmountLike = Union[Decimal, int, float, str]


def to_decimal(value: AmountLike) -> Decimal:
    """Convert a numeric value to Decimal, raising InvalidAmount if impossible"""
    if isinstance(value, bool):
        raise InvalidAmount(value, "Amount must be numeric")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise InvalidAmount(value, "Amount must be numeric")
    if not result.is_finite():
        raise InvalidAmount(value, "Amount must be finite")
    return result


def require_positive(value: AmountLike) -> Decimal:
    """Coerce and check that an operation amount is strictly positive"""
    amount = to_decimal(value)
    if amount <= ZERO:
        raise InvalidAmount(value)
    return amount


def quantize(amount: Decimal, places: int = DISPLAY_PLACES) -> Decimal:
    """Round half-up to a fixed number of decimal places"""
    return amount.quantize(Decimal('0.1') ** places, rounding=ROUND_HALF_UP)


def format_signed(amount: Decimal, places: int = DISPLAY_PLACES) -> str:
    """Format with an explicit sign, e.g. +100.00 / -50.00"""
    rounded = quantize(amount, places)
    if rounded == ZERO:
        # Avoid rendering -0.00
        rounded = abs(rounded)
    return f"{rounded:+.{places}f}"
