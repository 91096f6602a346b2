"""Fixed-point money helpers.

Every monetary value is a Decimal with two fractional digits.  Values coming
from JSON, CSV or the database (SQLite hands back floats) are funnelled
through `to_money` before any comparison so partial payments never drift.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Coerce a number / numeric string to a 2-place Decimal (ROUND_HALF_UP)."""
    if value is None:
        return ZERO
    if isinstance(value, float):
        # str() first so 0.1 stays 0.1 rather than its binary expansion
        value = str(value)
    try:
        return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Not a monetary amount: {value!r}") from None


def clamp(value: Decimal, lower: Decimal, upper: Decimal) -> Decimal:
    return max(lower, min(value, upper))
