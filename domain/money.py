"""
Domain: money values and price rounding (pure).

All amounts are `Decimal` with two fractional digits, matching the
numeric(10, 2) columns they are persisted to.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """
    Coerce a row value or request number into a 2-dp Decimal.

    None and empty strings are treated as zero (unpriced cart lines count as
    $0 toward a total). Floats go through str() to avoid binary artifacts.
    """

    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Not a monetary amount: {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def sum_money(values: Iterable[Any]) -> Decimal:
    total = ZERO
    for value in values:
        total += to_money(value)
    return total


def round_to_step(value: Any, step: Any) -> Decimal:
    """
    Round to the nearest multiple of `step` (halves round up, never truncate).

    Law: round_to_step(round_to_step(x, s), s) == round_to_step(x, s)

    Example:
        round_to_step(Decimal("56.676"), 5)  # Decimal('55.00')
        round_to_step(Decimal("57.50"), 5)   # Decimal('60.00')
    """

    step_d = Decimal(str(step))
    if not step_d.is_finite() or step_d <= 0:
        raise ValueError(f"Rounding step must be positive, got {step!r}")

    value_d = value if isinstance(value, Decimal) else Decimal(str(value))
    multiples = (value_d / step_d).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return (multiples * step_d).quantize(CENTS, rounding=ROUND_HALF_UP)


__all__ = ["CENTS", "ZERO", "to_money", "sum_money", "round_to_step"]
