"""
Domain: consignment price derivation (pure).

Given a market value m:
- list price    = round(m * (1 + p/100), list_rounding)
- reserve price = round(m, reserve_rounding)                  strategy "match"
                = round(m * pct/100, reserve_rounding)        strategy "percentage"

Rounding is to the nearest multiple of the step (see domain.money.round_to_step).

The same functions serve the single-asset add path and the batch path; the batch
path groups assets whose derived prices are identical so each group is written
with a single storage call.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Mapping, Optional

from .consignment import Consignment
from .money import round_to_step, to_money


class ReserveStrategy(str, Enum):
    MATCH = "match"
    PERCENTAGE = "percentage"


@dataclass(frozen=True, slots=True)
class DerivedPricing:
    list_price: Decimal
    reserve_price: Optional[Decimal] = None


def derive_list_price(market_value: Decimal, percent_above: Decimal | int, step: Decimal | int) -> Decimal:
    """
    Example:
        derive_list_price(Decimal("47.23"), 20, 5)  # raw 56.676 -> Decimal('55.00')
    """

    raw = to_money(market_value) * (1 + Decimal(str(percent_above)) / 100)
    return round_to_step(raw, step)


def derive_reserve_price(
    market_value: Decimal,
    strategy: ReserveStrategy | str,
    step: Decimal | int,
    percent_of_market: Decimal | int = 100,
) -> Decimal:
    strategy = ReserveStrategy(strategy)
    market = to_money(market_value)

    if strategy is ReserveStrategy.MATCH:
        return round_to_step(market, step)
    return round_to_step(market * Decimal(str(percent_of_market)) / 100, step)


def derive_asset_pricing(consignment: Consignment, market_value: Decimal) -> DerivedPricing:
    """Apply a consignment's pricing strategy to one market value."""

    # Zero/None settings fall back to defaults, as in the stored schema.
    list_price = derive_list_price(
        market_value,
        consignment.list_percent_above_market or 20,
        consignment.list_rounding or 5,
    )

    reserve_price: Optional[Decimal] = None
    if consignment.enable_reserve_strategy:
        reserve_price = derive_reserve_price(
            market_value,
            consignment.reserve_strategy or ReserveStrategy.MATCH,
            consignment.reserve_rounding or 1,
            consignment.reserve_percent_of_market or 100,
        )

    return DerivedPricing(list_price=list_price, reserve_price=reserve_price)


def group_by_pricing(derived: Mapping[str, DerivedPricing]) -> Dict[DerivedPricing, List[str]]:
    """
    Group asset ids by identical derived pricing, preserving first-seen order.

    Example:
        group_by_pricing({"a": p55, "b": p60, "c": p55})
        # {p55: ["a", "c"], p60: ["b"]}
    """

    groups: Dict[DerivedPricing, List[str]] = OrderedDict()
    for asset_id, pricing in derived.items():
        groups.setdefault(pricing, []).append(asset_id)
    return groups


__all__ = [
    "ReserveStrategy",
    "DerivedPricing",
    "derive_list_price",
    "derive_reserve_price",
    "derive_asset_pricing",
    "group_by_pricing",
]
