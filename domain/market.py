"""
Domain: market value estimation from observed sales (pure).

Estimate:
- Each sale's price is sold price + shipping.
- Verified sales weigh 1.0, unverified sales 0.5.
- The value is the weighted average over the last 30 days, falling back to all
  recorded sales when none are that recent.

Confidence (0-100):
- Base from the number of sales in the last 90 days:
  15+ -> 95, 8+ -> 85, 5+ -> 70, 3+ -> 55, 1+ -> 35, none -> 0.
- With fewer than 3 recent sales but 3+ overall, sales in the last 180 days boost
  the base to min(55, 25 + 8 * n) when n >= 2.
- Scaled by price consistency: max(0.3, 1 - coefficient of variation) of the
  recent prices when there are 3 or more of them, else 1.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Sequence

from .money import to_money
from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class SaleObservation:
    sold_price: Decimal
    sold_at: datetime
    shipping: Decimal = Decimal("0")
    verified: bool = False

    def __post_init__(self) -> None:
        require_utc_timestamp("sold_at", self.sold_at)

    @property
    def total_price(self) -> Decimal:
        return self.sold_price + self.shipping

    @property
    def weight(self) -> Decimal:
        return Decimal("1.0") if self.verified else Decimal("0.5")


@dataclass(frozen=True, slots=True)
class MarketValue:
    value: Decimal
    confidence: int
    sales_count: int
    highest: Decimal
    lowest: Decimal
    pricing_period: str  # "30 days" or "All time"


def _weighted_average(sales: Sequence[SaleObservation]) -> Decimal:
    total_weight = sum((s.weight for s in sales), Decimal("0"))
    if total_weight == 0:
        return Decimal("0")
    weighted = sum((s.total_price * s.weight for s in sales), Decimal("0"))
    return weighted / total_weight


def _price_consistency(prices: List[float]) -> float:
    if len(prices) < 3:
        return 1.0
    mean = sum(prices) / len(prices)
    variance = sum((p - mean) ** 2 for p in prices) / len(prices)
    cv = math.sqrt(variance) / mean if mean > 0 else 1.0
    return max(0.3, 1 - cv)


def _base_confidence(recent_count: int) -> int:
    if recent_count >= 15:
        return 95
    if recent_count >= 8:
        return 85
    if recent_count >= 5:
        return 70
    if recent_count >= 3:
        return 55
    if recent_count >= 1:
        return 35
    return 0


def summarize_sales(sales: Sequence[SaleObservation], as_of: datetime) -> Optional[MarketValue]:
    """
    Estimate the market value of an asset from its recorded sales.

    Returns None when there are no sales at all (value unavailable).
    """

    require_utc_timestamp("as_of", as_of)
    if not sales:
        return None

    last_30 = [s for s in sales if s.sold_at >= as_of - timedelta(days=30)]
    window = last_30 or list(sales)
    period = "30 days" if last_30 else "All time"

    recent = [s for s in sales if s.sold_at >= as_of - timedelta(days=90)]
    base = _base_confidence(len(recent))

    if len(recent) < 3 and len(sales) >= 3:
        extended = [s for s in sales if s.sold_at >= as_of - timedelta(days=180)]
        if len(extended) >= 2:
            base = max(base, min(55, 25 + len(extended) * 8))

    consistency = _price_consistency([float(s.total_price) for s in recent])
    prices = [s.total_price for s in window]

    return MarketValue(
        value=to_money(_weighted_average(window)),
        confidence=int(round(base * consistency)),
        sales_count=len(sales),
        highest=to_money(max(prices)),
        lowest=to_money(min(prices)),
        pricing_period=period,
    )


__all__ = ["SaleObservation", "MarketValue", "summarize_sales"]
