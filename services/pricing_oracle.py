"""
Pricing oracle: point-in-time market value for a canonical asset.

A plain function shared by checkout (market value at purchase), the cart
(expected profit) and consignment pricing (list/reserve derivation).

Market values are advisory. get_market_value() raises on storage faults;
lookup_market_value() is the best-effort wrapper that turns any failure or
missing data into $0 and logs it.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, Iterable, Optional

from domain.market import MarketValue, summarize_sales
from domain.money import ZERO
from domain.time import utc_now
from repositories.asset_repository import get_canonical_asset
from repositories.sales_history_repository import list_sales_for_grouping_key

logger = logging.getLogger(__name__)


def get_market_value(asset_id: str) -> Optional[MarketValue]:
    """
    Estimate an asset's market value from its grouped sales history.

    Returns:
        MarketValue, or None if the asset is unknown or has no recorded sales
    """

    asset = get_canonical_asset(asset_id)
    if asset is None:
        return None

    sales = list_sales_for_grouping_key(asset.grouping_key)
    return summarize_sales(sales, utc_now())


def lookup_market_value(asset_id: str, correlation_id: Optional[str] = None) -> Decimal:
    """Best-effort market value: $0 when unavailable or on any failure."""

    prefix = f"[Transaction {correlation_id}] " if correlation_id else ""
    try:
        market = get_market_value(asset_id)
    except Exception as e:
        logger.warning("%sCould not fetch market price for %s: %s", prefix, asset_id, e)
        return ZERO

    if market is None:
        logger.info("%sNo market data for %s; using 0", prefix, asset_id)
        return ZERO
    return market.value


def lookup_market_values(asset_ids: Iterable[str], correlation_id: Optional[str] = None) -> Dict[str, Decimal]:
    """Best-effort market values for several assets, one lookup per distinct id."""

    values: Dict[str, Decimal] = {}
    for asset_id in asset_ids:
        if asset_id not in values:
            values[asset_id] = lookup_market_value(asset_id, correlation_id)
    return values


__all__ = ["get_market_value", "lookup_market_value", "lookup_market_values"]
