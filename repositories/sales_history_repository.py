"""
Global sales history repository (persistence).

The sales_history table is the market-wide price ledger: marketplace sales
pulled in by the external refresher plus anonymized internal platform sales.
It is not owned by the desk's transactions; writes here are best-effort.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from domain.market import SaleObservation
from domain.money import to_money
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.client import get_client

_SALES_HISTORY_TABLE: str = "sales_history"


def _row_to_observation(row: Mapping[str, Any]) -> SaleObservation:
    return SaleObservation(
        sold_price=to_money(row.get("final_price")),
        shipping=to_money(row.get("shipping")),
        sold_at=parse_utc_datetime(row["sold_date"]),
        verified=bool(row.get("verified", False)),
    )


def list_sales_for_grouping_key(grouping_key: str) -> List[SaleObservation]:
    """
    Retrieve all recorded sales for a card grouping key, newest first.

    Rows are matched on card_id; rows written before card grouping existed are
    matched on global_asset_id.
    """

    response = (
        get_client().table(_SALES_HISTORY_TABLE)
        .select("final_price, shipping, sold_date, verified")
        .or_(f"card_id.eq.{grouping_key},global_asset_id.eq.{grouping_key}")
        .order("sold_date", desc=True)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch sales history: {error}")

    rows = getattr(response, "data", None) or []
    return [_row_to_observation(row) for row in rows if row.get("sold_date")]


def find_duplicate_sale(
    global_asset_id: str,
    final_price: Decimal,
    source: str,
    sold_at: datetime,
    window: timedelta = timedelta(hours=1),
) -> Optional[str]:
    """
    Look for the same sale already recorded (same asset, price and source within ±window).

    Returns:
        Existing sale id, or None
    """

    response = (
        get_client().table(_SALES_HISTORY_TABLE)
        .select("id")
        .eq("global_asset_id", global_asset_id)
        .eq("final_price", str(final_price))
        .eq("source", source)
        .gte("sold_date", to_iso_utc(sold_at - window, name="sold_at"))
        .lte("sold_date", to_iso_utc(sold_at + window, name="sold_at"))
        .limit(1)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Duplicate check failed: {error}")

    rows = getattr(response, "data", None) or []
    return str(rows[0]["id"]) if rows else None


def insert_sale(payload: Mapping[str, Any]) -> str:
    """
    Insert one sales_history row.

    Returns:
        The inserted row's id
    """

    response = get_client().table(_SALES_HISTORY_TABLE).insert(dict(payload)).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to insert sale: {error}")

    rows = getattr(response, "data", None) or []
    return str(rows[0]["id"]) if rows else str(payload["id"])


__all__ = ["list_sales_for_grouping_key", "find_duplicate_sale", "insert_sale"]
