"""
Ownership and purchase-transaction repository (read side).

Rows in user_assets and purchase_transactions are only ever created by the
atomic checkout function and removed by the atomic undo function (see
checkout_repository). This module reads them.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from domain.money import to_money
from domain.ownership import (
    OwnershipRecord,
    OwnershipStatus,
    PaymentMethod,
    PurchaseTransactionRecord,
)
from domain.time import parse_optional_date, parse_optional_utc_datetime, parse_utc_datetime
from repositories.client import get_client

_OWNERSHIP_TABLE: str = "user_assets"
_PURCHASES_TABLE: str = "purchase_transactions"


def _row_to_ownership(row: Mapping[str, Any]) -> OwnershipRecord:
    market = row.get("market_price_at_purchase")
    return OwnershipRecord(
        ownership_id=str(row["id"]),
        owner_id=str(row["user_id"]),
        asset_id=str(row["global_asset_id"]),
        purchase_price=to_money(row.get("purchase_price")),
        purchase_date=parse_optional_date(row.get("purchase_date")),
        purchase_source=row.get("purchase_source"),
        ownership_status=OwnershipStatus(str(row.get("ownership_status") or "own")),
        session_id=row.get("buy_offer_id"),
        market_price_at_purchase=to_money(market) if market is not None else None,
        is_active=bool(row.get("is_active", True)),
        added_at=parse_optional_utc_datetime(row.get("added_at")),
    )


def _row_to_purchase(row: Mapping[str, Any]) -> PurchaseTransactionRecord:
    market = row.get("market_price_at_purchase")
    return PurchaseTransactionRecord(
        transaction_id=str(row["id"]),
        buyer_id=str(row["user_id"]),
        asset_id=str(row["global_asset_id"]),
        ownership_id=str(row["user_asset_id"]),
        purchase_price=to_money(row["purchase_price"]),
        payment_method=PaymentMethod(str(row["payment_method"])),
        purchased_at=parse_utc_datetime(row["purchase_date"]),
        session_id=row.get("buy_offer_id"),
        event_id=row.get("event_id"),
        seller_name=row.get("seller_name"),
        seller_contact_id=row.get("seller_contact_id"),
        market_price_at_purchase=to_money(market) if market is not None else None,
        notes=row.get("notes"),
    )


def find_active_owned_record(user_id: str, asset_id: str) -> Optional[OwnershipRecord]:
    """
    Find the user's most recent active, outright-owned record for an asset.

    Consigned or sold records never match.

    Returns:
        OwnershipRecord or None
    """

    response = (
        get_client().table(_OWNERSHIP_TABLE)
        .select("*")
        .eq("user_id", user_id)
        .eq("global_asset_id", asset_id)
        .eq("is_active", True)
        .eq("ownership_status", OwnershipStatus.OWN.value)
        .order("added_at", desc=True)
        .limit(1)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch ownership record: {error}")

    rows = getattr(response, "data", None) or []
    if not rows:
        return None
    return _row_to_ownership(rows[0])


def list_purchases_by_session(session_id: str) -> List[PurchaseTransactionRecord]:
    """
    Retrieve the purchase records a checkout created for a session.

    Returns:
        List[PurchaseTransactionRecord] (possibly empty)
    """

    response = (
        get_client().table(_PURCHASES_TABLE)
        .select("*")
        .eq("buy_offer_id", session_id)
        .order("purchase_date")
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to list purchases: {error}")

    rows = getattr(response, "data", None) or []
    return [_row_to_purchase(row) for row in rows]


__all__ = ["find_active_owned_record", "list_purchases_by_session"]
