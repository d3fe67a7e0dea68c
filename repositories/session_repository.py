"""
Buying-desk session and cart repository (persistence).

This module provides *only* persistence operations for BuySession and CartLine.
It does not enforce business rules (e.g., "closed sessions are terminal"); the
services do that. The checkout itself is not here: clearing the cart and closing
the session happen inside the atomic checkout function, and cart lines are
added through the atomic cart-line insert (see checkout_repository).

Tables:
- buy_offers:        one row per session
- buy_offer_assets:  one row per cart line
- sellers/contacts:  counterparty details for a session
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, List, Mapping, Optional, Tuple

from domain.buy_session import BuySession, CartLine, SessionStatus
from domain.money import to_money
from domain.time import parse_optional_utc_datetime
from repositories.client import get_client

# Supabase table names.
# Keep these aligned with sql/001_schema.sql.
_SESSIONS_TABLE: str = "buy_offers"
_CART_TABLE: str = "buy_offer_assets"
_SELLERS_TABLE: str = "sellers"


def _row_to_session(row: Mapping[str, Any]) -> BuySession:
    """Convert a Supabase row into a BuySession."""

    return BuySession(
        session_id=str(row["id"]),
        user_id=str(row["user_id"]),
        offer_number=str(row["offer_number"]),
        status=SessionStatus.parse(str(row["status"])),
        event_id=row.get("event_id"),
        seller_id=row.get("seller_id"),
        created_at=parse_optional_utc_datetime(row.get("created_at")),
        updated_at=parse_optional_utc_datetime(row.get("updated_at")),
    )


def _row_to_cart_line(row: Mapping[str, Any]) -> CartLine:
    """Convert a Supabase row into a CartLine."""

    market = row.get("market_value_at_offer")
    profit = row.get("expected_profit")
    return CartLine(
        line_id=str(row["id"]),
        session_id=str(row["buy_offer_id"]),
        asset_id=str(row["asset_id"]),
        offer_price=to_money(row.get("offer_price")),
        notes=row.get("notes"),
        added_at=parse_optional_utc_datetime(row.get("added_at")),
        market_value_at_offer=to_money(market) if market is not None else None,
        expected_profit=to_money(profit) if profit is not None else None,
    )


def get_session_for_user(session_id: str, user_id: str) -> Optional[BuySession]:
    """
    Fetch a session only if it belongs to `user_id`.

    Returns:
        BuySession or None if it does not exist or belongs to another user
    """

    response = (
        get_client().table(_SESSIONS_TABLE)
        .select("*")
        .eq("id", session_id)
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch session: {error}")

    rows = getattr(response, "data", None) or []
    if not rows:
        return None
    return _row_to_session(rows[0])


def list_cart_lines(session_id: str) -> List[CartLine]:
    """
    Retrieve the cart of a session in stored order (oldest line first).

    Returns:
        List[CartLine] (possibly empty)
    """

    response = (
        get_client().table(_CART_TABLE)
        .select("*")
        .eq("buy_offer_id", session_id)
        .order("added_at")
        .order("id")
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to list cart lines: {error}")

    rows = getattr(response, "data", None) or []
    return [_row_to_cart_line(row) for row in rows]


def delete_cart_line(session_id: str, line_id: str) -> bool:
    """
    Delete one cart line of a session.

    Returns:
        True if a row was deleted, False if no such line exists in that session
    """

    response = (
        get_client().table(_CART_TABLE)
        .delete()
        .eq("id", line_id)
        .eq("buy_offer_id", session_id)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to delete cart line: {error}")

    return bool(getattr(response, "data", None))


def list_cart_lines_missing_profit(user_id: str) -> List[CartLine]:
    """Cart lines in the user's sessions whose expected profit was never computed."""

    response = (
        get_client().table(_CART_TABLE)
        .select("*, buy_offers!inner(user_id)")
        .eq("buy_offers.user_id", user_id)
        .is_("expected_profit", "null")
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to list cart lines: {error}")

    rows = getattr(response, "data", None) or []
    return [_row_to_cart_line(row) for row in rows]


def update_cart_line_profit(line_id: str, market_value: Decimal, expected_profit: Decimal) -> None:
    response = (
        get_client().table(_CART_TABLE)
        .update({
            "market_value_at_offer": str(to_money(market_value)),
            "expected_profit": str(to_money(expected_profit)),
        })
        .eq("id", line_id)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to update cart line profit: {error}")


def get_seller_contact(seller_id: str) -> Optional[Tuple[str, str]]:
    """
    Resolve a seller to its contact.

    Returns:
        (contact_id, contact_name) or None if the seller has no contact
    """

    response = (
        get_client().table(_SELLERS_TABLE)
        .select("contact_id, contacts(name)")
        .eq("id", seller_id)
        .limit(1)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch seller: {error}")

    rows = getattr(response, "data", None) or []
    if not rows or not rows[0].get("contact_id"):
        return None

    contact = rows[0].get("contacts") or {}
    return str(rows[0]["contact_id"]), str(contact.get("name") or "")


__all__ = [
    "get_session_for_user",
    "list_cart_lines",
    "delete_cart_line",
    "list_cart_lines_missing_profit",
    "update_cart_line_profit",
    "get_seller_contact",
]
