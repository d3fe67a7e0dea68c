"""
Atomic checkout, undo and cart-line insert (persistence).

Each operation must be all-or-nothing or must not interleave with a checkout, so
each one is a single PostgreSQL function (sql/002_checkout_functions.sql) invoked via RPC.
PostgREST runs every RPC call in one transaction:

finalize_buy_session():
- Locks the session row (FOR UPDATE) and re-checks ownership, status, cart and payment
- Resolves or creates the buyer's "Buying Desk Transactions" event (unique per user)
- For each cart line, in stored order: loads the canonical asset (raises ASSET_NOT_FOUND
  if missing), inserts one user_assets row and one purchase_transactions row
- Deletes the cart lines and marks the session closed
Any raised exception rolls back every row written by the call.

undo_buy_desk_purchase():
- Deletes the purchase_transactions rows for (buyer, asset, ownership record)
- Deletes that one user_assets row (raises PURCHASE_NOT_FOUND, rolling back, if it is gone)

add_buy_session_cart_line():
- Takes a share lock on the session row, so it cannot interleave with a finalize
- Inserts the cart line only while the session is not closed

This module only calls the functions and decodes their results; translating
results into domain errors is the services' job.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

from postgrest.exceptions import APIError

from domain.buy_session import CartLine
from domain.money import to_money
from domain.ownership import BUYING_DESK_SOURCE, PaymentMethod
from domain.time import parse_utc_datetime
from repositories.client import get_client

_FINALIZE_FUNCTION: str = "finalize_buy_session"
_UNDO_FUNCTION: str = "undo_buy_desk_purchase"
_ADD_CART_LINE_FUNCTION: str = "add_buy_session_cart_line"


@dataclass(frozen=True, slots=True)
class AtomicCallResult:
    """
    Result from an atomic PostgreSQL function.

    success: True if the function committed
    data: the function's JSON result (success payload or business rejection)
    error_code: function error code (e.g. ALREADY_PROCESSED, ASSET_NOT_FOUND) or
        RPC_ERROR / API_ERROR / EXCEPTION for transport and storage faults
    rolled_back: True when the function raised, i.e. it may have written rows
        that were discarded; False for rejections made before any write
    """
    success: bool
    data: Mapping[str, Any] = field(default_factory=dict)
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    rolled_back: bool = False


@dataclass(frozen=True, slots=True)
class ProcessedLine:
    """One cart line turned into ownership + purchase records."""
    asset_id: str
    ownership_id: str
    transaction_id: str
    display: str
    purchase_price: Decimal
    market_value: Decimal
    card_id: Optional[str] = None
    image_url: Optional[str] = None


@dataclass(frozen=True, slots=True)
class AtomicCheckoutResult:
    session_number: str
    event_id: Optional[str]
    total: Decimal
    cart_lines_cleared: int
    processed: List[ProcessedLine]


@dataclass(frozen=True, slots=True)
class AtomicUndoResult:
    ownership_records_removed: int
    transaction_records_removed: int
    purchase_price: Decimal


def _error_payload(exc: APIError) -> Dict[str, Any]:
    try:
        payload = exc.json() if callable(getattr(exc, "json", None)) else {}
    except (TypeError, ValueError):
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    for key in ("code", "message", "details", "hint"):
        if key not in payload and getattr(exc, key, None) is not None:
            payload[key] = getattr(exc, key)
    return payload


def _call_atomic(function_name: str, params: Mapping[str, Any]) -> AtomicCallResult:
    try:
        response = get_client().rpc(function_name, dict(params)).execute()

        error = getattr(response, "error", None)
        if error:
            return AtomicCallResult(
                success=False,
                error_code="RPC_ERROR",
                error_message=str(error),
                rolled_back=True,
            )

        result = getattr(response, "data", None) or {}
        if isinstance(result, list):
            result = result[0] if result else {}

        if result.get("success"):
            return AtomicCallResult(success=True, data=result)

        return AtomicCallResult(
            success=False,
            data=result,
            error_code=result.get("error"),
            error_message=result.get("message"),
        )

    except APIError as e:
        error_data = _error_payload(e)

        # Some supabase-py versions surface a JSON function result as an APIError
        if error_data.get("success") is True:
            return AtomicCallResult(success=True, data=error_data)
        if error_data.get("success") is False and error_data.get("error"):
            return AtomicCallResult(
                success=False,
                data=error_data,
                error_code=error_data.get("error"),
                error_message=error_data.get("message"),
            )

        # A raised exception: the function's transaction was rolled back.
        # RAISE 'CODE' USING DETAIL/HINT arrives as message/details/hint.
        return AtomicCallResult(
            success=False,
            data=error_data,
            error_code=error_data.get("message") or "API_ERROR",
            error_message=str(error_data.get("details") or e),
            rolled_back=True,
        )

    except Exception as e:
        return AtomicCallResult(
            success=False,
            error_code="EXCEPTION",
            error_message=str(e),
            rolled_back=True,
        )


def finalize_session_atomic(
    session_id: str,
    user_id: str,
    payment_method: PaymentMethod,
    amount_paid: Decimal,
    counterparty_name: str,
    seller_contact_id: Optional[str],
    notes: Optional[str],
    market_values: Mapping[str, Decimal],
    correlation_id: str,
) -> AtomicCallResult:
    """
    Run the whole checkout of one session in a single database transaction.

    Args:
        session_id: Session to check out
        user_id: Buyer; must own the session
        payment_method: cash, check, digital or trade
        amount_paid: Amount tendered; must cover the cart total
        counterparty_name: Seller name recorded on each purchase record
        seller_contact_id: Seller contact, when the session has one
        notes: Free-text note used when a cart line has none
        market_values: Market value per asset id captured before the call (missing = 0)
        correlation_id: Operation id, stored on the purchase records

    Returns:
        AtomicCallResult; on success `data` decodes with parse_checkout_result()
    """

    return _call_atomic(
        _FINALIZE_FUNCTION,
        {
            "p_session_id": session_id,
            "p_user_id": user_id,
            "p_payment_method": payment_method.value,
            "p_amount_paid": str(to_money(amount_paid)),
            "p_counterparty_name": counterparty_name,
            "p_seller_contact_id": seller_contact_id,
            "p_notes": notes,
            "p_market_values": {k: str(to_money(v)) for k, v in market_values.items()},
            "p_correlation_id": correlation_id,
            "p_purchase_source": BUYING_DESK_SOURCE,
        },
    )


def undo_purchase_atomic(user_id: str, asset_id: str, ownership_id: str) -> AtomicCallResult:
    """
    Remove one acquisition (its ownership record and linked purchase records) atomically.

    Returns:
        AtomicCallResult; on success `data` decodes with parse_undo_result()
    """

    return _call_atomic(
        _UNDO_FUNCTION,
        {
            "p_user_id": user_id,
            "p_asset_id": asset_id,
            "p_ownership_id": ownership_id,
        },
    )


def insert_cart_line_atomic(
    session_id: str,
    user_id: str,
    asset_id: str,
    offer_price: Decimal,
    notes: Optional[str] = None,
) -> AtomicCallResult:
    """
    Add a cart line to a session that is still open, in one transaction.

    Returns:
        AtomicCallResult; on success `data` decodes with parse_cart_line_result(),
        otherwise error_code is SESSION_NOT_FOUND or ALREADY_PROCESSED
    """

    return _call_atomic(
        _ADD_CART_LINE_FUNCTION,
        {
            "p_session_id": session_id,
            "p_user_id": user_id,
            "p_line_id": str(uuid4()),
            "p_asset_id": asset_id,
            "p_offer_price": str(to_money(offer_price)),
            "p_notes": notes,
        },
    )


def parse_checkout_result(data: Mapping[str, Any]) -> AtomicCheckoutResult:
    processed = [
        ProcessedLine(
            asset_id=str(item["asset_id"]),
            ownership_id=str(item["ownership_id"]),
            transaction_id=str(item["transaction_id"]),
            display=str(item.get("display") or ""),
            purchase_price=to_money(item.get("purchase_price")),
            market_value=to_money(item.get("market_value")),
            card_id=item.get("card_id"),
            image_url=item.get("image_url"),
        )
        for item in data.get("processed") or []
    ]
    return AtomicCheckoutResult(
        session_number=str(data.get("session_number") or ""),
        event_id=data.get("event_id"),
        total=to_money(data.get("total")),
        cart_lines_cleared=int(data.get("cart_lines_cleared") or 0),
        processed=processed,
    )


def parse_cart_line_result(data: Mapping[str, Any]) -> CartLine:
    return CartLine(
        line_id=str(data["line_id"]),
        session_id=str(data["session_id"]),
        asset_id=str(data["asset_id"]),
        offer_price=to_money(data.get("offer_price")),
        notes=data.get("notes"),
        added_at=parse_utc_datetime(data["added_at"]),
    )


def parse_undo_result(data: Mapping[str, Any]) -> AtomicUndoResult:
    return AtomicUndoResult(
        ownership_records_removed=int(data.get("ownership_records_removed") or 0),
        transaction_records_removed=int(data.get("transaction_records_removed") or 0),
        purchase_price=to_money(data.get("purchase_price")),
    )


__all__ = [
    "AtomicCallResult",
    "ProcessedLine",
    "AtomicCheckoutResult",
    "AtomicUndoResult",
    "finalize_session_atomic",
    "undo_purchase_atomic",
    "insert_cart_line_atomic",
    "parse_checkout_result",
    "parse_cart_line_result",
    "parse_undo_result",
]
