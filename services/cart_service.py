"""
Cart service for buying-desk sessions.

Cart lines can only be added to or removed from an open session; a closed
session is terminal and rejects every cart change with AlreadyProcessedError.
The insert itself re-checks the status under a lock on the session row, so a
checkout committing concurrently can never leave a line in a closed session.

Expected profit for a cart line is market value minus offer price. It is
captured when the line is added and can be recomputed for lines that never
got one (recalculate_cart_profits).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from domain.buy_session import BuySession, CartLine, cart_total
from domain.errors import AlreadyProcessedError, NotFoundError, SessionNotFoundError, ValidationFault
from domain.money import to_money
from repositories.asset_repository import get_canonical_asset
from repositories.checkout_repository import insert_cart_line_atomic, parse_cart_line_result
from repositories.session_repository import (
    delete_cart_line,
    get_session_for_user,
    list_cart_lines,
    list_cart_lines_missing_profit,
    update_cart_line_profit,
)
from services.pricing_oracle import lookup_market_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CartView:
    session: BuySession
    lines: List[CartLine]
    total: Decimal

    @property
    def item_count(self) -> int:
        return len(self.lines)


def _require_session(session_id: str, user_id: str) -> BuySession:
    session = get_session_for_user(session_id, user_id)
    if session is None:
        raise SessionNotFoundError(details={"sessionId": session_id})
    return session


def _require_open_session(session_id: str, user_id: str) -> BuySession:
    session = _require_session(session_id, user_id)
    if session.is_closed:
        raise AlreadyProcessedError(
            details={"status": session.status.value, "sessionNumber": session.offer_number},
        )
    return session


def get_cart(session_id: str, user_id: str) -> CartView:
    """Return a session's cart lines in stored order with their total."""

    session = _require_session(session_id, user_id)
    lines = list_cart_lines(session.session_id)
    return CartView(session=session, lines=lines, total=cart_total(lines))


def add_to_cart(
    session_id: str,
    user_id: str,
    asset_id: str,
    offer_price: Decimal,
    notes: Optional[str] = None,
) -> CartLine:
    """
    Add an asset at an agreed offer price to an open session.

    Raises:
        ValidationFault: negative offer price
        SessionNotFoundError / AlreadyProcessedError: session missing or closed
        NotFoundError: unknown canonical asset
    """

    if offer_price < 0:
        raise ValidationFault("Invalid offer price: must be >= 0", details={"field": "offerPrice"})

    session = _require_open_session(session_id, user_id)

    if get_canonical_asset(asset_id) is None:
        raise NotFoundError("Asset not found", details={"assetId": asset_id})

    result = insert_cart_line_atomic(session.session_id, user_id, asset_id, offer_price, notes)
    if not result.success:
        if result.error_code == "ALREADY_PROCESSED":
            # Checked out after the open-session check above
            raise AlreadyProcessedError(details={"status": "closed", "sessionNumber": session.offer_number})
        if result.error_code == "SESSION_NOT_FOUND":
            raise SessionNotFoundError(details={"sessionId": session_id})
        raise RuntimeError(f"Failed to add cart line: {result.error_message or result.error_code}")
    line = parse_cart_line_result(result.data)

    market_value = lookup_market_value(asset_id)
    if market_value > 0:
        profit = market_value - line.offer_price
        try:
            update_cart_line_profit(line.line_id, market_value, profit)
        except Exception as e:
            logger.warning("Could not store expected profit for cart line %s: %s", line.line_id, e)
        else:
            line = CartLine(
                line_id=line.line_id,
                session_id=line.session_id,
                asset_id=line.asset_id,
                offer_price=line.offer_price,
                notes=line.notes,
                added_at=line.added_at,
                market_value_at_offer=market_value,
                expected_profit=profit,
            )

    logger.info("Added asset %s to session %s at $%s", asset_id, session.offer_number, line.offer_price)
    return line


def remove_from_cart(session_id: str, user_id: str, line_id: str) -> None:
    """Remove one line from an open session's cart."""

    session = _require_open_session(session_id, user_id)
    if not delete_cart_line(session.session_id, line_id):
        raise NotFoundError("Cart item not found", details={"lineId": line_id})
    logger.info("Removed cart line %s from session %s", line_id, session.offer_number)


def recalculate_cart_profits(user_id: str) -> int:
    """
    Compute expected profit for the user's cart lines that have none.

    Lines whose asset has no market data are skipped.

    Returns:
        Number of lines updated
    """

    updated = 0
    for line in list_cart_lines_missing_profit(user_id):
        market_value = lookup_market_value(line.asset_id)
        if market_value <= 0:
            continue
        update_cart_line_profit(line.line_id, market_value, to_money(market_value - line.offer_price))
        updated += 1

    logger.info("Recalculated expected profit for %d cart lines of user %s", updated, user_id)
    return updated


__all__ = [
    "CartView",
    "get_cart",
    "add_to_cart",
    "remove_from_cart",
    "recalculate_cart_profits",
]
