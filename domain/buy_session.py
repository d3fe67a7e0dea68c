"""
Domain: buying-desk sessions and their carts.

Rules implemented here:
- A session is `open` while it is being negotiated and `closed` once checked out.
- A closed session is terminal: it must never be checked out again.
- The ordered set of cart lines of an open session is the unit of work for checkout.
- The checkout total is the sum of the cart-line offer prices (unpriced lines count as $0).

Identifiers are the text primary keys used by the storage schema.
This module contains only pure domain entities: no I/O, no database, no frameworks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from .money import sum_money
from .time import require_utc_timestamp


class SessionStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"

    @staticmethod
    def parse(value: str) -> "SessionStatus":
        """
        Parse a stored status.

        Stored statuses are free-form ("active", "pending", ...); only "closed"
        is terminal and every other value is an open session.
        """

        key = (value or "").strip().lower()
        if key == "closed":
            return SessionStatus.CLOSED
        return SessionStatus.OPEN


@dataclass(frozen=True, slots=True)
class BuySession:
    """One buying-desk negotiation, holding a cart until checked out."""

    session_id: str
    user_id: str
    offer_number: str  # human-readable sequence, e.g. BUY-2025-001
    status: SessionStatus
    event_id: Optional[str] = None
    seller_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)

    @property
    def is_closed(self) -> bool:
        return self.status is SessionStatus.CLOSED


@dataclass(frozen=True, slots=True)
class CartLine:
    """One pending purchase (asset + agreed offer price) inside a session."""

    line_id: str
    session_id: str
    asset_id: str
    offer_price: Decimal
    notes: Optional[str] = None
    added_at: Optional[datetime] = None
    market_value_at_offer: Optional[Decimal] = None
    expected_profit: Optional[Decimal] = None

    def __post_init__(self) -> None:
        if self.offer_price < 0:
            raise ValueError("offer_price must be >= 0")
        if self.added_at is not None:
            require_utc_timestamp("added_at", self.added_at)


def cart_total(lines: Iterable[CartLine]) -> Decimal:
    """Sum of the cart-line offer prices."""

    return sum_money(line.offer_price for line in lines)


__all__ = ["SessionStatus", "BuySession", "CartLine", "cart_total"]
