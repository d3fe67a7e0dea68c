"""
Domain: ownership and purchase-transaction records.

Rules implemented here:
- An OwnershipRecord is one user's possession of one unit of an asset.
- Checkout creates exactly one active, outright-owned record per completed purchase,
  tagged with the buying-desk acquisition source and a back-reference to its session.
- A PurchaseTransactionRecord is the financial audit entry for one acquisition and
  always references the OwnershipRecord it accompanies, so undo can remove both.

Both records are immutable values here; they are created by checkout and
removed (never edited) by undo.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from .time import require_utc_timestamp

# Acquisition source tag for assets bought through the buying desk.
BUYING_DESK_SOURCE: str = "buying_desk"

# Counterparty name used when the session has no seller and none was given.
UNKNOWN_SELLER: str = "Unknown Seller"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CHECK = "check"
    DIGITAL = "digital"
    TRADE = "trade"


class OwnershipStatus(str, Enum):
    OWN = "own"
    CONSIGNMENT = "consignment"
    SOLD = "sold"


@dataclass(frozen=True, slots=True)
class OwnershipRecord:
    ownership_id: str
    owner_id: str
    asset_id: str
    purchase_price: Decimal
    purchase_date: Optional[date]  # null for records added outside checkout
    purchase_source: Optional[str]
    ownership_status: OwnershipStatus = OwnershipStatus.OWN
    session_id: Optional[str] = None
    market_price_at_purchase: Optional[Decimal] = None
    is_active: bool = True
    added_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.added_at is not None:
            require_utc_timestamp("added_at", self.added_at)

    @property
    def is_owned_outright(self) -> bool:
        return self.is_active and self.ownership_status is OwnershipStatus.OWN


@dataclass(frozen=True, slots=True)
class PurchaseTransactionRecord:
    transaction_id: str
    buyer_id: str
    asset_id: str
    ownership_id: str
    purchase_price: Decimal
    payment_method: PaymentMethod
    purchased_at: datetime
    session_id: Optional[str] = None
    event_id: Optional[str] = None
    seller_name: Optional[str] = None
    seller_contact_id: Optional[str] = None
    market_price_at_purchase: Optional[Decimal] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("purchased_at", self.purchased_at)


__all__ = [
    "BUYING_DESK_SOURCE",
    "UNKNOWN_SELLER",
    "PaymentMethod",
    "OwnershipStatus",
    "OwnershipRecord",
    "PurchaseTransactionRecord",
]
