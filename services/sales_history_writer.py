"""
Sales history writer.

Adds internal platform sales to the global sales_history ledger so they feed
market pricing alongside marketplace data.

- Card payments are recorded as verified (source internal_verified, quality 100);
  every other payment method is unverified (source internal_unverified, quality 50).
- Sales are deduplicated: the same asset, price and source within one hour of
  an existing row is reported as a duplicate and not written again.
- The seller is anonymized; user_id and payment_method are stored for internal
  analytics only and never displayed.

append_sale() never raises: failures are returned as AppendStatus.ERROR so the
owning (already committed) purchase is never affected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from domain.money import to_money
from domain.time import to_iso_utc, utc_now
from repositories.sales_history_repository import find_duplicate_sale, insert_sale

logger = logging.getLogger(__name__)

VERIFIED_PAYMENT_METHODS = frozenset({"credit_card"})

ANONYMOUS_SELLER = "Platform Dealer"


class AppendStatus(str, Enum):
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class SaleFacts:
    """Facts about one completed internal sale."""
    asset_id: str
    title: str
    final_price: Decimal
    sold_at: datetime
    payment_method: str
    user_id: str
    card_id: Optional[str] = None
    ownership_id: Optional[str] = None
    event_id: Optional[str] = None
    image_url: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True, slots=True)
class AppendResult:
    status: AppendStatus
    sale_id: Optional[str] = None
    error: Optional[str] = None


def _build_row(facts: SaleFacts, sale_id: str, source: str, verified: bool) -> dict[str, Any]:
    price = str(to_money(facts.final_price))
    return {
        "id": sale_id,
        "global_asset_id": facts.asset_id,
        "card_id": facts.card_id,
        "title": facts.title,
        "final_price": price,
        "listing_price": price,
        "shipping": "0.00",
        "sold_date": to_iso_utc(facts.sold_at, name="sold_at"),
        "condition": "Graded",
        "marketplace": "Internal",
        "listing_type": "Credit Card" if verified else "Cash",
        "seller_name": ANONYMOUS_SELLER,
        "image_url": facts.image_url,
        "relevance_score": 100,
        "quality_score": 100 if verified else 50,
        "filter_method": "internal_platform",
        "source": source,
        "verified": verified,
        "user_id": facts.user_id,
        "payment_method": facts.payment_method,
        "notes": facts.notes,
        "created_at": utc_now().isoformat(),
    }


def append_sale(facts: SaleFacts) -> AppendResult:
    """
    Append one internal sale to the global sales history.

    Returns:
        AppendResult with ACCEPTED (new row), DUPLICATE (already recorded) or ERROR
    """

    verified = facts.payment_method in VERIFIED_PAYMENT_METHODS
    source = "internal_verified" if verified else "internal_unverified"
    price = to_money(facts.final_price)

    try:
        existing_id = find_duplicate_sale(facts.asset_id, price, source, facts.sold_at)
        if existing_id is not None:
            logger.info("Duplicate sale for asset %s at %s skipped (existing %s)", facts.asset_id, price, existing_id)
            return AppendResult(status=AppendStatus.DUPLICATE, sale_id=existing_id)

        sale_id = insert_sale(_build_row(facts, str(uuid4()), source, verified))

    except Exception as e:
        logger.warning("Failed to add sale for asset %s to global history: %s", facts.asset_id, e)
        return AppendResult(status=AppendStatus.ERROR, error=str(e))

    logger.info("Added internal sale %s for asset %s (%s)", sale_id, facts.asset_id, source)
    return AppendResult(status=AppendStatus.ACCEPTED, sale_id=sale_id)


__all__ = ["AppendStatus", "SaleFacts", "AppendResult", "append_sale"]
