"""
Domain: consignments and consignment assets.

Rules implemented here:
- A consignment asset carries mutable commercial terms: asking (list) price,
  reserve price, consignor split percentage and a lifecycle status
  (draft | active | on_hold | sold | returned).
- Status values are normalized before persistence: trimmed, lower-cased, runs of
  spaces/hyphens folded to "_" ("On Hold" -> "on_hold").
- Moving an asset to `active` stamps `listed_at` with the current time, regardless
  of any other field changed in the same request.
- A bulk field change is validated as a whole before any row is touched:
  at least one field, price >= 0, reserve >= 0, 0 <= split <= 100,
  status a non-empty string.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import BulkValidationError
from .money import to_money
from .time import require_utc_timestamp, to_iso_utc

DEFAULT_SPLIT_PERCENTAGE = Decimal("95.00")

_FOLD = re.compile(r"[\s-]+")


class ConsignmentAssetStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    SOLD = "sold"
    RETURNED = "returned"


def normalize_status_key(value: Optional[str]) -> str:
    """Fold case, spaces and hyphens: " On-Hold " -> "on_hold"."""

    return _FOLD.sub("_", (value or "").strip().lower())


@dataclass(frozen=True, slots=True)
class Consignment:
    """A consignment and its pricing strategy settings."""

    consignment_id: str
    user_id: str
    title: str
    pricing_mode: str = "market"  # 'market' or 'fixed'
    list_percent_above_market: int = 20
    list_rounding: int = 5
    enable_reserve_strategy: bool = True
    reserve_strategy: str = "match"  # 'match' or 'percentage'
    reserve_percent_of_market: int = 100
    reserve_rounding: int = 1
    default_split_percentage: Decimal = DEFAULT_SPLIT_PERCENTAGE
    archived: bool = False

    @property
    def uses_market_pricing(self) -> bool:
        return self.pricing_mode == "market"


@dataclass(frozen=True, slots=True)
class ConsignmentAssetRecord:
    consignment_asset_id: str
    consignment_id: str
    asset_id: str
    status: str
    asking_price: Optional[Decimal] = None
    reserve_price: Optional[Decimal] = None
    split_percentage: Optional[Decimal] = None
    listed_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.listed_at is not None:
            require_utc_timestamp("listed_at", self.listed_at)


@dataclass(frozen=True, slots=True)
class AssetFieldChanges:
    """
    Homogeneous field changes applied to every asset of a bulk update.

    Unset fields (None) are left untouched.
    """

    price: Optional[Decimal] = None
    reserve: Optional[Decimal] = None
    split_percent: Optional[Decimal] = None
    status: Optional[str] = None

    def is_empty(self) -> bool:
        return (
            self.price is None
            and self.reserve is None
            and self.split_percent is None
            and self.status is None
        )

    def validate(self) -> None:
        """Raise BulkValidationError describing every rule that is violated."""

        problems: List[str] = []

        if self.is_empty():
            raise BulkValidationError(
                "At least one field required",
                details={"fields": ["price", "reserve", "splitPercent", "status"]},
            )

        if self.price is not None and self.price < 0:
            problems.append("Invalid list price: must be >= 0")
        if self.reserve is not None and self.reserve < 0:
            problems.append("Invalid reserve: must be >= 0")
        if self.split_percent is not None and not (0 <= self.split_percent <= 100):
            problems.append("Invalid split: must be between 0 and 100")
        if self.status is not None and not normalize_status_key(self.status):
            problems.append("Invalid status: must be a non-empty string")

        if problems:
            raise BulkValidationError("; ".join(problems), details={"problems": problems})

    @property
    def normalized_status(self) -> Optional[str]:
        if self.status is None:
            return None
        return normalize_status_key(self.status)

    def to_update_payload(self, now: datetime) -> Dict[str, Any]:
        """
        Build the column payload for one consignment_assets row.

        Call validate() first; this method assumes valid input.
        """

        payload: Dict[str, Any] = {"updated_at": to_iso_utc(now, name="now")}

        if self.price is not None:
            payload["asking_price"] = str(to_money(self.price))
        if self.reserve is not None:
            payload["reserve_price"] = str(to_money(self.reserve))
        if self.split_percent is not None:
            payload["split_percentage"] = str(to_money(self.split_percent))

        status = self.normalized_status
        if status is not None:
            payload["status"] = status
            if status == ConsignmentAssetStatus.ACTIVE.value:
                payload["listed_at"] = to_iso_utc(now, name="now")

        return payload


__all__ = [
    "DEFAULT_SPLIT_PERCENTAGE",
    "ConsignmentAssetStatus",
    "normalize_status_key",
    "Consignment",
    "ConsignmentAssetRecord",
    "AssetFieldChanges",
]
