"""
Consignment pricing service.

Two paths share the pure derivations in domain.pricing:

- add_asset_to_consignment(): single path. An explicit asking price wins;
  otherwise, when the consignment uses market pricing, list and reserve prices
  are derived from the asset's current market value.
- apply_market_pricing(): batch path. Prices are derived per asset, assets with
  identical (list, reserve) pricing are grouped, and each group is written with
  one storage call. A failed group does not block the others.

Market values come from services.pricing_oracle; an asset without market data
is left unpriced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from domain.consignment import Consignment, ConsignmentAssetRecord
from domain.errors import BulkValidationError, ConsignmentNotFoundError, NotFoundError, ValidationFault
from domain.money import to_money
from domain.pricing import DerivedPricing, derive_asset_pricing, group_by_pricing
from domain.time import to_iso_utc, utc_now
from repositories.asset_repository import get_canonical_asset
from repositories.consignment_repository import (
    get_consignment_for_user,
    insert_consignment_asset,
    list_consignment_assets,
    update_consignment_assets,
)
from services.pricing_oracle import get_market_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MarketPricingResult:
    """
    Outcome of a batch market-pricing run.

    priced: assets whose prices were written
    total: asset ids in the request
    writes: storage calls made (one per distinct derived pricing)
    """
    priced: int
    total: int
    writes: int
    errors: List[str] = field(default_factory=list)


def _require_consignment(consignment_id: str, user_id: str) -> Consignment:
    consignment = get_consignment_for_user(consignment_id, user_id)
    if consignment is None:
        raise ConsignmentNotFoundError(details={"consignmentId": consignment_id})
    return consignment


def _market_pricing_for(consignment: Consignment, asset_id: str) -> Optional[DerivedPricing]:
    try:
        market = get_market_value(asset_id)
    except Exception as e:
        logger.warning("Market value lookup failed for %s: %s", asset_id, e)
        return None

    if market is None or market.value <= 0:
        return None
    return derive_asset_pricing(consignment, market.value)


def add_asset_to_consignment(
    user_id: str,
    consignment_id: str,
    asset_id: str,
    asking_price: Optional[Decimal] = None,
    reserve_price: Optional[Decimal] = None,
    split_percentage: Optional[Decimal] = None,
) -> ConsignmentAssetRecord:
    """
    Add one canonical asset to a consignment as a draft.

    Args:
        user_id: Requesting user; must own the consignment
        consignment_id: Target consignment
        asset_id: Canonical asset id
        asking_price: Explicit list price (skips market derivation)
        reserve_price: Explicit reserve price
        split_percentage: Consignor split (defaults to the consignment's default)

    Returns:
        ConsignmentAssetRecord

    Example:
        record = add_asset_to_consignment(user_id, cid, asset_id)
        print(f"Listed at ${record.asking_price}, reserve ${record.reserve_price}")
    """

    if asking_price is not None and asking_price < 0:
        raise ValidationFault("Invalid list price: must be >= 0", details={"field": "askingPrice"})
    if reserve_price is not None and reserve_price < 0:
        raise ValidationFault("Invalid reserve: must be >= 0", details={"field": "reservePrice"})
    if split_percentage is not None and not (0 <= split_percentage <= 100):
        raise ValidationFault("Invalid split: must be between 0 and 100", details={"field": "splitPercentage"})

    consignment = _require_consignment(consignment_id, user_id)

    if get_canonical_asset(asset_id) is None:
        raise NotFoundError("Asset not found", details={"assetId": asset_id})

    if asking_price is None and consignment.uses_market_pricing:
        derived = _market_pricing_for(consignment, asset_id)
        if derived is not None:
            asking_price = derived.list_price
            if reserve_price is None:
                reserve_price = derived.reserve_price
            logger.info(
                "Derived pricing for %s in consignment %s: list $%s, reserve $%s",
                asset_id, consignment_id, asking_price, reserve_price,
            )

    split = to_money(split_percentage) if split_percentage is not None else consignment.default_split_percentage

    return insert_consignment_asset(
        consignment_id,
        asset_id,
        to_money(asking_price) if asking_price is not None else None,
        to_money(reserve_price) if reserve_price is not None else None,
        split,
    )


def apply_market_pricing(user_id: str, consignment_id: str, asset_ids: Sequence[str]) -> MarketPricingResult:
    """
    Re-derive list/reserve prices from market values for several consignment assets.

    Args:
        user_id: Requesting user; must own the consignment
        consignment_id: Consignment holding the assets
        asset_ids: Consignment-asset ids

    Returns:
        MarketPricingResult
    """

    ids = list(asset_ids or [])
    if not ids:
        raise BulkValidationError("assetIds must be a non-empty array", details={"field": "assetIds"})

    consignment = _require_consignment(consignment_id, user_id)
    records = list_consignment_assets(consignment_id, ids)

    errors: List[str] = []
    derived: Dict[str, DerivedPricing] = {}

    for consignment_asset_id in ids:
        record = records.get(consignment_asset_id)
        if record is None:
            errors.append(f"Asset {consignment_asset_id} not found")
            continue

        pricing = _market_pricing_for(consignment, record.asset_id)
        if pricing is None:
            errors.append(f"No market data for asset {consignment_asset_id}")
            continue
        derived[consignment_asset_id] = pricing

    priced = 0
    writes = 0
    now = to_iso_utc(utc_now(), name="now")

    for pricing, group in group_by_pricing(derived).items():
        payload = {
            "asking_price": str(pricing.list_price),
            "reserve_price": str(pricing.reserve_price) if pricing.reserve_price is not None else None,
            "updated_at": now,
        }
        writes += 1
        try:
            updated = update_consignment_assets(consignment_id, group, payload)
        except Exception as e:
            logger.warning("Pricing write for %d assets at $%s failed: %s", len(group), pricing.list_price, e)
            errors.extend(f"Failed to update asset {asset_id}: {e}" for asset_id in group)
            continue

        priced += len(updated)
        missing = set(group) - set(updated)
        errors.extend(f"Asset {asset_id} not found" for asset_id in group if asset_id in missing)

    logger.info(
        "Market pricing on consignment %s: %d/%d priced in %d writes",
        consignment_id, priced, len(ids), writes,
    )
    return MarketPricingResult(priced=priced, total=len(ids), writes=writes, errors=errors)


__all__ = ["MarketPricingResult", "add_asset_to_consignment", "apply_market_pricing"]
