"""
Undo service for buying-desk purchases.

Undo is a compensating transaction, not a soft flag: it removes exactly one
acquisition (one ownership record and the purchase records that reference it)
and leaves every other acquisition of the same asset untouched.

Process:
1. Find the buyer's most recent active, outright-owned record for the asset
   (consigned or sold records never match)          (else PurchaseNotFoundError)
2. Run the atomic undo function, which deletes the purchase records matching
   (buyer, asset, ownership record) and then the ownership record itself.
   Any fault rolls back both deletes.

The global sales-history entry written after checkout is left in place: it is
an anonymized market observation, not part of the buyer's records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from domain.asset import CanonicalAsset
from domain.errors import DeskError, PurchaseNotFoundError, TransactionFailureError
from domain.time import utc_now
from repositories.asset_repository import get_canonical_asset
from repositories.checkout_repository import parse_undo_result, undo_purchase_atomic
from repositories.ownership_repository import find_active_owned_record

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UndoResult:
    asset_id: str
    asset: Optional[CanonicalAsset]
    purchase_price: Decimal
    ownership_records_removed: int
    transaction_records_removed: int
    undone_at: datetime
    correlation_id: str


def undo_purchase(user_id: str, asset_id: str) -> UndoResult:
    """
    Reverse one buying-desk purchase of an asset.

    Args:
        user_id: Buyer who made the purchase
        asset_id: Canonical asset id

    Returns:
        UndoResult with removal counts and the asset metadata for confirmation

    Raises:
        PurchaseNotFoundError: no active owned record for this buyer and asset
        TransactionFailureError: storage fault; nothing was removed
    """
    correlation_id = str(uuid4())

    logger.info("[Transaction %s] Undo purchase of asset %s for user %s", correlation_id, asset_id, user_id)

    try:
        record = find_active_owned_record(user_id, asset_id)
        if record is None or not record.is_owned_outright:
            logger.info("[Transaction %s] No active owned record for asset %s", correlation_id, asset_id)
            raise PurchaseNotFoundError(details={"assetId": asset_id}, correlation_id=correlation_id)

        atomic = undo_purchase_atomic(user_id, asset_id, record.ownership_id)
    except DeskError:
        raise
    except Exception as e:
        logger.exception("[Transaction %s] Unexpected error during undo", correlation_id)
        raise TransactionFailureError(
            "All changes have been rolled back",
            details={"reason": str(e)},
            correlation_id=correlation_id,
        ) from e

    if not atomic.success:
        if atomic.error_code == "PURCHASE_NOT_FOUND":
            # Removed by a concurrent undo between lookup and delete
            logger.info("[Transaction %s] Ownership record %s already removed", correlation_id, record.ownership_id)
            raise PurchaseNotFoundError(details={"assetId": asset_id}, correlation_id=correlation_id)

        logger.error(
            "[Transaction %s] Undo rolled back (%s): %s",
            correlation_id, atomic.error_code, atomic.error_message,
        )
        raise TransactionFailureError(
            "All changes have been rolled back",
            details={"reason": atomic.error_message or atomic.error_code},
            correlation_id=correlation_id,
        )

    removed = parse_undo_result(atomic.data)

    # Metadata is only for the confirmation message
    try:
        asset = get_canonical_asset(asset_id)
    except Exception as e:
        logger.warning("[Transaction %s] Could not load asset %s for confirmation: %s", correlation_id, asset_id, e)
        asset = None

    logger.info(
        "[Transaction %s] Undo committed: %d ownership, %d purchase records removed",
        correlation_id, removed.ownership_records_removed, removed.transaction_records_removed,
    )

    return UndoResult(
        asset_id=asset_id,
        asset=asset,
        purchase_price=removed.purchase_price if removed.ownership_records_removed else record.purchase_price,
        ownership_records_removed=removed.ownership_records_removed,
        transaction_records_removed=removed.transaction_records_removed,
        undone_at=utc_now(),
        correlation_id=correlation_id,
    )


__all__ = ["UndoResult", "undo_purchase"]
