"""
Bulk mutation of consignment assets.

Policy:
- The whole request is validated before any row is touched: a non-empty
  assetIds list and a valid field change (see AssetFieldChanges.validate).
  A violation rejects the call with BulkValidationError.
- Items are then applied independently. A missing asset or a storage fault on
  one item is recorded in `errors` and never blocks its siblings, so
  updated + len(errors) == total.
- Two concurrent calls touching the same asset: last write wins.
- Every call gets a correlation id, carried by its log lines and its errors.
  A fault before the first item (e.g. the consignment lookup) becomes
  TransactionFailureError; no asset was touched at that point.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence
from uuid import uuid4

from domain.consignment import AssetFieldChanges, Consignment
from domain.errors import BulkValidationError, ConsignmentNotFoundError, DeskError, TransactionFailureError
from domain.time import require_utc_timestamp, utc_now
from repositories.consignment_repository import (
    delete_consignment_asset,
    get_consignment_for_user,
    update_consignment_asset,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BulkResult:
    """
    Outcome of a bulk call.

    succeeded: number of items updated (or deleted)
    total: number of asset ids in the request
    errors: one human-readable message per failed item
    """
    succeeded: int
    total: int
    errors: List[str] = field(default_factory=list)


def _require_asset_ids(asset_ids: Sequence[str], correlation_id: str) -> List[str]:
    ids = list(asset_ids or [])
    if not ids:
        raise BulkValidationError(
            "assetIds must be a non-empty array", details={"field": "assetIds"}, correlation_id=correlation_id,
        )
    if any(not isinstance(i, str) or not i.strip() for i in ids):
        raise BulkValidationError(
            "assetIds must contain non-empty strings", details={"field": "assetIds"}, correlation_id=correlation_id,
        )
    return ids


def _require_consignment(consignment_id: str, user_id: str, correlation_id: str) -> Consignment:
    consignment = get_consignment_for_user(consignment_id, user_id)
    if consignment is None:
        logger.info("[Transaction %s] Consignment %s not found for user %s", correlation_id, consignment_id, user_id)
        raise ConsignmentNotFoundError(details={"consignmentId": consignment_id}, correlation_id=correlation_id)
    return consignment


def bulk_update_assets(
    user_id: str,
    consignment_id: str,
    asset_ids: Sequence[str],
    changes: AssetFieldChanges,
    now: Optional[datetime] = None,
) -> BulkResult:
    """
    Apply the same field changes to several consignment assets.

    Args:
        user_id: Requesting user; must own the consignment
        consignment_id: Consignment holding the assets
        asset_ids: Consignment-asset ids (at least one)
        changes: Fields to set; unset fields are untouched
        now: Timestamp for updated_at/listed_at (UTC, defaults to now)

    Returns:
        BulkResult

    Raises:
        BulkValidationError: invalid request, nothing was touched
        ConsignmentNotFoundError: consignment missing or owned by another user
        TransactionFailureError: storage fault before any asset was touched

    Example:
        result = bulk_update_assets(user_id, cid, ["a", "b"], AssetFieldChanges(status="Active"))
        print(f"{result.succeeded}/{result.total} updated")
    """

    if now is None:
        now = utc_now()
    require_utc_timestamp("now", now)

    correlation_id = str(uuid4())
    logger.info("[Transaction %s] Bulk update in consignment %s for user %s", correlation_id, consignment_id, user_id)

    try:
        ids = _require_asset_ids(asset_ids, correlation_id)
        try:
            changes.validate()
        except BulkValidationError as e:
            e.correlation_id = correlation_id
            raise

        _require_consignment(consignment_id, user_id, correlation_id)
    except DeskError:
        raise
    except Exception as e:
        logger.exception("[Transaction %s] Bulk update failed before any asset was touched", correlation_id)
        raise TransactionFailureError(
            "Bulk update failed; no asset was changed",
            details={"reason": str(e)},
            correlation_id=correlation_id,
        ) from e

    payload = changes.to_update_payload(now)
    updated = 0
    errors: List[str] = []

    for asset_id in ids:
        try:
            if update_consignment_asset(consignment_id, asset_id, payload):
                updated += 1
            else:
                errors.append(f"Asset {asset_id} not found")
        except Exception as e:
            logger.warning("[Transaction %s] Update of asset %s failed: %s", correlation_id, asset_id, e)
            errors.append(f"Failed to update asset {asset_id}: {e}")

    logger.info("[Transaction %s] Bulk update done: %d/%d updated", correlation_id, updated, len(ids))
    return BulkResult(succeeded=updated, total=len(ids), errors=errors)


def bulk_delete_assets(user_id: str, consignment_id: str, asset_ids: Sequence[str]) -> BulkResult:
    """
    Remove several assets from a consignment, each independently.

    Assets are removed whatever their status.

    Returns:
        BulkResult

    Raises:
        BulkValidationError / ConsignmentNotFoundError / TransactionFailureError,
        as bulk_update_assets
    """

    correlation_id = str(uuid4())
    logger.info("[Transaction %s] Bulk delete in consignment %s for user %s", correlation_id, consignment_id, user_id)

    try:
        ids = _require_asset_ids(asset_ids, correlation_id)
        _require_consignment(consignment_id, user_id, correlation_id)
    except DeskError:
        raise
    except Exception as e:
        logger.exception("[Transaction %s] Bulk delete failed before any asset was touched", correlation_id)
        raise TransactionFailureError(
            "Bulk delete failed; no asset was changed",
            details={"reason": str(e)},
            correlation_id=correlation_id,
        ) from e

    deleted = 0
    errors: List[str] = []

    for asset_id in ids:
        try:
            if delete_consignment_asset(consignment_id, asset_id):
                deleted += 1
            else:
                errors.append(f"Asset {asset_id} not found")
        except Exception as e:
            logger.warning("[Transaction %s] Delete of asset %s failed: %s", correlation_id, asset_id, e)
            errors.append(f"Failed to delete asset {asset_id}: {e}")

    logger.info("[Transaction %s] Bulk delete done: %d/%d deleted", correlation_id, deleted, len(ids))
    return BulkResult(succeeded=deleted, total=len(ids), errors=errors)


__all__ = ["BulkResult", "bulk_update_assets", "bulk_delete_assets"]
