"""
Consignment repository (persistence).

Per-row operations on consignment_assets used by the bulk mutation engine and
the pricing paths. Every update/delete is scoped by consignment id, so an asset
id that belongs to another consignment behaves as "not found".

Each call here is its own statement; callers that need per-item isolation
simply call these once per item.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import uuid4

from domain.consignment import Consignment, ConsignmentAssetRecord, DEFAULT_SPLIT_PERCENTAGE
from domain.money import to_money
from domain.time import parse_optional_utc_datetime
from repositories.client import get_client

_CONSIGNMENTS_TABLE: str = "consignments"
_CONSIGNMENT_ASSETS_TABLE: str = "consignment_assets"


def _optional_money(value: Any) -> Optional[Decimal]:
    return to_money(value) if value is not None and value != "" else None


def _row_to_consignment(row: Mapping[str, Any]) -> Consignment:
    return Consignment(
        consignment_id=str(row["id"]),
        user_id=str(row["user_id"]),
        title=str(row.get("title") or ""),
        pricing_mode=str(row.get("pricing_mode") or "market"),
        list_percent_above_market=int(row.get("list_percent_above_market") or 20),
        list_rounding=int(row.get("list_rounding") or 5),
        enable_reserve_strategy=bool(row.get("enable_reserve_strategy", True)),
        reserve_strategy=str(row.get("reserve_strategy") or "match"),
        reserve_percent_of_market=int(row.get("reserve_percent_of_market") or 100),
        reserve_rounding=int(row.get("reserve_rounding") or 1),
        default_split_percentage=_optional_money(row.get("default_split_percentage")) or DEFAULT_SPLIT_PERCENTAGE,
        archived=bool(row.get("archived", False)),
    )


def _row_to_consignment_asset(row: Mapping[str, Any]) -> ConsignmentAssetRecord:
    return ConsignmentAssetRecord(
        consignment_asset_id=str(row["id"]),
        consignment_id=str(row["consignment_id"]),
        asset_id=str(row["global_asset_id"]),
        status=str(row.get("status") or "draft"),
        asking_price=_optional_money(row.get("asking_price")),
        reserve_price=_optional_money(row.get("reserve_price")),
        split_percentage=_optional_money(row.get("split_percentage")),
        listed_at=parse_optional_utc_datetime(row.get("listed_at")),
    )


def get_consignment_for_user(consignment_id: str, user_id: str) -> Optional[Consignment]:
    """
    Fetch a consignment only if it belongs to `user_id`.

    Returns:
        Consignment or None
    """

    response = (
        get_client().table(_CONSIGNMENTS_TABLE)
        .select("*")
        .eq("id", consignment_id)
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch consignment: {error}")

    rows = getattr(response, "data", None) or []
    if not rows:
        return None
    return _row_to_consignment(rows[0])


def list_consignment_assets(consignment_id: str, asset_ids: Sequence[str]) -> Dict[str, ConsignmentAssetRecord]:
    """
    Fetch the given consignment assets.

    Returns:
        Mapping of consignment-asset id to record; ids outside the consignment are absent
    """

    if not asset_ids:
        return {}

    response = (
        get_client().table(_CONSIGNMENT_ASSETS_TABLE)
        .select("*")
        .eq("consignment_id", consignment_id)
        .in_("id", list(asset_ids))
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to list consignment assets: {error}")

    rows = getattr(response, "data", None) or []
    return {str(row["id"]): _row_to_consignment_asset(row) for row in rows}


def update_consignment_asset(consignment_id: str, asset_id: str, payload: Mapping[str, Any]) -> bool:
    """
    Apply a column payload to one consignment asset.

    Returns:
        True if the row was updated, False if it does not exist in this consignment
    """

    response = (
        get_client().table(_CONSIGNMENT_ASSETS_TABLE)
        .update(dict(payload))
        .eq("consignment_id", consignment_id)
        .eq("id", asset_id)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to update consignment asset: {error}")

    return bool(getattr(response, "data", None))


def update_consignment_assets(consignment_id: str, asset_ids: Sequence[str], payload: Mapping[str, Any]) -> List[str]:
    """
    Apply one column payload to several consignment assets in a single statement.

    Returns:
        Ids of the rows that were updated
    """

    response = (
        get_client().table(_CONSIGNMENT_ASSETS_TABLE)
        .update(dict(payload))
        .eq("consignment_id", consignment_id)
        .in_("id", list(asset_ids))
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to update consignment assets: {error}")

    rows = getattr(response, "data", None) or []
    return [str(row["id"]) for row in rows]


def delete_consignment_asset(consignment_id: str, asset_id: str) -> bool:
    """
    Remove one asset from a consignment.

    Returns:
        True if the row was deleted, False if it does not exist in this consignment
    """

    response = (
        get_client().table(_CONSIGNMENT_ASSETS_TABLE)
        .delete()
        .eq("consignment_id", consignment_id)
        .eq("id", asset_id)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to delete consignment asset: {error}")

    return bool(getattr(response, "data", None))


def insert_consignment_asset(
    consignment_id: str,
    global_asset_id: str,
    asking_price: Optional[Decimal],
    reserve_price: Optional[Decimal],
    split_percentage: Decimal,
) -> ConsignmentAssetRecord:
    """Insert a new draft consignment asset."""

    record_id = str(uuid4())

    payload: dict[str, Any] = {
        "id": record_id,
        "consignment_id": consignment_id,
        "global_asset_id": global_asset_id,
        "asking_price": str(asking_price) if asking_price is not None else None,
        "reserve_price": str(reserve_price) if reserve_price is not None else None,
        "split_percentage": str(split_percentage),
        "status": "draft",
    }

    response = get_client().table(_CONSIGNMENT_ASSETS_TABLE).insert(payload).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to add consignment asset: {error}")

    return ConsignmentAssetRecord(
        consignment_asset_id=record_id,
        consignment_id=consignment_id,
        asset_id=global_asset_id,
        status="draft",
        asking_price=asking_price,
        reserve_price=reserve_price,
        split_percentage=split_percentage,
    )


__all__ = [
    "get_consignment_for_user",
    "list_consignment_assets",
    "update_consignment_asset",
    "update_consignment_assets",
    "delete_consignment_asset",
    "insert_consignment_asset",
]
