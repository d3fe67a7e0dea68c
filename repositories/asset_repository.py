"""
Canonical asset repository (read-only).

The desk never creates or modifies global_assets rows; it only reads their
display metadata and price-history grouping key.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from domain.asset import CanonicalAsset
from repositories.client import get_client

_ASSETS_TABLE: str = "global_assets"

_ASSET_COLUMNS: str = (
    "id, type, grader, cert_number, card_id, title, player_name, set_name, "
    "year, card_number, grade, psa_image_front_url"
)


def _row_to_asset(row: Mapping[str, Any]) -> CanonicalAsset:
    return CanonicalAsset(
        asset_id=str(row["id"]),
        type=row.get("type"),
        grader=row.get("grader"),
        cert_number=row.get("cert_number"),
        card_id=row.get("card_id"),
        title=row.get("title"),
        player_name=row.get("player_name"),
        set_name=row.get("set_name"),
        year=row.get("year"),
        card_number=row.get("card_number"),
        grade=row.get("grade"),
        image_url=row.get("psa_image_front_url"),
    )


def get_canonical_asset(asset_id: str) -> Optional[CanonicalAsset]:
    """
    Fetch one canonical asset.

    Returns:
        CanonicalAsset or None if not found
    """

    response = (
        get_client().table(_ASSETS_TABLE)
        .select(_ASSET_COLUMNS)
        .eq("id", asset_id)
        .limit(1)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch asset: {error}")

    rows = getattr(response, "data", None) or []
    if not rows:
        return None
    return _row_to_asset(rows[0])


__all__ = ["get_canonical_asset"]
