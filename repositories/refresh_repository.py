"""
Market refresh request repository (persistence).

A refresh request asks the external comparable-sales refresher to re-pull an
asset's market data. There is at most one pending request per asset: the
unique constraint on asset_id makes repeated requests collapse into one row,
across every instance of the service.
"""

from __future__ import annotations

from datetime import datetime

from domain.time import to_iso_utc
from repositories.client import get_client

_REFRESH_TABLE: str = "market_refresh_requests"


def upsert_refresh_request(asset_id: str, requested_at: datetime, reason: str) -> None:
    """Create or re-arm the pending refresh request for an asset."""

    payload = {
        "asset_id": asset_id,
        "requested_at": to_iso_utc(requested_at, name="requested_at"),
        "reason": reason,
        "status": "pending",
    }

    response = (
        get_client().table(_REFRESH_TABLE)
        .upsert(payload, on_conflict="asset_id")
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to request market refresh: {error}")


__all__ = ["upsert_refresh_request"]
