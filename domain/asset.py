"""
Domain: canonical (global) assets.

A canonical asset is the catalog record for one graded collectible. It is
read-only input to the desk: checkout, undo and pricing never create or
destroy one.

`card_id` groups identical cards across different certificates and is the key
used for price-history aggregation; when absent the asset id is used instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class CanonicalAsset:
    asset_id: str
    type: Optional[str] = None  # graded, raw, sealed
    grader: Optional[str] = None
    cert_number: Optional[str] = None
    card_id: Optional[str] = None
    title: Optional[str] = None
    player_name: Optional[str] = None
    set_name: Optional[str] = None
    year: Optional[str] = None
    card_number: Optional[str] = None
    grade: Optional[str] = None
    image_url: Optional[str] = None

    @property
    def grouping_key(self) -> str:
        return self.card_id or self.asset_id

    def display_title(self) -> str:
        """Receipt/ledger display string: the title, else player/set/year/grade."""

        if self.title and self.title.strip():
            return self.title.strip()
        parts = [self.player_name or "Unknown", self.set_name, self.year, self.grade]
        return " ".join(p.strip() for p in parts if p and p.strip())


__all__ = ["CanonicalAsset"]
