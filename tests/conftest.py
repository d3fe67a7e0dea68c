"""
Pytest configuration and shared fakes.

Adds the project root to the Python path so tests can import domain,
repositories, services and api.

Service tests never reach Supabase: the `desk` and `consignment_store`
fixtures replace the repository functions each service imported with an
in-memory store. The fake atomic checkout stages every write and commits only
when all cart lines succeeded, mirroring sql/002_checkout_functions.sql.
"""

import sys
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.asset import CanonicalAsset  # noqa: E402
from domain.buy_session import BuySession, CartLine, SessionStatus, cart_total  # noqa: E402
from domain.consignment import Consignment, ConsignmentAssetRecord  # noqa: E402
from domain.ownership import (  # noqa: E402
    BUYING_DESK_SOURCE,
    OwnershipRecord,
    OwnershipStatus,
    PaymentMethod,
    PurchaseTransactionRecord,
)
from repositories.checkout_repository import AtomicCallResult  # noqa: E402
from services.post_commit import run_safely  # noqa: E402

T0 = datetime(2025, 3, 1, 15, 0, 0, tzinfo=timezone.utc)


class RecordingQueue:
    """TaskQueue that records tasks instead of running them."""

    def __init__(self) -> None:
        self.tasks: List[tuple] = []

    def enqueue(self, task, *args, **kwargs) -> None:
        self.tasks.append((task, args, kwargs))

    def task_names(self) -> List[str]:
        return [task.__name__ for task, _, _ in self.tasks]

    def run_all(self) -> None:
        for task, args, kwargs in self.tasks:
            run_safely(task, *args, **kwargs)


class FakeDesk:
    """In-memory sessions, carts, canonical assets, ownership and purchase records."""

    def __init__(self) -> None:
        self.sessions: Dict[str, BuySession] = {}
        self.lines: Dict[str, List[CartLine]] = {}
        self.assets: Dict[str, CanonicalAsset] = {}
        self.sellers: Dict[str, tuple] = {}
        self.market_values: Dict[str, Decimal] = {}
        self.ownership: List[OwnershipRecord] = []
        self.purchases: List[PurchaseTransactionRecord] = []
        self.atomic_calls = 0
        self.fail_undo = False
        self._ids = 0

    def _next_id(self, prefix: str) -> str:
        self._ids += 1
        return f"{prefix}-{self._ids}"

    # ---- setup helpers ---------------------------------------------------

    def add_asset(self, asset_id: str, title: Optional[str] = None, card_id: Optional[str] = None) -> CanonicalAsset:
        asset = CanonicalAsset(asset_id=asset_id, type="graded", title=title or f"Card {asset_id}", card_id=card_id)
        self.assets[asset_id] = asset
        return asset

    def open_session(
        self,
        session_id: str = "session-1",
        user_id: str = "user-1",
        offer_number: str = "BUY-2025-001",
        seller_id: Optional[str] = None,
        event_id: Optional[str] = None,
    ) -> BuySession:
        session = BuySession(
            session_id=session_id,
            user_id=user_id,
            offer_number=offer_number,
            status=SessionStatus.OPEN,
            seller_id=seller_id,
            event_id=event_id,
            created_at=T0,
        )
        self.sessions[session_id] = session
        self.lines.setdefault(session_id, [])
        return session

    def add_line(self, session_id: str, asset_id: str, price: str, notes: Optional[str] = None) -> CartLine:
        existing = self.lines.setdefault(session_id, [])
        line = CartLine(
            line_id=self._next_id("line"),
            session_id=session_id,
            asset_id=asset_id,
            offer_price=Decimal(price),
            notes=notes,
            added_at=T0 + timedelta(minutes=len(existing)),
        )
        existing.append(line)
        return line

    # ---- session repository ----------------------------------------------

    def get_session_for_user(self, session_id: str, user_id: str) -> Optional[BuySession]:
        session = self.sessions.get(session_id)
        if session is None or session.user_id != user_id:
            return None
        return session

    def list_cart_lines(self, session_id: str) -> List[CartLine]:
        return list(self.lines.get(session_id, []))

    def get_seller_contact(self, seller_id: str):
        return self.sellers.get(seller_id)

    def insert_cart_line_atomic(
        self,
        session_id: str,
        user_id: str,
        asset_id: str,
        offer_price: Decimal,
        notes: Optional[str] = None,
    ) -> AtomicCallResult:
        # Reads the current stored status, as the locked insert does
        session = self.get_session_for_user(session_id, user_id)
        if session is None:
            return AtomicCallResult(success=False, data={"success": False, "error": "SESSION_NOT_FOUND"}, error_code="SESSION_NOT_FOUND")
        if session.is_closed:
            return AtomicCallResult(
                success=False,
                data={"success": False, "error": "ALREADY_PROCESSED", "session_number": session.offer_number},
                error_code="ALREADY_PROCESSED",
            )
        line = self.add_line(session_id, asset_id, str(offer_price), notes)
        return AtomicCallResult(success=True, data={
            "success": True,
            "line_id": line.line_id,
            "session_id": session_id,
            "asset_id": asset_id,
            "offer_price": str(line.offer_price),
            "notes": notes,
            "added_at": line.added_at.isoformat(),
        })

    def delete_cart_line(self, session_id: str, line_id: str) -> bool:
        before = len(self.lines.get(session_id, []))
        self.lines[session_id] = [line for line in self.lines.get(session_id, []) if line.line_id != line_id]
        return len(self.lines[session_id]) < before

    def update_cart_line_profit(self, line_id: str, market_value: Decimal, expected_profit: Decimal) -> None:
        for session_id, lines in self.lines.items():
            self.lines[session_id] = [
                replace(line, market_value_at_offer=market_value, expected_profit=expected_profit)
                if line.line_id == line_id else line
                for line in lines
            ]

    def list_cart_lines_missing_profit(self, user_id: str) -> List[CartLine]:
        return [
            line
            for session_id, lines in self.lines.items()
            if self.sessions[session_id].user_id == user_id
            for line in lines
            if line.expected_profit is None
        ]

    # ---- asset repository / pricing oracle -------------------------------

    def get_canonical_asset(self, asset_id: str) -> Optional[CanonicalAsset]:
        return self.assets.get(asset_id)

    def lookup_market_value(self, asset_id: str, correlation_id: Optional[str] = None) -> Decimal:
        return self.market_values.get(asset_id, Decimal("0.00"))

    def lookup_market_values(self, asset_ids, correlation_id: Optional[str] = None) -> Dict[str, Decimal]:
        return {asset_id: self.lookup_market_value(asset_id) for asset_id in asset_ids}

    # ---- atomic checkout / undo ------------------------------------------

    def finalize_session_atomic(
        self,
        session_id: str,
        user_id: str,
        payment_method: PaymentMethod,
        amount_paid: Decimal,
        counterparty_name: str,
        seller_contact_id: Optional[str],
        notes: Optional[str],
        market_values: Dict[str, Decimal],
        correlation_id: str,
    ) -> AtomicCallResult:
        self.atomic_calls += 1

        session = self.get_session_for_user(session_id, user_id)
        if session is None:
            return AtomicCallResult(success=False, data={"success": False, "error": "SESSION_NOT_FOUND"}, error_code="SESSION_NOT_FOUND")
        if session.is_closed:
            return AtomicCallResult(
                success=False,
                data={"success": False, "error": "ALREADY_PROCESSED", "session_number": session.offer_number},
                error_code="ALREADY_PROCESSED",
            )
        lines = self.list_cart_lines(session_id)
        if not lines:
            return AtomicCallResult(success=False, data={"success": False, "error": "EMPTY_CART"}, error_code="EMPTY_CART")
        total = cart_total(lines)
        if amount_paid < total:
            return AtomicCallResult(
                success=False,
                data={"success": False, "error": "INSUFFICIENT_PAYMENT", "required": str(total), "provided": str(amount_paid)},
                error_code="INSUFFICIENT_PAYMENT",
            )

        staged_ownership: List[OwnershipRecord] = []
        staged_purchases: List[PurchaseTransactionRecord] = []
        processed: List[Dict[str, Any]] = []

        for line in lines:
            asset = self.assets.get(line.asset_id)
            if asset is None:
                # RAISE: nothing staged is kept
                return AtomicCallResult(
                    success=False,
                    data={"message": "ASSET_NOT_FOUND", "details": line.asset_id, "hint": line.line_id},
                    error_code="ASSET_NOT_FOUND",
                    error_message=line.asset_id,
                    rolled_back=True,
                )

            market = market_values.get(line.asset_id, Decimal("0.00"))
            ownership_id = self._next_id("ownership")
            transaction_id = self._next_id("purchase")
            staged_ownership.append(OwnershipRecord(
                ownership_id=ownership_id,
                owner_id=user_id,
                asset_id=line.asset_id,
                purchase_price=line.offer_price,
                purchase_date=date(2025, 3, 1),
                purchase_source=BUYING_DESK_SOURCE,
                ownership_status=OwnershipStatus.OWN,
                session_id=session_id,
                market_price_at_purchase=market,
                added_at=T0 + timedelta(seconds=self._ids),
            ))
            staged_purchases.append(PurchaseTransactionRecord(
                transaction_id=transaction_id,
                buyer_id=user_id,
                asset_id=line.asset_id,
                ownership_id=ownership_id,
                purchase_price=line.offer_price,
                payment_method=payment_method,
                purchased_at=T0,
                session_id=session_id,
                event_id=session.event_id or "event-desk",
                seller_name=counterparty_name,
                seller_contact_id=seller_contact_id,
                market_price_at_purchase=market,
                notes=line.notes or notes,
            ))
            processed.append({
                "asset_id": line.asset_id,
                "ownership_id": ownership_id,
                "transaction_id": transaction_id,
                "display": asset.display_title(),
                "purchase_price": str(line.offer_price),
                "market_value": str(market),
                "card_id": asset.card_id,
                "image_url": asset.image_url,
            })

        self.ownership.extend(staged_ownership)
        self.purchases.extend(staged_purchases)
        self.lines[session_id] = []
        self.sessions[session_id] = replace(session, status=SessionStatus.CLOSED)

        return AtomicCallResult(success=True, data={
            "success": True,
            "session_number": session.offer_number,
            "event_id": session.event_id or "event-desk",
            "total": str(total),
            "cart_lines_cleared": len(lines),
            "processed": processed,
        })

    def find_active_owned_record(self, user_id: str, asset_id: str) -> Optional[OwnershipRecord]:
        matches = [
            r for r in self.ownership
            if r.owner_id == user_id and r.asset_id == asset_id and r.is_owned_outright
        ]
        if not matches:
            return None
        return max(matches, key=lambda r: r.added_at)

    def undo_purchase_atomic(self, user_id: str, asset_id: str, ownership_id: str) -> AtomicCallResult:
        if self.fail_undo:
            return AtomicCallResult(success=False, error_code="RPC_ERROR", error_message="connection reset", rolled_back=True)

        record = next((r for r in self.ownership if r.ownership_id == ownership_id and r.owner_id == user_id), None)
        if record is None:
            return AtomicCallResult(
                success=False,
                data={"message": "PURCHASE_NOT_FOUND"},
                error_code="PURCHASE_NOT_FOUND",
                rolled_back=True,
            )

        linked = [
            p for p in self.purchases
            if p.buyer_id == user_id and p.asset_id == asset_id and p.ownership_id == ownership_id
        ]
        self.purchases = [p for p in self.purchases if p not in linked]
        self.ownership = [r for r in self.ownership if r.ownership_id != ownership_id]

        return AtomicCallResult(success=True, data={
            "success": True,
            "ownership_records_removed": 1,
            "transaction_records_removed": len(linked),
            "purchase_price": str(record.purchase_price),
        })


class FakeConsignmentStore:
    """In-memory consignments and consignment_assets rows."""

    def __init__(self) -> None:
        self.consignments: Dict[str, Consignment] = {}
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.failing_ids: set = set()
        self.bulk_writes: List[List[str]] = []

    def add_consignment(self, consignment_id: str = "cons-1", user_id: str = "user-1", **settings: Any) -> Consignment:
        consignment = Consignment(consignment_id=consignment_id, user_id=user_id, title="Test consignment", **settings)
        self.consignments[consignment_id] = consignment
        return consignment

    def add_row(self, row_id: str, consignment_id: str = "cons-1", global_asset_id: Optional[str] = None, status: str = "draft") -> None:
        self.rows[row_id] = {
            "consignment_id": consignment_id,
            "global_asset_id": global_asset_id or f"asset-{row_id}",
            "status": status,
            "asking_price": None,
            "reserve_price": None,
            "split_percentage": None,
            "listed_at": None,
        }

    def _row(self, consignment_id: str, row_id: str) -> Optional[Dict[str, Any]]:
        if row_id in self.failing_ids:
            raise RuntimeError("Failed to update consignment asset: connection reset")
        row = self.rows.get(row_id)
        if row is None or row["consignment_id"] != consignment_id:
            return None
        return row

    def get_consignment_for_user(self, consignment_id: str, user_id: str) -> Optional[Consignment]:
        consignment = self.consignments.get(consignment_id)
        if consignment is None or consignment.user_id != user_id:
            return None
        return consignment

    def update_consignment_asset(self, consignment_id: str, row_id: str, payload: Dict[str, Any]) -> bool:
        row = self._row(consignment_id, row_id)
        if row is None:
            return False
        row.update(payload)
        return True

    def delete_consignment_asset(self, consignment_id: str, row_id: str) -> bool:
        if self._row(consignment_id, row_id) is None:
            return False
        del self.rows[row_id]
        return True

    def list_consignment_assets(self, consignment_id: str, row_ids) -> Dict[str, ConsignmentAssetRecord]:
        return {
            row_id: ConsignmentAssetRecord(
                consignment_asset_id=row_id,
                consignment_id=consignment_id,
                asset_id=row["global_asset_id"],
                status=row["status"],
            )
            for row_id, row in self.rows.items()
            if row_id in row_ids and row["consignment_id"] == consignment_id
        }

    def update_consignment_assets(self, consignment_id: str, row_ids, payload: Dict[str, Any]) -> List[str]:
        self.bulk_writes.append(list(row_ids))
        if self.failing_ids & set(row_ids):
            raise RuntimeError("Failed to update consignment assets: connection reset")
        updated = []
        for row_id in row_ids:
            row = self.rows.get(row_id)
            if row is not None and row["consignment_id"] == consignment_id:
                row.update(payload)
                updated.append(row_id)
        return updated

    def insert_consignment_asset(self, consignment_id, global_asset_id, asking_price, reserve_price, split_percentage):
        row_id = f"row-{len(self.rows) + 1}"
        self.add_row(row_id, consignment_id, global_asset_id)
        self.rows[row_id].update({
            "asking_price": asking_price,
            "reserve_price": reserve_price,
            "split_percentage": split_percentage,
        })
        return ConsignmentAssetRecord(
            consignment_asset_id=row_id,
            consignment_id=consignment_id,
            asset_id=global_asset_id,
            status="draft",
            asking_price=asking_price,
            reserve_price=reserve_price,
            split_percentage=split_percentage,
        )


@pytest.fixture
def queue() -> RecordingQueue:
    return RecordingQueue()


@pytest.fixture
def desk(monkeypatch) -> FakeDesk:
    """FakeDesk wired into the checkout, undo and cart services."""

    import services.cart_service as cart_service
    import services.checkout_service as checkout_service
    import services.undo_service as undo_service

    fake = FakeDesk()

    for name in (
        "get_session_for_user",
        "list_cart_lines",
        "get_seller_contact",
        "finalize_session_atomic",
        "lookup_market_values",
    ):
        monkeypatch.setattr(checkout_service, name, getattr(fake, name))

    for name in ("find_active_owned_record", "undo_purchase_atomic", "get_canonical_asset"):
        monkeypatch.setattr(undo_service, name, getattr(fake, name))

    for name in (
        "get_session_for_user",
        "list_cart_lines",
        "insert_cart_line_atomic",
        "delete_cart_line",
        "update_cart_line_profit",
        "list_cart_lines_missing_profit",
        "get_canonical_asset",
        "lookup_market_value",
    ):
        monkeypatch.setattr(cart_service, name, getattr(fake, name))

    return fake


@pytest.fixture
def consignment_store(monkeypatch) -> FakeConsignmentStore:
    """FakeConsignmentStore wired into the bulk and pricing services."""

    import services.bulk_asset_service as bulk_asset_service
    import services.pricing_service as pricing_service

    fake = FakeConsignmentStore()

    for name in ("get_consignment_for_user", "update_consignment_asset", "delete_consignment_asset"):
        monkeypatch.setattr(bulk_asset_service, name, getattr(fake, name))

    for name in (
        "get_consignment_for_user",
        "list_consignment_assets",
        "update_consignment_assets",
        "insert_consignment_asset",
    ):
        monkeypatch.setattr(pricing_service, name, getattr(fake, name))

    return fake
