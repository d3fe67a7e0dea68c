"""
Tests for `services/bulk_asset_service.py`.

Covers:
- Validation rejects the whole call before any row is touched.
- Per-item isolation: missing or failing items are reported, siblings succeed,
  and succeeded + len(errors) == total.
- Moving to active stamps listed_at; status is normalized.
- A storage fault before the first item becomes TransactionFailureError with
  the call's correlation id.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

import services.bulk_asset_service as bulk_asset_service
from domain.consignment import AssetFieldChanges
from domain.errors import BulkValidationError, ConsignmentNotFoundError, TransactionFailureError
from services.bulk_asset_service import bulk_delete_assets, bulk_update_assets

NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(consignment_store):
    consignment_store.add_consignment()
    for row_id in ("A", "C"):
        consignment_store.add_row(row_id)
    return consignment_store


def test_activate_with_one_missing_asset(store) -> None:
    result = bulk_update_assets("user-1", "cons-1", ["A", "B", "C"], AssetFieldChanges(status="active"), now=NOW)

    assert result.succeeded == 2
    assert result.total == 3
    assert result.errors == ["Asset B not found"]
    for row_id in ("A", "C"):
        assert store.rows[row_id]["status"] == "active"
        assert store.rows[row_id]["listed_at"] == "2025-03-01T12:00:00+00:00"


def test_storage_fault_on_one_item_does_not_block_siblings(store) -> None:
    store.add_row("D")
    store.failing_ids.add("C")

    result = bulk_update_assets("user-1", "cons-1", ["A", "C", "D"], AssetFieldChanges(price=Decimal("25")), now=NOW)

    assert result.succeeded == 2
    assert result.succeeded + len(result.errors) == result.total
    assert result.errors[0].startswith("Failed to update asset C:")
    assert store.rows["A"]["asking_price"] == "25.00"
    assert store.rows["D"]["asking_price"] == "25.00"


def test_status_is_normalized(store) -> None:
    bulk_update_assets("user-1", "cons-1", ["A"], AssetFieldChanges(status=" On-Hold "), now=NOW)

    assert store.rows["A"]["status"] == "on_hold"
    assert store.rows["A"]["listed_at"] is None


@pytest.mark.parametrize(
    "asset_ids, changes",
    [
        ([], AssetFieldChanges(status="active")),
        (["A"], AssetFieldChanges()),
        (["A"], AssetFieldChanges(price=Decimal("-1"))),
        (["A"], AssetFieldChanges(reserve=Decimal("-0.01"))),
        (["A"], AssetFieldChanges(split_percent=Decimal("100.5"))),
        (["A"], AssetFieldChanges(status="   ")),
    ],
)
def test_invalid_request_touches_nothing(store, asset_ids, changes) -> None:
    with pytest.raises(BulkValidationError) as exc_info:
        bulk_update_assets("user-1", "cons-1", asset_ids, changes, now=NOW)

    assert exc_info.value.correlation_id

    assert store.rows["A"]["status"] == "draft"
    assert store.rows["A"]["asking_price"] is None


def test_consignment_of_another_user_is_not_found(store) -> None:
    with pytest.raises(ConsignmentNotFoundError) as exc_info:
        bulk_update_assets("user-2", "cons-1", ["A"], AssetFieldChanges(status="active"), now=NOW)

    assert exc_info.value.correlation_id
    assert store.rows["A"]["status"] == "draft"


def test_bulk_delete_reports_missing_items(store) -> None:
    result = bulk_delete_assets("user-1", "cons-1", ["A", "B"])

    assert result.succeeded == 1
    assert result.total == 2
    assert result.errors == ["Asset B not found"]
    assert "A" not in store.rows
    assert "C" in store.rows


def test_bulk_delete_ignores_assets_of_other_consignments(store) -> None:
    store.add_consignment("cons-2")
    store.add_row("X", consignment_id="cons-2")

    result = bulk_delete_assets("user-1", "cons-1", ["X"])

    assert result.succeeded == 0
    assert "X" in store.rows


@pytest.mark.parametrize("operation", ["update", "delete"])
def test_storage_fault_before_any_item_is_transaction_failure(store, monkeypatch, operation) -> None:
    def unreachable(consignment_id, user_id):
        raise RuntimeError("Failed to fetch consignment: connection reset")

    monkeypatch.setattr(bulk_asset_service, "get_consignment_for_user", unreachable)

    with pytest.raises(TransactionFailureError) as exc_info:
        if operation == "update":
            bulk_update_assets("user-1", "cons-1", ["A"], AssetFieldChanges(status="active"), now=NOW)
        else:
            bulk_delete_assets("user-1", "cons-1", ["A"])

    error = exc_info.value
    assert error.status_code == 500
    assert error.correlation_id
    assert "connection reset" in error.details["reason"]
    assert store.rows["A"]["status"] == "draft"
