"""
Tests for `services/post_commit.py` and `services/sales_history_writer.py`.

Covers:
- Queued tasks never raise into the caller.
- The refresh scheduler enqueues a delayed refresh request per asset.
- Sales-history appends: verification from payment method, deduplication,
  and errors reported instead of raised.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import services.post_commit as post_commit
import services.sales_history_writer as writer
from services.post_commit import RefreshScheduler, ThreadPoolTaskQueue, run_safely
from services.sales_history_writer import AppendStatus, SaleFacts, append_sale

SOLD_AT = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _facts(payment_method: str = "cash") -> SaleFacts:
    return SaleFacts(
        asset_id="asset-a",
        title="2018 Prizm Luka Doncic PSA 10",
        final_price=Decimal("40.00"),
        sold_at=SOLD_AT,
        payment_method=payment_method,
        user_id="user-1",
    )


def test_run_safely_swallows_exceptions() -> None:
    calls = []

    def boom(value):
        calls.append(value)
        raise RuntimeError("ledger unavailable")

    run_safely(boom, 1)

    assert calls == [1]


def test_thread_pool_queue_runs_tasks_and_survives_failures() -> None:
    results = []
    queue = ThreadPoolTaskQueue(max_workers=2)

    queue.enqueue(lambda: 1 / 0)
    queue.enqueue(results.append, "done")
    queue.shutdown(wait=True)

    assert results == ["done"]


def test_refresh_scheduler_enqueues_delayed_request(queue) -> None:
    scheduler = RefreshScheduler(queue, delay_seconds=1.5)

    scheduler.schedule("asset-a")
    scheduler.schedule("asset-b", delay_seconds=0)

    assert queue.tasks == [
        (post_commit.request_market_refresh, ("asset-a", 1.5, "purchase"), {}),
        (post_commit.request_market_refresh, ("asset-b", 0, "purchase"), {}),
    ]


def test_request_market_refresh_upserts(monkeypatch) -> None:
    upserts = []
    monkeypatch.setattr(post_commit, "upsert_refresh_request", lambda asset_id, at, reason: upserts.append((asset_id, reason)))

    post_commit.request_market_refresh("asset-a", 0.0)

    assert upserts == [("asset-a", "purchase")]


def test_append_sale_marks_card_payments_verified(monkeypatch) -> None:
    rows = []
    monkeypatch.setattr(writer, "find_duplicate_sale", lambda *args, **kwargs: None)
    monkeypatch.setattr(writer, "insert_sale", lambda row: rows.append(row) or row["id"])

    assert append_sale(_facts("credit_card")).status is AppendStatus.ACCEPTED
    assert append_sale(_facts("cash")).status is AppendStatus.ACCEPTED

    verified, unverified = rows
    assert (verified["source"], verified["verified"], verified["quality_score"]) == ("internal_verified", True, 100)
    assert (unverified["source"], unverified["verified"], unverified["quality_score"]) == ("internal_unverified", False, 50)
    assert verified["seller_name"] == "Platform Dealer"
    assert verified["final_price"] == "40.00"


def test_append_sale_skips_duplicates(monkeypatch) -> None:
    monkeypatch.setattr(writer, "find_duplicate_sale", lambda *args, **kwargs: "sale-existing")
    monkeypatch.setattr(writer, "insert_sale", lambda row: (_ for _ in ()).throw(AssertionError("must not insert")))

    result = append_sale(_facts())

    assert result.status is AppendStatus.DUPLICATE
    assert result.sale_id == "sale-existing"


def test_append_sale_reports_errors_instead_of_raising(monkeypatch) -> None:
    def broken(*args, **kwargs):
        raise RuntimeError("Failed to check sales history: timeout")

    monkeypatch.setattr(writer, "find_duplicate_sale", broken)

    result = append_sale(_facts())

    assert result.status is AppendStatus.ERROR
    assert "timeout" in result.error
