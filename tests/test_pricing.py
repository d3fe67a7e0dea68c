"""
Tests for `domain/money.py` and `domain/pricing.py`.

Covers contract rules:
- Rounding goes to the nearest multiple of the step and is idempotent.
- List/reserve derivation follows the consignment's strategy.
- Batch grouping collects assets with identical derived pricing.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from domain.consignment import Consignment
from domain.money import round_to_step, sum_money, to_money
from domain.pricing import (
    DerivedPricing,
    derive_asset_pricing,
    derive_list_price,
    derive_reserve_price,
    group_by_pricing,
)


def test_list_price_rounds_to_nearest_multiple_not_truncation() -> None:
    # 47.23 * 1.2 = 56.676 -> nearest multiple of 5 is 55
    assert derive_list_price(Decimal("47.23"), 20, 5) == Decimal("55.00")
    # 49.00 * 1.2 = 58.80 -> 60, truncation would give 55
    assert derive_list_price(Decimal("49.00"), 20, 5) == Decimal("60.00")


@pytest.mark.parametrize(
    "value, step, expected",
    [
        ("56.676", 5, "55.00"),
        ("57.50", 5, "60.00"),
        ("12.49", 1, "12.00"),
        ("12.50", 1, "13.00"),
        ("104.99", 10, "100.00"),
        ("0.00", 5, "0.00"),
    ],
)
def test_round_to_step(value, step, expected) -> None:
    assert round_to_step(Decimal(value), step) == Decimal(expected)


@pytest.mark.parametrize("value", ["0.01", "2.5", "47.23", "56.676", "999.99", "1234.5"])
@pytest.mark.parametrize("step", [1, 5, 10])
def test_rounding_is_idempotent(value, step) -> None:
    once = round_to_step(Decimal(value), step)
    assert round_to_step(once, step) == once


def test_round_to_step_rejects_non_positive_step() -> None:
    with pytest.raises(ValueError):
        round_to_step(Decimal("10"), 0)


def test_reserve_strategies() -> None:
    assert derive_reserve_price(Decimal("47.23"), "match", 1) == Decimal("47.00")
    assert derive_reserve_price(Decimal("47.23"), "percentage", 5, 80) == Decimal("40.00")

    with pytest.raises(ValueError):
        derive_reserve_price(Decimal("47.23"), "auction", 1)


def test_derive_asset_pricing_respects_reserve_toggle() -> None:
    consignment = Consignment(consignment_id="c", user_id="u", title="t")
    assert derive_asset_pricing(consignment, Decimal("47.23")) == DerivedPricing(Decimal("55.00"), Decimal("47.00"))

    no_reserve = Consignment(consignment_id="c", user_id="u", title="t", enable_reserve_strategy=False)
    assert derive_asset_pricing(no_reserve, Decimal("47.23")).reserve_price is None


def test_group_by_pricing_preserves_first_seen_order() -> None:
    p55 = DerivedPricing(Decimal("55.00"), Decimal("47.00"))
    p60 = DerivedPricing(Decimal("60.00"), Decimal("50.00"))

    groups = group_by_pricing({"a": p55, "b": p60, "c": DerivedPricing(Decimal("55.00"), Decimal("47.00"))})

    assert list(groups.items()) == [(p55, ["a", "c"]), (p60, ["b"])]


def test_to_money_and_sum_money() -> None:
    assert to_money(None) == Decimal("0.00")
    assert to_money(19.999) == Decimal("20.00")
    assert to_money("40") == Decimal("40.00")
    assert sum_money(["40.00", None, 60]) == Decimal("100.00")

    with pytest.raises(ValueError):
        to_money("forty")
