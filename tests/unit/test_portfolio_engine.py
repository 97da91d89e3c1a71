"""
test_portfolio_engine.py - Unit tests for the pure portfolio engine

Tests:
- open_portfolio defaults
- compute_buy: first buy, accumulation, cash checks, activity entry
- compute_sell: partial, full removal, remainder of 1, rejections
- recalculate_totals: derivation and idempotence
- revalue_holding, append_activity cap, top_holdings, guest_portfolio
"""

import pytest
from dataclasses import replace
from decimal import Decimal

from propledger import (
    ActivityType, Holding,
    HoldingNotFound, InsufficientCash, InsufficientHolding, InvalidAmount,
    append_activity, compute_buy, compute_sell, find_holding, guest_portfolio,
    open_portfolio, recalculate_totals, revalue_holding, top_holdings,
    GUEST_USER_ID,
)
from propledger.portfolio import injection_activity
from tests.builders import FIXED_NOW, make_portfolio, make_property


# ============================================================================
# OPEN PORTFOLIO
# ============================================================================

class TestOpenPortfolio:

    def test_starting_cash_and_snapshot(self):
        p = open_portfolio("user-x", FIXED_NOW, properties_count=5)
        assert p.cash_mmk == Decimal("100000000")
        assert p.holdings == ()
        assert p.activities == ()
        assert p.total_value_mmk == 0
        assert p.snapshot.properties_count == 5
        assert p.snapshot.company_value_mmk == Decimal("9000000000")
        assert p.last_updated == FIXED_NOW

    def test_injection_activity(self):
        a = injection_activity(Decimal("100"), FIXED_NOW, "Initial cash")
        assert a.type is ActivityType.INJECTION
        assert a.property_id == ""
        assert a.id.startswith("act-")


# ============================================================================
# BUY
# ============================================================================

class TestComputeBuy:

    def test_first_buy(self, empty_portfolio, billion_property):
        p = compute_buy(empty_portfolio, billion_property, Decimal("10000000"), FIXED_NOW)

        assert p.cash_mmk == Decimal("90000000")
        h = find_holding(p, billion_property.id)
        assert h.user_share_pct == Decimal("1")
        assert h.user_value_mmk == Decimal("10000000")
        assert h.purchase_value_mmk == Decimal("10000000")
        assert h.pnl_abs == 0
        assert h.shares_owned == Decimal("10000")
        assert h.average_purchase_price_mmk == Decimal("1000")
        assert h.purchase_date == FIXED_NOW
        assert p.total_value_mmk == Decimal("10000000")

    def test_buy_records_activity(self, empty_portfolio, billion_property):
        p = compute_buy(empty_portfolio, billion_property, 10_000_000, FIXED_NOW)
        activity = p.activities[0]
        assert activity.type is ActivityType.BUY
        assert activity.property_id == billion_property.id
        assert activity.amount_mmk == Decimal("10000000")
        assert activity.description == "Bought 1.00% of Billion Tower"

    def test_second_buy_accumulates(self, empty_portfolio, billion_property):
        p = compute_buy(empty_portfolio, billion_property, 10_000_000, FIXED_NOW)
        p = compute_buy(p, billion_property, 5_000_000, FIXED_NOW)

        assert len(p.holdings) == 1
        h = p.holdings[0]
        assert h.user_value_mmk == Decimal("15000000")
        assert h.purchase_value_mmk == Decimal("15000000")
        assert h.user_share_pct == Decimal("1.5")
        assert h.shares_owned == Decimal("15000")
        assert h.average_purchase_price_mmk == Decimal("1000")
        assert p.cash_mmk == Decimal("85000000")

    def test_buy_after_gain_keeps_pnl(self, empty_portfolio, billion_property):
        p = compute_buy(empty_portfolio, billion_property, 10_000_000, FIXED_NOW)
        risen = replace(billion_property, current_value_mmk=Decimal("1500000000"))
        p = replace(p, holdings=(revalue_holding(p.holdings[0], risen),))
        p = compute_buy(p, risen, 3_000_000, FIXED_NOW)

        h = p.holdings[0]
        assert h.user_value_mmk == Decimal("18000000")
        assert h.purchase_value_mmk == Decimal("13000000")
        assert h.pnl_abs == Decimal("5000000")

    def test_cash_debited_by_exact_amount(self, empty_portfolio):
        odd = make_property("prop-odd", value="777777777", share_price="333")
        p = compute_buy(empty_portfolio, odd, Decimal("1234567.89"), FIXED_NOW)
        assert p.cash_mmk == Decimal("100000000") - Decimal("1234567.89")
        assert p.holdings[0].shares_owned == Decimal("3707.411081")

    def test_buy_entire_cash(self, empty_portfolio, billion_property):
        p = compute_buy(empty_portfolio, billion_property, 100_000_000, FIXED_NOW)
        assert p.cash_mmk == 0

    def test_insufficient_cash(self, empty_portfolio, billion_property):
        with pytest.raises(InsufficientCash):
            compute_buy(empty_portfolio, billion_property, 100_000_001, FIXED_NOW)

    @pytest.mark.parametrize("amount", [0, -5, "0"])
    def test_non_positive_amount(self, empty_portfolio, billion_property, amount):
        with pytest.raises(InvalidAmount):
            compute_buy(empty_portfolio, billion_property, amount, FIXED_NOW)

    def test_input_unchanged(self, empty_portfolio, billion_property):
        compute_buy(empty_portfolio, billion_property, 10_000_000, FIXED_NOW)
        assert empty_portfolio.cash_mmk == Decimal("100000000")
        assert empty_portfolio.holdings == ()


# ============================================================================
# SELL
# ============================================================================

@pytest.fixture
def holding_10m(empty_portfolio, billion_property):
    """Portfolio holding 10,000,000 MMK (1%) of billion_property."""
    return compute_buy(empty_portfolio, billion_property, 10_000_000, FIXED_NOW)


class TestComputeSell:

    def test_partial_sell_scales_holding(self, holding_10m, billion_property):
        p = compute_sell(holding_10m, billion_property, 4_000_000, FIXED_NOW)

        h = p.holdings[0]
        assert h.user_value_mmk == Decimal("6000000")
        assert h.purchase_value_mmk == Decimal("6000000")
        assert h.user_share_pct == Decimal("0.6")
        assert h.shares_owned == Decimal("6000")
        assert p.cash_mmk == Decimal("94000000")
        assert p.activities[0].type is ActivityType.SELL
        assert p.activities[0].description == "Sold 0.40% of Billion Tower"

    def test_partial_sell_after_gain_keeps_pnl_pct(self, holding_10m, billion_property):
        risen = replace(billion_property, current_value_mmk=Decimal("1500000000"))
        p = replace(holding_10m, holdings=(revalue_holding(holding_10m.holdings[0], risen),))
        p = compute_sell(p, risen, 5_000_000, FIXED_NOW)

        h = p.holdings[0]
        assert h.user_value_mmk == Decimal("10000000")
        assert round(h.pnl_pct, 6) == Decimal("50")

    def test_sell_all_but_one(self, holding_10m, billion_property):
        p = compute_sell(holding_10m, billion_property, 9_999_999, FIXED_NOW)
        assert len(p.holdings) == 1
        assert p.holdings[0].user_value_mmk == Decimal("1")
        assert p.total_value_mmk == Decimal("1")

    def test_full_sell_removes_holding(self, holding_10m, billion_property):
        p = compute_sell(holding_10m, billion_property, 10_000_000, FIXED_NOW)
        assert p.holdings == ()
        assert p.cash_mmk == Decimal("100000000")
        assert p.total_value_mmk == 0
        assert p.net_pnl_pct == 0

    def test_sell_more_than_held(self, holding_10m, billion_property):
        with pytest.raises(InsufficientHolding):
            compute_sell(holding_10m, billion_property, 10_000_001, FIXED_NOW)

    def test_sell_unheld_property(self, holding_10m):
        with pytest.raises(HoldingNotFound):
            compute_sell(holding_10m, make_property("prop-other"), 1, FIXED_NOW)

    @pytest.mark.parametrize("amount", [0, -1])
    def test_non_positive_amount(self, holding_10m, billion_property, amount):
        with pytest.raises(InvalidAmount):
            compute_sell(holding_10m, billion_property, amount, FIXED_NOW)


# ============================================================================
# TOTALS AND DERIVATIONS
# ============================================================================

def _holding(property_id, value, basis):
    value, basis = Decimal(value), Decimal(basis)
    return Holding(
        property_id=property_id,
        user_share_pct=Decimal("1"),
        user_value_mmk=value,
        purchase_value_mmk=basis,
        pnl_abs=value - basis,
        pnl_pct=Decimal("0"),
        purchase_date=FIXED_NOW,
        shares_owned=Decimal("1"),
        current_share_price_mmk=Decimal("1"),
        average_purchase_price_mmk=Decimal("1"),
    )


class TestRecalculateTotals:

    def test_sums_holdings(self):
        p = replace(make_portfolio(), holdings=(
            _holding("a", "15000000", "10000000"),
            _holding("b", "4500000", "5000000"),
        ))
        p = recalculate_totals(p)
        assert p.total_value_mmk == Decimal("19500000")
        assert p.net_pnl_abs == Decimal("4500000")
        assert p.net_pnl_pct == Decimal("30")
        assert p.snapshot.weighted_share_pct == Decimal("19500000") / Decimal("9000000000") * 100

    def test_idempotent(self):
        p = replace(make_portfolio(), holdings=(_holding("a", "123.45", "100"),))
        once = recalculate_totals(p)
        assert recalculate_totals(once) == once

    def test_empty_portfolio(self):
        p = recalculate_totals(make_portfolio())
        assert p.total_value_mmk == 0
        assert p.net_pnl_pct == 0
        assert p.snapshot.weighted_share_pct == 0

    def test_zero_company_value(self):
        p = make_portfolio()
        p = replace(p, holdings=(_holding("a", "10", "10"),),
                    snapshot=replace(p.snapshot, company_value_mmk=Decimal("0")))
        assert recalculate_totals(p).snapshot.weighted_share_pct == 0


def test_revalue_holding(billion_property, holding_10m):
    doubled = replace(billion_property, current_value_mmk=Decimal("2000000000"),
                      share_price_mmk=Decimal("2000"))
    h = revalue_holding(holding_10m.holdings[0], doubled)
    assert h.user_value_mmk == Decimal("20000000")
    assert h.pnl_abs == Decimal("10000000")
    assert h.pnl_pct == Decimal("100")
    assert h.current_share_price_mmk == Decimal("2000")


def test_activity_log_capped_newest_first(billion_property):
    p = make_portfolio()
    for i in range(1, 13):
        p = compute_buy(p, billion_property, i * 1000, FIXED_NOW)
    assert len(p.activities) == 10
    assert [a.amount_mmk for a in p.activities] == [Decimal(i * 1000) for i in range(12, 2, -1)]


def test_append_activity_custom_limit():
    p = make_portfolio()
    for _ in range(3):
        p = append_activity(p, injection_activity(Decimal("1"), FIXED_NOW, "x"), limit=2)
    assert len(p.activities) == 2


def test_top_holdings_by_value():
    p = replace(make_portfolio(), holdings=(
        _holding("small", "10", "10"),
        _holding("big", "1000", "10"),
        _holding("mid", "100", "10"),
    ))
    assert [h.property_id for h in top_holdings(p, limit=2)] == ["big", "mid"]


def test_guest_portfolio(seed):
    g = guest_portfolio(seed.properties, FIXED_NOW)
    assert g.user_id == GUEST_USER_ID
    assert g.cash_mmk == 0
    assert g.holdings == ()
    assert g.total_value_mmk == Decimal("9000000000")
    assert g.snapshot.company_value_mmk == Decimal("9000000000")
    assert g.snapshot.properties_count == 5
