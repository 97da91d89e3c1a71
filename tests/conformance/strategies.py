"""
Shared hypothesis strategies and a trade-sequence driver.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Tuple

from hypothesis import strategies as st

from propledger import (
    LedgerError, Portfolio, Property,
    compute_buy, compute_sell, find_holding, revalue_portfolio, simulate_market,
)
from tests.builders import FIXED_NOW, make_portfolio, make_property


PROPERTIES = (
    make_property("prop-a", value="1000000000", share_price="1000"),
    make_property("prop-b", value="850000000", share_price="850"),
    make_property("prop-c", value="3100000000", share_price="3100"),
)


def money(min_value="0.01", max_value="50000000"):
    return st.decimals(
        min_value=Decimal(min_value),
        max_value=Decimal(max_value),
        places=2,
        allow_nan=False,
        allow_infinity=False,
    )


buy_op = st.tuples(st.just("buy"), st.integers(0, len(PROPERTIES) - 1), money())
sell_op = st.tuples(
    st.just("sell"),
    st.integers(0, len(PROPERTIES) - 1),
    st.decimals(min_value=Decimal("0.01"), max_value=Decimal("1"), places=2),
)
market_op = st.tuples(
    st.just("market"),
    st.just(0),
    st.decimals(min_value=Decimal("-50"), max_value=Decimal("100"), places=1),
)

trade_ops = st.lists(st.one_of(buy_op, sell_op), min_size=1, max_size=25)
mixed_ops = st.lists(st.one_of(buy_op, buy_op, sell_op, market_op), min_size=1, max_size=25)


@dataclass
class Step:
    kind: str
    applied: bool
    portfolio: Portfolio
    properties: Tuple[Property, ...]


def run(ops, portfolio: Portfolio = None) -> List[Step]:
    """
    Apply a sequence of ("buy"|"sell"|"market", index, x) operations.

    For sells, x is the fraction of the holding's current value to sell.
    Rejected operations leave the state unchanged and are recorded with
    applied=False.
    """
    portfolio = portfolio or make_portfolio()
    properties = PROPERTIES
    steps = []
    for kind, index, x in ops:
        applied = True
        try:
            if kind == "buy":
                portfolio = compute_buy(portfolio, properties[index], x, FIXED_NOW)
            elif kind == "sell":
                prop = properties[index]
                holding = find_holding(portfolio, prop.id)
                if holding is None:
                    raise LedgerError("nothing to sell")
                amount = holding.user_value_mmk if x == 1 else holding.user_value_mmk * x
                portfolio = compute_sell(portfolio, prop, amount, FIXED_NOW)
            else:
                properties, moved = simulate_market(properties, {"p": portfolio}, x)
                portfolio = moved["p"]
        except LedgerError:
            applied = False
        steps.append(Step(kind, applied, portfolio, properties))
    return steps


def revalued(portfolio: Portfolio, properties) -> Portfolio:
    return revalue_portfolio(portfolio, {p.id: p for p in properties})
