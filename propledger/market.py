"""
market.py - Market Simulator

Applies a uniform percentage move to every catalog valuation and marks every
portfolio to the new valuations. The sweep is O(properties + users x holdings),
which is fine at demo scale.

Also generates the short performance series shown next to a portfolio's
headline value.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np

from .core import (
    Portfolio, Property,
    HUNDRED, ONE,
    InvalidAmount, to_decimal,
)
from .portfolio import recalculate_totals, revalue_holding


def apply_market_delta(properties: Iterable[Property], delta_pct) -> Tuple[Property, ...]:
    """
    Scale every property's current_value_mmk by (1 + delta_pct / 100).

    Raises:
        InvalidAmount: delta_pct <= -100, which would zero or negate valuations
    """
    delta = to_decimal(delta_pct)
    if delta <= -HUNDRED:
        raise InvalidAmount(f"Market delta must be greater than -100%, got {delta}%")
    factor = ONE + delta / HUNDRED
    return tuple(replace(p, current_value_mmk=p.current_value_mmk * factor) for p in properties)


def revalue_portfolio(portfolio: Portfolio, properties_by_id: Mapping[str, Property]) -> Portfolio:
    """
    Mark every holding to its property's valuation and re-derive totals.

    Holdings whose property is no longer in the catalog keep their last value.
    """
    holdings = tuple(
        revalue_holding(h, properties_by_id[h.property_id]) if h.property_id in properties_by_id else h
        for h in portfolio.holdings
    )
    return recalculate_totals(replace(portfolio, holdings=holdings))


def simulate_market(
    properties: Iterable[Property],
    portfolios: Mapping[str, Portfolio],
    delta_pct,
) -> Tuple[Tuple[Property, ...], Dict[str, Portfolio]]:
    """
    Full market tick: revalue the catalog, then every portfolio.

    Returns:
        (new_properties, new_portfolios) - inputs are left untouched
    """
    new_properties = apply_market_delta(properties, delta_pct)
    by_id = {p.id: p for p in new_properties}
    new_portfolios = {
        user_id: revalue_portfolio(portfolio, by_id)
        for user_id, portfolio in portfolios.items()
    }
    return new_properties, new_portfolios


def performance_series(
    current_value,
    previous_value,
    days: int = 7,
    noise: float = 0.01,
    seed: Optional[int] = None,
) -> List[float]:
    """
    Daily value path from previous_value towards current_value.

    The drift is spread linearly over `days` points (oldest first, last point
    at the full change) and each point carries uniform noise of +/- `noise`
    relative to previous_value. With noise=0 the last point equals
    current_value.

    Args:
        current_value: Value today
        previous_value: Value at the start of the window (cost basis)
        days: Number of points
        noise: Half-width of the relative noise band
        seed: Seed for a reproducible path

    Returns:
        List of `days` floats. A non-positive previous_value yields a flat
        path at current_value.
    """
    if days < 1:
        raise ValueError(f"days must be at least 1, got {days}")
    current = float(to_decimal(current_value))
    previous = float(to_decimal(previous_value))
    if previous <= 0:
        return [current] * days

    change_pct = (current - previous) / previous * 100.0
    if days == 1:
        drift = np.array([change_pct])
    else:
        drift = np.linspace(0.0, change_pct, days)
    rng = np.random.default_rng(seed)
    jitter = rng.uniform(-noise, noise, size=days) if noise > 0 else np.zeros(days)
    values = previous * (1.0 + drift / 100.0 + jitter)
    return values.tolist()

