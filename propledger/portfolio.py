"""
portfolio.py - Portfolio Engine (buy, sell, totals)

Pure functions over frozen Portfolio records. Every function takes its inputs
explicitly and returns a NEW Portfolio; nothing here touches storage.

ARCHITECTURE:
=============

1. CALCULATION FUNCTIONS (compute_*):
   - Validate preconditions and raise a LedgerError subclass on violation
   - Return the next Portfolio value, with totals re-derived

2. DERIVATION FUNCTIONS (recalculate_totals, revalue_holding):
   - Idempotent: applying them twice equals applying them once
   - Totals are ALWAYS re-derived from the holdings, never patched

Buy sizing policy:
    Both the first buy and subsequent buys of a property accumulate the
    requested amount directly:

        value    += amount
        basis    += amount
        share %  += amount / property.current_value * 100
        shares   += floor6(amount / property.share_price)
        cash     -= amount

    Share counts are bookkeeping only; they never drive value or cash, so
    the debited cash always equals the value added to the holding.

Key Formulas:
    pnl_abs     = user_value - purchase_value
    pnl_pct     = pnl_abs / purchase_value * 100       (0 if basis is 0)
    net_pnl_pct = sum(pnl_abs) / sum(purchase) * 100   (0 if basis is 0)
    weighted %  = total_value / company_value * 100    (0 if either is 0)
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple
import uuid

from .core import (
    Activity, ActivityType, Holding, Portfolio, Property, Snapshot,
    ACTIVITY_LOG_LIMIT, DEFAULT_COMPANY_SHARES, GUEST_USER_ID,
    STARTING_CASH_MMK, DEFAULT_COMPANY_VALUE_MMK, ZERO,
    HoldingNotFound, InsufficientCash, InsufficientHolding, InvalidAmount,
    percent_of, quantize_shares, to_decimal,
)


def new_activity_id() -> str:
    """Opaque unique id for an activity record."""
    return f"act-{uuid.uuid4().hex[:12]}"


def open_portfolio(
    user_id: str,
    now: datetime,
    properties_count: int = 0,
    starting_cash_mmk: Decimal = STARTING_CASH_MMK,
    company_value_mmk: Decimal = DEFAULT_COMPANY_VALUE_MMK,
    company_shares: int = DEFAULT_COMPANY_SHARES,
) -> Portfolio:
    """Create an empty portfolio funded with the starting cash balance."""
    return Portfolio(
        user_id=user_id,
        cash_mmk=starting_cash_mmk,
        last_updated=now,
        snapshot=Snapshot(
            company_value_mmk=company_value_mmk,
            company_shares=company_shares,
            weighted_share_pct=ZERO,
            properties_count=properties_count,
        ),
    )


def injection_activity(amount_mmk: Decimal, now: datetime, description: str) -> Activity:
    """Activity recording cash credited from outside the ledger."""
    return Activity(
        id=new_activity_id(),
        type=ActivityType.INJECTION,
        property_id="",
        amount_mmk=amount_mmk,
        ts=now,
        description=description,
    )


def find_holding(portfolio: Portfolio, property_id: str) -> Optional[Holding]:
    """Return the holding for property_id, or None."""
    for holding in portfolio.holdings:
        if holding.property_id == property_id:
            return holding
    return None


def append_activity(
    portfolio: Portfolio,
    activity: Activity,
    limit: int = ACTIVITY_LOG_LIMIT,
) -> Portfolio:
    """Prepend an activity and drop everything past the newest `limit`."""
    return replace(portfolio, activities=((activity,) + portfolio.activities)[:limit])


def recalculate_totals(portfolio: Portfolio) -> Portfolio:
    """
    Re-derive total value, net P&L and the weighted share percentage.

    Pure and idempotent. The sums run over the holdings in stored order so
    repeated calls accumulate identically.
    """
    total_value = sum((h.user_value_mmk for h in portfolio.holdings), ZERO)
    total_pnl = sum((h.pnl_abs for h in portfolio.holdings), ZERO)
    total_basis = sum((h.purchase_value_mmk for h in portfolio.holdings), ZERO)

    weighted = ZERO
    if total_value > 0:
        weighted = percent_of(total_value, portfolio.snapshot.company_value_mmk)

    return replace(
        portfolio,
        total_value_mmk=total_value,
        net_pnl_abs=total_pnl,
        net_pnl_pct=percent_of(total_pnl, total_basis),
        snapshot=replace(portfolio.snapshot, weighted_share_pct=weighted),
    )


def revalue_holding(holding: Holding, prop: Property) -> Holding:
    """Mark a holding to the property's current valuation."""
    value = holding.user_share_pct / 100 * prop.current_value_mmk
    pnl = value - holding.purchase_value_mmk
    return replace(
        holding,
        user_value_mmk=value,
        pnl_abs=pnl,
        pnl_pct=percent_of(pnl, holding.purchase_value_mmk),
        current_share_price_mmk=prop.share_price_mmk,
    )


def _replace_holding(holdings: Tuple[Holding, ...], updated: Holding) -> Tuple[Holding, ...]:
    """Swap in `updated` at its property's position, or append it."""
    result: List[Holding] = []
    replaced = False
    for h in holdings:
        if h.property_id == updated.property_id:
            result.append(updated)
            replaced = True
        else:
            result.append(h)
    if not replaced:
        result.append(updated)
    return tuple(result)


def _require_positive(amount: Decimal, action: str) -> None:
    if amount <= 0:
        raise InvalidAmount(f"{action} amount must be positive, got {amount}")


def compute_buy(
    portfolio: Portfolio,
    prop: Property,
    amount_mmk,
    now: datetime,
    activity_limit: int = ACTIVITY_LOG_LIMIT,
) -> Portfolio:
    """
    Convert `amount_mmk` of cash into a position in `prop`.

    Args:
        portfolio: Current portfolio state
        prop: Property being bought (current catalog record)
        amount_mmk: Cash to invest; must be positive and covered by cash
        now: Timestamp for the activity and purchase date
        activity_limit: Activity log cap

    Returns:
        New Portfolio with the holding grown, cash debited by exactly
        amount_mmk, a "buy" activity prepended and totals re-derived.

    Raises:
        InvalidAmount: amount_mmk <= 0
        InsufficientCash: cash_mmk < amount_mmk
    """
    amount = to_decimal(amount_mmk)
    _require_positive(amount, "Buy")
    if portfolio.cash_mmk < amount:
        raise InsufficientCash(
            f"Portfolio {portfolio.user_id} has {portfolio.cash_mmk} MMK, needs {amount}")

    share_pct = percent_of(amount, prop.current_value_mmk)
    shares = quantize_shares(amount / prop.share_price_mmk)

    existing = find_holding(portfolio, prop.id)
    if existing is None:
        holding = Holding(
            property_id=prop.id,
            user_share_pct=share_pct,
            user_value_mmk=amount,
            purchase_value_mmk=amount,
            pnl_abs=ZERO,
            pnl_pct=ZERO,
            purchase_date=now,
            shares_owned=shares,
            current_share_price_mmk=prop.share_price_mmk,
            average_purchase_price_mmk=prop.share_price_mmk,
        )
    else:
        value = existing.user_value_mmk + amount
        basis = existing.purchase_value_mmk + amount
        shares_owned = existing.shares_owned + shares
        average_price = basis / shares_owned if shares_owned > 0 else prop.share_price_mmk
        holding = replace(
            existing,
            user_share_pct=existing.user_share_pct + share_pct,
            user_value_mmk=value,
            purchase_value_mmk=basis,
            pnl_abs=value - basis,
            pnl_pct=percent_of(value - basis, basis),
            shares_owned=shares_owned,
            current_share_price_mmk=prop.share_price_mmk,
            average_purchase_price_mmk=average_price,
        )

    activity = Activity(
        id=new_activity_id(),
        type=ActivityType.BUY,
        property_id=prop.id,
        amount_mmk=amount,
        ts=now,
        description=f"Bought {share_pct:.2f}% of {prop.name}",
    )
    updated = replace(
        portfolio,
        cash_mmk=portfolio.cash_mmk - amount,
        holdings=_replace_holding(portfolio.holdings, holding),
        last_updated=now,
    )
    return recalculate_totals(append_activity(updated, activity, activity_limit))


def compute_sell(
    portfolio: Portfolio,
    prop: Property,
    amount_mmk,
    now: datetime,
    activity_limit: int = ACTIVITY_LOG_LIMIT,
) -> Portfolio:
    """
    Convert `amount_mmk` of a holding back into cash.

    The sold fraction (amount / holding value) is removed from the holding's
    value, share percentage, purchase basis and share count. A holding left
    with value <= 0 is removed entirely.

    Raises:
        InvalidAmount: amount_mmk <= 0
        HoldingNotFound: the portfolio holds nothing in prop
        InsufficientHolding: amount_mmk exceeds the holding's value
    """
    amount = to_decimal(amount_mmk)
    _require_positive(amount, "Sell")

    existing = find_holding(portfolio, prop.id)
    if existing is None:
        raise HoldingNotFound(f"Portfolio {portfolio.user_id} holds no {prop.id}")
    if existing.user_value_mmk < amount:
        raise InsufficientHolding(
            f"Holding {prop.id} is worth {existing.user_value_mmk} MMK, cannot sell {amount}")

    remaining = existing.user_value_mmk - amount
    if remaining <= 0:
        holdings = tuple(h for h in portfolio.holdings if h.property_id != prop.id)
    else:
        kept = remaining / existing.user_value_mmk
        basis = existing.purchase_value_mmk * kept
        holdings = _replace_holding(portfolio.holdings, replace(
            existing,
            user_share_pct=existing.user_share_pct * kept,
            user_value_mmk=remaining,
            purchase_value_mmk=basis,
            pnl_abs=remaining - basis,
            pnl_pct=percent_of(remaining - basis, basis),
            shares_owned=quantize_shares(existing.shares_owned * kept),
        ))

    activity = Activity(
        id=new_activity_id(),
        type=ActivityType.SELL,
        property_id=prop.id,
        amount_mmk=amount,
        ts=now,
        description=f"Sold {percent_of(amount, prop.current_value_mmk):.2f}% of {prop.name}",
    )
    updated = replace(
        portfolio,
        cash_mmk=portfolio.cash_mmk + amount,
        holdings=holdings,
        last_updated=now,
    )
    return recalculate_totals(append_activity(updated, activity, activity_limit))


def top_holdings(portfolio: Portfolio, limit: int = 5) -> List[Holding]:
    """Holdings ordered by current value, largest first."""
    return sorted(portfolio.holdings, key=lambda h: h.user_value_mmk, reverse=True)[:limit]


def guest_portfolio(
    properties: Iterable[Property],
    now: datetime,
    company_shares: int = DEFAULT_COMPANY_SHARES,
) -> Portfolio:
    """
    Read-only market overview for unauthenticated callers.

    A projection over the catalog: no cash, no holdings, no activities;
    total value and company value are the sum of catalog valuations.
    """
    props = list(properties)
    market_value = sum((p.current_value_mmk for p in props), ZERO)
    return Portfolio(
        user_id=GUEST_USER_ID,
        cash_mmk=ZERO,
        last_updated=now,
        total_value_mmk=market_value,
        snapshot=Snapshot(
            company_value_mmk=market_value,
            company_shares=company_shares,
            weighted_share_pct=ZERO,
            properties_count=len(props),
        ),
    )
