#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: The Property Portfolio Ledger Step by Step

Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3: Foundation - The seed catalog, the guest view, registering an investor
  4-6: Trading    - Buying, rejected trades, partial and full sells
  7-8: Market     - Uniform market moves, the performance series
  9:   Admin      - Dynamic properties and the read-only seed
  10:  Storage    - Reloading everything from disk

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from decimal import Decimal
import sys
import tempfile

from propledger import (
    PortfolioDatabase, JsonFileKeyValueStore, Portfolio,
    configure_logging, load_config,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    investor_email: str = "thida@example.com"
    first_buy_mmk: Decimal = Decimal("12000000")
    second_buy_mmk: Decimal = Decimal("25000000")
    market_move_pct: Decimal = Decimal("15")
    series_days: int = 7


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def show_portfolio(portfolio: Portfolio):
    print(f"Cash:        {portfolio.cash_mmk:>18,.0f} MMK")
    print(f"Holdings:    {portfolio.total_value_mmk:>18,.0f} MMK")
    print(f"Net P&L:     {portfolio.net_pnl_abs:>18,.0f} MMK ({portfolio.net_pnl_pct:.2f}%)")
    for h in portfolio.holdings:
        print(f"  {h.property_id:<22} {h.user_share_pct:>8.4f}%  "
              f"value {h.user_value_mmk:>14,.0f}  pnl {h.pnl_abs:>12,.0f}")


# ============================================================================
# PHASE 1: FOUNDATION
# ============================================================================

def step_01_seed_catalog(db: PortfolioDatabase):
    step_header(1, "The Seed Catalog",
        "See the static properties every database starts with.")
    for prop in db.get_all_properties():
        print(f"{prop.id}  {prop.name:<26} {prop.segment:<12} "
              f"{prop.current_value_mmk:>16,.0f} MMK  [{db.get_property_type(prop.id)}]")


def step_02_guest_view(db: PortfolioDatabase):
    step_header(2, "The Guest View",
        "Unauthenticated callers get a market overview, never a stored portfolio.")
    guest = db.get_portfolio(None)
    print(f"Market value:   {guest.total_value_mmk:,.0f} MMK")
    print(f"Properties:     {guest.snapshot.properties_count}")


def step_03_register(db: PortfolioDatabase):
    step_header(3, "Registering an Investor",
        "A new user gets a portfolio funded with the starting cash.")
    user = db.create_user(CONFIG.investor_email, "pw", "Thida")
    print(f">>> db.create_user({CONFIG.investor_email!r}, ...)  ->  {user.id}")
    portfolio = db.get_portfolio(user.id)
    show_portfolio(portfolio)
    print(f"\nFirst activity: {portfolio.activities[0].description}")
    return user


# ============================================================================
# PHASE 2: TRADING
# ============================================================================

def step_04_buy(db: PortfolioDatabase, user_id: str):
    step_header(4, "Buying",
        "Cash is debited by exactly the amount invested.")
    print(f">>> db.buy(user, 'prop-002', {CONFIG.first_buy_mmk:,})")
    db.buy(user_id, "prop-002", CONFIG.first_buy_mmk)
    print(f">>> db.buy(user, 'prop-001', {CONFIG.second_buy_mmk:,})")
    db.buy(user_id, "prop-001", CONFIG.second_buy_mmk)
    show_portfolio(db.get_portfolio(user_id))


def step_05_rejections(db: PortfolioDatabase, user_id: str):
    step_header(5, "Rejected Trades",
        "Invalid trades return False and leave the portfolio untouched.")
    for label, ok in [
        ("buy more than cash", db.buy(user_id, "prop-003", 10**12)),
        ("buy zero", db.buy(user_id, "prop-003", 0)),
        ("sell unheld property", db.sell(user_id, "prop-005", 1)),
        ("buy unknown property", db.buy(user_id, "prop-999", 1)),
    ]:
        print(f"{label:<24} -> {ok}")


def step_06_sell(db: PortfolioDatabase, user_id: str):
    step_header(6, "Selling",
        "A partial sell scales the holding; a full sell removes it.")
    db.sell(user_id, "prop-002", CONFIG.first_buy_mmk / 2)
    section_header("After selling half of prop-002")
    show_portfolio(db.get_portfolio(user_id))


# ============================================================================
# PHASE 3: MARKET
# ============================================================================

def step_07_market(db: PortfolioDatabase, user_id: str):
    step_header(7, "A Market Move",
        "Every valuation moves by the same percentage; every portfolio is revalued.")
    print(f">>> db.apply_market_delta({CONFIG.market_move_pct})")
    db.apply_market_delta(CONFIG.market_move_pct)
    show_portfolio(db.get_portfolio(user_id))


def step_08_series(db: PortfolioDatabase, user_id: str):
    step_header(8, "Performance Series",
        "A short chart path from cost basis to today's value.")
    for day, value in enumerate(db.get_performance_series(user_id, CONFIG.series_days, seed=7), 1):
        print(f"day {day}: {value:>16,.0f}")


# ============================================================================
# PHASE 4: ADMIN AND STORAGE
# ============================================================================

def step_09_admin(db: PortfolioDatabase):
    step_header(9, "Dynamic Properties",
        "Admins add, edit and delete runtime properties; seed properties are read-only.")
    prop = db.create_property({
        "name": "Hlaing River Lofts",
        "segment": "Residential",
        "current_value_mmk": 600_000_000,
        "share_price_mmk": 600,
        "total_shares": 1_000_000,
        "available_shares": 1_000_000,
        "cis_ownership_pct": 30,
    })
    print(f"Created {prop.id} [{db.get_property_type(prop.id)}]")
    print(f"Delete seed prop-001 -> {db.delete_property('prop-001')}")
    return prop


def step_10_reload(directory: str, user_id: str, before: Portfolio):
    step_header(10, "Reload From Disk",
        "A new database over the same directory sees the same state.")
    reopened = PortfolioDatabase(JsonFileKeyValueStore(directory))
    reopened.load()
    after = reopened.get_portfolio(user_id)
    print(f"Portfolio identical after reload: {after == before}")
    print(f"Properties after reload:          {len(reopened.get_all_properties())}")


def main():
    config = load_config()
    configure_logging("WARNING" if QUICK_MODE else config.log_level)

    print("=" * 70)
    print("       PROPERTY PORTFOLIO LEDGER - INTERACTIVE TUTORIAL")
    print("=" * 70)
    wait_for_enter()

    with tempfile.TemporaryDirectory() as directory:
        db = PortfolioDatabase(JsonFileKeyValueStore(directory), config=config)
        db.load()

        step_01_seed_catalog(db)
        wait_for_enter()
        step_02_guest_view(db)
        wait_for_enter()
        user = step_03_register(db)
        wait_for_enter()
        step_04_buy(db, user.id)
        wait_for_enter()
        step_05_rejections(db, user.id)
        wait_for_enter()
        step_06_sell(db, user.id)
        wait_for_enter()
        step_07_market(db, user.id)
        wait_for_enter()
        step_08_series(db, user.id)
        wait_for_enter()
        step_09_admin(db)
        wait_for_enter()
        step_10_reload(directory, user.id, db.get_portfolio(user.id))

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See propledger/database.py for the facade
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
