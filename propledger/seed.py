"""
seed.py - Bundled seed data

The static property catalog, the demo user and the demo user's portfolio.
Seed properties are the static layer of the catalog: their ids are
permanently read-only for admin edit/delete.

default_seed() builds fresh records on every call.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Mapping, Tuple

from .core import Holding, Portfolio, Property, Snapshot, User
from .portfolio import recalculate_totals


SEED_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)

DEMO_USER_ID = "user-001"


@dataclass(frozen=True)
class SeedData:
    """Initial state injected into PortfolioDatabase."""
    properties: Tuple[Property, ...] = ()
    users: Tuple[User, ...] = ()
    portfolios: Mapping[str, Portfolio] = field(default_factory=dict)


def seed_properties() -> Tuple[Property, ...]:
    return (
        Property(
            id="prop-001",
            name="Junction City Tower",
            segment="Commercial",
            description="Grade A office tower above a retail podium",
            location="Bogyoke Aung San Road, Yangon",
            year_built=2017,
            total_units=240,
            occupancy_rate=Decimal("92.5"),
            current_value_mmk=Decimal("2500000000"),
            share_price_mmk=Decimal("2500"),
            total_shares=1_000_000,
            available_shares=400_000,
            cis_ownership_pct=Decimal("60"),
        ),
        Property(
            id="prop-002",
            name="Inya Lake Residences",
            segment="Residential",
            description="Lakeside serviced apartments",
            location="Kabar Aye Pagoda Road, Yangon",
            year_built=2019,
            total_units=180,
            occupancy_rate=Decimal("88"),
            current_value_mmk=Decimal("1200000000"),
            share_price_mmk=Decimal("1200"),
            total_shares=1_000_000,
            available_shares=550_000,
            cis_ownership_pct=Decimal("45"),
        ),
        Property(
            id="prop-003",
            name="Mandalay Hill Plaza",
            segment="Retail",
            description="Neighbourhood shopping centre",
            location="73rd Street, Mandalay",
            year_built=2015,
            total_units=95,
            occupancy_rate=Decimal("81"),
            current_value_mmk=Decimal("850000000"),
            share_price_mmk=Decimal("850"),
            total_shares=1_000_000,
            available_shares=300_000,
            cis_ownership_pct=Decimal("70"),
        ),
        Property(
            id="prop-004",
            name="Thilawa Logistics Park",
            segment="Industrial",
            description="Bonded warehousing next to the deep-sea port",
            location="Thilawa SEZ, Yangon Region",
            year_built=2020,
            total_units=32,
            occupancy_rate=Decimal("96"),
            current_value_mmk=Decimal("3100000000"),
            share_price_mmk=Decimal("3100"),
            total_shares=1_000_000,
            available_shares=250_000,
            cis_ownership_pct=Decimal("75"),
        ),
        Property(
            id="prop-005",
            name="Ngapali Beach Resort",
            segment="Hospitality",
            description="Beachfront resort with 120 keys",
            location="Ngapali, Rakhine State",
            year_built=2016,
            total_units=120,
            occupancy_rate=Decimal("67"),
            current_value_mmk=Decimal("1350000000"),
            share_price_mmk=Decimal("1350"),
            total_shares=1_000_000,
            available_shares=600_000,
            cis_ownership_pct=Decimal("40"),
        ),
    )


def seed_users() -> Tuple[User, ...]:
    return (
        User(
            id=DEMO_USER_ID,
            email="demo@example.com",
            password="demo123",
            name="Demo Investor",
            created_at=SEED_TIME,
            last_login=SEED_TIME,
        ),
    )


def seed_portfolios(properties_count: int) -> Dict[str, Portfolio]:
    holding = Holding(
        property_id="prop-002",
        user_share_pct=Decimal("2"),
        user_value_mmk=Decimal("24000000"),
        purchase_value_mmk=Decimal("20000000"),
        pnl_abs=Decimal("4000000"),
        pnl_pct=Decimal("20"),
        purchase_date=SEED_TIME,
        shares_owned=Decimal("20000"),
        current_share_price_mmk=Decimal("1200"),
        average_purchase_price_mmk=Decimal("1000"),
    )
    demo = Portfolio(
        user_id=DEMO_USER_ID,
        cash_mmk=Decimal("80000000"),
        last_updated=SEED_TIME,
        holdings=(holding,),
        snapshot=Snapshot(properties_count=properties_count),
    )
    return {DEMO_USER_ID: recalculate_totals(demo)}


def default_seed() -> SeedData:
    properties = seed_properties()
    return SeedData(
        properties=properties,
        users=seed_users(),
        portfolios=seed_portfolios(len(properties)),
    )
