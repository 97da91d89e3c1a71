"""
propledger - Fractional Property Portfolio Ledger

Tracks users' cash and fractional holdings in a catalog of real-estate
properties, applies buy/sell trades and uniform market moves, and persists
everything to a key-value store.

Usage:
    from propledger import PortfolioDatabase, InMemoryKeyValueStore

    db = PortfolioDatabase(InMemoryKeyValueStore())
    db.load()

    user = db.create_user("alice@example.com", "secret", "Alice")
    db.buy(user.id, "prop-002", 12_000_000)      # 1% of a 1.2B MMK property
    db.apply_market_delta(50)                    # every valuation +50%

    portfolio = db.get_portfolio(user.id)
    portfolio.total_value_mmk                    # Decimal("18000000")
"""

# Core types
from .core import (
    Property,
    Holding,
    Activity,
    ActivityType,
    Snapshot,
    Portfolio,
    User,
    LedgerError,
    InvalidAmount,
    InsufficientCash,
    InsufficientHolding,
    HoldingNotFound,
    PropertyNotFound,
    PortfolioNotFound,
    StaticPropertyReadOnly,
    DuplicateUser,
    RecordValidationError,
    StorageError,
    to_decimal,
    STARTING_CASH_MMK,
    ACTIVITY_LOG_LIMIT,
    DEFAULT_COMPANY_VALUE_MMK,
    DEFAULT_COMPANY_SHARES,
    GUEST_USER_ID,
    PROPERTY_TYPE_STATIC,
    PROPERTY_TYPE_DYNAMIC,
)

# Configuration
from .config import LedgerConfig, load_config, configure_logging

# Catalog
from .catalog import PropertyCatalog, new_property_id

# Portfolio engine
from .portfolio import (
    open_portfolio,
    compute_buy,
    compute_sell,
    recalculate_totals,
    revalue_holding,
    find_holding,
    append_activity,
    top_holdings,
    guest_portfolio,
)

# Market simulator
from .market import (
    apply_market_delta,
    revalue_portfolio,
    simulate_market,
    performance_series,
)

# Storage and persistence
from .storage import KeyValueStore, InMemoryKeyValueStore, JsonFileKeyValueStore
from .persistence import PersistenceAdapter
from .serialization import (
    property_to_dict, property_from_dict,
    portfolio_to_dict, portfolio_from_dict,
    user_to_dict, user_from_dict,
)

# Seed data
from .seed import SeedData, default_seed, DEMO_USER_ID

# Facade
from .database import PortfolioDatabase


__all__ = [
    # Core
    'Property', 'Holding', 'Activity', 'ActivityType', 'Snapshot', 'Portfolio', 'User',
    'to_decimal',
    'STARTING_CASH_MMK', 'ACTIVITY_LOG_LIMIT', 'DEFAULT_COMPANY_VALUE_MMK',
    'DEFAULT_COMPANY_SHARES', 'GUEST_USER_ID', 'PROPERTY_TYPE_STATIC', 'PROPERTY_TYPE_DYNAMIC',
    # Exceptions
    'LedgerError', 'InvalidAmount', 'InsufficientCash', 'InsufficientHolding',
    'HoldingNotFound', 'PropertyNotFound', 'PortfolioNotFound', 'StaticPropertyReadOnly',
    'DuplicateUser', 'RecordValidationError', 'StorageError',
    # Config
    'LedgerConfig', 'load_config', 'configure_logging',
    # Catalog
    'PropertyCatalog', 'new_property_id',
    # Portfolio engine
    'open_portfolio', 'compute_buy', 'compute_sell', 'recalculate_totals',
    'revalue_holding', 'find_holding', 'append_activity', 'top_holdings', 'guest_portfolio',
    # Market
    'apply_market_delta', 'revalue_portfolio', 'simulate_market', 'performance_series',
    # Storage
    'KeyValueStore', 'InMemoryKeyValueStore', 'JsonFileKeyValueStore', 'PersistenceAdapter',
    'property_to_dict', 'property_from_dict', 'portfolio_to_dict', 'portfolio_from_dict',
    'user_to_dict', 'user_from_dict',
    # Seed
    'SeedData', 'default_seed', 'DEMO_USER_ID',
    # Facade
    'PortfolioDatabase',
]

__version__ = '1.0.0'
