"""
Core types for the property portfolio ledger.

This module provides the foundational data structures of the ledger:
1. Constants: starting balances, activity log cap, snapshot defaults
2. Exceptions: LedgerError and domain-specific error types
3. Immutable records: Property, Holding, Activity, Snapshot, Portfolio, User
4. Decimal helpers shared by the engine, the market simulator and the codecs

Records are frozen. A state change produces a NEW record via
dataclasses.replace(); nothing in this package mutates a record in place.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_EVEN, InvalidOperation, getcontext
from enum import Enum
from typing import Any, Iterable, Optional, Tuple


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Monetary arithmetic is done in Decimal with a fixed context:
#   - prec=50: enough headroom for billion-scale MMK values and percentages
#   - rounding=ROUND_HALF_EVEN: banker's rounding (unbiased)
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")

# Cash credited to every newly opened portfolio.
STARTING_CASH_MMK = Decimal("100000000")

# Portfolios keep only the most recent activities, newest first.
ACTIVITY_LOG_LIMIT = 10

# Company-wide snapshot defaults.
DEFAULT_COMPANY_VALUE_MMK = Decimal("9000000000")
DEFAULT_COMPANY_SHARES = 1_000_000

# Pseudo user id of the read-only guest projection. Never stored.
GUEST_USER_ID = "guest"

# Fractional share counts are kept to 6 places and rounded down.
SHARE_DECIMAL_PLACES = 6
_SHARE_QUANTUM = Decimal(1).scaleb(-SHARE_DECIMAL_PLACES)

PROPERTY_TYPE_STATIC = "static"
PROPERTY_TYPE_DYNAMIC = "dynamic"


# ============================================================================
# ENUMS
# ============================================================================

class ActivityType(Enum):
    """
    Kind of event recorded in a portfolio's activity log.

    BUY: cash converted into a holding.
    SELL: part or all of a holding converted back into cash.
    INJECTION: cash credited from outside the ledger (initial funding).
    """
    BUY = "buy"
    SELL = "sell"
    INJECTION = "injection"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class InvalidAmount(LedgerError):
    """Raised when a trade amount or market delta is outside its valid range."""
    pass


class InsufficientCash(LedgerError):
    """Raised when a buy would take a portfolio's cash balance below zero."""
    pass


class InsufficientHolding(LedgerError):
    """Raised when a sell exceeds the current value of the holding."""
    pass


class HoldingNotFound(LedgerError):
    """Raised when selling a property the portfolio does not hold."""
    pass


class PropertyNotFound(LedgerError):
    """Raised when a property id is not present in the catalog."""
    pass


class PortfolioNotFound(LedgerError):
    """Raised when no portfolio can be resolved for a user id."""
    pass


class StaticPropertyReadOnly(LedgerError):
    """Raised when an edit or delete targets a seed-origin property."""
    pass


class DuplicateUser(LedgerError):
    """Raised when registering an email that already belongs to a user."""
    pass


class RecordValidationError(LedgerError, ValueError):
    """Raised when a record or a persisted blob does not have a valid shape."""
    pass


class StorageError(LedgerError):
    """Raised when the key-value store cannot read, write or remove a key."""
    pass


# ============================================================================
# DECIMAL HELPERS
# ============================================================================

def to_decimal(value: Any) -> Decimal:
    """
    Convert a numeric value to Decimal.

    Floats go through str() so that 0.1 becomes Decimal("0.1") rather than
    its binary expansion. Booleans, NaN and infinities are rejected.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise RecordValidationError(f"Expected a number, got {value!r}")
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise RecordValidationError(f"Expected a number, got {value!r}") from e
    if not result.is_finite():
        raise RecordValidationError(f"Expected a finite number, got {value!r}")
    return result


def quantize_shares(quantity: Decimal) -> Decimal:
    """Round a share count down to SHARE_DECIMAL_PLACES."""
    return quantity.quantize(_SHARE_QUANTUM, rounding=ROUND_DOWN)


def percent_of(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole * 100, or 0 when whole is 0."""
    if whole == 0:
        return ZERO
    return part / whole * HUNDRED


def _coerce_decimals(record: Any, names: Iterable[str]) -> None:
    """Convert the named fields of a frozen record to Decimal in place."""
    for name in names:
        value = getattr(record, name)
        if not isinstance(value, Decimal):
            object.__setattr__(record, name, to_decimal(value))


def _require_text(value: Any, message: str) -> None:
    """Reject anything that is not a non-blank string."""
    if not isinstance(value, str) or not value.strip():
        raise RecordValidationError(message)


def _coerce_ints(record: Any, names: Iterable[str]) -> None:
    """Convert the named fields of a frozen record to int in place."""
    for name in names:
        value = getattr(record, name)
        if isinstance(value, int) and not isinstance(value, bool):
            continue
        try:
            object.__setattr__(record, name, int(to_decimal(value)))
        except (ValueError, OverflowError) as e:
            raise RecordValidationError(f"Field {name} must be an integer, got {value!r}") from e


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Property:
    """
    An investable asset in the catalog.

    share_price_mmk * total_shares is deliberately NOT required to equal
    current_value_mmk: seed data is allowed to be loose.
    """
    id: str
    name: str
    segment: str
    current_value_mmk: Decimal
    share_price_mmk: Decimal
    total_shares: int
    available_shares: int
    cis_ownership_pct: Decimal
    description: str = ""
    location: str = ""
    year_built: int = 0
    total_units: int = 0
    occupancy_rate: Decimal = ZERO

    def __post_init__(self):
        _require_text(self.id, "Property id cannot be empty")
        _coerce_decimals(self, ("current_value_mmk", "share_price_mmk",
                                "cis_ownership_pct", "occupancy_rate"))
        _coerce_ints(self, ("total_shares", "available_shares", "year_built", "total_units"))
        if self.current_value_mmk <= 0:
            raise RecordValidationError(
                f"Property {self.id} current_value_mmk must be positive, got {self.current_value_mmk}")
        if self.share_price_mmk <= 0:
            raise RecordValidationError(
                f"Property {self.id} share_price_mmk must be positive, got {self.share_price_mmk}")
        if self.total_shares < 0 or self.available_shares < 0:
            raise RecordValidationError(f"Property {self.id} share counts cannot be negative")


@dataclass(frozen=True, slots=True)
class Holding:
    """A user's fractional ownership position in one property."""
    property_id: str
    user_share_pct: Decimal
    user_value_mmk: Decimal
    purchase_value_mmk: Decimal
    pnl_abs: Decimal
    pnl_pct: Decimal
    purchase_date: datetime
    shares_owned: Decimal
    current_share_price_mmk: Decimal
    average_purchase_price_mmk: Decimal

    def __post_init__(self):
        _coerce_decimals(self, ("user_share_pct", "user_value_mmk", "purchase_value_mmk",
                                "pnl_abs", "pnl_pct", "shares_owned",
                                "current_share_price_mmk", "average_purchase_price_mmk"))


@dataclass(frozen=True, slots=True)
class Activity:
    """Immutable record of a buy, sell or cash injection."""
    id: str
    type: ActivityType
    property_id: str
    amount_mmk: Decimal
    ts: datetime
    description: str

    def __post_init__(self):
        if not isinstance(self.type, ActivityType):
            object.__setattr__(self, 'type', ActivityType(self.type))
        _coerce_decimals(self, ("amount_mmk",))


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Company-wide aggregate exposed alongside a portfolio."""
    company_value_mmk: Decimal = DEFAULT_COMPANY_VALUE_MMK
    company_shares: int = DEFAULT_COMPANY_SHARES
    weighted_share_pct: Decimal = ZERO
    properties_count: int = 0

    def __post_init__(self):
        _coerce_decimals(self, ("company_value_mmk", "weighted_share_pct"))
        _coerce_ints(self, ("company_shares", "properties_count"))


@dataclass(frozen=True, slots=True)
class Portfolio:
    """
    Per-user aggregate: cash, holdings, derived totals and the activity log.

    total_value_mmk, net_pnl_abs, net_pnl_pct and snapshot.weighted_share_pct
    are derived from the holdings by recalculate_totals() and must never be
    patched incrementally.
    """
    user_id: str
    cash_mmk: Decimal
    last_updated: datetime
    holdings: Tuple[Holding, ...] = ()
    activities: Tuple[Activity, ...] = ()
    snapshot: Snapshot = field(default_factory=Snapshot)
    total_value_mmk: Decimal = ZERO
    net_pnl_abs: Decimal = ZERO
    net_pnl_pct: Decimal = ZERO

    def __post_init__(self):
        _coerce_decimals(self, ("cash_mmk", "total_value_mmk", "net_pnl_abs", "net_pnl_pct"))
        if not isinstance(self.holdings, tuple):
            object.__setattr__(self, 'holdings', tuple(self.holdings))
        if not isinstance(self.activities, tuple):
            object.__setattr__(self, 'activities', tuple(self.activities))


@dataclass(frozen=True, slots=True)
class User:
    """Registered account. Passwords are stored as given (mock product)."""
    id: str
    email: str
    password: str
    name: str
    created_at: datetime
    last_login: datetime

    def __post_init__(self):
        _require_text(self.id, "User id cannot be empty")
        _require_text(self.email, "User email cannot be empty")


def find_by_id(records: Iterable[Any], record_id: str) -> Optional[Any]:
    """Return the first record whose id matches, or None."""
    for record in records:
        if record.id == record_id:
            return record
    return None
