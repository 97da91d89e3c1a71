"""
database.py - Portfolio database facade

PortfolioDatabase is the boundary the UI layer calls. It owns the in-memory
state (catalog, users, portfolios), runs the pure engine functions against it
and persists every mutation through the PersistenceAdapter.

Failure model:
    Inside the package, violations raise LedgerError subclasses. This class
    catches them, logs them, and returns False / None. Callers never see an
    exception and cannot tell a business-rule rejection from a storage
    failure.

Consistency:
    Every mutation builds the next state first, writes it to storage, and
    only then swaps it in. A failed write leaves memory unchanged.

Thread Safety:
    Read-modify-write of one user's portfolio runs under that user's lock.
    The market sweep takes every user lock (in sorted order) before the state
    lock, which is the same order trades use, so the two cannot deadlock.

Example:
    db = PortfolioDatabase(JsonFileKeyValueStore("data"))
    db.load()
    db.buy("user-001", "prop-001", 10_000_000)
    db.apply_market_delta(0.5)
    portfolio = db.get_portfolio("user-001")
"""

from __future__ import annotations
from contextlib import ExitStack, contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional
import logging
import threading
import uuid

from .catalog import PropertyCatalog
from .config import LedgerConfig
from .core import (
    GUEST_USER_ID,
    Holding, Portfolio, Property, User,
    DuplicateUser, LedgerError, PortfolioNotFound, RecordValidationError,
)
from .market import performance_series, simulate_market
from .persistence import PersistenceAdapter
from .portfolio import (
    append_activity, compute_buy, compute_sell, guest_portfolio,
    injection_activity, open_portfolio, recalculate_totals, top_holdings,
)
from .seed import SeedData, default_seed
from .storage import KeyValueStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_user_id() -> str:
    return f"user-{uuid.uuid4().hex[:12]}"


class PortfolioDatabase:
    """
    Explicit store object for users, portfolios and the property catalog.

    Args:
        store: Key-value backend for persistence
        seed: Initial state (default: the bundled seed)
        config: Ledger parameters (default: LedgerConfig())
        clock: Callable returning the current aware datetime
    """

    def __init__(
        self,
        store: KeyValueStore,
        seed: Optional[SeedData] = None,
        config: Optional[LedgerConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or LedgerConfig()
        self.adapter = PersistenceAdapter(store)
        self._seed = seed if seed is not None else default_seed()
        self._clock = clock or _utc_now
        self._state_lock = threading.RLock()
        self._user_locks: Dict[str, threading.Lock] = {}
        self._reset_to_seed()

    def _reset_to_seed(self) -> None:
        self.catalog = PropertyCatalog(self._seed.properties)
        self.users: List[User] = list(self._seed.users)
        self.portfolios: Dict[str, Portfolio] = dict(self._seed.portfolios)

    def _now(self) -> datetime:
        return self._clock()

    # ========================================================================
    # LOCKING
    # ========================================================================

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._state_lock:
            return self._user_locks.setdefault(user_id, threading.Lock())

    @contextmanager
    def _user_lock(self, user_id: Optional[str]) -> Iterator[None]:
        if not user_id or user_id == GUEST_USER_ID:
            raise PortfolioNotFound("Guest callers have no portfolio")
        with self._lock_for(user_id):
            yield

    @contextmanager
    def _all_user_locks(self) -> Iterator[None]:
        with self._state_lock:
            user_ids = sorted(set(self.portfolios) | set(self._user_locks))
        with ExitStack() as stack:
            for user_id in user_ids:
                stack.enter_context(self._lock_for(user_id))
            with self._state_lock:
                yield

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def load(self) -> bool:
        """Reset to the seed, then overlay storage. Returns False (seed state kept) on failure."""
        with self._all_user_locks():
            self._reset_to_seed()
            try:
                users = self.adapter.load_users(self._seed.users)
                portfolios = self.adapter.load_portfolios(self._seed.portfolios)
                catalog = PropertyCatalog(self._seed.properties, self.adapter.load_dynamic_properties())
                catalog.apply_valuations(self.adapter.load_valuations())
            except LedgerError as e:
                logger.error(f"Load failed, keeping seed state: {e}")
                return False
            self.users = users
            self.portfolios = portfolios
            self.catalog = catalog
        logger.info(
            f"Loaded {len(self.users)} users, {len(self.portfolios)} portfolios, {self.catalog!r}")
        return True

    def save(self) -> bool:
        """Write every collection."""
        try:
            with self._all_user_locks():
                self.adapter.save_users(self.users)
                self.adapter.save_portfolios(self.portfolios)
                self.adapter.save_dynamic_properties(self.catalog.dynamic_properties)
                self.adapter.save_valuations(self.catalog.valuations())
        except LedgerError as e:
            logger.error(f"Save failed: {e}")
            return False
        return True

    def clear_all_data(self) -> bool:
        """Wipe storage and return to the seed state."""
        try:
            with self._all_user_locks():
                self.adapter.clear_all()
                self._reset_to_seed()
        except LedgerError as e:
            logger.error(f"Clear all data failed: {e}")
            return False
        logger.info("All data cleared and reset to seed state")
        return True

    # ========================================================================
    # USERS AND SESSION
    # ========================================================================

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """Match credentials, stamp last_login and record the session."""
        try:
            with self._state_lock:
                user = next(
                    (u for u in self.users if u.email == email and u.password == password), None)
                if user is None:
                    logger.warning(f"Authentication failed for {email}")
                    return None
                user = replace(user, last_login=self._now())
                users = [user if u.id == user.id else u for u in self.users]
                self.adapter.save_users(users)
                self.adapter.save_session(user)
                self.users = users
        except LedgerError as e:
            logger.error(f"Authentication error: {e}")
            return None
        return user

    def get_current_user(self) -> Optional[User]:
        try:
            return self.adapter.load_session()
        except LedgerError as e:
            logger.error(f"Get current user error: {e}")
            return None

    def sign_out(self) -> None:
        try:
            self.adapter.clear_session()
        except LedgerError as e:
            logger.error(f"Sign out error: {e}")

    def create_user(self, email: str, password: str, name: str) -> Optional[User]:
        """
        Register a user and open their portfolio with the starting cash,
        recorded as an "injection" activity.
        """
        now = self._now()
        try:
            with self._state_lock:
                if any(u.email == email for u in self.users):
                    raise DuplicateUser(f"User {email} already exists")
                user = User(
                    id=new_user_id(),
                    email=email,
                    password=password,
                    name=name,
                    created_at=now,
                    last_login=now,
                )
                portfolio = self._open(user.id, now)
                portfolio = append_activity(
                    portfolio,
                    injection_activity(
                        portfolio.cash_mmk, now, "Initial cash injection for new user"),
                    self.config.activity_log_limit,
                )
                users = self.users + [user]
                portfolios = dict(self.portfolios)
                portfolios[user.id] = portfolio
                self.adapter.save_users(users)
                self.adapter.save_portfolios(portfolios)
                self.users = users
                self.portfolios = portfolios
        except LedgerError as e:
            logger.warning(f"Create user rejected: {e}")
            return None
        logger.info(f"Created user {user.id} ({email})")
        return user

    def get_all_users(self) -> List[User]:
        return list(self.users)

    # ========================================================================
    # PORTFOLIOS
    # ========================================================================

    def _open(self, user_id: str, now: datetime) -> Portfolio:
        return open_portfolio(
            user_id,
            now,
            properties_count=len(self.catalog),
            starting_cash_mmk=self.config.starting_cash_mmk,
            company_value_mmk=self.config.company_value_mmk,
            company_shares=self.config.company_shares,
        )

    def _portfolio_for(self, user_id: Optional[str]) -> Portfolio:
        """Existing portfolio, or a freshly opened one kept in memory."""
        if not user_id or user_id == GUEST_USER_ID:
            raise PortfolioNotFound("Guest callers have no portfolio")
        with self._state_lock:
            portfolio = self.portfolios.get(user_id)
            if portfolio is None:
                portfolio = self._open(user_id, self._now())
                self.portfolios[user_id] = portfolio
            return portfolio

    def _commit_portfolio(self, portfolio: Portfolio) -> None:
        portfolio = replace(
            portfolio,
            snapshot=replace(portfolio.snapshot, properties_count=len(self.catalog)),
        )
        with self._state_lock:
            portfolios = dict(self.portfolios)
            portfolios[portfolio.user_id] = portfolio
            self.adapter.save_portfolios(portfolios)
            self.portfolios = portfolios

    def get_portfolio(self, user_id: Optional[str]) -> Optional[Portfolio]:
        """
        The user's portfolio, created on first access.

        A missing user id (or "guest") yields the guest projection.
        """
        if not user_id or user_id == GUEST_USER_ID:
            return self.get_guest_portfolio()
        try:
            return self._portfolio_for(user_id)
        except LedgerError as e:
            logger.error(f"Get portfolio error: {e}")
            return None

    def get_guest_portfolio(self) -> Portfolio:
        """Market overview computed from the catalog. Never stored."""
        return guest_portfolio(self.catalog.all(), self._now(), self.config.company_shares)

    def update_portfolio(self, user_id: str, portfolio: Portfolio) -> bool:
        """Replace a user's portfolio wholesale (totals are re-derived)."""
        try:
            if portfolio.user_id != user_id:
                raise RecordValidationError(
                    f"Portfolio belongs to {portfolio.user_id}, not {user_id}")
            with self._user_lock(user_id):
                self._commit_portfolio(
                    recalculate_totals(replace(portfolio, last_updated=self._now())))
        except LedgerError as e:
            logger.error(f"Update portfolio error: {e}")
            return False
        return True

    def buy(self, user_id: str, property_id: str, amount_mmk) -> bool:
        """Invest amount_mmk of the user's cash in a property."""
        try:
            with self._user_lock(user_id):
                portfolio = self._portfolio_for(user_id)
                prop = self.catalog.require(property_id)
                self._commit_portfolio(compute_buy(
                    portfolio, prop, amount_mmk, self._now(), self.config.activity_log_limit))
        except LedgerError as e:
            logger.warning(f"Buy rejected for {user_id} on {property_id}: {e}")
            return False
        logger.info(f"{user_id} bought {amount_mmk} MMK of {property_id}")
        return True

    def sell(self, user_id: str, property_id: str, amount_mmk) -> bool:
        """Sell amount_mmk worth of the user's holding in a property."""
        try:
            with self._user_lock(user_id):
                portfolio = self._portfolio_for(user_id)
                prop = self.catalog.require(property_id)
                self._commit_portfolio(compute_sell(
                    portfolio, prop, amount_mmk, self._now(), self.config.activity_log_limit))
        except LedgerError as e:
            logger.warning(f"Sell rejected for {user_id} on {property_id}: {e}")
            return False
        logger.info(f"{user_id} sold {amount_mmk} MMK of {property_id}")
        return True

    def apply_market_delta(self, delta_pct) -> bool:
        """Move every valuation by delta_pct percent and revalue all portfolios."""
        try:
            with self._all_user_locks():
                now = self._now()
                new_properties, revalued = simulate_market(
                    self.catalog.all(), self.portfolios, delta_pct)
                catalog = self.catalog.copy()
                catalog.replace_properties(new_properties)
                portfolios = {
                    user_id: replace(
                        p,
                        last_updated=now,
                        snapshot=replace(p.snapshot, properties_count=len(catalog)),
                    )
                    for user_id, p in revalued.items()
                }
                self.adapter.save_dynamic_properties(catalog.dynamic_properties)
                self.adapter.save_valuations(catalog.valuations())
                self.adapter.save_portfolios(portfolios)
                self.catalog = catalog
                self.portfolios = portfolios
        except LedgerError as e:
            logger.warning(f"Market simulation rejected: {e}")
            return False
        logger.info(f"Applied market delta {delta_pct}% to {len(self.catalog)} properties")
        return True

    def get_performance_series(
        self,
        user_id: str,
        days: int = 7,
        seed: Optional[int] = None,
    ) -> Optional[List[float]]:
        """Chart series from cost basis (value minus P&L) to current value."""
        portfolio = self.get_portfolio(user_id)
        if portfolio is None:
            return None
        previous = portfolio.total_value_mmk - portfolio.net_pnl_abs
        try:
            return performance_series(portfolio.total_value_mmk, previous, days=days, seed=seed)
        except ValueError as e:
            logger.warning(f"Performance series rejected for {user_id}: {e}")
            return None

    def get_top_holdings(self, user_id: str, limit: int = 5) -> Optional[List[Holding]]:
        portfolio = self.get_portfolio(user_id)
        if portfolio is None:
            return None
        return top_holdings(portfolio, limit)

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    def get_all_properties(self) -> List[Property]:
        return self.catalog.all()

    def get_property_by_id(self, property_id: str) -> Optional[Property]:
        return self.catalog.get(property_id)

    def get_property_type(self, property_id: str) -> Optional[str]:
        """'static', 'dynamic', or None."""
        return self.catalog.property_type(property_id)

    def create_property(self, data: Mapping[str, Any]) -> Optional[Property]:
        """Add a dynamic property. `data` uses Property field names; id is generated."""
        try:
            with self._state_lock:
                catalog = self.catalog.copy()
                prop = catalog.create(data)
                self.adapter.save_dynamic_properties(catalog.dynamic_properties)
                self.adapter.save_valuations(catalog.valuations())
                self.catalog = catalog
        except LedgerError as e:
            logger.warning(f"Create property rejected: {e}")
            return None
        logger.info(f"Created property {prop.id} ({prop.name})")
        return prop

    def update_property(self, property_id: str, data: Mapping[str, Any]) -> bool:
        """Edit a dynamic property. Static properties are rejected."""
        try:
            with self._state_lock:
                catalog = self.catalog.copy()
                catalog.update(property_id, data)
                self.adapter.save_dynamic_properties(catalog.dynamic_properties)
                self.adapter.save_valuations(catalog.valuations())
                self.catalog = catalog
        except LedgerError as e:
            logger.warning(f"Update property {property_id} rejected: {e}")
            return False
        return True

    def delete_property(self, property_id: str) -> bool:
        """Delete a dynamic property. Static properties are rejected."""
        try:
            with self._state_lock:
                catalog = self.catalog.copy()
                catalog.delete(property_id)
                self.adapter.save_dynamic_properties(catalog.dynamic_properties)
                self.adapter.save_valuations(catalog.valuations())
                self.catalog = catalog
        except LedgerError as e:
            logger.warning(f"Delete property {property_id} rejected: {e}")
            return False
        logger.info(f"Deleted property {property_id}")
        return True

    def storage_dump(self) -> Dict[str, Any]:
        """Every stored key, parsed as JSON where possible."""
        try:
            return self.adapter.dump()
        except LedgerError as e:
            logger.error(f"Error reading storage: {e}")
            return {}

    def __repr__(self):
        return (f"PortfolioDatabase({len(self.users)} users, {len(self.portfolios)} portfolios, "
                f"{self.catalog!r})")
