"""
conftest.py - Shared pytest fixtures for propledger tests

Provides common fixtures used across unit, conformance and functional tests:
- A fixed clock
- Single properties and catalogs (seed and hand-built)
- Empty and funded portfolios
- Key-value stores (in-memory, file-backed, failing)
- A loaded PortfolioDatabase
"""

import pytest

from propledger import (
    PropertyCatalog, PortfolioDatabase,
    InMemoryKeyValueStore, JsonFileKeyValueStore,
    default_seed,
)

from tests.builders import FIXED_NOW, FailingKeyValueStore, make_portfolio, make_property


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def billion_property():
    """A 1,000,000,000 MMK property at 1,000 MMK per share."""
    return make_property("prop-bn", value="1000000000", share_price="1000", name="Billion Tower")


@pytest.fixture
def empty_portfolio():
    """A fresh portfolio with 100,000,000 MMK cash and no holdings."""
    return make_portfolio()


@pytest.fixture
def seed():
    return default_seed()


@pytest.fixture
def seed_catalog(seed):
    return PropertyCatalog(seed.properties)


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def file_store(tmp_path):
    return JsonFileKeyValueStore(tmp_path / "data")


@pytest.fixture
def failing_store():
    return FailingKeyValueStore()


@pytest.fixture
def db(store, clock):
    """A loaded database over an empty in-memory store with a fixed clock."""
    database = PortfolioDatabase(store, clock=clock)
    database.load()
    return database


@pytest.fixture
def new_user(db):
    """A freshly registered user with 100,000,000 MMK cash."""
    return db.create_user("alice@example.com", "secret", "Alice")
