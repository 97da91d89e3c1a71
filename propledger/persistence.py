"""
persistence.py - Persistence Adapter

Serializes the ledger's logical collections into a KeyValueStore as JSON
blobs, one key per collection:

    app_auth_user                 - session marker (current user, or absent)
    app_users_data                - {"users": [...]}
    app_portfolio_data            - {userId: portfolio}
    app_dynamic_properties_data   - [property, ...] (runtime-created only)
    app_properties_data           - {propertyId: currentValueMMK}

Load contract:
    users, portfolios   seed ∪ stored, stored wins on the same id
    dynamic properties  stored list, concatenated after the static seed
    valuations          applied over whatever the catalog holds

A blob that cannot be read or decoded is logged and the seed is kept. Saves
always rewrite the whole collection and raise StorageError on failure.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional
import json
import logging

from .core import (
    LedgerError, Portfolio, Property, RecordValidationError, StorageError, User,
    to_decimal,
)
from .serialization import (
    portfolio_from_dict, portfolio_to_dict,
    property_from_dict, property_to_dict,
    records_from_list,
    user_from_dict, user_to_dict,
)
from .storage import KeyValueStore

logger = logging.getLogger(__name__)


AUTH_STORAGE_KEY = "app_auth_user"
PORTFOLIO_STORAGE_KEY = "app_portfolio_data"
USERS_STORAGE_KEY = "app_users_data"
PROPERTIES_STORAGE_KEY = "app_properties_data"
DYNAMIC_PROPERTIES_STORAGE_KEY = "app_dynamic_properties_data"

ALL_STORAGE_KEYS = (
    AUTH_STORAGE_KEY,
    PORTFOLIO_STORAGE_KEY,
    USERS_STORAGE_KEY,
    PROPERTIES_STORAGE_KEY,
    DYNAMIC_PROPERTIES_STORAGE_KEY,
)


class PersistenceAdapter:
    """
    Reads and writes whole collections. No partial writes, no transactions,
    no schema versioning.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    # ========================================================================
    # RAW JSON ACCESS
    # ========================================================================

    def _read_json(self, key: str) -> Any:
        """Parsed blob, or None if the key is absent."""
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise RecordValidationError(f"Stored value for {key} is not valid JSON: {e}") from e

    def _write_json(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Cannot serialize {key}: {e}") from e
        self.store.set(key, payload)

    # ========================================================================
    # USERS
    # ========================================================================

    def load_users(self, seed: Iterable[User]) -> List[User]:
        """Seed users overlaid with stored users by id; new ids are appended."""
        merged: Dict[str, User] = {u.id: u for u in seed}
        try:
            blob = self._read_json(USERS_STORAGE_KEY)
            if blob is not None:
                if not isinstance(blob, dict):
                    raise RecordValidationError("Users blob must be an object")
                for user in records_from_list(user_from_dict, blob.get("users", []), "User"):
                    merged[user.id] = user
        except LedgerError as e:
            logger.error(f"Failed to load users, keeping seed: {e}")
            return list({u.id: u for u in seed}.values())
        return list(merged.values())

    def save_users(self, users: Iterable[User]) -> None:
        self._write_json(USERS_STORAGE_KEY, {"users": [user_to_dict(u) for u in users]})

    # ========================================================================
    # PORTFOLIOS
    # ========================================================================

    def load_portfolios(self, seed: Mapping[str, Portfolio]) -> Dict[str, Portfolio]:
        """Seed portfolios overlaid with stored portfolios by user id."""
        merged = dict(seed)
        try:
            blob = self._read_json(PORTFOLIO_STORAGE_KEY)
            if blob is not None:
                if not isinstance(blob, dict):
                    raise RecordValidationError("Portfolios blob must be an object keyed by user id")
                stored = {user_id: portfolio_from_dict(raw) for user_id, raw in blob.items()}
                merged.update(stored)
        except LedgerError as e:
            logger.error(f"Failed to load portfolios, keeping seed: {e}")
            return dict(seed)
        return merged

    def save_portfolios(self, portfolios: Mapping[str, Portfolio]) -> None:
        self._write_json(
            PORTFOLIO_STORAGE_KEY,
            {user_id: portfolio_to_dict(p) for user_id, p in portfolios.items()},
        )

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    def load_dynamic_properties(self) -> List[Property]:
        try:
            blob = self._read_json(DYNAMIC_PROPERTIES_STORAGE_KEY)
            if blob is None:
                return []
            return records_from_list(property_from_dict, blob, "Property")
        except LedgerError as e:
            logger.error(f"Failed to load dynamic properties: {e}")
            return []

    def save_dynamic_properties(self, properties: Iterable[Property]) -> None:
        self._write_json(DYNAMIC_PROPERTIES_STORAGE_KEY, [property_to_dict(p) for p in properties])

    def load_valuations(self) -> Dict[str, Decimal]:
        """Market valuations keyed by property id (empty if never saved)."""
        try:
            blob = self._read_json(PROPERTIES_STORAGE_KEY)
            if blob is None:
                return {}
            if not isinstance(blob, dict):
                raise RecordValidationError("Valuations blob must be an object keyed by property id")
            valuations = {prop_id: to_decimal(value) for prop_id, value in blob.items()}
            bad = sorted(prop_id for prop_id, value in valuations.items() if value <= 0)
            if bad:
                raise RecordValidationError(f"Valuations must be positive: {bad}")
            return valuations
        except LedgerError as e:
            logger.error(f"Failed to load property valuations: {e}")
            return {}

    def save_valuations(self, valuations: Mapping[str, Decimal]) -> None:
        self._write_json(PROPERTIES_STORAGE_KEY, {k: str(v) for k, v in valuations.items()})

    # ========================================================================
    # SESSION
    # ========================================================================

    def save_session(self, user: User) -> None:
        self._write_json(AUTH_STORAGE_KEY, user_to_dict(user))

    def load_session(self) -> Optional[User]:
        """Currently signed-in user, or None for a guest."""
        blob = self._read_json(AUTH_STORAGE_KEY)
        return user_from_dict(blob) if blob is not None else None

    def clear_session(self) -> None:
        self.store.remove(AUTH_STORAGE_KEY)

    # ========================================================================
    # MAINTENANCE
    # ========================================================================

    def clear_all(self) -> None:
        """Remove every key this adapter owns."""
        self.store.remove_all(ALL_STORAGE_KEYS)

    def dump(self) -> Dict[str, Any]:
        """
        Every key in the store, parsed as JSON where possible.

        Values that are not JSON are returned as the raw string.
        """
        data: Dict[str, Any] = {}
        for key in self.store.list_keys():
            raw = self.store.get(key)
            if raw is None:
                continue
            try:
                data[key] = json.loads(raw)
            except json.JSONDecodeError:
                data[key] = raw
        return data
