"""
catalog.py - Property Catalog

In-memory list of investable properties, made of two layers:

    static   - bundled seed records. Read-only for create/update/delete;
               only the market simulator may move their valuations.
    dynamic  - records created at runtime. Editable and deletable until
               deleted. Always listed after the static layer.

A property never moves between layers.
"""

from __future__ import annotations
from dataclasses import fields, replace
from decimal import Decimal
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional
import logging
import uuid

from .core import (
    Property,
    PROPERTY_TYPE_DYNAMIC, PROPERTY_TYPE_STATIC, ZERO,
    PropertyNotFound, RecordValidationError, StaticPropertyReadOnly,
    find_by_id, to_decimal,
)

logger = logging.getLogger(__name__)

_PROPERTY_FIELDS = frozenset(f.name for f in fields(Property))


def new_property_id() -> str:
    """Opaque unique id for a runtime-created property."""
    return f"prop-{uuid.uuid4().hex[:12]}"


class PropertyCatalog:
    """
    Static seed plus dynamic overlay.

    Records are frozen; every change swaps a record for a new one. Lookups are
    linear, which is fine for a catalog of a few dozen entries.

    Thread Safety:
        Not thread-safe. PortfolioDatabase serializes catalog mutations.
    """

    def __init__(
        self,
        static_properties: Iterable[Property],
        dynamic_properties: Iterable[Property] = (),
    ):
        self._static: List[Property] = list(static_properties)
        self._static_ids = frozenset(p.id for p in self._static)
        if len(self._static_ids) != len(self._static):
            raise RecordValidationError("Duplicate ids in static property seed")
        self._dynamic: List[Property] = []
        for prop in dynamic_properties:
            if prop.id in self._static_ids or find_by_id(self._dynamic, prop.id):
                logger.warning(f"Skipping dynamic property {prop.id}: id already in catalog")
                continue
            self._dynamic.append(prop)

    # ========================================================================
    # READ
    # ========================================================================

    def __iter__(self) -> Iterator[Property]:
        return iter(self.all())

    def __len__(self) -> int:
        return len(self._static) + len(self._dynamic)

    def __contains__(self, property_id: object) -> bool:
        return self.get(property_id) is not None  # type: ignore[arg-type]

    def all(self) -> List[Property]:
        """Static records followed by dynamic records."""
        return self._static + self._dynamic

    @property
    def static_ids(self) -> frozenset:
        return self._static_ids

    @property
    def dynamic_properties(self) -> List[Property]:
        return list(self._dynamic)

    def copy(self) -> PropertyCatalog:
        """Independent catalog with the same records (records are immutable)."""
        clone = PropertyCatalog(self._static)
        clone._dynamic = list(self._dynamic)
        return clone

    def get(self, property_id: str) -> Optional[Property]:
        return find_by_id(self._static, property_id) or find_by_id(self._dynamic, property_id)

    def require(self, property_id: str) -> Property:
        """Return the property or raise PropertyNotFound."""
        prop = self.get(property_id)
        if prop is None:
            raise PropertyNotFound(f"Property {property_id} not in catalog")
        return prop

    def is_static(self, property_id: str) -> bool:
        return property_id in self._static_ids

    def property_type(self, property_id: str) -> Optional[str]:
        """'static', 'dynamic', or None if the id is unknown."""
        if property_id in self._static_ids:
            return PROPERTY_TYPE_STATIC
        if find_by_id(self._dynamic, property_id) is not None:
            return PROPERTY_TYPE_DYNAMIC
        return None

    def total_value(self) -> Decimal:
        return sum((p.current_value_mmk for p in self.all()), ZERO)

    def valuations(self) -> Dict[str, Decimal]:
        """Current valuation of every property, keyed by id."""
        return {p.id: p.current_value_mmk for p in self.all()}

    # ========================================================================
    # ADMIN OPERATIONS (dynamic layer only)
    # ========================================================================

    def create(self, data: Mapping[str, Any], property_id: Optional[str] = None) -> Property:
        """
        Add a dynamic property built from `data` (Property field names).

        Any id inside `data` is ignored; a fresh id is generated unless
        property_id is given.

        Raises:
            RecordValidationError: unknown fields or invalid values
        """
        values = {k: v for k, v in data.items() if k != "id"}
        _check_fields(values)
        new_id = property_id or new_property_id()
        if self.get(new_id) is not None:
            raise RecordValidationError(f"Property id {new_id} already in catalog")
        try:
            prop = Property(id=new_id, **values)
        except TypeError as e:
            raise RecordValidationError(f"Incomplete property data: {e}") from e
        self._dynamic.append(prop)
        return prop

    def update(self, property_id: str, changes: Mapping[str, Any]) -> Property:
        """
        Apply `changes` to a dynamic property. The id cannot change.

        Raises:
            StaticPropertyReadOnly: property_id belongs to the seed
            PropertyNotFound: no dynamic property with that id
            RecordValidationError: unknown fields or invalid values
        """
        index = self._dynamic_index(property_id)
        values = {k: v for k, v in changes.items() if k != "id"}
        _check_fields(values)
        updated = replace(self._dynamic[index], **values)
        self._dynamic[index] = updated
        return updated

    def delete(self, property_id: str) -> Property:
        """
        Remove a dynamic property and return it.

        Raises:
            StaticPropertyReadOnly: property_id belongs to the seed
            PropertyNotFound: no dynamic property with that id
        """
        index = self._dynamic_index(property_id)
        return self._dynamic.pop(index)

    def _dynamic_index(self, property_id: str) -> int:
        if property_id in self._static_ids:
            raise StaticPropertyReadOnly(f"Property {property_id} is part of the seed catalog")
        for i, prop in enumerate(self._dynamic):
            if prop.id == property_id:
                return i
        raise PropertyNotFound(f"Dynamic property {property_id} not in catalog")

    # ========================================================================
    # MARKET OPERATIONS (both layers)
    # ========================================================================

    def replace_properties(self, properties: Iterable[Property]) -> None:
        """
        Swap in new records for existing ids (used after a market move).

        Ids not in the catalog are ignored; layer membership is unchanged.
        """
        by_id = {p.id: p for p in properties}
        self._static = [by_id.get(p.id, p) for p in self._static]
        self._dynamic = [by_id.get(p.id, p) for p in self._dynamic]

    def apply_valuations(self, valuations: Mapping[str, Any]) -> None:
        """Overwrite current_value_mmk for the ids present in `valuations`."""
        self.replace_properties(
            replace(p, current_value_mmk=to_decimal(valuations[p.id]))
            for p in self.all() if p.id in valuations
        )

    def __repr__(self):
        return f"PropertyCatalog({len(self._static)} static, {len(self._dynamic)} dynamic)"


def _check_fields(values: Mapping[str, Any]) -> None:
    unknown = set(values) - _PROPERTY_FIELDS
    if unknown:
        raise RecordValidationError(f"Unknown property fields: {sorted(unknown)}")
