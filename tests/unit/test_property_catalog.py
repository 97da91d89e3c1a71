"""
test_property_catalog.py - Unit tests for PropertyCatalog

Tests:
- Layer ordering and lookups
- create / update / delete on the dynamic layer
- Static properties rejected for update and delete
- Market replacement and persisted valuations across both layers
"""

import pytest
from decimal import Decimal

from propledger import (
    PropertyCatalog,
    PropertyNotFound, RecordValidationError, StaticPropertyReadOnly,
    PROPERTY_TYPE_DYNAMIC, PROPERTY_TYPE_STATIC,
)
from tests.builders import make_property


NEW_PROPERTY = {
    "name": "Hlaing River Lofts",
    "segment": "Residential",
    "current_value_mmk": "600000000",
    "share_price_mmk": "600",
    "total_shares": 1_000_000,
    "available_shares": 1_000_000,
    "cis_ownership_pct": "30",
}


@pytest.fixture
def catalog():
    return PropertyCatalog(
        [make_property("s1"), make_property("s2")],
        [make_property("d1")],
    )


class TestReads:

    def test_static_then_dynamic(self, catalog):
        assert [p.id for p in catalog.all()] == ["s1", "s2", "d1"]
        assert len(catalog) == 3
        assert "d1" in catalog
        assert "zz" not in catalog

    def test_get_and_require(self, catalog):
        assert catalog.get("s2").id == "s2"
        assert catalog.get("missing") is None
        with pytest.raises(PropertyNotFound):
            catalog.require("missing")

    def test_property_type(self, catalog):
        assert catalog.property_type("s1") == PROPERTY_TYPE_STATIC
        assert catalog.property_type("d1") == PROPERTY_TYPE_DYNAMIC
        assert catalog.property_type("missing") is None

    def test_seed_catalog_value(self, seed_catalog):
        assert len(seed_catalog) == 5
        assert seed_catalog.total_value() == Decimal("9000000000")

    def test_duplicate_static_ids_rejected(self):
        with pytest.raises(RecordValidationError):
            PropertyCatalog([make_property("s1"), make_property("s1")])

    def test_dynamic_colliding_with_static_is_skipped(self):
        catalog = PropertyCatalog([make_property("s1")], [make_property("s1", value="5")])
        assert len(catalog) == 1
        assert catalog.get("s1").current_value_mmk == Decimal("1000000000")


class TestCreate:

    def test_create_appends_dynamic(self, catalog):
        prop = catalog.create(NEW_PROPERTY)
        assert prop.id.startswith("prop-")
        assert catalog.all()[-1] == prop
        assert catalog.property_type(prop.id) == PROPERTY_TYPE_DYNAMIC
        assert prop.current_value_mmk == Decimal("600000000")

    def test_create_ignores_supplied_id(self, catalog):
        prop = catalog.create(dict(NEW_PROPERTY, id="s1"))
        assert prop.id != "s1"
        assert catalog.get("s1").name == "Test s1"

    def test_create_ids_unique(self, catalog):
        a = catalog.create(NEW_PROPERTY)
        b = catalog.create(NEW_PROPERTY)
        assert a.id != b.id

    def test_create_unknown_field(self, catalog):
        with pytest.raises(RecordValidationError):
            catalog.create(dict(NEW_PROPERTY, colour="blue"))

    def test_create_missing_field(self, catalog):
        data = dict(NEW_PROPERTY)
        del data["share_price_mmk"]
        with pytest.raises(RecordValidationError):
            catalog.create(data)

    def test_create_invalid_value(self, catalog):
        with pytest.raises(RecordValidationError):
            catalog.create(dict(NEW_PROPERTY, current_value_mmk=0))
        assert len(catalog) == 3


class TestUpdateDelete:

    def test_update_dynamic(self, catalog):
        updated = catalog.update("d1", {"name": "Renamed", "occupancy_rate": "75.5"})
        assert updated.name == "Renamed"
        assert catalog.get("d1").occupancy_rate == Decimal("75.5")

    def test_update_cannot_change_id(self, catalog):
        catalog.update("d1", {"id": "other", "name": "Same id"})
        assert catalog.get("d1").name == "Same id"
        assert catalog.get("other") is None

    def test_update_static_rejected(self, catalog):
        with pytest.raises(StaticPropertyReadOnly):
            catalog.update("s1", {"name": "Nope"})
        assert catalog.get("s1").name == "Test s1"

    def test_update_missing(self, catalog):
        with pytest.raises(PropertyNotFound):
            catalog.update("missing", {"name": "x"})

    def test_delete_dynamic(self, catalog):
        removed = catalog.delete("d1")
        assert removed.id == "d1"
        assert catalog.get("d1") is None

    def test_delete_static_rejected(self, catalog):
        with pytest.raises(StaticPropertyReadOnly):
            catalog.delete("s2")
        assert len(catalog) == 3

    def test_deleted_id_stays_unknown(self, catalog):
        catalog.delete("d1")
        with pytest.raises(PropertyNotFound):
            catalog.delete("d1")


class TestMarketUpdates:

    def test_replace_properties_keeps_layers(self, catalog):
        catalog.replace_properties([make_property("s1", value="5"), make_property("d1", value="7"),
                                    make_property("unknown", value="9")])
        assert catalog.get("s1").current_value_mmk == Decimal("5")
        assert catalog.get("d1").current_value_mmk == Decimal("7")
        assert catalog.property_type("d1") == PROPERTY_TYPE_DYNAMIC
        assert catalog.get("unknown") is None

    def test_apply_valuations(self, catalog):
        catalog.apply_valuations({"s2": "123", "gone": "5"})
        assert catalog.get("s2").current_value_mmk == Decimal("123")
        assert catalog.valuations()["s1"] == Decimal("1000000000")

    def test_copy_is_independent(self, catalog):
        clone = catalog.copy()
        clone.delete("d1")
        assert "d1" in catalog
        assert "d1" not in clone
