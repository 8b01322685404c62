"""Unit tests for inventory/store.py -- ProductStore, the partial-update builder
and the summary math.

Covers:
- create/get/get_by_sku round trip with assigned id and timestamps
- duplicate SKU raises IntegrityError
- update_product() touches only supplied columns and bumps updated_at
- build_product_update() rejects empty and non-whitelisted changes
- delete_product() reports whether a row existed
- list ordering and case-insensitive search on name or SKU
- summarize() rounds half-up to cents and tolerates float noise
"""

import pytest
from sqlalchemy.exc import IntegrityError

from inventory.models import Product
from inventory.store import UPDATABLE_FIELDS, ProductStore, build_product_update, summarize

# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(tmp_path):
    """File-backed ProductStore in a temp directory, fresh per test."""
    s = ProductStore(f"sqlite:///{tmp_path / 'products.db'}")
    yield s
    s.close()


@pytest.fixture
def seeded(store):
    """Store pre-loaded with three products, returned as (store, {sku: id})."""
    ids = {
        "LAP001": store.create_product(Product(sku="LAP001", name="Laptop Dell", qty=10, price=899.99)),
        "MON002": store.create_product(Product(sku="MON002", name="Monitor Samsung", qty=25, price=199.99)),
        "KEY003": store.create_product(Product(sku="KEY003", name="Keyboard for laptops", qty=0, price=89.99)),
    }
    return store, ids


class TestCreateAndRead:
    def test_create_assigns_id_and_timestamps(self, store):
        product_id = store.create_product(Product(sku="ABC1", name="Thing", qty=2, price=3.5))
        product = store.get_product(product_id)
        assert product.id == product_id
        assert product.sku == "ABC1"
        assert product.qty == 2
        assert product.price == pytest.approx(3.5)
        assert product.created_at
        assert product.created_at == product.updated_at

    def test_get_missing_returns_none(self, store):
        assert store.get_product(12345) is None
        assert store.get_product_by_sku("NOPE") is None

    def test_get_by_sku(self, seeded):
        store, ids = seeded
        assert store.get_product_by_sku("MON002").id == ids["MON002"]

    def test_duplicate_sku_raises_integrity_error(self, seeded):
        store, _ = seeded
        with pytest.raises(IntegrityError):
            store.create_product(Product(sku="LAP001", name="Another laptop", qty=1, price=1))

    def test_ping(self, store):
        assert store.ping() is True


class TestUpdate:
    def test_partial_update(self, seeded):
        store, ids = seeded
        before = store.get_product(ids["LAP001"])
        assert store.update_product(ids["LAP001"], {"qty": 4}) is True
        after = store.get_product(ids["LAP001"])
        assert after.qty == 4
        assert after.name == before.name
        assert after.price == before.price
        assert after.sku == before.sku
        assert after.created_at == before.created_at
        assert after.updated_at >= before.updated_at

    def test_update_missing_row_returns_false(self, store):
        assert store.update_product(999, {"name": "x"}) is False

    def test_empty_changes_rejected_without_write(self, seeded):
        store, ids = seeded
        before = store.get_product(ids["MON002"])
        with pytest.raises(ValueError):
            store.update_product(ids["MON002"], {})
        assert store.get_product(ids["MON002"]) == before

    @pytest.mark.parametrize("column", ["sku", "id", "created_at", "updated_at", "price; DROP TABLE products"])
    def test_non_whitelisted_column_rejected(self, column):
        with pytest.raises(ValueError):
            build_product_update(1, {column: "x"})

    def test_builder_sets_updated_at_and_binds_values(self):
        stmt = build_product_update(7, {"name": "New name"})
        compiled = stmt.compile()
        assert "updated_at" in compiled.params
        assert compiled.params["name"] == "New name"
        assert "New name" not in str(compiled)

    def test_updatable_fields(self):
        assert UPDATABLE_FIELDS == {"name", "qty", "price"}


class TestDelete:
    def test_delete_then_gone(self, seeded):
        store, ids = seeded
        assert store.delete_product(ids["LAP001"]) is True
        assert store.get_product(ids["LAP001"]) is None
        assert store.delete_product(ids["LAP001"]) is False


class TestListAndSearch:
    def test_list_ordered_by_name(self, seeded):
        store, _ = seeded
        assert [p.name for p in store.list_products()] == ["Keyboard for laptops", "Laptop Dell", "Monitor Samsung"]

    def test_list_empty(self, store):
        assert store.list_products() == []

    def test_search_name_and_sku_case_insensitive(self, seeded):
        store, _ = seeded
        assert [p.sku for p in store.search_products("LAP")] == ["KEY003", "LAP001"]
        assert [p.sku for p in store.search_products("mon002")] == ["MON002"]

    def test_search_no_match(self, seeded):
        store, _ = seeded
        assert store.search_products("tablet") == []

    @pytest.mark.parametrize("query", ["%", "_", "L_P"])
    def test_search_wildcards_are_literal(self, seeded, query):
        store, _ = seeded
        assert store.search_products(query) == []


class TestSummarize:
    def test_empty(self):
        summary = summarize([])
        assert (summary.total_products, summary.total_quantity, summary.total_value) == (0, 0, 0.0)

    def test_totals(self):
        products = [
            Product(sku="A", name="a", qty=10, price=899.99),
            Product(sku="B", name="b", qty=25, price=199.99),
            Product(sku="C", name="c", qty=0, price=89.99),
        ]
        summary = summarize(products)
        assert summary.total_products == 3
        assert summary.total_quantity == 35
        assert summary.total_value == 13999.65

    def test_float_noise_does_not_leak(self):
        """0.1 * 3 is 0.30000000000000004 in binary floating point."""
        assert summarize([Product(sku="A", name="a", qty=3, price=0.1)]).total_value == 0.3

    def test_rounds_half_up(self):
        assert summarize([Product(sku="A", name="a", qty=1, price=0.125)]).total_value == 0.13
        assert summarize([Product(sku="A", name="a", qty=1, price=2.675)]).total_value == 2.68
