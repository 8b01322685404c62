"""
inventory/store.py -- SQLAlchemy-backed persistence layer for products.

Uses SQLAlchemy Core (not ORM) so the dataclasses in inventory/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change (DATABASE_URL), not a rewrite.

Pattern: Repository + Data Mapper. ProductStore is the repository; _row_to_product
is the mapper. Route handlers never touch SQL directly.

Security: all queries use bound parameters. Partial updates go through
build_product_update(), which only accepts whitelisted column names and lets
SQLAlchemy emit the placeholders.

Usage:
    store = ProductStore()                               # DATABASE_URL or SQLite default
    store = ProductStore("postgresql://user:pw@host/db") # PostgreSQL
    product_id = store.create_product(Product(sku="LAP001", name="Laptop", qty=3, price=899.99))
    store.update_product(product_id, {"qty": 2})
    products = store.list_products()
    store.close()
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import Column, Integer, MetaData, Numeric, String, Table, create_engine, event, or_, text
from sqlalchemy.engine import Engine
from sqlalchemy.sql.expression import Update

from core.config import get_settings
from inventory.models import InventorySummary, Product

# Columns a partial update may touch. sku is immutable after creation.
UPDATABLE_FIELDS: frozenset[str] = frozenset({"name", "qty", "price"})

_CENTS = Decimal("0.01")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_products = Table(
    "products",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("sku", String(20), nullable=False, unique=True),
    Column("name", String(100), nullable=False),
    Column("qty", Integer, nullable=False, server_default="0"),
    Column("price", Numeric(10, 2, asdecimal=False), nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_product_update(product_id: int, changes: Mapping[str, object]) -> Update:
    """Build a parameterized UPDATE touching only the supplied columns.

    changes maps column name -> new value for the fields the client actually
    sent. Unknown column names raise ValueError rather than being dropped, and
    an empty mapping raises ValueError too: a statement that only bumps
    updated_at is never what the caller meant. updated_at is always set.
    """
    if not changes:
        raise ValueError("At least one field is required for an update.")
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields not updatable: {sorted(unknown)!r}")
    values = dict(changes)
    values["updated_at"] = _now_iso()
    return _products.update().where(_products.c.id == product_id).values(**values)


def summarize(products: list[Product]) -> InventorySummary:
    """Compute list totals.

    total_value is sum(qty * price) rounded half-up to cents. Prices go through
    str() into Decimal so float representation error cannot flip a rounding
    decision.
    """
    total_value = sum((Decimal(str(p.price)) * p.qty for p in products), Decimal("0"))
    return InventorySummary(
        total_products=len(products),
        total_quantity=sum(p.qty for p in products),
        total_value=float(total_value.quantize(_CENTS, rounding=ROUND_HALF_UP)),
    )


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ProductStore:
    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # FastAPI runs sync route handlers in a thread pool, so the same
            # pooled connection may be used from more than one thread.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_product(self, product: Product) -> int:
        """Insert a new product and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the SKU already exists. Callers
        check get_product_by_sku() first; the constraint covers the race between
        that check and this insert.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _products.insert().values(
                    sku=product.sku,
                    name=product.name,
                    qty=product.qty,
                    price=product.price,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_product(self, product_id: int, changes: Mapping[str, object]) -> bool:
        """Apply a partial update. Returns True if a row was updated.

        Raises ValueError for an empty mapping or a non-updatable field
        (see build_product_update).
        """
        stmt = build_product_update(product_id, changes)
        with self.engine.connect() as conn:
            result = conn.execute(stmt)
            conn.commit()
        return result.rowcount > 0

    def delete_product(self, product_id: int) -> bool:
        """Delete a product. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_products.delete().where(_products.c.id == product_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_product(self, product_id: int) -> Product | None:
        """Fetch a single product by ID. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_products.select().where(_products.c.id == product_id)).fetchone()
        return _row_to_product(row) if row is not None else None

    def get_product_by_sku(self, sku: str) -> Product | None:
        """Look up a product by exact SKU. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_products.select().where(_products.c.sku == sku)).fetchone()
        return _row_to_product(row) if row is not None else None

    def list_products(self) -> list[Product]:
        """Return all products ordered by name ascending."""
        with self.engine.connect() as conn:
            rows = conn.execute(_products.select().order_by(_products.c.name, _products.c.id)).fetchall()
        return [_row_to_product(r) for r in rows]

    def search_products(self, query: str) -> list[Product]:
        """Return products whose name or SKU contains query, ignoring case.

        LIKE wildcards in query ("%", "_") are escaped, so the match is a
        literal substring match. An empty query matches every product.
        """
        condition = or_(
            _products.c.name.icontains(query, autoescape=True),
            _products.c.sku.icontains(query, autoescape=True),
        )
        with self.engine.connect() as conn:
            rows = conn.execute(
                _products.select().where(condition).order_by(_products.c.name, _products.c.id)
            ).fetchall()
        return [_row_to_product(r) for r in rows]

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_product(row) -> Product:
    return Product(
        id=row.id,
        sku=row.sku,
        name=row.name,
        qty=row.qty,
        price=float(row.price),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
