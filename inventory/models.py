"""
inventory/models.py -- Domain dataclasses for the product inventory.

Pure data containers with zero logic. Persistence, the partial-update builder
and the summary math live in inventory/store.py.

Separation of concerns: these dataclasses are the inventory's domain truth;
api/models.py owns the HTTP contract. Route handlers map between the two.
"""

from dataclasses import asdict, dataclass


@dataclass
class Product:
    """One stock line.

    sku is unique across the table and immutable after creation.
    id, created_at and updated_at are set by the store on insert.
    """

    sku: str
    name: str
    qty: int
    price: float
    id: int | None = None
    created_at: str = ""  # ISO 8601
    updated_at: str = ""  # ISO 8601, refreshed on every update

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class InventorySummary:
    """Aggregates over a product list. Computed per request, never stored."""

    total_products: int
    total_quantity: int
    total_value: float
