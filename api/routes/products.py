"""
api/routes/products.py -- Product CRUD and search routes for the inventory API.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /products                  -- list all products + inventory summary
  GET    /products/search/{query}   -- substring search on name or SKU
  GET    /products/{product_id}     -- single product
  POST   /products                  -- create product (admin)
  PUT    /products/{product_id}     -- partial update (admin)
  DELETE /products/{product_id}     -- delete product (admin)

Request pipeline:
  Dependencies run in declaration order, and all of them run before the body
  is validated wherever it sits in the signature. Every handler declares its
  auth dependency ahead of its path dependency. A viewer sending a malformed
  body to POST /products gets 403, not 400, and a missing product is reported
  as 404 before its update body is looked at.

Audit:
  Every successful mutation writes one record to the "inventory.audit" logger
  with extra={"action", "product_id", "sku", "actor"}.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.exc import IntegrityError

from api.models import (
    InventorySummaryModel,
    ProductCreate,
    ProductEnvelope,
    ProductIdParams,
    ProductListResponse,
    ProductRecord,
    ProductUpdate,
    ProductWriteResponse,
    SearchParams,
    SearchResponse,
)
from api.validation import validate_or_raise
from auth.dependencies import require_admin, require_permission
from auth.models import SessionUser
from auth.permissions import Action
from core.errors import ConflictError, EmptyUpdateError, NotFoundError
from inventory.models import Product
from inventory.store import ProductStore, summarize

audit_logger = logging.getLogger("inventory.audit")

router = APIRouter()

require_read = require_permission(Action.READ)

# Largest value an INTEGER primary key can hold.
MAX_PRODUCT_ID = 2**63 - 1


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _store(request: Request) -> ProductStore:
    return request.app.state.product_store


def product_id_param(product_id: str) -> int:
    """Sanitize and validate the {product_id} path segment (digits only).

    An id past the signed 64-bit range cannot name a stored row, so it is
    reported as not found without touching the datastore. The length check
    runs first so a huge segment never reaches int().
    """
    params = validate_or_raise(ProductIdParams, {"id": product_id}, "Invalid URL parameters.")
    digits = params.id.lstrip("0") or "0"
    if len(digits) > len(str(MAX_PRODUCT_ID)) or int(digits) > MAX_PRODUCT_ID:
        raise NotFoundError(f"Product with ID {digits} was not found.")
    return int(digits)


def existing_product(request: Request, product_id: int = Depends(product_id_param)) -> Product:
    """Load the addressed product or raise NotFoundError (404)."""
    product = _store(request).get_product(product_id)
    if product is None:
        raise NotFoundError(f"Product with ID {product_id} was not found.")
    return product


def search_query_param(query: str) -> str:
    params = validate_or_raise(SearchParams, {"query": query}, "Invalid URL parameters.")
    return params.query


def _record(product: Product) -> ProductRecord:
    return ProductRecord(**product.to_dict())


def _audit(action: str, product: Product, actor: SessionUser) -> None:
    audit_logger.info(
        "%s product %s (id=%s) by %s",
        action,
        product.sku,
        product.id,
        actor.username,
        extra={"action": action, "product_id": product.id, "sku": product.sku, "actor": actor.username},
    )


# ---------------------------------------------------------------------------
# GET /products -- list with summary
# ---------------------------------------------------------------------------


@router.get("/products", response_model=ProductListResponse)
def list_products(request: Request, user: SessionUser = Depends(require_read)) -> ProductListResponse:
    """Return every product ordered by name, plus count, quantity and value totals."""
    products = _store(request).list_products()
    summary = summarize(products)
    return ProductListResponse(
        products=[_record(p) for p in products],
        summary=InventorySummaryModel(
            total_products=summary.total_products,
            total_quantity=summary.total_quantity,
            total_value=summary.total_value,
        ),
    )


# ---------------------------------------------------------------------------
# GET /products/search/{query} -- must be registered before /products/{id}
# ---------------------------------------------------------------------------


@router.get("/products/search/{query}", response_model=SearchResponse)
def search_products(
    request: Request,
    user: SessionUser = Depends(require_read),
    query: str = Depends(search_query_param),
) -> SearchResponse:
    """Case-insensitive substring search over product name and SKU."""
    products = _store(request).search_products(query)
    return SearchResponse(
        products=[_record(p) for p in products],
        search_query=query,
        total_results=len(products),
    )


# ---------------------------------------------------------------------------
# GET /products/{product_id}
# ---------------------------------------------------------------------------


@router.get("/products/{product_id}", response_model=ProductEnvelope)
def get_product(
    user: SessionUser = Depends(require_read),
    product: Product = Depends(existing_product),
) -> ProductEnvelope:
    return ProductEnvelope(product=_record(product))


# ---------------------------------------------------------------------------
# POST /products -- create
# ---------------------------------------------------------------------------


@router.post("/products", response_model=ProductWriteResponse, status_code=201)
def create_product(
    request: Request,
    body: ProductCreate,
    user: SessionUser = Depends(require_admin),
) -> ProductWriteResponse:
    """Create a product. Duplicate SKU -> 409 conflict.

    The explicit lookup produces the friendly message; the unique constraint
    still catches two concurrent creates of the same SKU.
    """
    store = _store(request)
    if store.get_product_by_sku(body.sku) is not None:
        raise ConflictError(f"A product with SKU '{body.sku}' already exists.")
    try:
        product_id = store.create_product(Product(sku=body.sku, name=body.name, qty=body.qty, price=body.price))
    except IntegrityError as exc:
        raise ConflictError(f"A product with SKU '{body.sku}' already exists.") from exc

    product = store.get_product(product_id)
    if product is None:
        raise NotFoundError(f"Product with ID {product_id} was not found.")
    _audit("create", product, user)
    return ProductWriteResponse(message="Product created successfully.", product=_record(product))


# ---------------------------------------------------------------------------
# PUT /products/{product_id} -- partial update
# ---------------------------------------------------------------------------


@router.put("/products/{product_id}", response_model=ProductWriteResponse)
def update_product(
    request: Request,
    user: SessionUser = Depends(require_admin),
    product: Product = Depends(existing_product),
    body: Optional[ProductUpdate] = None,
) -> ProductWriteResponse:
    """Update only the supplied fields. No field supplied -> 400 empty_update.

    A missing body is treated the same as {}. sku cannot be changed.
    """
    changes = body.changes() if body is not None else {}
    if not changes:
        raise EmptyUpdateError("You must supply at least one field to update.")

    store = _store(request)
    if not store.update_product(product.id, changes):
        # Deleted between the existence check and the write.
        raise NotFoundError(f"Product with ID {product.id} was not found.")
    updated = store.get_product(product.id)
    if updated is None:
        raise NotFoundError(f"Product with ID {product.id} was not found.")
    _audit("update", updated, user)
    return ProductWriteResponse(message="Product updated successfully.", product=_record(updated))


# ---------------------------------------------------------------------------
# DELETE /products/{product_id}
# ---------------------------------------------------------------------------


@router.delete("/products/{product_id}", status_code=204, response_class=Response)
def delete_product(
    request: Request,
    user: SessionUser = Depends(require_admin),
    product: Product = Depends(existing_product),
) -> Response:
    if not _store(request).delete_product(product.id):
        raise NotFoundError(f"Product with ID {product.id} was not found.")
    _audit("delete", product, user)
    return Response(status_code=204)
