"""
API request and response models for the inventory REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in inventory/models.py and
auth/models.py, which own the internal domain representation. Route handlers
map between the two.

Request models inherit SanitizedModel: its mode="before" validator runs
core.sanitize over every top-level string value before any field constraint
fires, so the regex checks below see cleaned input, never raw user text.

Response field names follow the wire contract the browser client already
consumes (camelCase summary keys, snake_case product columns).
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator, model_validator
from pydantic.alias_generators import to_camel

from core.sanitize import sanitize_mapping

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

USERNAME_PATTERN = r"^[A-Za-z0-9_]+$"
SKU_PATTERN = r"^[A-Z0-9]+$"
ID_PATTERN = r"^[0-9]+$"

MAX_QTY = 999_999
MAX_PRICE = 999_999.99


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SanitizedModel(BaseModel):
    """Base for every request schema: sanitize first, then validate."""

    @model_validator(mode="before")
    @classmethod
    def sanitize_inputs(cls, data: Any) -> Any:
        return sanitize_mapping(data)


class LoginRequest(SanitizedModel):
    """Request body for POST /api/auth/login."""

    username: str = Field(min_length=1, max_length=50, pattern=USERNAME_PATTERN)
    password: str = Field(min_length=6, max_length=100)


class ProductCreate(SanitizedModel):
    """Request body for POST /api/products.

    qty and price are strict: JSON true or "12.5" is a type error, not a
    coerced number. A strict float still accepts a JSON integer.
    """

    sku: str = Field(min_length=1, max_length=20, pattern=SKU_PATTERN)
    name: str = Field(min_length=1, max_length=100)
    qty: StrictInt = Field(ge=0, le=MAX_QTY)
    price: float = Field(ge=0, le=MAX_PRICE, strict=True)


class ProductUpdate(SanitizedModel):
    """Request body for PUT /api/products/{id}.

    Every field may be omitted, but an explicit null is a validation error.
    sku is not a field here, so a client-sent sku is ignored like any other
    unknown key. Whether at least one field was supplied is the handler's
    call, not the schema's (see changes()).
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    qty: Optional[StrictInt] = Field(default=None, ge=0, le=MAX_QTY)
    price: Optional[float] = Field(default=None, ge=0, le=MAX_PRICE, strict=True)

    @field_validator("name", "qty", "price", mode="before")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("must not be null; omit the field to leave it unchanged")
        return value

    def changes(self) -> dict[str, Any]:
        """Return {column: value} for the fields the client supplied."""
        return {name: getattr(self, name) for name in sorted(self.model_fields_set)}


class ProductIdParams(SanitizedModel):
    """Path parameters for /api/products/{id} routes."""

    id: str = Field(pattern=ID_PATTERN)

    @property
    def product_id(self) -> int:
        return int(self.id)


class SearchParams(SanitizedModel):
    """Path parameters for /api/products/search/{query}."""

    query: str


# ---------------------------------------------------------------------------
# Response models -- products
# ---------------------------------------------------------------------------


class ProductRecord(BaseModel):
    """One product row as returned to clients."""

    model_config = ConfigDict(frozen=True)

    id: int
    sku: str
    name: str
    qty: int
    price: float
    created_at: str
    updated_at: str


class ProductEnvelope(BaseModel):
    """Response for GET /api/products/{id}."""

    product: ProductRecord


class ProductWriteResponse(BaseModel):
    """Response for POST and PUT /api/products."""

    message: str
    product: ProductRecord


class InventorySummaryModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    total_products: int
    total_quantity: int
    total_value: float


class ProductListResponse(BaseModel):
    """Response for GET /api/products."""

    products: list[ProductRecord]
    summary: InventorySummaryModel


class SearchResponse(BaseModel):
    """Response for GET /api/products/search/{query}."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    products: list[ProductRecord]
    search_query: str
    total_results: int


# ---------------------------------------------------------------------------
# Response models -- auth
# ---------------------------------------------------------------------------


class UserInfo(BaseModel):
    """The {id, username, role} triple held by a session."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    role: str


class LoginResponse(BaseModel):
    message: str = "OK"
    user: UserInfo


class MeResponse(BaseModel):
    user: UserInfo


class StatusResponse(BaseModel):
    authenticated: bool
    user: Optional[UserInfo] = None


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Errors and service metadata
# ---------------------------------------------------------------------------


class FieldErrorModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    message: str
    code: str


class ErrorResponse(BaseModel):
    """Uniform error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    error: str
    message: str
    details: Optional[list[FieldErrorModel]] = None


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str
    version: str
    timestamp: str
    uptime_seconds: float
    components: dict[str, str]


class InfoResponse(BaseModel):
    """Response for GET /api/info."""

    name: str
    description: str
    version: str
    endpoints: dict[str, str]
