"""
core/errors.py -- Error taxonomy for the inventory service.

Raised by dependencies and route handlers when a request cannot be served.
api/main.py registers a single exception handler for InventoryError that
renders every subclass into the uniform error envelope:

    {"error": <category>, "message": <human text>, "details": [...]}

details is only present on ValidationError and lists every failing field.

Layer rule: no imports from api/, auth/, or inventory/.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class FieldError:
    """One failing input field. field is the dotted path (e.g. "price")."""

    field: str
    message: str
    code: str

    def to_dict(self) -> dict:
        return asdict(self)


class InventoryError(Exception):
    """Base class. Subclasses pin status_code and category."""

    status_code: int = 500
    category: str = "internal_error"

    def __init__(self, message: str, details: list[FieldError] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body: dict = {"error": self.category, "message": self.message}
        if self.details is not None:
            body["details"] = [d.to_dict() for d in self.details]
        return body


class ValidationError(InventoryError):
    """Malformed input. Always carries the complete list of field errors."""

    status_code = 400
    category = "validation_error"

    def __init__(self, message: str, details: list[FieldError]) -> None:
        super().__init__(message, details)


class EmptyUpdateError(InventoryError):
    """A partial update that supplied no updatable field."""

    status_code = 400
    category = "empty_update"


class AuthenticationError(InventoryError):
    status_code = 401
    category = "unauthenticated"


class InvalidCredentialsError(AuthenticationError):
    """Login failure. One message for unknown user and wrong password."""

    category = "invalid_credentials"


class AuthorizationError(InventoryError):
    status_code = 403
    category = "forbidden"


class NotFoundError(InventoryError):
    status_code = 404
    category = "not_found"


class ConflictError(InventoryError):
    status_code = 409
    category = "conflict"


class InternalError(InventoryError):
    status_code = 500
    category = "internal_error"
