"""
api/validation.py -- Schema validation that reports, rather than raises.

validate() is the contract the rest of the API layer builds on: given a raw
mapping and a schema, it returns either the validated model or the complete
list of field errors. Malformed input is a normal outcome here, not a fault.

validate_or_raise() is the route-facing wrapper: it turns a non-empty error
list into core.errors.ValidationError (HTTP 400) carrying every failing field.

field_errors() maps Pydantic's error dicts to core.errors.FieldError. It is
shared with the RequestValidationError handler in api/main.py so body errors
raised by FastAPI itself use the same {field, message, code} shape.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from core.errors import FieldError, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

# First loc element FastAPI prepends to request errors.
_REQUEST_LOCATIONS = {"body", "path", "query", "header", "cookie"}


def field_errors(errors: Iterable[dict], *, request_scoped: bool = False) -> list[FieldError]:
    """Translate Pydantic error dicts into FieldError records.

    request_scoped=True drops FastAPI's leading location element ("body",
    "path", ...) so clients see "price", not "body.price". An error on the
    whole input (wrong JSON type, missing body) keeps the location name.
    """
    result: list[FieldError] = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        if request_scoped and loc and loc[0] in _REQUEST_LOCATIONS:
            location, loc = loc[0], loc[1:]
            path = ".".join(loc) or location
        else:
            path = ".".join(loc)
        result.append(
            FieldError(field=path, message=err.get("msg", "Invalid value."), code=err.get("type", "invalid"))
        )
    return result


def validate(schema: type[ModelT], data: Any) -> tuple[ModelT | None, list[FieldError]]:
    """Validate data against schema.

    Returns (model, []) on success and (None, errors) on failure, where errors
    lists every failing field, never just the first.
    """
    try:
        return schema.model_validate(data), []
    except PydanticValidationError as exc:
        return None, field_errors(exc.errors())


def validate_or_raise(schema: type[ModelT], data: Any, message: str) -> ModelT:
    """Validate data against schema or raise ValidationError with all field errors."""
    model, errors = validate(schema, data)
    if model is None:
        raise ValidationError(message, errors)
    return model
