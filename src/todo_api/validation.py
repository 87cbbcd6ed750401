"""
Payload validation helpers.

`validate_payload` turns an untyped mapping into one of the request schemas or
raises `PayloadValidationError` listing every failing field. FastAPI's own
request validation errors are converted with the same `field_errors` helper so
all 400 responses share one shape.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import PayloadValidationError

M = TypeVar("M", bound=BaseModel)

# Leading location segments FastAPI adds to say where a value came from
_LOCATION_SOURCES = {"body", "query", "path", "header", "cookie"}


# PUBLIC_INTERFACE
def field_errors(errors: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    Normalize pydantic/FastAPI error dicts into
    {"field": "<dotted path>", "message": "<reason>", "type": "<code>"}.
    """
    normalized: List[Dict[str, Any]] = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in _LOCATION_SOURCES:
            loc = loc[1:]
        normalized.append(
            {
                "field": ".".join(loc) or "__root__",
                "message": str(err.get("msg", "Invalid value")),
                "type": str(err.get("type", "value_error")),
            }
        )
    return normalized


# PUBLIC_INTERFACE
def validate_payload(schema: Type[M], payload: Any) -> M:
    """
    Validate `payload` against `schema`.

    Returns:
        The normalized schema instance.

    Raises:
        PayloadValidationError: with one entry per offending field.
    """
    try:
        return schema.model_validate(payload)
    except ValidationError as exc:
        raise PayloadValidationError(field_errors(exc.errors())) from exc
