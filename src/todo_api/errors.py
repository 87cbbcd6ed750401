"""Domain exceptions raised by the validator and repositories.

`todo_api.main` maps each class onto an HTTP status code.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional


class TodoApiError(Exception):
    """Base class for all domain errors."""


class NotFoundError(TodoApiError):
    """A todo or tag with the given id does not exist."""

    def __init__(self, resource: str, resource_id: Any) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class ConflictError(TodoApiError):
    """The write would violate a uniqueness constraint (duplicate tag name)."""


class PayloadValidationError(TodoApiError):
    """
    One or more fields failed validation.

    `errors` holds every failing field, each as
    {"field": "<dotted path>", "message": "<reason>", "type": "<code>"}.
    """

    def __init__(self, errors: List[Dict[str, Any]], message: Optional[str] = None) -> None:
        self.errors = errors
        super().__init__(message or "Request validation failed")


class InvalidReferenceError(PayloadValidationError):
    """A todo payload references tag ids that do not exist."""

    def __init__(self, missing_tag_ids: List[int]) -> None:
        self.missing_tag_ids = missing_tag_ids
        ids = ", ".join(str(i) for i in missing_tag_ids)
        super().__init__(
            [
                {
                    "field": "tagIds",
                    "message": f"Unknown tag id(s): {ids}",
                    "type": "invalid_reference",
                }
            ]
        )


class StorageError(TodoApiError):
    """Unexpected failure of the backing store."""
