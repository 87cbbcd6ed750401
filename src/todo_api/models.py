from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional, TypedDict

# Largest integer SQLite can store or bind; ids above it can never exist
MAX_ROW_ID = 2**63 - 1


# PUBLIC_INTERFACE
class Priority(str, Enum):
    """Allowed todo priorities."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# PUBLIC_INTERFACE
class TagEntity(TypedDict):
    """
    A label attachable to any number of todos.

    Fields:
    - id: Unique integer identifier
    - name: Display name, unique ignoring case
    - color: Optional '#rrggbb' color
    - created_at: UTC creation timestamp
    """

    id: int
    name: str
    color: Optional[str]
    created_at: datetime


# PUBLIC_INTERFACE
class TagUsage(TagEntity):
    """A tag together with the number of todos currently referencing it."""

    todo_count: int


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A lightweight domain model representing a Todo item for non-ORM storage
    backends.

    Fields:
    - id: Unique integer identifier
    - title: Short title (1..255 chars, trimmed on input via schemas)
    - description: Optional detailed description
    - completed: Boolean completion flag
    - priority: One of low/medium/high
    - created_at: UTC creation timestamp (datetime)
    - updated_at: UTC last update timestamp (datetime)
    - tags: Associated tags ordered by name
    """

    id: int
    title: str
    description: Optional[str]
    completed: bool
    priority: Priority
    created_at: datetime
    updated_at: datetime
    tags: List[TagEntity]
