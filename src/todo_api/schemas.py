from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, conint, field_validator

from .filters import TodoFilter
from .models import MAX_ROW_ID, Priority

TITLE_MAX_LENGTH = 255
DESCRIPTION_MAX_LENGTH = 5000
TAG_NAME_MAX_LENGTH = 50

_DESCRIPTION_ALIASES = AliasChoices("description", "content")
_TAG_IDS_ALIASES = AliasChoices("tagIds", "tag_ids")

RowId = conint(gt=0, le=MAX_ROW_ID)


def _clean_title(value: str) -> str:
    s = value.strip()
    if not (1 <= len(s) <= TITLE_MAX_LENGTH):
        raise ValueError(f"title length must be between 1 and {TITLE_MAX_LENGTH} characters")
    return s


def _clean_description(value: Optional[str]) -> Optional[str]:
    # Blank descriptions are stored as null
    if value is None or not value.strip():
        return None
    return value


def _dedupe(ids: List[int]) -> List[int]:
    return list(dict.fromkeys(ids))


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "priority": "high",
                "completed": False,
                "tagIds": [1, 2],
            }
        }
    )

    title: str = Field(
        ..., description="Short title for the todo item", min_length=1, max_length=TITLE_MAX_LENGTH
    )
    description: Optional[str] = Field(
        default=None,
        description="Optional detailed description (also accepted as 'content')",
        max_length=DESCRIPTION_MAX_LENGTH,
        validation_alias=_DESCRIPTION_ALIASES,
    )
    priority: Priority = Field(default=Priority.MEDIUM, description="One of low, medium, high")
    completed: bool = Field(default=False, description="Completion status flag")
    tag_ids: List[RowId] = Field(
        default_factory=list,
        description="Ids of tags to attach; duplicates are ignored",
        validation_alias=_TAG_IDS_ALIASES,
    )

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..255 length.
        """
        return _clean_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _clean_description(v)

    @field_validator("tag_ids")
    @classmethod
    def dedupe_tag_ids(cls, v: List[int]) -> List[int]:
        return _dedupe(v)


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Schema for updating an existing Todo item.

    All fields are optional; only provided fields will be updated. An explicit
    null clears `description` but is rejected for every other field. Supplying
    `tagIds` (even an empty list) replaces the whole tag set of the todo.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries and supplies",
                "completed": True,
                "tagIds": [2],
            }
        }
    )

    title: Optional[str] = Field(
        default=None, description="Short title for the todo item", min_length=1, max_length=TITLE_MAX_LENGTH
    )
    description: Optional[str] = Field(
        default=None,
        description="Detailed description; null or empty clears it",
        max_length=DESCRIPTION_MAX_LENGTH,
        validation_alias=_DESCRIPTION_ALIASES,
    )
    priority: Optional[Priority] = Field(default=None, description="One of low, medium, high")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")
    tag_ids: Optional[List[RowId]] = Field(
        default=None,
        description="Replacement set of tag ids",
        validation_alias=_TAG_IDS_ALIASES,
    )

    @field_validator("title", "priority", "completed", "tag_ids")
    @classmethod
    def reject_null(cls, v: Any, info) -> Any:
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _clean_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _clean_description(v)

    @field_validator("tag_ids")
    @classmethod
    def dedupe_tag_ids(cls, v: List[int]) -> List[int]:
        return _dedupe(v)

    def changes(self) -> Dict[str, Any]:
        """Return only the fields the caller supplied, keyed by field name."""
        return {name: getattr(self, name) for name in self.model_fields_set}


# PUBLIC_INTERFACE
class TagCreate(BaseModel):
    """
    Schema for creating a new Tag.
    """

    model_config = ConfigDict(json_schema_extra={"example": {"name": "work", "color": "#3b82f6"}})

    name: str = Field(
        ..., description="Tag name, unique ignoring case", min_length=1, max_length=TAG_NAME_MAX_LENGTH
    )
    color: Optional[str] = Field(
        default=None, description="Optional hex color such as #3b82f6", pattern=r"^#[0-9a-fA-F]{6}$"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        s = v.strip()
        if not (1 <= len(s) <= TAG_NAME_MAX_LENGTH):
            raise ValueError(f"name length must be between 1 and {TAG_NAME_MAX_LENGTH} characters")
        return s


# PUBLIC_INTERFACE
class TodoQuery(BaseModel):
    """
    Query-string filters for listing todos.

    `tagIds` is a comma-separated list ("1,4"); a todo matches when it carries
    any of the given tags.
    """

    tag_ids: List[RowId] = Field(default_factory=list, validation_alias=_TAG_IDS_ALIASES)
    priority: Optional[Priority] = None
    completed: Optional[bool] = None
    search: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=0, le=1000)
    offset: int = Field(default=0, ge=0, le=MAX_ROW_ID)

    @field_validator("tag_ids", mode="before")
    @classmethod
    def split_tag_ids(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @field_validator("search")
    @classmethod
    def blank_search_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    def to_filter(self) -> TodoFilter:
        return TodoFilter(
            tag_ids=tuple(_dedupe(self.tag_ids)),
            priority=self.priority,
            completed=self.completed,
            search=self.search,
            limit=self.limit,
            offset=self.offset,
        )


# PUBLIC_INTERFACE
class SearchQuery(BaseModel):
    """Query string of the search endpoint."""

    q: str = Field(..., description="Case-insensitive substring matched against title and description")

    @field_validator("q")
    @classmethod
    def require_keyword(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("Search keyword is required")
        return s


# PUBLIC_INTERFACE
class ExportQuery(BaseModel):
    """Query string of the export endpoint."""

    format: Literal["json", "csv"] = "json"


# PUBLIC_INTERFACE
class TagOut(BaseModel):
    """
    Schema returned by the API for a Tag.
    """

    id: int = Field(..., description="Unique identifier of the tag")
    name: str = Field(..., description="Tag name")
    color: Optional[str] = Field(default=None, description="Optional hex color")
    created_at: datetime = Field(..., description="Creation timestamp")


# PUBLIC_INTERFACE
class TagWithCountOut(TagOut):
    """A tag with the number of todos currently carrying it."""

    todo_count: int = Field(..., description="Number of todos referencing this tag")


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 123,
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "completed": False,
                "priority": "medium",
                "created_at": "2025-01-25T10:15:30.123456+00:00",
                "updated_at": "2025-01-26T09:00:00.000001+00:00",
                "tags": [{"id": 1, "name": "home", "color": None, "created_at": "2025-01-20T08:00:00.000000+00:00"}],
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the todo item")
    title: str = Field(..., description="Short title for the todo item")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: bool = Field(..., description="Completion status flag")
    priority: Priority = Field(..., description="One of low, medium, high")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")
    tags: List[TagOut] = Field(default_factory=list, description="Associated tags ordered by name")


class TodoListOut(BaseModel):
    """
    Envelope for list responses.
    """

    items: List[TodoOut] = Field(..., description="List of Todo items")
    total: int = Field(..., description="Total number of items matching the query")
    limit: Optional[int] = Field(default=None, description="Limit applied to the query, if any")
    offset: int = Field(..., description="Offset applied to the query")


class TagListOut(BaseModel):
    tags: List[TagWithCountOut]


class SearchOut(BaseModel):
    query: str = Field(..., description="The keyword that was searched for")
    results: List[TodoOut]
    count: int = Field(..., description="Number of matching todos")


class ExportOut(BaseModel):
    exported_at: datetime
    todos: List[TodoOut]
    tags: List[TagWithCountOut]


class MessageOut(BaseModel):
    success: bool = True
    message: str
