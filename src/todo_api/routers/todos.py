from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_repo
from ..errors import NotFoundError
from ..repositories import Repository
from ..schemas import MessageOut, TodoCreate, TodoListOut, TodoOut, TodoQuery, TodoUpdate
from ..utils import pagination_envelope
from ..validation import validate_payload

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/todos",
    tags=["todos"],
)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TodoOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description="Create a new Todo item, optionally attaching existing tags by id.",
    responses={
        201: {"description": "Todo created successfully"},
        400: {"description": "Validation error"},
    },
)
def create_todo(payload: TodoCreate, repo: Repository = Depends(get_repo)) -> TodoOut:
    """
    Create a new Todo.
    """
    created = repo.create_todo(payload)
    logger.info("Created todo %s", created["id"])
    return TodoOut(**created)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=TodoListOut,
    summary="List Todos",
    description=(
        "List todos, newest first, with optional filters.\n\n"
        "Query parameters:\n"
        "- tagIds: comma-separated tag ids; matches todos carrying any of them\n"
        "- priority: low, medium or high\n"
        "- completed: true or false\n"
        "- search: case-insensitive substring of title or description\n"
        "- limit / offset: optional slicing (all matches by default)\n\n"
        "Returns an envelope with items and the total match count."
    ),
    responses={
        200: {"description": "List retrieved successfully"},
        400: {"description": "Invalid query parameters"},
    },
)
def list_todos(
    tag_ids: Optional[str] = Query(None, alias="tagIds", description="Comma-separated tag ids"),
    priority: Optional[str] = Query(None, description="Filter by priority"),
    completed: Optional[str] = Query(None, description="Filter by completion status"),
    search: Optional[str] = Query(None, description="Search text for title/description"),
    limit: Optional[str] = Query(None, description="Maximum number of items to return (0..1000)"),
    offset: Optional[str] = Query(None, description="Number of items to skip"),
    repo: Repository = Depends(get_repo),
) -> TodoListOut:
    """
    List todos matching the filter set.
    """
    raw = {
        "tagIds": tag_ids,
        "priority": priority,
        "completed": completed,
        "search": search,
        "limit": limit,
        "offset": offset,
    }
    query = validate_payload(TodoQuery, {k: v for k, v in raw.items() if v is not None})
    todo_filter = query.to_filter()

    items, total = repo.list_todos(todo_filter)
    envelope = pagination_envelope(
        items=[TodoOut(**it) for it in items],  # type: ignore[arg-type]
        total=total,
        limit=todo_filter.limit,
        offset=todo_filter.offset,
    )
    return TodoListOut(**envelope)


# PUBLIC_INTERFACE
@router.get(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Get Todo",
    description="Get a single Todo item by ID.",
    responses={
        200: {"description": "Todo found"},
        404: {"description": "Todo not found"},
    },
)
def get_todo(todo_id: int, repo: Repository = Depends(get_repo)) -> TodoOut:
    """
    Retrieve a single Todo item by its ID.
    """
    item = repo.get_todo(todo_id)
    if not item:
        raise NotFoundError("Todo", todo_id)
    return TodoOut(**item)  # type: ignore[arg-type]


def _apply_update(todo_id: int, payload: TodoUpdate, repo: Repository) -> TodoOut:
    updated = repo.update_todo(todo_id, payload)
    logger.info("Updated todo %s", todo_id)
    return TodoOut(**updated)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.put(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Update Todo",
    description=(
        "Update an existing Todo item. Only the supplied fields change; "
        "supplying tagIds replaces the whole tag set."
    ),
    responses={
        200: {"description": "Todo updated"},
        400: {"description": "Validation error"},
        404: {"description": "Todo not found"},
    },
)
def put_todo(todo_id: int, payload: TodoUpdate, repo: Repository = Depends(get_repo)) -> TodoOut:
    """
    Update a Todo item; same partial semantics as PATCH.
    """
    return _apply_update(todo_id, payload, repo)


# PUBLIC_INTERFACE
@router.patch(
    "/{todo_id}",
    response_model=TodoOut,
    summary="Patch Todo",
    description="Partially update fields of a Todo item.",
    responses={
        200: {"description": "Todo updated"},
        400: {"description": "Validation error"},
        404: {"description": "Todo not found"},
    },
)
def patch_todo(todo_id: int, payload: TodoUpdate, repo: Repository = Depends(get_repo)) -> TodoOut:
    """
    Partial update of a Todo item.
    """
    return _apply_update(todo_id, payload, repo)


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    response_model=MessageOut,
    summary="Delete Todo",
    description="Delete a Todo item by ID together with its tag associations.",
    responses={
        200: {"description": "Todo deleted"},
        404: {"description": "Todo not found"},
    },
)
def delete_todo(todo_id: int, repo: Repository = Depends(get_repo)) -> MessageOut:
    """
    Delete a Todo. Returns 404 for unknown ids, including ids deleted before.
    """
    repo.delete_todo(todo_id)
    logger.info("Deleted todo %s", todo_id)
    return MessageOut(message="Todo deleted successfully")
