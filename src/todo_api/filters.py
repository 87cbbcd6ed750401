"""
Compilation of todo list filters.

A `TodoFilter` is translated either into a parameterized SQL fragment for the
SQLite backend (`compile_filter`) or into an in-memory predicate (`matches`).
Both follow the same rules:

- filter categories combine with AND;
- `tag_ids` matches a todo carrying ANY of the given tags;
- `search` is a case-insensitive literal substring match on title OR
  description, folding case with `str.casefold` on both backends;
- results are ordered newest first (created_at DESC, then id DESC).

Filter values are only ever bound as parameters, never formatted into SQL text.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, Tuple

from .models import Priority

LIKE_ESCAPE = "\\"

# Registered on every SQLite connection so SQL folds case exactly like str.casefold
CASEFOLD_SQL = "py_casefold"


@dataclass(frozen=True)
class TodoColumns:
    table: str = "todos"
    id: str = "id"
    title: str = "title"
    description: str = "description"
    completed: str = "completed"
    priority: str = "priority"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


@dataclass(frozen=True)
class TodoTagColumns:
    table: str = "todo_tags"
    todo_id: str = "todo_id"
    tag_id: str = "tag_id"


COLS = TodoColumns()
LINK_COLS = TodoTagColumns()


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class TodoFilter:
    """
    Optional constraints narrowing a todo listing. Every field defaults to
    "no constraint"; an empty `tag_ids` tuple does not filter by tag.
    """

    tag_ids: Tuple[int, ...] = ()
    priority: Optional[Priority] = None
    completed: Optional[bool] = None
    search: Optional[str] = None
    limit: Optional[int] = None  # None returns every match
    offset: int = 0

    def is_empty(self) -> bool:
        return (
            not self.tag_ids
            and self.priority is None
            and self.completed is None
            and not self.search
        )


@dataclass(frozen=True)
class CompiledFilter:
    """SQL fragments and their bound parameters for one `TodoFilter`."""

    where_sql: str
    params: Tuple[Any, ...]
    order_sql: str
    page_sql: str
    page_params: Tuple[int, int]


# PUBLIC_INTERFACE
def escape_like(term: str) -> str:
    """Escape LIKE wildcards so `term` matches literally (used with ESCAPE '\\')."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


# PUBLIC_INTERFACE
def compile_filter(todo_filter: Optional[TodoFilter] = None) -> CompiledFilter:
    """
    Compile a filter into a WHERE clause over the todos table.

    Returns:
        CompiledFilter whose `where_sql` is empty when no constraint applies.
    """
    f = todo_filter or TodoFilter()
    clauses = []
    params: list = []

    if f.priority is not None:
        clauses.append(f"{COLS.priority} = ?")
        params.append(Priority(f.priority).value)

    if f.completed is not None:
        clauses.append(f"{COLS.completed} = ?")
        params.append(1 if f.completed else 0)

    if f.search:
        like = f"%{escape_like(f.search.casefold())}%"
        clauses.append(
            f"({CASEFOLD_SQL}({COLS.title}) LIKE ? ESCAPE '{LIKE_ESCAPE}'"
            f" OR {CASEFOLD_SQL}(COALESCE({COLS.description}, '')) LIKE ? ESCAPE '{LIKE_ESCAPE}')"
        )
        params.extend([like, like])

    if f.tag_ids:
        placeholders = ", ".join("?" for _ in f.tag_ids)
        clauses.append(
            f"{COLS.id} IN (SELECT DISTINCT {LINK_COLS.todo_id} FROM {LINK_COLS.table}"
            f" WHERE {LINK_COLS.tag_id} IN ({placeholders}))"
        )
        params.extend(int(tag_id) for tag_id in f.tag_ids)

    where_sql = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    order_sql = f"ORDER BY {COLS.created_at} DESC, {COLS.id} DESC"

    # SQLite treats a negative LIMIT as "no limit"
    limit = -1 if f.limit is None else max(f.limit, 0)
    return CompiledFilter(
        where_sql=where_sql,
        params=tuple(params),
        order_sql=order_sql,
        page_sql="LIMIT ? OFFSET ?",
        page_params=(limit, max(f.offset, 0)),
    )


# PUBLIC_INTERFACE
def matches(todo_filter: Optional[TodoFilter], todo: Mapping[str, Any]) -> bool:
    """In-memory counterpart of `compile_filter` for a resolved todo."""
    f = todo_filter or TodoFilter()

    if f.priority is not None and todo["priority"] != Priority(f.priority):
        return False

    if f.completed is not None and bool(todo["completed"]) != f.completed:
        return False

    if f.search:
        s = f.search.casefold()
        title_ok = s in (todo["title"] or "").casefold()
        desc_ok = s in (todo["description"] or "").casefold()
        if not (title_ok or desc_ok):
            return False

    if f.tag_ids:
        wanted = set(f.tag_ids)
        if not any(tag["id"] in wanted for tag in todo.get("tags", [])):
            return False

    return True


def newest_first_key(todo: Mapping[str, Any]) -> Tuple[datetime, int]:
    """Sort key; use with reverse=True for created_at DESC, id DESC."""
    return todo["created_at"], todo["id"]
