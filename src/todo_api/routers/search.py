from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_repo
from ..filters import TodoFilter
from ..repositories import Repository
from ..schemas import SearchOut, SearchQuery, TodoOut
from ..validation import validate_payload

router = APIRouter(
    prefix="/api/search",
    tags=["search"],
)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=SearchOut,
    summary="Search Todos",
    description=(
        "Case-insensitive substring search over todo titles and descriptions. "
        "`keyword` is accepted when `q` is absent."
    ),
    responses={
        200: {"description": "Matching todos, newest first"},
        400: {"description": "Missing search keyword"},
    },
)
def search_todos(
    q: Optional[str] = Query(None, description="Search keyword"),
    keyword: Optional[str] = Query(None, description="Alternative name for q"),
    repo: Repository = Depends(get_repo),
) -> SearchOut:
    value = q if q else keyword
    query = validate_payload(SearchQuery, {} if value is None else {"q": value})

    todos, total = repo.list_todos(TodoFilter(search=query.q))
    return SearchOut(
        query=query.q,
        results=[TodoOut(**t) for t in todos],  # type: ignore[arg-type]
        count=total,
    )
