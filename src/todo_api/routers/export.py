from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ..dependencies import get_repo
from ..export import build_export, export_filename, todos_to_csv
from ..repositories import Repository
from ..schemas import ExportOut, ExportQuery
from ..utils import utc_now
from ..validation import validate_payload

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/export",
    tags=["export"],
)


# PUBLIC_INTERFACE
@router.get(
    "",
    summary="Export Todos",
    description=(
        "Export every todo (with tags) and every tag. `format=json` (default) returns "
        "a JSON document; `format=csv` returns a CSV attachment."
    ),
    responses={
        200: {
            "description": "Full dataset",
            "content": {"text/csv": {"schema": {"type": "string"}}},
        },
        400: {"description": "Invalid format"},
    },
)
def export_todos(
    format: Optional[str] = Query(None, description="json or csv"),
    repo: Repository = Depends(get_repo),
) -> Response:
    query = validate_payload(ExportQuery, {} if format is None else {"format": format.strip().lower()})

    todos, _ = repo.list_todos()
    now = utc_now()
    logger.info("Exporting %d todos as %s", len(todos), query.format)

    if query.format == "csv":
        return Response(
            content=todos_to_csv(todos),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{export_filename(now.date())}"'},
        )

    document = ExportOut(**build_export(todos, repo.list_tags(), now))  # type: ignore[arg-type]
    return JSONResponse(content=jsonable_encoder(document))
