from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status

from ..dependencies import get_repo
from ..repositories import Repository
from ..schemas import MessageOut, TagCreate, TagListOut, TagOut, TagWithCountOut

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/tags",
    tags=["tags"],
)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=TagListOut,
    summary="List Tags",
    description="List all tags ordered by name, each with the number of todos using it.",
)
def list_tags(repo: Repository = Depends(get_repo)) -> TagListOut:
    return TagListOut(tags=[TagWithCountOut(**t) for t in repo.list_tags()])  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TagOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Tag",
    responses={
        201: {"description": "Tag created successfully"},
        400: {"description": "Validation error"},
        409: {"description": "A tag with this name already exists (ignoring case)"},
    },
)
def create_tag(payload: TagCreate, repo: Repository = Depends(get_repo)) -> TagOut:
    """
    Create a new Tag. Names are unique ignoring case.
    """
    tag = repo.create_tag(payload)
    logger.info("Created tag %s (%s)", tag["id"], tag["name"])
    return TagOut(**tag)  # type: ignore[arg-type]


# PUBLIC_INTERFACE
@router.delete(
    "/{tag_id}",
    response_model=MessageOut,
    summary="Delete Tag",
    description="Delete a tag and remove it from every todo that carries it.",
    responses={
        200: {"description": "Tag deleted"},
        404: {"description": "Tag not found"},
    },
)
def delete_tag(tag_id: int, repo: Repository = Depends(get_repo)) -> MessageOut:
    repo.delete_tag(tag_id)
    logger.info("Deleted tag %s", tag_id)
    return MessageOut(message="Tag deleted successfully")
