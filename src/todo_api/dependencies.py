"""FastAPI dependency wiring shared by the routers."""
from __future__ import annotations

from fastapi import Depends

from .repositories import Repository, get_repository


# PUBLIC_INTERFACE
def get_repo(repo: Repository = Depends(get_repository)) -> Repository:
    """
    Dependency wrapper for the repository to keep route signatures clean.

    Tests swap the backend with `app.dependency_overrides[get_repository]`.
    """
    return repo
