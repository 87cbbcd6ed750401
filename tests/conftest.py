import os

import pytest

# Ensure we default to memory backend for tests to avoid filesystem dependencies
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from todo_api.db import SQLiteRepository  # noqa: E402
from todo_api.main import app  # noqa: E402
from todo_api.repositories import InMemoryRepository, get_repository  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_repository():
    """Give every API test its own empty in-memory store."""
    repo = InMemoryRepository()
    app.dependency_overrides[get_repository] = lambda: repo
    yield repo
    app.dependency_overrides.pop(get_repository, None)


@pytest.fixture(params=["memory", "sqlite"])
def repository(request, tmp_path):
    """Repository instance for backend-agnostic tests."""
    if request.param == "sqlite":
        return SQLiteRepository(str(tmp_path / "todos.db"))
    return InMemoryRepository()
