from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from functools import lru_cache
from threading import RLock
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import ConflictError, InvalidReferenceError, NotFoundError
from .filters import TodoFilter, matches, newest_first_key
from .models import TagEntity, TagUsage, TodoEntity
from .schemas import TagCreate, TodoCreate, TodoUpdate
from .settings import get_settings
from .utils import next_timestamp, utc_now
from .validation import validate_payload

logger = logging.getLogger(__name__)


def tag_sort_key(tag: TagEntity) -> Tuple[str, int]:
    return tag["name"].casefold(), tag["id"]


# PUBLIC_INTERFACE
class Repository(ABC):
    """Abstract repository contract for todo and tag storage backends."""

    @abstractmethod
    def create_todo(self, data: TodoCreate) -> TodoEntity:
        """
        Create and return a new TodoEntity with its tags resolved.

        Raises InvalidReferenceError if any tag id does not exist.
        """

    @abstractmethod
    def get_todo(self, todo_id: int) -> Optional[TodoEntity]:
        """Return a TodoEntity by id, or None if not found."""

    @abstractmethod
    def list_todos(self, query: Optional[TodoFilter] = None) -> Tuple[List[TodoEntity], int]:
        """
        Return the todos matching the filter (newest first) and the total
        number of matches before limit/offset slicing.
        """

    @abstractmethod
    def update_todo(self, todo_id: int, data: TodoUpdate) -> TodoEntity:
        """
        Apply the supplied fields of `data` and return the refreshed entity.

        Raises NotFoundError if the todo does not exist. When `tag_ids` is
        supplied the whole tag set is replaced.
        """

    @abstractmethod
    def delete_todo(self, todo_id: int) -> None:
        """Delete a todo and its tag associations. Raises NotFoundError if absent."""

    def set_todo_tags(self, todo_id: int, tag_ids: Iterable[int]) -> TodoEntity:
        """
        Replace every tag association of a todo in one step.

        Delegates to `update_todo`, so it behaves exactly like a `tagIds` update.
        """
        update = validate_payload(TodoUpdate, {"tagIds": list(tag_ids)})
        return self.update_todo(todo_id, update)

    @abstractmethod
    def list_tags(self) -> List[TagUsage]:
        """Return all tags ordered by name, each with its current usage count."""

    @abstractmethod
    def get_tag(self, tag_id: int) -> Optional[TagEntity]:
        """Return a TagEntity by id, or None if not found."""

    @abstractmethod
    def create_tag(self, data: TagCreate) -> TagEntity:
        """Create a tag. Raises ConflictError if the name exists (ignoring case)."""

    @abstractmethod
    def delete_tag(self, tag_id: int) -> None:
        """Delete a tag and detach it from every todo. Raises NotFoundError if absent."""


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._todos: dict[int, Dict[str, Any]] = {}
        self._tags: dict[int, TagEntity] = {}
        self._links: dict[int, List[int]] = {}
        self._next_todo_id = 1
        self._next_tag_id = 1

    def _allocate_todo_id(self) -> int:
        with self._lock:
            i = self._next_todo_id
            self._next_todo_id += 1
            return i

    def _allocate_tag_id(self) -> int:
        with self._lock:
            i = self._next_tag_id
            self._next_tag_id += 1
            return i

    def _resolve(self, row: Dict[str, Any]) -> TodoEntity:
        tags = [self._tags[i].copy() for i in self._links.get(row["id"], [])]
        entity = dict(row)
        entity["tags"] = sorted(tags, key=tag_sort_key)
        return entity  # type: ignore[return-value]

    def _check_tags(self, tag_ids: Iterable[int]) -> List[int]:
        ids = list(dict.fromkeys(tag_ids))
        missing = [i for i in ids if i not in self._tags]
        if missing:
            raise InvalidReferenceError(missing)
        return ids

    def create_todo(self, data: TodoCreate) -> TodoEntity:
        now = utc_now()
        with self._lock:
            tag_ids = self._check_tags(data.tag_ids)
            row = {
                "id": self._allocate_todo_id(),
                "title": data.title,
                "description": data.description,
                "completed": data.completed,
                "priority": data.priority,
                "created_at": now,
                "updated_at": now,
            }
            self._todos[row["id"]] = row
            self._links[row["id"]] = tag_ids
            logger.debug("Created todo %s", row["id"])
            return self._resolve(row)

    def get_todo(self, todo_id: int) -> Optional[TodoEntity]:
        with self._lock:
            row = self._todos.get(todo_id)
            return None if row is None else self._resolve(row)

    def list_todos(self, query: Optional[TodoFilter] = None) -> Tuple[List[TodoEntity], int]:
        q = query or TodoFilter()
        with self._lock:
            resolved = [self._resolve(row) for row in self._todos.values()]

        items = sorted((t for t in resolved if matches(q, t)), key=newest_first_key, reverse=True)
        total = len(items)

        start = max(q.offset, 0)
        end = None if q.limit is None else start + max(q.limit, 0)
        return items[start:end], total

    def update_todo(self, todo_id: int, data: TodoUpdate) -> TodoEntity:
        with self._lock:
            existing = self._todos.get(todo_id)
            if existing is None:
                raise NotFoundError("Todo", todo_id)

            changes = data.changes()
            if not changes:
                return self._resolve(existing)

            tag_ids = changes.pop("tag_ids", None)
            if tag_ids is not None:
                tag_ids = self._check_tags(tag_ids)

            # Update only provided fields
            updated = existing.copy()
            updated.update(changes)
            updated["updated_at"] = next_timestamp(existing["updated_at"])
            self._todos[todo_id] = updated
            if tag_ids is not None:
                self._links[todo_id] = tag_ids
            logger.debug("Updated todo %s fields=%s", todo_id, sorted(data.model_fields_set))
            return self._resolve(updated)

    def delete_todo(self, todo_id: int) -> None:
        with self._lock:
            if self._todos.pop(todo_id, None) is None:
                raise NotFoundError("Todo", todo_id)
            self._links.pop(todo_id, None)
            logger.debug("Deleted todo %s", todo_id)

    def list_tags(self) -> List[TagUsage]:
        with self._lock:
            counts: Dict[int, int] = {tag_id: 0 for tag_id in self._tags}
            for tag_ids in self._links.values():
                for tag_id in tag_ids:
                    counts[tag_id] += 1
            tags = sorted(self._tags.values(), key=tag_sort_key)
            return [{**tag, "todo_count": counts[tag["id"]]} for tag in tags]  # type: ignore[misc]

    def get_tag(self, tag_id: int) -> Optional[TagEntity]:
        with self._lock:
            tag = self._tags.get(tag_id)
            return None if tag is None else tag.copy()

    def create_tag(self, data: TagCreate) -> TagEntity:
        with self._lock:
            wanted = data.name.casefold()
            if any(tag["name"].casefold() == wanted for tag in self._tags.values()):
                raise ConflictError("Tag with this name already exists")
            tag: TagEntity = {
                "id": self._allocate_tag_id(),
                "name": data.name,
                "color": data.color,
                "created_at": utc_now(),
            }
            self._tags[tag["id"]] = tag
            logger.debug("Created tag %s (%s)", tag["id"], tag["name"])
            return tag.copy()

    def delete_tag(self, tag_id: int) -> None:
        with self._lock:
            if self._tags.pop(tag_id, None) is None:
                raise NotFoundError("Tag", tag_id)
            for todo_id, tag_ids in self._links.items():
                if tag_id in tag_ids:
                    self._links[todo_id] = [i for i in tag_ids if i != tag_id]
            logger.debug("Deleted tag %s", tag_id)


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_repository() -> Repository:
    """
    Return the process-wide repository selected by settings.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository at SQLITE_DB_PATH
    """
    settings = get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository

        logger.info("Using SQLite repository at %s", settings.sqlite_db_path)
        return SQLiteRepository(settings.sqlite_db_path)
    logger.info("Using in-memory repository")
    return InMemoryRepository()
