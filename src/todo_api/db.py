from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Generator, Iterable, List, Optional, Tuple

from .errors import ConflictError, InvalidReferenceError, NotFoundError, StorageError
from .filters import CASEFOLD_SQL, COLS, LINK_COLS, TodoFilter, compile_filter
from .models import MAX_ROW_ID, Priority, TagEntity, TagUsage, TodoEntity
from .repositories import Repository
from .schemas import TagCreate, TodoCreate, TodoUpdate
from .utils import next_timestamp, to_iso, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _TagCols:
    table: str = "tags"
    id: str = "id"
    name: str = "name"
    name_key: str = "name_key"
    color: str = "color"
    created_at: str = "created_at"


_TAGS = _TagCols()


def _casefold(value: Optional[str]) -> Optional[str]:
    return None if value is None else value.casefold()


def _storable(row_id: int) -> bool:
    """False for ids SQLite cannot bind; no such row can exist."""
    return 0 < row_id <= MAX_ROW_ID


# Columns a partial update may touch, keyed by TodoUpdate field name
_UPDATABLE = {
    "title": COLS.title,
    "description": COLS.description,
    "priority": COLS.priority,
    "completed": COLS.completed,
}


class SQLiteRepository(Repository):
    """
    Lightweight SQLite repository implementing the Repository interface.

    Every public method runs in one connection and one transaction, so a
    failure part-way (for example an unknown tag id) leaves nothing behind.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as exc:
            raise StorageError(f"Could not open database: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            conn.create_function(CASEFOLD_SQL, 1, _casefold, deterministic=True)
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StorageError(f"SQLite operation failed: {exc}") from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {COLS.table} (
                    {COLS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {COLS.title} TEXT NOT NULL,
                    {COLS.description} TEXT NULL,
                    {COLS.completed} INTEGER NOT NULL DEFAULT 0,
                    {COLS.priority} TEXT NOT NULL DEFAULT 'medium'
                        CHECK ({COLS.priority} IN ('low', 'medium', 'high')),
                    {COLS.created_at} TEXT NOT NULL,
                    {COLS.updated_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_TAGS.table} (
                    {_TAGS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_TAGS.name} TEXT NOT NULL,
                    {_TAGS.name_key} TEXT NOT NULL UNIQUE,
                    {_TAGS.color} TEXT NULL,
                    {_TAGS.created_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {LINK_COLS.table} (
                    {LINK_COLS.todo_id} INTEGER NOT NULL
                        REFERENCES {COLS.table}({COLS.id}) ON DELETE CASCADE,
                    {LINK_COLS.tag_id} INTEGER NOT NULL
                        REFERENCES {_TAGS.table}({_TAGS.id}) ON DELETE CASCADE,
                    PRIMARY KEY ({LINK_COLS.todo_id}, {LINK_COLS.tag_id})
                )
                """
            )
            for column in (COLS.completed, COLS.priority, COLS.created_at):
                conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{COLS.table}_{column} ON {COLS.table}({column})"
                )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{LINK_COLS.table}_{LINK_COLS.tag_id}"
                f" ON {LINK_COLS.table}({LINK_COLS.tag_id})"
            )

    @staticmethod
    def _row_to_tag(row: sqlite3.Row) -> TagEntity:
        return {
            "id": int(row[_TAGS.id]),
            "name": str(row[_TAGS.name]),
            "color": row[_TAGS.color],
            "created_at": datetime.fromisoformat(row[_TAGS.created_at]),
        }

    def _tags_for(self, conn: sqlite3.Connection, todo_id: int) -> List[TagEntity]:
        rows = conn.execute(
            f"""
            SELECT t.* FROM {_TAGS.table} t
            INNER JOIN {LINK_COLS.table} tt ON t.{_TAGS.id} = tt.{LINK_COLS.tag_id}
            WHERE tt.{LINK_COLS.todo_id} = ?
            ORDER BY t.{_TAGS.name_key}, t.{_TAGS.id}
            """,
            (todo_id,),
        ).fetchall()
        return [self._row_to_tag(r) for r in rows]

    def _row_to_entity(self, conn: sqlite3.Connection, row: sqlite3.Row) -> TodoEntity:
        todo_id = int(row[COLS.id])
        return {
            "id": todo_id,
            "title": str(row[COLS.title]),
            "description": row[COLS.description],
            "completed": bool(row[COLS.completed]),
            "priority": Priority(row[COLS.priority]),
            "created_at": datetime.fromisoformat(row[COLS.created_at]),
            "updated_at": datetime.fromisoformat(row[COLS.updated_at]),
            "tags": self._tags_for(conn, todo_id),
        }

    def _fetch_row(self, conn: sqlite3.Connection, todo_id: int) -> Optional[sqlite3.Row]:
        if not _storable(todo_id):
            return None
        return conn.execute(f"SELECT * FROM {COLS.table} WHERE {COLS.id} = ?", (todo_id,)).fetchone()

    def _replace_tags(self, conn: sqlite3.Connection, todo_id: int, tag_ids: Iterable[int]) -> None:
        ids = list(dict.fromkeys(int(i) for i in tag_ids))
        lookup = [i for i in ids if _storable(i)]
        found: set = set()
        if lookup:
            placeholders = ", ".join("?" for _ in lookup)
            found = {
                int(r[_TAGS.id])
                for r in conn.execute(
                    f"SELECT {_TAGS.id} FROM {_TAGS.table} WHERE {_TAGS.id} IN ({placeholders})", lookup
                ).fetchall()
            }
        missing = [i for i in ids if i not in found]
        if missing:
            raise InvalidReferenceError(missing)

        conn.execute(f"DELETE FROM {LINK_COLS.table} WHERE {LINK_COLS.todo_id} = ?", (todo_id,))
        conn.executemany(
            f"INSERT INTO {LINK_COLS.table} ({LINK_COLS.todo_id}, {LINK_COLS.tag_id}) VALUES (?, ?)",
            [(todo_id, tag_id) for tag_id in ids],
        )

    def create_todo(self, data: TodoCreate) -> TodoEntity:
        now = to_iso(utc_now())
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                INSERT INTO {COLS.table} ({COLS.title}, {COLS.description}, {COLS.completed},
                    {COLS.priority}, {COLS.created_at}, {COLS.updated_at})
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (data.title, data.description, 1 if data.completed else 0, data.priority.value, now, now),
            )
            new_id = int(cur.lastrowid)
            if data.tag_ids:
                self._replace_tags(conn, new_id, data.tag_ids)
            row = self._fetch_row(conn, new_id)
            assert row is not None
            logger.debug("Created todo %s", new_id)
            return self._row_to_entity(conn, row)

    def get_todo(self, todo_id: int) -> Optional[TodoEntity]:
        with self._conn() as conn:
            row = self._fetch_row(conn, todo_id)
            return self._row_to_entity(conn, row) if row else None

    def list_todos(self, query: Optional[TodoFilter] = None) -> Tuple[List[TodoEntity], int]:
        compiled = compile_filter(query)
        with self._conn() as conn:
            count_row = conn.execute(
                f"SELECT COUNT(*) AS cnt FROM {COLS.table} {compiled.where_sql}", compiled.params
            ).fetchone()
            total = int(count_row["cnt"]) if count_row else 0

            rows = conn.execute(
                f"""
                SELECT * FROM {COLS.table}
                {compiled.where_sql}
                {compiled.order_sql}
                {compiled.page_sql}
                """,
                [*compiled.params, *compiled.page_params],
            ).fetchall()
            return [self._row_to_entity(conn, r) for r in rows], total

    def update_todo(self, todo_id: int, data: TodoUpdate) -> TodoEntity:
        with self._conn() as conn:
            row = self._fetch_row(conn, todo_id)
            if not row:
                raise NotFoundError("Todo", todo_id)

            changes = data.changes()
            if not changes:
                return self._row_to_entity(conn, row)

            tag_ids = changes.pop("tag_ids", None)
            assignments = []
            params: list = []
            for field, value in changes.items():
                if isinstance(value, Priority):
                    value = value.value
                elif isinstance(value, bool):
                    value = 1 if value else 0
                assignments.append(f"{_UPDATABLE[field]} = ?")
                params.append(value)

            updated_at = next_timestamp(datetime.fromisoformat(row[COLS.updated_at]))
            assignments.append(f"{COLS.updated_at} = ?")
            params.extend([to_iso(updated_at), todo_id])
            conn.execute(
                f"UPDATE {COLS.table} SET {', '.join(assignments)} WHERE {COLS.id} = ?",
                params,
            )

            if tag_ids is not None:
                self._replace_tags(conn, todo_id, tag_ids)

            row2 = self._fetch_row(conn, todo_id)
            assert row2 is not None
            logger.debug("Updated todo %s fields=%s", todo_id, sorted(data.model_fields_set))
            return self._row_to_entity(conn, row2)

    def delete_todo(self, todo_id: int) -> None:
        if not _storable(todo_id):
            raise NotFoundError("Todo", todo_id)
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {COLS.table} WHERE {COLS.id} = ?", (todo_id,))
            if cur.rowcount == 0:
                raise NotFoundError("Todo", todo_id)
            logger.debug("Deleted todo %s", todo_id)

    def list_tags(self) -> List[TagUsage]:
        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT t.*, COUNT(tt.{LINK_COLS.todo_id}) AS todo_count
                FROM {_TAGS.table} t
                LEFT JOIN {LINK_COLS.table} tt ON tt.{LINK_COLS.tag_id} = t.{_TAGS.id}
                GROUP BY t.{_TAGS.id}
                ORDER BY t.{_TAGS.name_key}, t.{_TAGS.id}
                """
            ).fetchall()
            return [{**self._row_to_tag(r), "todo_count": int(r["todo_count"])} for r in rows]  # type: ignore[misc]

    def get_tag(self, tag_id: int) -> Optional[TagEntity]:
        if not _storable(tag_id):
            return None
        with self._conn() as conn:
            row = conn.execute(
                f"SELECT * FROM {_TAGS.table} WHERE {_TAGS.id} = ?", (tag_id,)
            ).fetchone()
            return self._row_to_tag(row) if row else None

    def create_tag(self, data: TagCreate) -> TagEntity:
        with self._conn() as conn:
            # name_key holds the casefolded name and carries the UNIQUE constraint
            name_key = data.name.casefold()
            exists = conn.execute(
                f"SELECT 1 FROM {_TAGS.table} WHERE {_TAGS.name_key} = ?", (name_key,)
            ).fetchone()
            if exists:
                raise ConflictError("Tag with this name already exists")
            try:
                cur = conn.execute(
                    f"INSERT INTO {_TAGS.table}"
                    f" ({_TAGS.name}, {_TAGS.name_key}, {_TAGS.color}, {_TAGS.created_at})"
                    " VALUES (?, ?, ?, ?)",
                    (data.name, name_key, data.color, to_iso(utc_now())),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError("Tag with this name already exists") from exc
            row = conn.execute(
                f"SELECT * FROM {_TAGS.table} WHERE {_TAGS.id} = ?", (cur.lastrowid,)
            ).fetchone()
            assert row is not None
            logger.debug("Created tag %s (%s)", row[_TAGS.id], row[_TAGS.name])
            return self._row_to_tag(row)

    def delete_tag(self, tag_id: int) -> None:
        if not _storable(tag_id):
            raise NotFoundError("Tag", tag_id)
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_TAGS.table} WHERE {_TAGS.id} = ?", (tag_id,))
            if cur.rowcount == 0:
                raise NotFoundError("Tag", tag_id)
            logger.debug("Deleted tag %s", tag_id)
