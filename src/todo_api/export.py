"""Rendering of the full dataset for the export endpoint."""
from __future__ import annotations

import csv
import io
from datetime import date, datetime
from typing import Any, Dict, Iterable, List

from .models import TagUsage, TodoEntity
from .utils import to_iso

CSV_HEADERS = [
    "ID",
    "Title",
    "Content",
    "Priority",
    "Completed",
    "Tags",
    "Created At",
    "Updated At",
]


def _csv_row(todo: TodoEntity) -> List[str]:
    priority = todo["priority"]
    return [
        str(todo["id"]),
        todo["title"],
        todo["description"] or "",
        getattr(priority, "value", priority),
        "true" if todo["completed"] else "false",
        ", ".join(tag["name"] for tag in todo["tags"]),
        to_iso(todo["created_at"]),
        to_iso(todo["updated_at"]),
    ]


# PUBLIC_INTERFACE
def todos_to_csv(todos: Iterable[TodoEntity]) -> str:
    """
    Render todos as CSV text with a header row.

    Values containing a comma, a double quote or a newline are wrapped in
    double quotes with inner quotes doubled; everything else is written bare.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for todo in todos:
        writer.writerow(_csv_row(todo))
    return buf.getvalue()


# PUBLIC_INTERFACE
def build_export(todos: List[TodoEntity], tags: List[TagUsage], exported_at: datetime) -> Dict[str, Any]:
    """Assemble the JSON export document."""
    return {"exported_at": exported_at, "todos": todos, "tags": tags}


# PUBLIC_INTERFACE
def export_filename(day: date) -> str:
    return f"todos-{day.isoformat()}.csv"
