from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union


# PUBLIC_INTERFACE
def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


# PUBLIC_INTERFACE
def next_timestamp(previous: datetime) -> datetime:
    """
    Return a timestamp for an update that is strictly later than `previous`.

    Falls back to `previous` plus one microsecond when the clock has not
    advanced (or went backwards).
    """
    now = utc_now()
    if now <= previous:
        return previous + timedelta(microseconds=1)
    return now


# PUBLIC_INTERFACE
def to_iso(value: datetime) -> str:
    """Fixed-width ISO8601 so stored timestamps sort correctly as text."""
    return value.isoformat(timespec="microseconds")


# PUBLIC_INTERFACE
def pagination_envelope(
    items: Union[Sequence[Any], Iterable[Any]],
    total: int,
    limit: Optional[int],
    offset: int,
) -> Dict[str, Any]:
    """
    Build a standard envelope for list endpoints.

    Args:
        items: The list/iterable of items for the current slice.
        total: Total number of items that match the query (ignoring slicing).
        limit: The limit used, or None when every match was returned.
        offset: The offset used.

    Returns:
        Dict with keys: items, total, limit, offset.
    """
    materialized: List[Any] = list(items) if not isinstance(items, list) else items
    return {
        "items": materialized,
        "total": int(total),
        "limit": None if limit is None else int(max(limit, 0)),
        "offset": int(max(offset, 0)),
    }
