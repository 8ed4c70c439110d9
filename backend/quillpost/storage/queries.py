"""Read patterns shared by the in-memory backend.

All helpers are pure functions over a sequence of records; they never
mutate or cache anything.
"""

from __future__ import annotations

from typing import Any, Iterable, TypeVar

T = TypeVar("T")


def _matches(row: Any, criteria: dict[str, Any]) -> bool:
    return all(getattr(row, field) == value for field, value in criteria.items())


def find_first(rows: Iterable[T], **criteria: Any) -> T | None:
    """First row whose fields equal every given value, or None.

    Used for secondary keys and compound existence checks, where at most one
    match should exist.
    """
    for row in rows:
        if _matches(row, criteria):
            return row
    return None


def filter_by(rows: Iterable[T], **criteria: Any) -> list[T]:
    return [row for row in rows if _matches(row, criteria)]


def newest_first(rows: Iterable[T], field: str) -> list[T]:
    """Sort by a timestamp field descending, ties broken by id descending."""
    return sorted(rows, key=lambda row: (getattr(row, field), row.id), reverse=True)


def paginate(rows: list[T], limit: int, offset: int) -> list[T]:
    # Callers pass validated non-negative integers.
    return rows[offset : offset + limit]
