"""Table helpers: column sorting and 1-indexed pagination."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar

from crm_reporting.services.records import field_value, plain_value

T = TypeVar("T")

ITEMS_PER_PAGE_OPTIONS = (10, 25, 50, 100)

SortDirection = Literal["ascending", "descending"]


@dataclass(frozen=True, slots=True)
class Page(Generic[T]):
    page_items: list[T]
    total_pages: int
    total_items: int
    page: int
    page_size: int


def paginate(items: Sequence[T], page: int, page_size: int) -> Page[T]:
    """Slice ``items`` to a 1-indexed page.

    Pages beyond the last one come back empty rather than raising.
    """

    if page_size < 1:
        raise ValueError("page_size must be a positive integer.")
    total_items = len(items)
    total_pages = math.ceil(total_items / page_size)
    start = (page - 1) * page_size
    page_items = list(items[start : start + page_size]) if page >= 1 else []
    return Page(
        page_items=page_items,
        total_pages=total_pages,
        total_items=total_items,
        page=page,
        page_size=page_size,
    )


def _sort_key(value: Any) -> Any:
    value = plain_value(value)
    if isinstance(value, str):
        return value.lower()
    return value


def sort_records(items: Sequence[T], key: str, direction: SortDirection = "ascending") -> list[T]:
    """Stable column sort. Empty values stay at the end in either direction."""

    present = [item for item in items if field_value(item, key) is not None]
    missing = [item for item in items if field_value(item, key) is None]
    present.sort(key=lambda item: _sort_key(field_value(item, key)), reverse=direction == "descending")
    return present + missing
