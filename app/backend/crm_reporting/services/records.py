"""Field access helpers shared by the report engine.

The engine accepts ORM rows, dataclasses or plain mappings, so every read
goes through ``field_value`` rather than attribute access.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any


def field_value(record: Any, field: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(field)
    return getattr(record, field, None)


def plain_value(value: Any) -> Any:
    """Unwrap enum members to their stored value."""

    if isinstance(value, enum.Enum):
        return value.value
    return value


def is_soft_deleted(record: Any) -> bool:
    return bool(field_value(record, "is_deleted"))


def to_datetime(value: Any) -> datetime | None:
    """Normalize a date-ish field to a naive local datetime.

    Plain dates become midnight instants. Empty or unparseable values yield
    ``None`` so callers can treat them as absent.
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return to_datetime(parsed)
    return None


def to_amount(value: Any) -> int | Decimal:
    """Money or count value safe to add to any other amount.

    Floats become exact decimals of their shortest repr so a record set
    mixing floats and ``Decimal`` columns still sums. Missing values are 0.
    """

    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, Decimal)):
        return value
    return Decimal(str(value))
