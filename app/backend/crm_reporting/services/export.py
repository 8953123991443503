"""Export row building and CSV/XLSX file rendering."""

from __future__ import annotations

import csv
import enum
import io
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO
from typing import Any, Union

from openpyxl import Workbook

from crm_reporting.core.errors import EmptyExportSet
from crm_reporting.services.records import field_value, is_soft_deleted

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
EXPORT_FORMATS = ("csv", "xlsx")

Accessor = Union[str, Callable[[Any], Any]]

# (details key, summary label) in display order.
DETAIL_SUMMARY_FIELDS = (
    ("field", "field"),
    ("old_value", "old"),
    ("new_value", "new"),
    ("task_title", "task"),
    ("file_name", "file"),
    ("target_user_name", "target"),
)
# Old/new values are shown whenever the key is present, even if empty.
_PRESENCE_KEYS = {"old_value", "new_value"}


@dataclass(frozen=True, slots=True)
class ExportColumn:
    label: str
    accessor: Accessor

    def read(self, record: Any) -> Any:
        if callable(self.accessor):
            return self.accessor(record)
        return field_value(record, self.accessor)


@dataclass(slots=True)
class ExportFilePayload:
    media_type: str
    filename: str
    content: bytes


def summarize_details(details: Mapping[str, Any] | None) -> str:
    """Compact one-line summary of an activity ``details`` map."""

    if not details:
        return ""
    parts: list[str] = []
    for key, label in DETAIL_SUMMARY_FIELDS:
        if key in _PRESENCE_KEYS:
            if key in details:
                parts.append(f"{label}={export_value(details[key])}")
        elif details.get(key):
            parts.append(f"{label}={export_value(details[key])}")
    return "; ".join(parts)


def export_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, enum.Enum):
        return str(value.value)
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Mapping):
        return summarize_details(value)
    return str(value)


def to_export_rows(
    records: Iterable[Any],
    columns: Sequence[ExportColumn],
    *,
    include_deleted: bool = False,
) -> list[dict[str, str]]:
    """One ordered ``label -> text`` row per record, in input order.

    Soft-deleted records are dropped unless ``include_deleted`` is set.
    """

    return [
        {column.label: export_value(column.read(record)) for column in columns}
        for record in records
        if include_deleted or not is_soft_deleted(record)
    ]


def render_csv(rows: Sequence[Mapping[str, Any]], basename: str) -> ExportFilePayload:
    """CSV with CRLF line endings; the header comes from the first row's keys."""

    if not rows:
        raise EmptyExportSet()

    fieldnames = list(rows[0].keys())
    sio = io.StringIO()
    writer = csv.DictWriter(sio, fieldnames=fieldnames, lineterminator="\r\n")
    writer.writeheader()
    writer.writerows(rows)
    return ExportFilePayload(
        media_type=CSV_MEDIA_TYPE,
        filename=f"{basename}.csv",
        content=sio.getvalue().encode("utf-8"),
    )


def render_xlsx(rows: Sequence[Mapping[str, Any]], basename: str, sheet_title: str = "report") -> ExportFilePayload:
    if not rows:
        raise EmptyExportSet()

    fieldnames = list(rows[0].keys())
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title
    sheet.append(fieldnames)
    for row in rows:
        sheet.append([row.get(column, "") for column in fieldnames])

    output = BytesIO()
    workbook.save(output)
    return ExportFilePayload(
        media_type=XLSX_MEDIA_TYPE,
        filename=f"{basename}.xlsx",
        content=output.getvalue(),
    )


def render_export(rows: Sequence[Mapping[str, Any]], basename: str, format_name: str) -> ExportFilePayload:
    if format_name == "csv":
        return render_csv(rows, basename)
    if format_name == "xlsx":
        return render_xlsx(rows, basename)
    raise ValueError(f"Unsupported export format: {format_name!r}.")
