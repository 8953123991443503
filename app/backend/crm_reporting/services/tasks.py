"""Ordering for the "my tasks" dashboard widget."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from typing import Any

from crm_reporting.models.entities import TaskPriority, TaskStatus
from crm_reporting.services.records import field_value, is_soft_deleted, plain_value, to_datetime

MY_TASKS_LIMIT = 7

PRIORITY_RANK = {
    TaskPriority.HIGH.value: 0,
    TaskPriority.MEDIUM.value: 1,
    TaskPriority.LOW.value: 2,
}
CLOSED_TASK_STATUSES = {TaskStatus.COMPLETED.value, TaskStatus.CANCELLED.value}


def _due_day(task: Any) -> date | None:
    moment = to_datetime(field_value(task, "due_date"))
    return moment.date() if moment is not None else None


def due_bucket(due_day: date | None, today: date) -> int:
    """0 overdue, 1 today, 2 tomorrow, then 3 + days ahead."""

    if due_day is None:
        # Undated tasks sort after every dated one.
        return 1_000_000
    delta = (due_day - today).days
    if delta < 0:
        return 0
    if delta <= 1:
        return 1 + delta
    return 3 + delta


def select_my_tasks(
    tasks: Iterable[Any],
    assignee: str,
    today: date | datetime | None = None,
    limit: int = MY_TASKS_LIMIT,
) -> list[Any]:
    """Open tasks assigned to ``assignee``, most urgent first.

    Ties within a due bucket fall back to priority (missing counts as
    Medium) and then to the due date.
    """

    if today is None:
        today = date.today()
    elif isinstance(today, datetime):
        today = today.date()

    open_tasks = [
        task
        for task in tasks
        if field_value(task, "assigned_to") == assignee
        and not is_soft_deleted(task)
        and plain_value(field_value(task, "status")) not in CLOSED_TASK_STATUSES
    ]

    def sort_key(task: Any) -> tuple[int, int, date]:
        due_day = _due_day(task)
        priority = plain_value(field_value(task, "priority")) or TaskPriority.MEDIUM.value
        return (
            due_bucket(due_day, today),
            PRIORITY_RANK.get(priority, 1),
            due_day or date.max,
        )

    return sorted(open_tasks, key=sort_key)[:limit]
