"""Filtering and board views over an already-fetched task collection.

Everything here is pure: no storage access, no hidden state, input order
preserved. Results are recomputed from the full collection on each call.
"""

from datetime import date
from typing import Iterable, Optional, Sequence

from pydantic import field_validator
from sqlmodel import Field, SQLModel

from taskboard.models import BOARD_ORDER, Task, TaskPriority, TaskStatus


class FilterCriteria(SQLModel):
    """AND-combined predicates. Absent or empty values impose no constraint."""
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    tag: Optional[str] = None
    search: Optional[str] = Field(default=None, max_length=200)

    @field_validator("status", "priority", "tag", "search", mode="before")
    @classmethod
    def blank_is_absent(cls, v):
        # The filter panel sends "" for an unset dropdown.
        if isinstance(v, str) and v == "":
            return None
        return v


def _matches(task: Task, criteria: FilterCriteria, needle: Optional[str]) -> bool:
    if criteria.status is not None and task.status != criteria.status:
        return False
    if criteria.priority is not None and task.priority != criteria.priority:
        return False
    if criteria.tag and criteria.tag not in task.tags:
        return False
    if needle:
        haystacks = (task.title, task.description or "")
        if not any(needle in text.casefold() for text in haystacks):
            return False
    return True


def apply_filters(tasks: Iterable[Task], criteria: FilterCriteria) -> list[Task]:
    """Return the tasks matching every criterion, in their original order.

    The search term matches case-insensitively as a substring of the title
    or the description.
    """
    needle = criteria.search.casefold() if criteria.search else None
    return [task for task in tasks if _matches(task, criteria, needle)]


def active_filter_count(criteria: FilterCriteria) -> int:
    """Number of criteria currently constraining the result."""
    values = (criteria.status, criteria.priority, criteria.tag, criteria.search)
    return sum(1 for value in values if value not in (None, ""))


def collect_tags(tasks: Iterable[Task]) -> list[str]:
    """Distinct tags across *tasks* in first-seen order."""
    seen: dict[str, None] = {}
    for task in tasks:
        for tag in task.tags:
            seen.setdefault(tag, None)
    return list(seen)


def group_by_status(tasks: Sequence[Task]) -> dict[TaskStatus, list[Task]]:
    """Split *tasks* into board columns, left to right, keeping input order."""
    columns: dict[TaskStatus, list[Task]] = {status: [] for status in BOARD_ORDER}
    for task in tasks:
        columns[task.status].append(task)
    return columns


def is_overdue(task: Task, today: date) -> bool:
    """True when the due date has passed and the task is not done."""
    if task.due_date is None or task.status == TaskStatus.done:
        return False
    return task.due_date < today
