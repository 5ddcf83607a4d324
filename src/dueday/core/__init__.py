"""Functional core - pure business logic with no I/O."""

from .deadline import Deadline, Recurrence, next_occurrence, is_missed, days_overdue
from .tasks import (
    ARCHIVE_LIST_ID,
    UNSORTED_LIST_ID,
    Task,
    TaskList,
    filter_today,
    filter_missed,
    filter_by_list,
    filter_open,
    filter_archived,
    sort_missed,
    count_open_by_list,
)

__all__ = [
    # Deadlines
    "Deadline",
    "Recurrence",
    "next_occurrence",
    "is_missed",
    "days_overdue",
    # Tasks
    "ARCHIVE_LIST_ID",
    "UNSORTED_LIST_ID",
    "Task",
    "TaskList",
    # Projections
    "filter_today",
    "filter_missed",
    "filter_by_list",
    "filter_open",
    "filter_archived",
    "sort_missed",
    "count_open_by_list",
]
