"""Pure task domain logic - no I/O dependencies."""

import logging
from dataclasses import dataclass
from datetime import date, datetime

from dueday.core.deadline import Deadline, Recurrence, is_missed
from dueday.errors import ValidationError

logger = logging.getLogger(__name__)

# Reserved list ids; neither ever corresponds to a stored list row.
ARCHIVE_LIST_ID = -1
UNSORTED_LIST_ID = 0

TASK_KINDS = ("task", "reminder")


def is_reserved_list(list_id: int) -> bool:
    return list_id in (ARCHIVE_LIST_ID, UNSORTED_LIST_ID)


def validate_text(text: str | None) -> str:
    """Strip task text and reject it if nothing is left."""
    cleaned = (text or "").strip()
    if not cleaned:
        raise ValidationError("Task text must not be empty")
    return cleaned


def validate_list_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("List name must not be empty")
    return cleaned


@dataclass
class Task:
    """A task as stored in the todos collection."""

    id: int | None
    text: str
    completed: bool = False
    list_id: int = UNSORTED_LIST_ID
    deadline: Deadline | None = None
    description: str | None = None
    image_url: str | None = None
    milestone_id: int | None = None
    parent_task_id: int | None = None
    kind: str = "task"
    created_at: str | None = None

    @property
    def is_archived(self) -> bool:
        return self.list_id == ARCHIVE_LIST_ID

    @property
    def is_open(self) -> bool:
        return not self.completed and not self.is_archived

    def is_due_on(self, day: date) -> bool:
        return self.deadline is not None and self.deadline.date == day

    def is_missed(self, now: datetime) -> bool:
        """Active task whose deadline has fully passed."""
        if self.deadline is None:
            return False
        return is_missed(self.deadline, now, completed=self.completed)

    @classmethod
    def from_row(cls, data: dict) -> "Task":
        """
        Create Task from a store row.

        Stored deadline parts that do not parse are dropped with a warning
        so one bad row cannot break every read.
        """
        list_id = data.get("list_id")
        return cls(
            id=data.get("id"),
            text=data.get("text", ""),
            completed=bool(data.get("completed", False)),
            list_id=UNSORTED_LIST_ID if list_id is None else list_id,
            deadline=_deadline_from_row(data),
            description=data.get("description"),
            image_url=data.get("image_url"),
            milestone_id=data.get("milestone_id"),
            parent_task_id=data.get("parent_task_id"),
            kind=data.get("type") or "task",
            created_at=data.get("created_at"),
        )

    def to_row(self) -> dict:
        """Flatten into the store's row format (without id)."""
        row = {
            "text": self.text,
            "completed": self.completed,
            "list_id": self.list_id,
            "description": self.description,
            "image_url": self.image_url,
            "milestone_id": self.milestone_id,
            "parent_task_id": self.parent_task_id,
            "type": self.kind,
        }
        row.update(deadline_to_row(self.deadline))
        return row


def _deadline_from_row(data: dict) -> Deadline | None:
    task_id = data.get("id")
    raw_date = data.get("deadline_date")
    if not raw_date:
        return None
    try:
        due = date.fromisoformat(str(raw_date)[:10])
    except ValueError:
        logger.warning(f"Task {task_id}: ignoring unreadable deadline date {raw_date!r}")
        return None

    # Postgres time columns come back as HH:MM:SS
    time_str = data.get("deadline_time") or ""
    if time_str.count(":") == 2:
        time_str = time_str.rsplit(":", 1)[0]
    try:
        Deadline(date=due, time=time_str).parse_time()
    except ValidationError:
        logger.warning(f"Task {task_id}: treating unreadable deadline time {time_str!r} as all-day")
        time_str = ""

    try:
        recurring = Recurrence.parse(data.get("deadline_recurring"))
    except ValidationError:
        logger.warning(f"Task {task_id}: ignoring unknown recurrence {data.get('deadline_recurring')!r}")
        recurring = Recurrence.NONE

    return Deadline(date=due, time=time_str, recurring=recurring)


def deadline_to_row(deadline: Deadline | None) -> dict:
    """Deadline columns of a store row; None clears all three."""
    if deadline is None:
        return {"deadline_date": None, "deadline_time": None, "deadline_recurring": None}
    return {
        "deadline_date": deadline.date.isoformat(),
        "deadline_time": deadline.time.strip() if deadline.has_time else None,
        "deadline_recurring": deadline.recurring.value if deadline.is_recurring else None,
    }


@dataclass
class TaskList:
    """A user-created list. Reserved list ids never have a row."""

    id: int | None
    name: str
    color: str = "#0B64F9"
    is_shared: bool = False

    @classmethod
    def from_row(cls, data: dict) -> "TaskList":
        return cls(
            id=data.get("id"),
            name=data.get("name", ""),
            color=data.get("color") or "#0B64F9",
            is_shared=bool(data.get("is_shared", False)),
        )

    def to_row(self) -> dict:
        return {"name": self.name, "color": self.color, "is_shared": self.is_shared}


# ============== Projections ==============


def filter_today(tasks: list[Task], today: date, echo_ids: frozenset | set = frozenset()) -> list[Task]:
    """
    Tasks due today that are still active, plus just-completed ones
    still inside their echo window.

    Pure function - no I/O.
    """
    return [t for t in tasks if t.is_due_on(today) and (not t.completed or t.id in echo_ids)]


def filter_missed(tasks: list[Task], now: datetime) -> list[Task]:
    """Active tasks whose deadline has fully passed as of now."""
    return [t for t in tasks if t.is_missed(now)]


def sort_missed(tasks: list[Task]) -> list[Task]:
    """Oldest deadline first; stable for equal deadlines."""
    return sorted(
        (t for t in tasks if t.deadline is not None),
        key=lambda t: t.deadline.due_at(),
    )


def filter_by_list(tasks: list[Task], list_id: int) -> list[Task]:
    return [t for t in tasks if t.list_id == list_id]


def filter_open(tasks: list[Task]) -> list[Task]:
    """Every task that is neither completed nor archived, regardless of list."""
    return [t for t in tasks if t.is_open]


def filter_archived(tasks: list[Task]) -> list[Task]:
    return [t for t in tasks if t.is_archived]


def count_open_by_list(tasks: list[Task]) -> dict[int, int]:
    """Open task count per list id (lists with no open tasks are absent)."""
    counts: dict[int, int] = {}
    for t in filter_open(tasks):
        counts[t.list_id] = counts.get(t.list_id, 0) + 1
    return counts
