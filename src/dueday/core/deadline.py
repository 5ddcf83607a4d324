"""Pure deadline logic - recurrence and overdue rules, no I/O dependencies."""

import calendar
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from datetime import time as time_of_day
from enum import Enum

from dueday.errors import ValidationError

END_OF_DAY = time_of_day(23, 59, 59, 999000)


class Recurrence(str, Enum):
    """How a task regenerates when it is completed."""

    DAILY = "daily"
    WEEKLY = "weekly"
    WEEKDAY = "weekday"
    MONTHLY = "monthly"
    NONE = "none"

    @classmethod
    def parse(cls, value: "str | Recurrence | None") -> "Recurrence":
        """Parse a stored or user-supplied policy. Empty means NONE."""
        if isinstance(value, Recurrence):
            return value
        if not value:
            return cls.NONE
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown recurrence policy: {value!r}") from None


@dataclass(frozen=True)
class Deadline:
    """A local calendar date, optional HH:MM time and recurrence policy."""

    date: date
    time: str = ""
    recurring: Recurrence = Recurrence.NONE

    @property
    def is_recurring(self) -> bool:
        return self.recurring is not Recurrence.NONE

    @property
    def has_time(self) -> bool:
        return bool(self.time and self.time.strip())

    def parse_time(self) -> time_of_day | None:
        """Time of day, or None for an all-day deadline."""
        if not self.has_time:
            return None
        hours, sep, minutes = self.time.strip().partition(":")
        try:
            return time_of_day(int(hours), int(minutes) if sep else 0)
        except ValueError:
            raise ValidationError(f"Invalid deadline time: {self.time!r}") from None

    def due_at(self) -> datetime:
        """
        The instant this deadline passes, in naive local time.

        Date-only deadlines span the whole day and end at 23:59:59.999.
        """
        return datetime.combine(self.date, self.parse_time() or END_OF_DAY)

    def with_date(self, new_date: date) -> "Deadline":
        return replace(self, date=new_date)


def add_months(current: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = current.month - 1 + months
    year = current.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(current.day, last_day))


def next_occurrence(current: date, policy: Recurrence) -> date:
    """
    Date of the next instance of a recurring deadline.

    Pure function - no I/O.
    """
    match policy:
        case Recurrence.DAILY:
            return current + timedelta(days=1)
        case Recurrence.WEEKLY:
            return current + timedelta(days=7)
        case Recurrence.WEEKDAY:
            nxt = current + timedelta(days=1)
            # Saturday -> Monday, Sunday -> Monday
            if nxt.weekday() == 5:
                nxt += timedelta(days=2)
            elif nxt.weekday() == 6:
                nxt += timedelta(days=1)
            return nxt
        case Recurrence.MONTHLY:
            return add_months(current, 1)
    raise ValueError(f"No next occurrence for policy {policy!r}")


def is_missed(deadline: Deadline, now: datetime, completed: bool = False) -> bool:
    """True once the deadline has fully passed. Completed tasks are never missed."""
    if completed:
        return False
    return deadline.due_at() < now


def days_overdue(deadline: Deadline, today: date) -> int:
    """Whole days since the deadline date (0 if not yet past)."""
    return max((today - deadline.date).days, 0)
