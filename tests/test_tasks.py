"""Tests for core task model and projections."""

from datetime import date, datetime, time, timedelta

import pytest

from dueday.core.deadline import Deadline, Recurrence
from dueday.core.tasks import (
    ARCHIVE_LIST_ID,
    UNSORTED_LIST_ID,
    Task,
    TaskList,
    count_open_by_list,
    deadline_to_row,
    filter_archived,
    filter_by_list,
    filter_missed,
    filter_open,
    filter_today,
    is_reserved_list,
    sort_missed,
    validate_list_name,
    validate_text,
)
from dueday.errors import ValidationError


# Fixtures
@pytest.fixture
def today():
    return date(2025, 1, 15)


@pytest.fixture
def now(today):
    return datetime.combine(today, time(12, 0))


@pytest.fixture
def sample_tasks(today):
    """Sample tasks covering various scenarios."""
    return [
        Task(id=1, text="Due today, open", deadline=Deadline(date=today)),
        Task(id=2, text="Due today, done", completed=True, list_id=ARCHIVE_LIST_ID, deadline=Deadline(date=today)),
        Task(id=3, text="Overdue yesterday", list_id=7, deadline=Deadline(date=today - timedelta(days=1))),
        Task(id=4, text="No deadline", list_id=7),
        Task(id=5, text="Due this morning", deadline=Deadline(date=today, time="09:00")),
        Task(id=6, text="Old and done", completed=True, list_id=ARCHIVE_LIST_ID, deadline=Deadline(date=today - timedelta(days=9))),
        Task(id=7, text="Next week", list_id=8, deadline=Deadline(date=today + timedelta(days=7))),
        Task(id=8, text="Overdue last week", deadline=Deadline(date=today - timedelta(days=6), time="18:00")),
    ]


def ids(tasks):
    return [t.id for t in tasks]


class TestValidation:
    def test_text_is_stripped(self):
        assert validate_text("  Pay rent ") == "Pay rent"

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_text_rejected(self, text):
        with pytest.raises(ValidationError):
            validate_text(text)

    def test_empty_list_name_rejected(self):
        with pytest.raises(ValidationError):
            validate_list_name(" ")

    def test_reserved_lists(self):
        assert is_reserved_list(ARCHIVE_LIST_ID)
        assert is_reserved_list(UNSORTED_LIST_ID)
        assert not is_reserved_list(12)


class TestTask:
    def test_defaults(self):
        task = Task(id=None, text="Buy milk")
        assert task.completed is False
        assert task.list_id == UNSORTED_LIST_ID
        assert task.deadline is None
        assert task.kind == "task"
        assert task.is_open is True

    def test_archived_is_not_open(self):
        task = Task(id=1, text="x", list_id=ARCHIVE_LIST_ID)
        assert task.is_archived is True
        assert task.is_open is False

    def test_no_deadline_never_missed(self, now):
        assert Task(id=1, text="x").is_missed(now) is False

    def test_completed_never_missed(self, today, now):
        task = Task(id=1, text="x", completed=True, deadline=Deadline(date=today - timedelta(days=3)))
        assert task.is_missed(now) is False

    def test_from_row(self):
        task = Task.from_row(
            {
                "id": 42,
                "text": "Pay rent",
                "completed": False,
                "list_id": 3,
                "deadline_date": "2024-01-31",
                "deadline_time": None,
                "deadline_recurring": "monthly",
                "description": "landlord",
                "type": "reminder",
                "created_at": "2024-01-01T10:00:00+00:00",
            }
        )
        assert task.id == 42
        assert task.list_id == 3
        assert task.deadline == Deadline(date=date(2024, 1, 31), time="", recurring=Recurrence.MONTHLY)
        assert task.description == "landlord"
        assert task.kind == "reminder"

    def test_from_row_without_deadline(self):
        task = Task.from_row({"id": 1, "text": "x", "completed": True, "list_id": None, "deadline_date": None})
        assert task.deadline is None
        assert task.list_id == UNSORTED_LIST_ID
        assert task.kind == "task"

    def test_from_row_empty_recurring_is_none(self):
        task = Task.from_row({"id": 1, "text": "x", "deadline_date": "2025-01-15", "deadline_recurring": ""})
        assert task.deadline.recurring is Recurrence.NONE

    def test_from_row_trims_seconds_from_stored_time(self):
        task = Task.from_row({"id": 1, "text": "x", "deadline_date": "2025-01-15", "deadline_time": "09:30:00"})
        assert task.deadline.time == "09:30"
        assert task.deadline.due_at() == datetime(2025, 1, 15, 9, 30)

    def test_from_row_unknown_recurrence_degrades_to_none(self, caplog):
        task = Task.from_row({"id": 7, "text": "x", "deadline_date": "2025-01-15", "deadline_recurring": "fortnightly"})
        assert task.deadline == Deadline(date=date(2025, 1, 15))
        assert "fortnightly" in caplog.text

    def test_from_row_bad_time_becomes_all_day(self, caplog):
        task = Task.from_row({"id": 7, "text": "x", "deadline_date": "2025-01-15", "deadline_time": "late"})
        assert task.deadline.has_time is False
        assert task.is_missed(datetime(2025, 1, 15, 23, 0)) is False
        assert "late" in caplog.text

    def test_from_row_bad_date_drops_deadline(self):
        task = Task.from_row({"id": 7, "text": "x", "deadline_date": "someday"})
        assert task.deadline is None

    def test_to_row(self, today):
        task = Task(id=9, text="Standup", list_id=4, deadline=Deadline(date=today, time="09:30", recurring=Recurrence.WEEKDAY))
        row = task.to_row()
        assert "id" not in row
        assert row["list_id"] == 4
        assert row["deadline_date"] == "2025-01-15"
        assert row["deadline_time"] == "09:30"
        assert row["deadline_recurring"] == "weekday"
        assert row["type"] == "task"

    def test_deadline_to_row_none_clears_all_columns(self):
        assert deadline_to_row(None) == {
            "deadline_date": None,
            "deadline_time": None,
            "deadline_recurring": None,
        }

    def test_deadline_to_row_all_day_non_recurring(self, today):
        row = deadline_to_row(Deadline(date=today))
        assert row == {"deadline_date": "2025-01-15", "deadline_time": None, "deadline_recurring": None}


class TestTaskList:
    def test_from_row(self):
        task_list = TaskList.from_row({"id": 5, "name": "Work", "color": "#00C853", "is_shared": True})
        assert task_list == TaskList(id=5, name="Work", color="#00C853", is_shared=True)

    def test_to_row(self):
        assert TaskList(id=5, name="Home").to_row() == {"name": "Home", "color": "#0B64F9", "is_shared": False}


class TestFilterToday:
    def test_open_tasks_due_today(self, sample_tasks, today):
        assert ids(filter_today(sample_tasks, today)) == [1, 5]

    def test_echoing_completed_task_stays(self, sample_tasks, today):
        assert ids(filter_today(sample_tasks, today, echo_ids={2})) == [1, 2, 5]

    def test_echo_only_applies_to_today(self, sample_tasks, today):
        # Task 6 is completed but due on another day
        assert 6 not in ids(filter_today(sample_tasks, today, echo_ids={6}))

    def test_missed_timed_task_still_shows_today(self, sample_tasks, today):
        assert 5 in ids(filter_today(sample_tasks, today))


class TestFilterMissed:
    def test_missed_tasks(self, sample_tasks, now):
        assert ids(filter_missed(sample_tasks, now)) == [3, 5, 8]

    def test_date_only_today_not_missed_before_midnight(self, sample_tasks, today):
        late = datetime.combine(today, time(23, 59, 59))
        assert 1 not in ids(filter_missed(sample_tasks, late))

    def test_date_only_today_missed_next_day(self, sample_tasks, today):
        tomorrow = datetime.combine(today + timedelta(days=1), time(0, 0))
        assert 1 in ids(filter_missed(sample_tasks, tomorrow))

    def test_sort_missed_oldest_first(self, sample_tasks, now):
        assert ids(sort_missed(filter_missed(sample_tasks, now))) == [8, 3, 5]


class TestListProjections:
    def test_by_list(self, sample_tasks):
        assert ids(filter_by_list(sample_tasks, 7)) == [3, 4]

    def test_open_ignores_list_and_deadline(self, sample_tasks):
        assert ids(filter_open(sample_tasks)) == [1, 3, 4, 5, 7, 8]

    def test_archived(self, sample_tasks):
        assert ids(filter_archived(sample_tasks)) == [2, 6]

    def test_count_open_by_list(self, sample_tasks):
        assert count_open_by_list(sample_tasks) == {UNSORTED_LIST_ID: 3, 7: 2, 8: 1}
