"""Task lifecycle engine - owns the task collection and its transitions.

Every mutation runs under a single lock for its whole store round-trip, and
every successful mutation re-fetches the full collection from the store.
The in-memory collection is only ever replaced by a fetch, so a failed store
call leaves the last fetched state as the source of truth.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime

from dueday.core.deadline import Deadline, next_occurrence
from dueday.core.tasks import (
    ARCHIVE_LIST_ID,
    TASK_KINDS,
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
from dueday.echo import CompletionEcho
from dueday.errors import NotFoundError, StoreError, ValidationError
from dueday.ports import ListStore, TaskStore

logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# Marks an update argument that was not supplied (leave unchanged),
# as opposed to None (clear it).
UNSET = _Unset()

# Pass-through task fields, keyed by engine name -> store column.
EXTRA_FIELDS = {
    "description": "description",
    "image_url": "image_url",
    "milestone_id": "milestone_id",
    "parent_task_id": "parent_task_id",
    "kind": "type",
}


@dataclass
class ToggleResult:
    """Outcome of toggle_complete: the toggled task and any spawned successor."""

    task: Task
    spawned: Task | None = None


def _validate_deadline(deadline: Deadline | None) -> None:
    if deadline is not None:
        deadline.parse_time()


def _validate_extra(extra: dict) -> dict:
    unknown = set(extra) - set(EXTRA_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown task fields: {', '.join(sorted(unknown))}")
    if "kind" in extra and extra["kind"] not in TASK_KINDS:
        raise ValidationError(f"Task kind must be one of {TASK_KINDS}, got {extra['kind']!r}")
    return extra


class TaskEngine:
    """Single-writer owner of the task and list collections."""

    def __init__(
        self,
        task_store: TaskStore,
        list_store: ListStore,
        echo: CompletionEcho | None = None,
        clock: Callable[[], datetime] = datetime.now,
        restore_list_on_uncomplete: bool = False,
        echo_seconds: float = 1.0,
    ):
        self.task_store = task_store
        self.list_store = list_store
        self.clock = clock
        self.restore_list_on_uncomplete = restore_list_on_uncomplete
        self._lock = threading.RLock()
        self.echo = echo or CompletionEcho(grace_seconds=echo_seconds, lock=self._lock)
        self._tasks: list[Task] = []
        self._lists: list[TaskList] = []
        # Task id -> list it held before being archived (this session only)
        self._archived_from: dict[int, int] = {}

    def __enter__(self) -> "TaskEngine":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        """Tear down pending echo timers."""
        self.echo.shutdown()

    @property
    def tasks(self) -> list[Task]:
        with self._lock:
            return list(self._tasks)

    @property
    def lists(self) -> list[TaskList]:
        with self._lock:
            return list(self._lists)

    # ============== Reads ==============

    def refresh(self) -> None:
        """Replace both collections with the store's current contents."""
        with self._lock:
            tasks = self.task_store.fetch_all()
            lists = self.list_store.fetch_all()
            self._tasks = tasks
            self._lists = lists
        logger.debug(f"Fetched {len(tasks)} tasks and {len(lists)} lists")

    def get_task(self, task_id: int) -> Task:
        with self._lock:
            for task in self._tasks:
                if task.id == task_id:
                    return task
        raise NotFoundError(f"Task {task_id} not found")

    def get_list(self, list_id: int) -> TaskList:
        with self._lock:
            for task_list in self._lists:
                if task_list.id == list_id:
                    return task_list
        raise NotFoundError(f"List {list_id} not found")

    def _check_list_id(self, list_id: int) -> int:
        if not is_reserved_list(list_id):
            self.get_list(list_id)
        return list_id

    # ============== Task mutations ==============

    def create_task(
        self,
        text: str,
        list_id: int = UNSORTED_LIST_ID,
        deadline: Deadline | None = None,
        **extra,
    ) -> Task:
        """Create an active task. Validation happens before the store is touched."""
        text = validate_text(text)
        _validate_deadline(deadline)
        _validate_extra(extra)

        with self._lock:
            self._check_list_id(list_id)
            created = self.task_store.create(
                Task(id=None, text=text, list_id=list_id, deadline=deadline, **extra)
            )
            self.refresh()

        logger.info(f"Created task {created.id}")
        return created

    def update_task(
        self,
        task_id: int,
        text: str | _Unset = UNSET,
        list_id: int | _Unset = UNSET,
        deadline: Deadline | None | _Unset = UNSET,
        **extra,
    ) -> Task:
        """
        Patch a task. Arguments left as UNSET are unchanged; deadline=None
        clears the deadline.
        """
        fields: dict = {}
        if text is not UNSET:
            fields["text"] = validate_text(text)
        if deadline is not UNSET:
            _validate_deadline(deadline)
            fields.update(deadline_to_row(deadline))
        for name, value in _validate_extra(extra).items():
            fields[EXTRA_FIELDS[name]] = value

        with self._lock:
            task = self.get_task(task_id)
            if list_id is not UNSET:
                fields["list_id"] = self._check_list_id(list_id)
            if not fields:
                return task

            updated = self.task_store.update(task_id, fields)
            self.refresh()

        logger.info(f"Updated task {task_id}: {', '.join(sorted(fields))}")
        return updated

    def delete_task(self, task_id: int) -> None:
        with self._lock:
            self.get_task(task_id)
            self.task_store.delete(task_id)
            self.echo.cancel(task_id)
            self._archived_from.pop(task_id, None)
            self.refresh()

        logger.info(f"Deleted task {task_id}")

    def toggle_complete(self, task_id: int) -> ToggleResult:
        """
        Complete an active task or re-open a completed one.

        Completing archives the task. If its deadline recurs, a new active
        task is created for the next occurrence and the archived record loses
        its policy, so re-opening and completing it again spawns nothing.
        """
        with self._lock:
            task = self.get_task(task_id)
            if task.completed:
                return self._uncomplete(task)
            return self._complete(task)

    def _complete(self, task: Task) -> ToggleResult:
        recurs = task.deadline is not None and task.deadline.is_recurring
        fields = {"completed": True, "list_id": ARCHIVE_LIST_ID}
        if recurs:
            # The successor carries the policy from here on.
            fields["deadline_recurring"] = None
        archived = self.task_store.update(task.id, fields)

        spawned = None
        if recurs:
            try:
                spawned = self.task_store.create(self._successor(task))
            except StoreError:
                logger.error(f"Could not create next occurrence of task {task.id}, reopening it")
                self._reopen_after_failed_spawn(task)
                raise
            logger.info(
                f"Task {task.id} recurs {task.deadline.recurring.value}: "
                f"spawned {spawned.id} due {spawned.deadline.date}"
            )

        self._archived_from[task.id] = task.list_id
        if task.is_due_on(self.clock().date()):
            self.echo.mark(task.id)

        self.refresh()
        return ToggleResult(archived, spawned)

    def _reopen_after_failed_spawn(self, task: Task) -> None:
        try:
            self.task_store.update(
                task.id,
                {"completed": False, "list_id": task.list_id, **deadline_to_row(task.deadline)},
            )
        except StoreError as e:
            logger.error(f"Could not reopen task {task.id}; it stays archived without a successor: {e}")

    def _successor(self, task: Task) -> Task:
        next_date = next_occurrence(task.deadline.date, task.deadline.recurring)
        return replace(
            task,
            id=None,
            completed=False,
            list_id=UNSORTED_LIST_ID if task.is_archived else task.list_id,
            deadline=task.deadline.with_date(next_date),
            created_at=None,
        )

    def _uncomplete(self, task: Task) -> ToggleResult:
        list_id = self._list_after_uncomplete(task)
        reopened = self.task_store.update(task.id, {"completed": False, "list_id": list_id})
        self._archived_from.pop(task.id, None)
        self.echo.cancel(task.id)
        self.refresh()
        return ToggleResult(reopened)

    def _list_after_uncomplete(self, task: Task) -> int:
        if not self.restore_list_on_uncomplete:
            return UNSORTED_LIST_ID
        previous = self._archived_from.get(task.id)
        if previous is None or previous == ARCHIVE_LIST_ID:
            return UNSORTED_LIST_ID
        if is_reserved_list(previous) or any(l.id == previous for l in self._lists):
            return previous
        return UNSORTED_LIST_ID

    # ============== List mutations ==============

    def reassign_on_list_deletion(self, list_id: int) -> int:
        """Move every task on a list to the unsorted bucket. Returns the count moved."""
        if is_reserved_list(list_id):
            raise ValidationError(f"List {list_id} is reserved")

        with self._lock:
            moved = self._reassign(list_id)
            self.refresh()
        return moved

    def _reassign(self, list_id: int) -> int:
        moved = self.task_store.reassign_list(list_id, UNSORTED_LIST_ID)
        for task_id, previous in self._archived_from.items():
            if previous == list_id:
                self._archived_from[task_id] = UNSORTED_LIST_ID
        logger.info(f"Reassigned {moved} tasks from list {list_id} to unsorted")
        return moved

    def create_list(self, name: str, color: str = "#0B64F9", is_shared: bool = False) -> TaskList:
        name = validate_list_name(name)
        with self._lock:
            created = self.list_store.create(TaskList(id=None, name=name, color=color, is_shared=is_shared))
            self.refresh()
        logger.info(f"Created list {created.id}")
        return created

    def update_list(
        self,
        list_id: int,
        name: str | _Unset = UNSET,
        color: str | _Unset = UNSET,
        is_shared: bool | _Unset = UNSET,
    ) -> TaskList:
        fields: dict = {}
        if name is not UNSET:
            fields["name"] = validate_list_name(name)
        if color is not UNSET:
            fields["color"] = color
        if is_shared is not UNSET:
            fields["is_shared"] = is_shared

        with self._lock:
            current = self.get_list(list_id)
            if not fields:
                return current
            updated = self.list_store.update(list_id, fields)
            self.refresh()
        return updated

    def delete_list(self, list_id: int) -> int:
        """
        Delete a list, first moving its tasks to the unsorted bucket so no
        task ever references a list that no longer exists.
        """
        if is_reserved_list(list_id):
            raise ValidationError(f"List {list_id} is reserved and cannot be deleted")

        with self._lock:
            self.get_list(list_id)
            moved = self._reassign(list_id)
            try:
                self.list_store.delete(list_id)
            except StoreError:
                # Tasks already moved store-side; pick that up before surfacing.
                logger.error(f"Deleting list {list_id} failed after its tasks were moved")
                self.refresh()
                raise
            self.refresh()

        logger.info(f"Deleted list {list_id}")
        return moved

    # ============== Projections ==============

    def today(self) -> list[Task]:
        """Tasks due today, plus completions still inside their echo window."""
        now = self.clock()
        with self._lock:
            return filter_today(self._tasks, now.date(), self.echo.ids())

    def missed(self, oldest_first: bool = True) -> list[Task]:
        now = self.clock()
        with self._lock:
            missed = filter_missed(self._tasks, now)
        return sort_missed(missed) if oldest_first else missed

    def by_list(self, list_id: int) -> list[Task]:
        with self._lock:
            return filter_by_list(self._tasks, list_id)

    def all_open(self) -> list[Task]:
        with self._lock:
            return filter_open(self._tasks)

    def archived(self) -> list[Task]:
        with self._lock:
            return filter_archived(self._tasks)

    def open_counts(self) -> dict[int, int]:
        with self._lock:
            return count_open_by_list(self._tasks)
