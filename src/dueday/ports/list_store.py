"""List store interface."""

from typing import Protocol

from dueday.core.tasks import TaskList


class ListStore(Protocol):
    """Interface for persisting user lists."""

    def fetch_all(self) -> list[TaskList]:
        ...

    def create(self, task_list: TaskList) -> TaskList:
        ...

    def update(self, list_id: int, fields: dict) -> TaskList:
        ...

    def delete(self, list_id: int) -> None:
        ...
