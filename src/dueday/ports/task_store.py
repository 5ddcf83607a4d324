"""Task store interface."""

from typing import Protocol

from dueday.core.tasks import Task


class TaskStore(Protocol):
    """Interface for persisting tasks in any backend."""

    def fetch_all(self) -> list[Task]:
        """Fetch all tasks in creation order."""
        ...

    def create(self, task: Task) -> Task:
        """Insert a task. Returns it with the store-assigned id."""
        ...

    def update(self, task_id: int, fields: dict) -> Task:
        """Patch the given row columns. Raises NotFoundError for unknown ids."""
        ...

    def delete(self, task_id: int) -> None:
        """Delete a task. Raises NotFoundError for unknown ids."""
        ...

    def reassign_list(self, from_list_id: int, to_list_id: int) -> int:
        """Move every task on one list to another. Returns the number moved."""
        ...
