"""Ports - interfaces/protocols for external dependencies."""

from .task_store import TaskStore
from .list_store import ListStore

__all__ = [
    "TaskStore",
    "ListStore",
]
