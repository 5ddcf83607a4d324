"""Completion echo - keeps just-completed tasks visible in the today view.

When a task due today is checked off it stays in the today projection,
rendered as done, for a short grace window before dropping out. Each task id
has at most one pending timer; the registry of timers is owned here and the
timers run on an APScheduler scheduler.
"""

import itertools
import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

logger = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 1.0


class CompletionEcho:
    """Registry of task ids inside their echo window."""

    def __init__(
        self,
        scheduler: BackgroundScheduler | None = None,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
        lock: "threading.RLock | None" = None,
        on_change: Callable[[int], None] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or BackgroundScheduler()
        self.grace = timedelta(seconds=grace_seconds)
        self.on_change = on_change
        self._lock = lock or threading.RLock()
        self._clock = clock
        self._jobs: dict[int, str] = {}
        self._job_ids = itertools.count(1)
        self._closed = False

    def __contains__(self, task_id: int) -> bool:
        with self._lock:
            return task_id in self._jobs

    def ids(self) -> frozenset[int]:
        """Snapshot of task ids currently echoing."""
        with self._lock:
            return frozenset(self._jobs)

    def pending_count(self) -> int:
        with self._lock:
            return len(self._jobs)

    def mark(self, task_id: int) -> bool:
        """
        Start the echo timer for a task.

        Returns False (and does nothing) if a timer is already running for
        this id or the echo has been shut down.
        """
        with self._lock:
            if self._closed or task_id in self._jobs:
                return False

            job_id = f"echo-{task_id}-{next(self._job_ids)}"
            self.scheduler.add_job(
                self._expire,
                DateTrigger(run_date=self._clock() + self.grace),
                args=[task_id, job_id],
                id=job_id,
                misfire_grace_time=None,
            )
            self._jobs[task_id] = job_id

            if self._owns_scheduler and not self.scheduler.running:
                self.scheduler.start()

        logger.debug(f"Echo started for task {task_id}")
        return True

    def cancel(self, task_id: int) -> bool:
        """Stop a running echo timer and clear the flag immediately."""
        with self._lock:
            job_id = self._jobs.pop(task_id, None)
            if job_id is None:
                return False
            self._remove_job(job_id)

        logger.debug(f"Echo cancelled for task {task_id}")
        return True

    def shutdown(self) -> None:
        """Drop every pending timer. No callback acts after this returns."""
        with self._lock:
            self._closed = True
            for job_id in self._jobs.values():
                self._remove_job(job_id)
            self._jobs.clear()

            if self._owns_scheduler and self.scheduler.running:
                self.scheduler.shutdown(wait=False)

    def _remove_job(self, job_id: str) -> None:
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            # Already fired; _expire will see the id is no longer registered.
            pass

    def _expire(self, task_id: int, job_id: str) -> None:
        """Timer callback: clear the echo if this timer is still the live one."""
        with self._lock:
            if self._jobs.get(task_id) != job_id:
                logger.debug(f"Ignoring stale echo timer {job_id}")
                return
            del self._jobs[task_id]

        logger.debug(f"Echo expired for task {task_id}")
        if self.on_change:
            self.on_change(task_id)
