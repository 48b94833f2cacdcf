"""Archival policy for completed tasks.

A Done task is archived once its last date (end, or start when there is no
end) lies at least `after_days` in the past.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from .dates import parse_instant
from .task import Task, TaskStatus

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_AFTER_DAYS = 3


class ArchivalPolicy:
    """Decides which completed tasks should be retired."""

    def __init__(self, after_days: int = DEFAULT_ARCHIVE_AFTER_DAYS):
        self.after_days = after_days

    def reference_date(self, task: Task) -> Optional[datetime]:
        raw = task.date_end or task.date_start
        return parse_instant(raw) if raw else None

    def qualifies(self, task: Task, now: datetime) -> bool:
        """Return True if task is Done and its last date is old enough."""
        if task.status != TaskStatus.DONE:
            return False
        reference = self.reference_date(task)
        if reference is None:
            return False
        return now - reference >= timedelta(days=self.after_days)

    def split(self, tasks: Iterable[Task], now: datetime) -> Tuple[List[Task], List[Task]]:
        """Partition tasks into (to_archive, keep)."""
        to_archive: List[Task] = []
        keep: List[Task] = []
        for task in tasks:
            (to_archive if self.qualifies(task, now) else keep).append(task)
        if to_archive:
            logger.info(f"{len(to_archive)} completed tasks qualify for archival")
        return to_archive, keep
