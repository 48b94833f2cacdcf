"""One-way reconciliation of Notion tasks into Google Calendar events.

A pass fetches the active tasks and the calendar window, archives stale
completed tasks, creates or updates one event per dated task, and finally
deletes mirrored events whose task no longer exists.

Every create/update/delete is isolated: a failure is logged and recorded in
the SyncReport, and the pass carries on with the next task.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Set, Tuple

from .archival import ArchivalPolicy
from .errors import DuplicateConflict, NotFound, ServiceError, SetupError, SyncError
from .normalizer import normalize_pages, page_id
from .projection import event_end_instant, events_differ, project_task
from .storage import MirrorStore, record_to_event
from .task import Task, TaskStatus

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_DAYS = 30


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncReport:
    """Counters for one reconciliation pass.

    deleted counts events actually removed; events that were already gone
    are purged from the mirror without being counted.
    """
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    malformed: int = 0
    conflicts: int = 0
    archived: int = 0
    deleted: int = 0
    pruned: int = 0
    failures: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def fail(self, item_id: str, error: Exception) -> None:
        self.failures.append((item_id, str(error)))

    def summary(self) -> str:
        return (f"created={self.created} updated={self.updated} unchanged={self.unchanged} "
                f"skipped={self.skipped} malformed={self.malformed} conflicts={self.conflicts} "
                f"archived={self.archived} deleted={self.deleted} pruned={self.pruned} "
                f"failed={self.failed}")


class Reconciler:
    """Runs reconciliation passes against injected task-store, calendar and mirror handles."""

    def __init__(self, task_store, calendar, mirror: MirrorStore, calendar_id: str,
                 property_map: Mapping[str, str], archival: ArchivalPolicy = None,
                 lookback_days: int = DEFAULT_LOOKBACK_DAYS, adopt_conflicts: bool = False,
                 clock: Callable[[], datetime] = utcnow):
        self.task_store = task_store
        self.calendar = calendar
        self.mirror = mirror
        self.calendar_id = calendar_id
        self.property_map = property_map
        self.archival = archival or ArchivalPolicy()
        self.lookback_days = lookback_days
        self.adopt_conflicts = adopt_conflicts
        self.clock = clock

    def run(self) -> SyncReport:
        """Run one full pass.

        Raises:
            SetupError: the initial task or event listing failed
        """
        now = self.clock()
        window_start = now - timedelta(days=self.lookback_days)
        report = SyncReport()

        try:
            pages = self.task_store.query_active()
        except ServiceError as e:
            raise SetupError(f"Cannot fetch active tasks: {e}") from e
        tasks, malformed = normalize_pages(pages, self.property_map)
        report.malformed = len(malformed)
        known_ids = {t.id for t in tasks} | {e.page_id for e in malformed if e.page_id}

        try:
            remote = self.calendar.list_events(self.calendar_id, window_start)
        except ServiceError as e:
            raise SetupError(f"Cannot list calendar events: {e}") from e
        remote_by_id = {event['id']: event for event in remote if event.get('id')}

        report.pruned = self.mirror.prune_ended_before(window_start, keep=remote_by_id)
        existing: Dict[str, Mapping[str, Any]] = {r.id: record_to_event(r) for r in self.mirror.all()}
        existing.update(remote_by_id)

        working = self._archive_completed(tasks, now, existing, report)
        for task in working:
            self._guarded(task.id, report, self._sync_task, task, existing, window_start, report)

        self._cleanup(known_ids, report)
        logger.info(f"Sync finished: {report.summary()}")
        return report

    def _guarded(self, item_id: str, report: SyncReport, func, *args) -> bool:
        """Run one per-item step, recording instead of raising failures."""
        try:
            func(*args)
            return True
        except SyncError as e:
            logger.warning(f"Task {item_id}: {e}")
            report.fail(item_id, e)
        except Exception as e:
            logger.exception(f"Task {item_id}: unexpected error: {e}")
            report.fail(item_id, e)
        return False

    # ===== Create / update =====

    def _sync_task(self, task: Task, existing: Dict[str, Mapping[str, Any]],
                   window_start: datetime, report: SyncReport) -> None:
        if not task.has_date:
            logger.info(f"Task {task.id} ({task.title!r}) has no start date, skipping")
            report.skipped += 1
            return

        candidate = project_task(task)
        current = existing.get(task.id)
        if current is None:
            ends_at = event_end_instant(candidate)
            if ends_at is not None and ends_at < window_start:
                logger.debug(f"Task {task.id} ended before the sync window, skipping")
                report.skipped += 1
                return
            self._create(candidate, report)
        elif events_differ(candidate, current):
            self._update(candidate, report)
        else:
            logger.debug(f"Task {task.id} unchanged")
            report.unchanged += 1
            if self.mirror.get(task.id) is None:
                logger.info(f"Event {task.id} exists on the calendar but is not mirrored, recording it")
                self.mirror.update(task.id, candidate)
        existing[task.id] = candidate

    def _create(self, event: Dict[str, Any], report: SyncReport) -> None:
        event_id = event['id']
        try:
            self.calendar.insert_event(self.calendar_id, event)
        except DuplicateConflict:
            report.conflicts += 1
            if not self.adopt_conflicts:
                logger.warning(f"Event {event_id} already exists on the calendar but is not mirrored, skipping")
                return
            logger.info(f"Adopting existing event {event_id}")
            self.calendar.update_event(self.calendar_id, event_id, event)
            self.mirror.update(event_id, event)
            report.updated += 1
            return
        self.mirror.find_or_create(event_id, event)
        report.created += 1

    def _update(self, event: Dict[str, Any], report: SyncReport) -> None:
        event_id = event['id']
        try:
            self.calendar.update_event(self.calendar_id, event_id, event)
        except NotFound:
            logger.info(f"Event {event_id} is missing on the calendar, recreating")
            self.calendar.insert_event(self.calendar_id, event)
            self.mirror.update(event_id, event)
            report.created += 1
            return
        self.mirror.update(event_id, event)
        report.updated += 1

    # ===== Archival =====

    def _archive_completed(self, tasks: List[Task], now: datetime,
                           existing: Dict[str, Mapping[str, Any]], report: SyncReport) -> List[Task]:
        """Archive qualifying tasks and return the tasks still to be synced.

        A task whose status write fails stays in the working set and is
        retried next run.
        """
        to_archive, working = self.archival.split(tasks, now)
        for task in to_archive:
            try:
                self.task_store.set_status(task.id, TaskStatus.ARCHIVED)
            except ServiceError as e:
                logger.warning(f"Could not archive task {task.id}, keeping it active: {e}")
                working.append(task)
                continue
            report.archived += 1
            existing.pop(task.id, None)
            self._guarded(task.id, report, self._retire, task.id, report)
        return working

    def _retire(self, event_id: str, report: SyncReport) -> None:
        """Delete an event and its mirror row."""
        self._delete_event(event_id, report)
        self.mirror.delete(event_id)

    def _delete_event(self, event_id: str, report: SyncReport) -> None:
        """Delete an event on the calendar; only events actually removed are counted."""
        if self.calendar.delete_event(self.calendar_id, event_id):
            report.deleted += 1
        else:
            logger.debug(f"Event {event_id} was already gone")

    # ===== Orphan cleanup =====

    def _cleanup(self, known_ids: Set[str], report: SyncReport) -> None:
        """Retire events of archived or vanished tasks."""
        try:
            archived_pages = self.task_store.query_archived()
        except ServiceError as e:
            logger.error(f"Cannot fetch archived tasks, skipping orphan cleanup: {e}")
            return
        archived_ids = {pid for pid in map(page_id, archived_pages) if pid}

        mirrored = {record.id for record in self.mirror.all()}
        for event_id in sorted(mirrored & archived_ids):
            logger.info(f"Task {event_id} is archived, deleting its event")
            self._guarded(event_id, report, self._retire, event_id, report)

        known_ids = known_ids | archived_ids
        orphans = sorted(mirrored - known_ids)
        if not orphans:
            return

        failed: Set[str] = set()
        for event_id in orphans:
            logger.info(f"Task {event_id} no longer exists, deleting its event")
            if not self._guarded(event_id, report, self._delete_event, event_id, report):
                failed.add(event_id)
        self.mirror.delete_not_in(known_ids | failed)
