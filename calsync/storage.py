"""Local mirror of the calendar events the sync has written.

Wraps the CRUD functions from db.py with per-call sessions and converts
between event bodies and mirror rows.
"""

from typing import Any, Dict, Generator, Iterable, List, Mapping, Optional
from contextlib import contextmanager
from datetime import datetime, timezone

from db import (
    MirrorEvent,
    make_session_factory,
    find_or_create_event as db_find_or_create_event,
    update_event as db_update_event,
    get_event as db_get_event,
    get_all_events as db_get_all_events,
    delete_event as db_delete_event,
    delete_events_not_in as db_delete_events_not_in,
    delete_events_ended_before as db_delete_events_ended_before,
)
from .projection import event_end_instant, is_all_day


def _naive_utc(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def event_to_fields(event: Mapping[str, Any]) -> Dict[str, Any]:
    """Extract the mirrored columns from an event body."""
    all_day = is_all_day(event)
    key = 'date' if all_day else 'dateTime'
    start = (event.get('start') or {}).get(key)
    end = (event.get('end') or {}).get(key) or start
    ends_at = event_end_instant(event)
    return {
        'summary': event.get('summary') or None,
        'description': event.get('description') or None,
        'location': event.get('location') or None,
        'start': start,
        'end': end,
        'all_day': all_day,
        'ends_at': _naive_utc(ends_at) if ends_at else None,
    }


def record_to_event(record: MirrorEvent) -> Dict[str, Any]:
    """Rebuild the compared parts of an event body from a mirror row."""
    if record.all_day:
        dates = {'start': {'date': record.start}, 'end': {'date': record.end}}
    else:
        dates = {
            'start': {'dateTime': record.start, 'timeZone': 'UTC'},
            'end': {'dateTime': record.end, 'timeZone': 'UTC'},
        }
    return {
        'id': record.id,
        'summary': record.summary,
        'description': record.description,
        'location': record.location or '',
        **dates,
    }


class MirrorStore:
    """Persistent record of events created or updated by the sync, keyed by id."""

    def __init__(self, session_factory=None, database_url: Optional[str] = None):
        self.session_factory = session_factory or make_session_factory(database_url)

    @contextmanager
    def get_session(self) -> Generator:
        """Context manager for database sessions.

        Objects are expunged before the session closes so callers can read
        them afterwards.
        """
        session = self.session_factory()
        try:
            yield session
            session.expunge_all()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get(self, event_id: str) -> Optional[MirrorEvent]:
        with self.get_session() as session:
            return db_get_event(session, event_id)

    def all(self) -> List[MirrorEvent]:
        with self.get_session() as session:
            return db_get_all_events(session)

    def find_or_create(self, event_id: str, event: Mapping[str, Any]) -> MirrorEvent:
        """Insert a mirror row for a newly created event, keeping an existing one."""
        with self.get_session() as session:
            record, _ = db_find_or_create_event(session, event_id, event_to_fields(event))
            return record

    def update(self, event_id: str, event: Mapping[str, Any]) -> MirrorEvent:
        """Refresh the mirror row after an update, creating it if missing."""
        fields = event_to_fields(event)
        with self.get_session() as session:
            record = db_update_event(session, event_id, fields)
            if record is None:
                record, _ = db_find_or_create_event(session, event_id, fields)
            return record

    def delete(self, event_id: str) -> bool:
        with self.get_session() as session:
            return db_delete_event(session, event_id) is not None

    def delete_not_in(self, event_ids: Iterable[str]) -> int:
        """Purge every mirror row whose id is not in event_ids."""
        with self.get_session() as session:
            return db_delete_events_not_in(session, set(event_ids))

    def prune_ended_before(self, cutoff: datetime, keep: Iterable[str] = ()) -> int:
        """Drop rows for events that ended before cutoff, except ids in keep."""
        with self.get_session() as session:
            return db_delete_events_ended_before(session, _naive_utc(cutoff), set(keep))
