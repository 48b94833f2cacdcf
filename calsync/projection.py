"""Project canonical Tasks into Google Calendar event bodies.

Also holds the canonical comparison used to decide whether an existing event
needs an update.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .dates import format_utc, has_time, parse_date, parse_instant
from .task import Priority, Task

DAY_MINUTES = 24 * 60

# Fields compared when deciding whether to update an event
COMPARED_FIELDS = ('summary', 'description', 'start', 'end', 'location')


def build_summary(task: Task) -> str:
    """Join the non-empty type, category and title with single spaces."""
    return ' '.join(part for part in (task.type, task.category, task.title) if part)


def build_description(task: Task) -> str:
    priority = str(task.priority) if task.priority else ''
    text = f"Status: {task.status}\nPriority: {priority}"
    if task.description:
        text += '\n' + task.description
    return text


def reminders_for(priority: Optional[Priority]) -> Dict[str, Any]:
    """Email reminder overrides by priority.

    low: 14 days before; medium adds 6 days before; high adds 1, 2 and 3 days
    before. No priority means no reminders.
    """
    overrides: List[Dict[str, Any]] = []
    if priority in (Priority.LOW, Priority.MEDIUM, Priority.HIGH):
        overrides.append({'method': 'email', 'minutes': 14 * DAY_MINUTES})
    if priority in (Priority.MEDIUM, Priority.HIGH):
        overrides.append({'method': 'email', 'minutes': 6 * DAY_MINUTES})
    if priority == Priority.HIGH:
        overrides.append({'method': 'email', 'minutes': DAY_MINUTES})
        overrides.append({'method': 'email', 'minutes': 2 * DAY_MINUTES})
        overrides.append({'method': 'email', 'minutes': 3 * DAY_MINUTES})
    return {'useDefault': False, 'overrides': overrides}


def project_dates(date_start: str, date_end: str = '') -> Tuple[Dict[str, str], Dict[str, str]]:
    """Build the start/end objects of an event.

    If either string carries a time of day the event is time-bound and both
    ends are UTC timestamps; otherwise it is all-day. A missing end repeats
    the start.
    """
    end_raw = date_end or date_start
    if has_time(date_start) or has_time(date_end):
        return (
            {'dateTime': format_utc(parse_instant(date_start)), 'timeZone': 'UTC'},
            {'dateTime': format_utc(parse_instant(end_raw)), 'timeZone': 'UTC'},
        )
    return (
        {'date': parse_date(date_start).isoformat()},
        {'date': parse_date(end_raw).isoformat()},
    )


def project_task(task: Task) -> Dict[str, Any]:
    """Map a Task to a Google Calendar event body.

    Raises:
        ValueError: the task has no start date
    """
    if not task.has_date:
        raise ValueError(f"Task {task.id} has no start date")

    start, end = project_dates(task.date_start, task.date_end)
    return {
        'id': task.id,
        'summary': build_summary(task),
        'description': build_description(task),
        'location': task.location,
        'start': start,
        'end': end,
        'reminders': reminders_for(task.priority),
    }


def is_all_day(event: Mapping[str, Any]) -> bool:
    start = event.get('start') or {}
    return 'dateTime' not in start


def event_end_instant(event: Mapping[str, Any]) -> Optional[datetime]:
    """Return the UTC instant at which an event ends, if it has an end."""
    end = event.get('end') or {}
    raw = end.get('dateTime') or end.get('date')
    if not raw:
        return None
    return parse_instant(raw)


def _canonical_time(value: Any) -> Any:
    if not value:
        return None
    if isinstance(value, Mapping):
        if value.get('dateTime'):
            return ('dateTime', parse_instant(value['dateTime']))
        if value.get('date'):
            return ('date', date.fromisoformat(value['date']))
        return None
    return value


def canonical_fields(event: Mapping[str, Any]) -> Dict[str, Any]:
    """Reduce an event to the compared fields in a comparable form.

    Empty strings and missing values compare equal; timestamps compare as UTC
    instants regardless of the offset or timeZone the calendar reports.
    """
    fields: Dict[str, Any] = {}
    for name in COMPARED_FIELDS:
        value = event.get(name)
        if name in ('start', 'end'):
            fields[name] = _canonical_time(value)
        else:
            fields[name] = value or None
    return fields


def events_differ(candidate: Mapping[str, Any], existing: Mapping[str, Any]) -> bool:
    return canonical_fields(candidate) != canonical_fields(existing)
