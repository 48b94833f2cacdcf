"""Normalize raw Notion pages into canonical Task values.

Property lookup goes through the logical -> Notion name map from config, so
renaming a column in Notion only needs a settings change.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .dates import parse_instant
from .errors import MalformedTask
from .task import Priority, Task, TaskStatus

logger = logging.getLogger(__name__)


def page_id(page: Any) -> Optional[str]:
    """Return the normalized (hyphen-free) id of a raw page, if it has one."""
    if not isinstance(page, Mapping):
        return None
    raw = page.get('id')
    if not isinstance(raw, str) or not raw:
        return None
    return raw.replace('-', '')


def _fragments_text(fragments: Any, name: str, pid: Optional[str]) -> str:
    if not isinstance(fragments, list):
        raise MalformedTask(f"Property {name!r} has no text fragments", pid)
    return ''.join(f.get('plain_text', '') for f in fragments if isinstance(f, Mapping)).strip()


def _option_name(option: Any, name: str, pid: Optional[str]) -> str:
    if option is None:
        return ''
    if not isinstance(option, Mapping):
        raise MalformedTask(f"Property {name!r} has an invalid option", pid)
    return (option.get('name') or '').strip()


def property_text(prop: Any, name: str, pid: Optional[str] = None) -> str:
    """Flatten a Notion property value to plain text.

    Multi-select options are sorted so that reordering tags in Notion does not
    change the result.
    """
    if not isinstance(prop, Mapping) or 'type' not in prop:
        raise MalformedTask(f"Property {name!r} is not a property object", pid)

    kind = prop['type']
    value = prop.get(kind)
    if kind in ('title', 'rich_text'):
        return _fragments_text(value, name, pid)
    if kind in ('select', 'status'):
        return _option_name(value, name, pid)
    if kind == 'multi_select':
        if not isinstance(value, list):
            raise MalformedTask(f"Property {name!r} has no options list", pid)
        return ' '.join(sorted(_option_name(o, name, pid) for o in value if o))
    if kind in ('number', 'url', 'email', 'phone_number'):
        return '' if value is None else str(value)
    raise MalformedTask(f"Property {name!r} has unsupported type {kind!r}", pid)


def property_date(prop: Any, name: str, pid: Optional[str] = None) -> Tuple[str, str]:
    """Return the (start, end) strings of a Notion date property."""
    if not isinstance(prop, Mapping) or prop.get('type') != 'date':
        raise MalformedTask(f"Property {name!r} is not a date property", pid)
    value = prop.get('date')
    if value is None:
        return '', ''
    if not isinstance(value, Mapping):
        raise MalformedTask(f"Property {name!r} has an invalid date value", pid)
    return value.get('start') or '', value.get('end') or ''


def _check_range(start: str, end: str, pid: str) -> str:
    """Validate the date strings and drop an end date before the start."""
    try:
        start_at = parse_instant(start) if start else None
        end_at = parse_instant(end) if end else None
    except ValueError:
        raise MalformedTask(f"Unparseable date range {start!r} - {end!r}", pid)
    if start_at and end_at and end_at < start_at:
        logger.warning(f"Task {pid}: end date {end} is before start {start}, ignoring end")
        return ''
    return end


def normalize_task(page: Any, property_map: Mapping[str, str]) -> Task:
    """Map one raw Notion page to a Task.
    
    Args:
        page: Raw page object as returned by the Notion query endpoint
        property_map: Validated logical -> Notion property name lookup
        
    Returns:
        Normalized Task
        
    Raises:
        MalformedTask: page has no id or properties, or a property has an
            unexpected shape
    """
    pid = page_id(page)
    if pid is None:
        raise MalformedTask("Page has no id")
    properties = page.get('properties')
    if not isinstance(properties, Mapping):
        raise MalformedTask("Page has no 'properties' object", pid)

    def text(logical: str) -> str:
        physical = property_map.get(logical)
        if not physical or physical not in properties:
            return ''
        return property_text(properties[physical], physical, pid)

    date_name = property_map['date']
    start, end = ('', '')
    if date_name in properties:
        start, end = property_date(properties[date_name], date_name, pid)
    end = _check_range(start, end, pid)

    return Task(
        id=pid,
        status=TaskStatus.from_string(text('status')),
        title=text('title'),
        date_start=start,
        date_end=end,
        category=text('category'),
        type=text('type'),
        priority=Priority.from_string(text('priority')),
        description=text('description'),
        location=text('location'),
    )


def normalize_pages(pages: Iterable[Any], property_map: Mapping[str, str]) -> Tuple[List[Task], List[MalformedTask]]:
    """Normalize a batch, collecting malformed pages instead of aborting.
    
    Returns:
        (tasks, errors) where errors hold the page id when one was readable
    """
    tasks: List[Task] = []
    errors: List[MalformedTask] = []
    seen: Dict[str, Task] = {}
    for page in pages:
        try:
            task = normalize_task(page, property_map)
        except MalformedTask as e:
            logger.warning(f"Skipping malformed task {e.page_id or '<no id>'}: {e}")
            errors.append(e)
            continue
        if task.id in seen:
            logger.warning(f"Duplicate task id {task.id} in task store results, keeping first")
            continue
        seen[task.id] = task
        tasks.append(task)
    return tasks, errors
