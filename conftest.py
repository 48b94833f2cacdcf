"""Pytest configuration, in-memory fakes and shared fixtures."""

import copy
from datetime import datetime, timezone

import pytest

from calsync.config import DEFAULT_PROPERTY_MAP
from calsync.errors import DuplicateConflict, NotFound, TransientServiceError
from calsync.storage import MirrorStore

NOW = datetime(2024, 10, 10, 12, 0, tzinfo=timezone.utc)


def make_page(page_id, title="Task", status="Not started", start=None, end=None,
              category=None, type=None, priority=None, description="", location=""):
    """Build a Notion page object shaped like the database query response."""
    def rich(text):
        return [{"plain_text": text}] if text else []

    def select(name):
        return {"name": name} if name else None

    if isinstance(category, (list, tuple)):
        category_prop = {"type": "multi_select", "multi_select": [{"name": c} for c in category]}
    else:
        category_prop = {"type": "select", "select": select(category)}

    return {
        "object": "page",
        "id": page_id,
        "properties": {
            "Task": {"type": "title", "title": rich(title)},
            "Status": {"type": "status", "status": select(status)},
            "Date": {"type": "date", "date": {"start": start, "end": end} if start or end else None},
            "Class": category_prop,
            "Type": {"type": "select", "select": select(type)},
            "Priority": {"type": "select", "select": select(priority)},
            "Description": {"type": "rich_text", "rich_text": rich(description)},
            "Location": {"type": "rich_text", "rich_text": rich(location)},
        },
    }


class FakeTaskStore:
    """Stands in for NotionTaskStore."""

    def __init__(self, pages=None, archived=None):
        self.pages = list(pages or [])
        self.archived = list(archived or [])
        self.status_updates = []
        self.fail_status_for = set()
        self.fail_active = False
        self.fail_archived = False

    def query_active(self):
        if self.fail_active:
            raise TransientServiceError("Notion unavailable", 503)
        return copy.deepcopy(self.pages)

    def query_archived(self):
        if self.fail_archived:
            raise TransientServiceError("Notion unavailable", 503)
        return copy.deepcopy(self.archived)

    def set_status(self, page_id, status):
        if page_id in self.fail_status_for:
            raise TransientServiceError("Notion write failed", 502)
        self.status_updates.append((page_id, str(status)))
        for page in list(self.pages):
            if page["id"].replace("-", "") == page_id:
                page["properties"]["Status"]["status"] = {"name": str(status)}
                self.pages.remove(page)
                self.archived.append(page)
        return {}


class FakeCalendar:
    """Stands in for GoogleCalendarProvider, keeping events in a dict."""

    def __init__(self, events=None):
        self.events = {e["id"]: copy.deepcopy(e) for e in (events or [])}
        self.calls = []
        self.fail_ids = set()
        self.fail_list = False

    @property
    def writes(self):
        return [c for c in self.calls if c[0] in ("insert", "update")]

    def list_events(self, calendar_id, time_min=None):
        self.calls.append(("list", None))
        if self.fail_list:
            raise TransientServiceError("Calendar unavailable", 503)
        return [copy.deepcopy(e) for e in self.events.values()]

    def insert_event(self, calendar_id, event):
        self.calls.append(("insert", event["id"]))
        if event["id"] in self.fail_ids:
            raise TransientServiceError("backend error", 503)
        if event["id"] in self.events:
            raise DuplicateConflict(f"Create event {event['id']}: id already exists", 409)
        self.events[event["id"]] = copy.deepcopy(event)
        return copy.deepcopy(event)

    def update_event(self, calendar_id, event_id, event):
        self.calls.append(("update", event_id))
        if event_id in self.fail_ids:
            raise TransientServiceError("backend error", 503)
        if event_id not in self.events:
            raise NotFound(f"Update event {event_id}: not found", 404)
        self.events[event_id] = copy.deepcopy(event)
        return copy.deepcopy(event)

    def delete_event(self, calendar_id, event_id):
        self.calls.append(("delete", event_id))
        if event_id in self.fail_ids:
            raise TransientServiceError("backend error", 503)
        return self.events.pop(event_id, None) is not None


@pytest.fixture
def property_map():
    return dict(DEFAULT_PROPERTY_MAP)


@pytest.fixture
def mirror(tmp_path):
    return MirrorStore(database_url=f"sqlite:///{tmp_path / 'mirror.sqlite'}")


@pytest.fixture
def task_store():
    return FakeTaskStore()


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def reconciler(task_store, calendar, mirror, property_map):
    from calsync.reconcile import Reconciler
    return Reconciler(task_store, calendar, mirror, "primary", property_map, clock=lambda: NOW)
