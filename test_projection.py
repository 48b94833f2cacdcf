"""Tests for projecting Tasks into calendar events."""

import pytest

from calsync.normalizer import normalize_task
from calsync.projection import (
    build_summary, canonical_fields, events_differ, project_task, reminders_for,
)
from calsync.task import Priority, Task, TaskStatus
from conftest import make_page


def _task(**kwargs):
    defaults = {"id": "t1", "status": TaskStatus.NOT_STARTED, "title": "Essay"}
    defaults.update(kwargs)
    return Task(**defaults)


def test_time_bound_without_end_uses_start():
    event = project_task(_task(date_start="2024-10-15T10:00:00"))

    assert event["start"] == {"dateTime": "2024-10-15T10:00:00Z", "timeZone": "UTC"}
    assert event["end"] == {"dateTime": "2024-10-15T10:00:00Z", "timeZone": "UTC"}


def test_all_day_without_end_uses_start():
    event = project_task(_task(date_start="2024-10-15"))

    assert event["start"] == {"date": "2024-10-15"}
    assert event["end"] == {"date": "2024-10-15"}


def test_offsets_are_converted_to_utc():
    event = project_task(_task(date_start="2024-10-15T10:00:00.000+02:00",
                               date_end="2024-10-15T11:30:00.000+02:00"))

    assert event["start"]["dateTime"] == "2024-10-15T08:00:00Z"
    assert event["end"]["dateTime"] == "2024-10-15T09:30:00Z"


def test_time_on_end_only_makes_event_time_bound():
    event = project_task(_task(date_start="2024-10-15", date_end="2024-10-16T09:00:00Z"))

    assert event["start"] == {"dateTime": "2024-10-15T00:00:00Z", "timeZone": "UTC"}
    assert event["end"]["dateTime"] == "2024-10-16T09:00:00Z"


def test_all_day_range():
    event = project_task(_task(date_start="2024-10-15", date_end="2024-10-18"))
    assert event["start"] == {"date": "2024-10-15"}
    assert event["end"] == {"date": "2024-10-18"}


def test_summary_and_description():
    task = _task(type="Exam", category="", title="Algebra", priority=Priority.MEDIUM,
                 status=TaskStatus.IN_PROGRESS, description="Bring calculator",
                 date_start="2024-10-15")
    event = project_task(task)

    assert event["summary"] == "Exam Algebra"
    assert event["description"] == "Status: In progress\nPriority: medium\nBring calculator"
    assert event["id"] == "t1"


def test_description_without_priority_or_text():
    event = project_task(_task(date_start="2024-10-15"))
    assert event["description"] == "Status: Not started\nPriority: "


def test_summary_skips_empty_parts():
    assert build_summary(_task(title="", type="", category="Bio")) == "Bio"


def test_no_start_date_is_rejected():
    with pytest.raises(ValueError):
        project_task(_task(date_start=""))


def test_reminders_by_priority():
    assert reminders_for(None) == {"useDefault": False, "overrides": []}
    assert [o["minutes"] for o in reminders_for(Priority.LOW)["overrides"]] == [20160]
    assert [o["minutes"] for o in reminders_for(Priority.MEDIUM)["overrides"]] == [20160, 8640]
    assert [o["minutes"] for o in reminders_for(Priority.HIGH)["overrides"]] == [20160, 8640, 1440, 2880, 4320]


def test_equivalent_empty_values_do_not_differ():
    candidate = project_task(_task(date_start="2024-10-15"))
    existing = dict(candidate)
    existing.pop("location")
    existing["reminders"] = {"useDefault": True}

    assert candidate["location"] == ""
    assert not events_differ(candidate, existing)


def test_timestamps_compare_as_instants():
    candidate = project_task(_task(date_start="2024-10-15T10:00:00"))
    existing = dict(candidate)
    existing["start"] = {"dateTime": "2024-10-15T12:00:00+02:00", "timeZone": "Europe/Berlin"}
    existing["end"] = {"dateTime": "2024-10-15T10:00:00.000Z"}

    assert not events_differ(candidate, existing)


def test_changed_field_differs():
    candidate = project_task(_task(date_start="2024-10-15"))
    existing = dict(candidate, summary="Old title")
    assert events_differ(candidate, existing)

    existing = dict(candidate, end={"date": "2024-10-16"})
    assert events_differ(candidate, existing)


def test_category_order_does_not_change_projection(property_map):
    first = make_page("abc", title="Lab", start="2024-10-15", category=["Physics", "Chem"])
    second = make_page("abc", title="Lab", start="2024-10-15", category=["Chem", "Physics"])

    a = project_task(normalize_task(first, property_map))
    b = project_task(normalize_task(second, property_map))

    assert a["summary"] == "Chem Physics Lab"
    assert canonical_fields(a) == canonical_fields(b)
    assert not events_differ(a, b)
