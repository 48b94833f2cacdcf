"""Tests for the archival policy."""

from datetime import timedelta

from calsync.archival import ArchivalPolicy
from calsync.dates import format_utc
from calsync.task import Task, TaskStatus
from conftest import NOW


def _done(date_end="", date_start="2024-09-01", status=TaskStatus.DONE):
    return Task(id="t", status=status, title="x", date_start=date_start, date_end=date_end)


def test_done_two_days_ago_is_not_archived():
    task = _done(date_end=format_utc(NOW - timedelta(days=2)))
    assert not ArchivalPolicy().qualifies(task, NOW)


def test_done_four_days_ago_is_archived():
    task = _done(date_end=format_utc(NOW - timedelta(days=4)))
    assert ArchivalPolicy().qualifies(task, NOW)


def test_threshold_is_inclusive():
    task = _done(date_end=format_utc(NOW - timedelta(days=3)))
    assert ArchivalPolicy().qualifies(task, NOW)


def test_start_date_used_without_end():
    old = _done(date_start=format_utc(NOW - timedelta(days=5)))
    recent = _done(date_start=format_utc(NOW - timedelta(days=1)))
    assert ArchivalPolicy().qualifies(old, NOW)
    assert not ArchivalPolicy().qualifies(recent, NOW)


def test_only_done_tasks_qualify():
    stale = format_utc(NOW - timedelta(days=10))
    assert not ArchivalPolicy().qualifies(_done(date_end=stale, status=TaskStatus.IN_PROGRESS), NOW)
    assert not ArchivalPolicy().qualifies(_done(date_end=stale, status=TaskStatus.NOT_STARTED), NOW)


def test_undated_done_task_is_kept():
    assert not ArchivalPolicy().qualifies(_done(date_start=""), NOW)


def test_custom_threshold_and_split():
    policy = ArchivalPolicy(after_days=1)
    stale = _done(date_end=format_utc(NOW - timedelta(days=2)))
    active = _done(date_end=format_utc(NOW - timedelta(days=2)), status=TaskStatus.IN_PROGRESS)

    to_archive, keep = policy.split([stale, active], NOW)

    assert to_archive == [stale]
    assert keep == [active]
