"""Wiring for one sync run: logging, clients, mirror store and the engine.

Clients are built fresh for every run and handed to the Reconciler; nothing
here is cached at module level.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import httplib2
from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import Error as GoogleApiError
from sqlalchemy.exc import SQLAlchemyError

from db import check_connection, make_session_factory
from .archival import ArchivalPolicy
from .calendar_provider import GoogleCalendarProvider
from .config import Settings, validate_property_map
from .errors import SetupError
from .notion import NotionTaskStore
from .reconcile import Reconciler, SyncReport
from .slack import SlackNotifier
from .storage import MirrorStore

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


def setup_logging(level: str = 'INFO', log_path: Optional[Path] = None, log_filename: str = 'sync.log') -> None:
    """Configure the root logger once: stderr plus an optional log file."""
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_path:
        log_path.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_path / log_filename.lstrip('/')), encoding='utf-8'))
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT,
                        handlers=handlers, force=True)
    # googleapiclient logs every discovery/cache step at INFO
    logging.getLogger('googleapiclient').setLevel(logging.WARNING)


def open_mirror_store(settings: Settings) -> MirrorStore:
    """Open the mirror database.

    Raises:
        SetupError: the database cannot be opened or queried
    """
    try:
        session_factory = make_session_factory(settings.database_url)
        check_connection(session_factory)
    except SQLAlchemyError as e:
        raise SetupError(f"Mirror store {settings.database_path} is unreachable: {e}") from e
    return MirrorStore(session_factory)


def build_reconciler(settings: Settings, mirror: MirrorStore) -> Reconciler:
    """Build the engine and its clients for one run.

    Raises:
        SetupError: the calendar service cannot be built
    """
    property_map = validate_property_map(settings.property_map)
    task_store = NotionTaskStore(
        settings.notion_token,
        settings.notion_database_id,
        status_property=property_map['status'],
        status_property_type=settings.notion_status_property_type,
        notion_version=settings.notion_version,
    )
    try:
        calendar = GoogleCalendarProvider.from_settings(settings)
    except (GoogleAuthError, GoogleApiError, httplib2.HttpLib2Error, OSError) as e:
        raise SetupError(f"Cannot build the Google Calendar service: {e}") from e
    return Reconciler(
        task_store,
        calendar,
        mirror,
        settings.calendar_id,
        property_map,
        archival=ArchivalPolicy(settings.archive_after_days),
        lookback_days=settings.lookback_days,
        adopt_conflicts=settings.adopt_conflicting_events,
    )


def run_once(settings: Settings) -> SyncReport:
    """Run one reconciliation pass and notify Slack about failures.

    Raises:
        SetupError: unrecoverable setup failure; nothing was synced
    """
    notifier = SlackNotifier(settings.slack_webhook_url)
    try:
        mirror = open_mirror_store(settings)
        reconciler = build_reconciler(settings, mirror)
        report = reconciler.run()
    except SQLAlchemyError as e:
        error = SetupError(f"Mirror store failed during the run: {e}")
        notifier.send_run_failed(error)
        raise error from e
    except SetupError as e:
        notifier.send_run_failed(e)
        raise
    notifier.send_run_report(report)
    return report
