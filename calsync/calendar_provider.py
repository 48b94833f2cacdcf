"""Google Calendar API provider wrapper.

Clean abstraction for the four event operations the sync needs, with
throttling between calls and HTTP status mapping to sync error kinds.
"""

import os
import pickle
import logging
import time
import socket
from typing import Any, Callable, Dict, Iterator, List, Optional
from datetime import datetime

import httplib2
from google.auth.exceptions import TransportError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .dates import format_utc
from .errors import CalendarServiceError, DuplicateConflict, NotFound, SetupError, TransientServiceError

logger = logging.getLogger(__name__)

SCOPES = ['https://www.googleapis.com/auth/calendar']


def load_credentials(service_key_file: Optional[str] = None,
                     credentials_path: str = 'credentials.json',
                     token_path: str = 'token.pickle'):
    """Load Google credentials.

    A service-account key file wins when configured. Otherwise a cached OAuth
    token is loaded (and refreshed if expired), falling back to the
    interactive installed-app flow.

    Raises:
        SetupError: no usable credentials could be obtained
    """
    if service_key_file:
        try:
            return service_account.Credentials.from_service_account_file(service_key_file, scopes=SCOPES)
        except (OSError, ValueError) as e:
            raise SetupError(f"Cannot load service account key {service_key_file}: {e}") from e

    creds = None
    if os.path.exists(token_path):
        try:
            with open(token_path, 'rb') as token:
                creds = pickle.load(token)
            logger.info("Loaded credentials from token file")
        except Exception as e:
            logger.warning(f"Failed to load token: {e}")
            creds = None

    if creds and getattr(creds, 'valid', False):
        return creds

    if creds and getattr(creds, 'expired', False) and getattr(creds, 'refresh_token', None):
        try:
            creds.refresh(Request())
            with open(token_path, 'wb') as token:
                pickle.dump(creds, token)
            logger.info("Refreshed credentials")
            return creds
        except Exception as e:
            logger.warning(f"Failed to refresh credentials: {e}")

    if os.path.exists(credentials_path):
        flow = InstalledAppFlow.from_client_secrets_file(credentials_path, SCOPES)
        creds = flow.run_local_server(port=0, access_type='offline', prompt='consent')
        with open(token_path, 'wb') as token:
            pickle.dump(creds, token)
        logger.info("Completed OAuth flow and saved credentials")
        return creds

    raise SetupError("No Google credentials: set GOOGLE_SERVICE_KEY_FILE or provide an OAuth client file")


class GoogleCalendarProvider:
    """Wrapper for Google Calendar event operations."""

    def __init__(self, service, call_delay: float = 0.05, max_retries: int = 3,
                 base_backoff: float = 2.0, sleep: Callable[[float], None] = time.sleep):
        """Initialize the provider around a built Calendar service.

        Args:
            service: googleapiclient Calendar v3 resource
            call_delay: Seconds to wait before every API call
            max_retries: Attempts for rate-limited or 5xx responses
            base_backoff: First backoff in seconds, doubled per attempt
            sleep: Sleep function, replaceable in tests
        """
        self.service = service
        self.call_delay = call_delay
        self.max_retries = max_retries
        self.base_backoff = base_backoff
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings) -> 'GoogleCalendarProvider':
        creds = load_credentials(
            settings.google_service_key_file,
            settings.google_credentials_path,
            settings.google_token_path,
        )
        service = build('calendar', 'v3', credentials=creds, cache_discovery=False)
        logger.info("Google Calendar service initialized")
        return cls(service, call_delay=settings.calendar_call_delay,
                   max_retries=settings.calendar_max_retries)

    def _execute(self, description: str, request_factory: Callable[[], Any]) -> Any:
        """Run one API request with throttling, retries and error mapping."""
        for attempt in range(1, self.max_retries + 1):
            if self.call_delay:
                self._sleep(self.call_delay)
            try:
                return request_factory().execute()
            except HttpError as e:
                status = e.resp.status
                if status in (404, 410):
                    raise NotFound(f"{description}: not found", status) from e
                if status == 409:
                    raise DuplicateConflict(f"{description}: id already exists", status) from e
                if status == 429 or status >= 500 or (status == 403 and 'rateLimitExceeded' in str(e)):
                    if attempt < self.max_retries:
                        backoff = self.base_backoff * (2 ** (attempt - 1))
                        logger.warning(f"{description}: HTTP {status}, retrying in {backoff}s "
                                       f"(attempt {attempt}/{self.max_retries})")
                        self._sleep(backoff)
                        continue
                    raise TransientServiceError(f"{description}: HTTP {status}", status) from e
                raise CalendarServiceError(f"{description}: HTTP {status}: {e}", status) from e
            except (socket.timeout, OSError, httplib2.HttpLib2Error, TransportError) as e:
                if attempt < self.max_retries:
                    logger.warning(f"{description}: {e} (attempt {attempt}/{self.max_retries})")
                    self._sleep(self.base_backoff * attempt)
                    continue
                raise TransientServiceError(f"{description}: {e}") from e
        raise TransientServiceError(f"{description}: retries exhausted")

    def iter_events(self, calendar_id: str, time_min: Optional[datetime] = None) -> Iterator[Dict[str, Any]]:
        """Yield events from time_min on, following nextPageToken sequentially."""
        page_token = None
        while True:
            params: Dict[str, Any] = {
                'calendarId': calendar_id,
                'singleEvents': True,
                'orderBy': 'startTime',
                'maxResults': 2500,
            }
            if time_min is not None:
                params['timeMin'] = format_utc(time_min)
            if page_token:
                params['pageToken'] = page_token
            result = self._execute('List events', lambda: self.service.events().list(**params))
            yield from result.get('items', [])
            page_token = result.get('nextPageToken')
            if not page_token:
                break

    def list_events(self, calendar_id: str, time_min: Optional[datetime] = None) -> List[Dict[str, Any]]:
        events = [e for e in self.iter_events(calendar_id, time_min) if e.get('status') != 'cancelled']
        logger.info(f"Listed {len(events)} events from calendar {calendar_id}")
        return events

    def insert_event(self, calendar_id: str, event: Dict[str, Any]) -> Dict[str, Any]:
        created = self._execute(
            f"Create event {event.get('id')}",
            lambda: self.service.events().insert(calendarId=calendar_id, body=event),
        )
        logger.info(f"Event created: {created.get('htmlLink', created.get('id'))}")
        return created

    def update_event(self, calendar_id: str, event_id: str, event: Dict[str, Any]) -> Dict[str, Any]:
        updated = self._execute(
            f"Update event {event_id}",
            lambda: self.service.events().update(calendarId=calendar_id, eventId=event_id, body=event),
        )
        logger.info(f"Event updated: {updated.get('htmlLink', event_id)}")
        return updated

    def delete_event(self, calendar_id: str, event_id: str) -> bool:
        """Delete an event. Returns False if it was already gone."""
        try:
            self._execute(
                f"Delete event {event_id}",
                lambda: self.service.events().delete(calendarId=calendar_id, eventId=event_id),
            )
        except NotFound:
            logger.info(f"Event {event_id} already deleted")
            return False
        logger.info(f"Deleted event: {event_id}")
        return True
