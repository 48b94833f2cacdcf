"""Notion task-store client.

Thin requests-based wrapper around the database query and page update
endpoints, with cursor pagination and status-code mapping.
"""

import logging
import requests
from typing import Any, Dict, Iterator, List, Optional

from .errors import NotFound, TaskStoreError, TransientServiceError
from .task import TaskStatus

logger = logging.getLogger(__name__)

NOTION_API_URL = 'https://api.notion.com/v1'
PAGE_SIZE = 100


class NotionTaskStore:
    """Reads tasks from one Notion database and writes status changes back."""

    def __init__(self, token: str, database_id: str, status_property: str = 'Status',
                 status_property_type: str = 'status', notion_version: str = '2022-06-28',
                 session: Optional[requests.Session] = None, timeout: int = 30):
        """Initialize the Notion client.

        Args:
            token: Notion integration token
            database_id: Id of the task database
            status_property: Notion name of the status property
            status_property_type: 'status' or 'select'
            notion_version: Value of the Notion-Version header
            session: Optional pre-built requests session
            timeout: Per-request timeout in seconds
        """
        self.database_id = database_id
        self.status_property = status_property
        self.status_property_type = status_property_type
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {token}',
            'Notion-Version': notion_version,
            'Content-Type': 'application/json',
        })

    def _request(self, method: str, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f'{NOTION_API_URL}{path}'
        try:
            response = self.session.request(method, url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransientServiceError(f"Notion request {method} {path} failed: {e}") from e

        status = response.status_code
        if 200 <= status < 300:
            return response.json()
        message = f"Notion {method} {path} returned {status}: {response.text[:200]}"
        if status == 404:
            raise NotFound(message, status)
        if status == 429 or status >= 500:
            raise TransientServiceError(message, status)
        raise TaskStoreError(message, status)

    def status_filter(self, status: TaskStatus, equals: bool = True) -> Dict[str, Any]:
        """Build a filter on the status property."""
        condition = 'equals' if equals else 'does_not_equal'
        return {
            'property': self.status_property,
            self.status_property_type: {condition: str(status)},
        }

    def iter_pages(self, filter: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        """Yield raw pages matching filter, one request per page of results.

        The next page is only requested once the previous one has returned.
        """
        cursor = None
        while True:
            body: Dict[str, Any] = {'page_size': PAGE_SIZE}
            if filter:
                body['filter'] = filter
            if cursor:
                body['start_cursor'] = cursor
            result = self._request('POST', f'/databases/{self.database_id}/query', body)
            yield from result.get('results', [])
            cursor = result.get('next_cursor')
            if not result.get('has_more') or not cursor:
                break

    def query(self, filter: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        pages = list(self.iter_pages(filter))
        logger.info(f"Fetched {len(pages)} pages from Notion database {self.database_id}")
        return pages

    def query_active(self) -> List[Dict[str, Any]]:
        """Every task whose status is not Archived."""
        return self.query(self.status_filter(TaskStatus.ARCHIVED, equals=False))

    def query_archived(self) -> List[Dict[str, Any]]:
        return self.query(self.status_filter(TaskStatus.ARCHIVED, equals=True))

    def update(self, page_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        return self._request('PATCH', f'/pages/{page_id}', {'properties': properties})

    def set_status(self, page_id: str, status: TaskStatus) -> Dict[str, Any]:
        """Write a new status option to a task page."""
        properties = {
            self.status_property: {self.status_property_type: {'name': str(status)}},
        }
        result = self.update(page_id, properties)
        logger.info(f"Set status of task {page_id} to {status}")
        return result
