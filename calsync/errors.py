"""Error kinds raised by the sync and its service clients."""

from typing import Optional


class SyncError(Exception):
    """Base class for every error the sync raises on purpose."""


class ConfigError(SyncError):
    """Configuration is missing or inconsistent."""


class SetupError(SyncError):
    """A run cannot start: mirror store unreachable or initial fetch failed."""


class MalformedTask(SyncError):
    """A task-store record could not be normalized."""

    def __init__(self, message: str, page_id: Optional[str] = None):
        super().__init__(message)
        self.page_id = page_id


class ServiceError(SyncError):
    """An external service call failed."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class TransientServiceError(ServiceError):
    """Network failure, rate limit or 5xx; retried on the next run."""


class NotFound(ServiceError):
    """The remote object does not exist (404/410)."""


class DuplicateConflict(ServiceError):
    """The calendar already holds an event with the requested id (409)."""


class CalendarServiceError(ServiceError):
    """Any other calendar-service rejection."""


class TaskStoreError(ServiceError):
    """Any other task-store rejection."""
