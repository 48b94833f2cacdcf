"""Task status management and the canonical Task value.

Defines canonical task statuses and priorities with Notion name mapping.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TaskStatus(str, Enum):
    """Canonical task statuses.
    
    Values are the option names used by the Notion status property.
    """
    NOT_STARTED = "Not started"
    IN_PROGRESS = "In progress"
    DONE = "Done"
    ARCHIVED = "Archived"
    
    @classmethod
    def from_string(cls, value: str):
        """Parse a status string, handling legacy/alternate values."""
        if not value:
            return cls.NOT_STARTED
        
        normalized = value.strip().lower().replace('_', ' ').replace('-', ' ')
        mapping = {
            'not started': cls.NOT_STARTED,
            'to do': cls.NOT_STARTED,
            'todo': cls.NOT_STARTED,
            'in progress': cls.IN_PROGRESS,
            'doing': cls.IN_PROGRESS,
            'done': cls.DONE,
            'complete': cls.DONE,
            'completed': cls.DONE,
            'archived': cls.ARCHIVED,
        }
        return mapping.get(normalized, cls.NOT_STARTED)

    def __str__(self):
        return self.value


class Priority(str, Enum):
    """Task priority, always lower-cased."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_string(cls, value: str) -> Optional["Priority"]:
        """Parse a priority name; empty or unknown values map to None."""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class Task:
    """A task as read from the task store, normalized for one run."""
    id: str
    status: TaskStatus
    title: str = ""
    date_start: str = ""
    date_end: str = ""
    category: str = ""
    type: str = ""
    priority: Optional[Priority] = None
    description: str = ""
    location: str = ""

    @property
    def has_date(self) -> bool:
        return bool(self.date_start)
