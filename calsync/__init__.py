"""Core modules for the Notion -> Google Calendar task sync.

This package provides:
- Task status, priority and the canonical Task value (task.py)
- Normalization of raw Notion pages (normalizer.py)
- Projection of tasks into calendar events (projection.py)
- The local event mirror (storage.py)
- Notion and Google Calendar clients (notion.py, calendar_provider.py)
- Archival policy and the reconciliation engine (archival.py, reconcile.py)
"""

from .task import Priority, Task, TaskStatus

__all__ = ['Priority', 'Task', 'TaskStatus']
