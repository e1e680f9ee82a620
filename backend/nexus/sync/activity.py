"""
Append-only project activity log (the History tab).

Each mutation appends one entry to projects/{pid}/history. A failed log write never fails
the mutation that triggered it.
"""
import logging
from datetime import datetime, timezone
from typing import Callable

from nexus.auth.provider import Identity
from nexus.core.constants import HISTORY, PROJECTS
from nexus.store.documents import DocumentStore
from nexus.store.query import Query
from nexus.store.types import Record

logger = logging.getLogger(__name__)


def history_query(project_id: str) -> Query:
    """Project history, newest first."""
    return Query.collection(PROJECTS, project_id, HISTORY).order_by("createdAt", descending=True)


class ActivityLogger:
    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] | None = None):
        self._store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def record(self, project_id: str, action: str, details: str, actor: Identity) -> Record | None:
        """Append one entry. Returns the entry, or None if the write failed (logged)."""
        try:
            return self._store.add(
                f"{PROJECTS}/{project_id}/{HISTORY}",
                {
                    "action": action,
                    "details": details,
                    "performedBy": actor.uid,
                    "performedByName": actor.label,
                    "createdAt": self._clock(),
                },
            )
        except Exception as e:
            logger.warning("Failed to log activity %r on project %s: %s", action, project_id, e)
            return None

    def recent(self, project_id: str, limit: int = 100) -> list[Record]:
        """History entries for display, newest first."""
        return self._store.get_once(history_query(project_id).limit(limit))
