"""
Unread tracking for a timestamped stream (project chat, notification inbox).

Two modes:
- viewing: the stream's display surface is open. The count is pinned to 0 and every
  delivery moves the read marker up to the newest resolved timestamp (persisted at once).
- away: the count is recomputed on every delivery as records newer than the marker that
  the viewer did not author.

A record still waiting on its server timestamp counts as "just now" (newer than any marker).
The marker only moves forward, and only while viewing.
"""
import logging
import threading
from datetime import datetime
from typing import Any, Callable

from nexus.core.constants import (
    BADGE_CAP,
    MESSAGES,
    NOTIFICATIONS,
    NOTIFICATIONS_SCOPE,
    PROJECTS,
    STREAM_CHAT,
    STREAM_NOTIFICATIONS,
    USERS,
)
from nexus.store.documents import DocumentStore
from nexus.store.query import Query
from nexus.store.subscription import Subscription
from nexus.store.types import Record, Snapshot, coerce_timestamp
from nexus.sync.read_markers import ReadMarkerStore, marker_key

logger = logging.getLogger(__name__)


class StreamSpec:
    """Which stream to watch and how to read time, author, and read-flag off its records."""

    __slots__ = ("kind", "scope", "query", "timestamp_field", "author_field", "read_field")

    def __init__(
        self,
        *,
        kind: str,
        scope: str,
        query: Query,
        timestamp_field: str = "createdAt",
        author_field: str | None = None,
        read_field: str | None = None,
    ):
        self.kind = kind
        self.scope = scope
        self.query = query
        self.timestamp_field = timestamp_field
        self.author_field = author_field
        self.read_field = read_field


def chat_stream(project_id: str) -> StreamSpec:
    """Project chat transcript, oldest first; authored by senderId."""
    return StreamSpec(
        kind=STREAM_CHAT,
        scope=project_id,
        query=Query.collection(PROJECTS, project_id, MESSAGES).order_by("createdAt"),
        author_field="senderId",
    )


def notification_stream(user_id: str) -> StreamSpec:
    """User's notification inbox, newest first; entries flagged read never count."""
    return StreamSpec(
        kind=STREAM_NOTIFICATIONS,
        scope=NOTIFICATIONS_SCOPE,
        query=Query.collection(USERS, user_id, NOTIFICATIONS).order_by("createdAt", descending=True),
        read_field="read",
    )


def badge_label(count: int) -> str:
    """Badge text: '' for none, the number up to the cap, then '9+'."""
    if count <= 0:
        return ""
    if count > BADGE_CAP:
        return f"{BADGE_CAP}+"
    return str(count)


class UnreadTracker:
    """Unread count and read marker for one viewer on one stream."""

    def __init__(
        self,
        store: DocumentStore,
        spec: StreamSpec,
        markers: ReadMarkerStore,
        viewer_id: str,
        on_change: Callable[["UnreadTracker"], Any] | None = None,
    ):
        self._store = store
        self.spec = spec
        self._markers = markers
        self.viewer_id = viewer_id
        self.key = marker_key(viewer_id, spec.scope, spec.kind)
        self._on_change = on_change
        self._subscription: Subscription | None = None
        self._viewing = False
        # Deliveries may arrive on a scheduler thread; mode switches and recounts are serialized
        self._lock = threading.RLock()
        self._count = 0
        self.records: tuple[Record, ...] = ()

    # --- Lifecycle ---

    def open(self) -> "UnreadTracker":
        if self._subscription is None or not self._subscription.active:
            self._subscription = self._store.subscribe(self.spec.query, self._on_snapshot)
        return self

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    @property
    def is_open(self) -> bool:
        return self._subscription is not None and self._subscription.active

    # --- State ---

    @property
    def viewing(self) -> bool:
        return self._viewing

    @property
    def unread_count(self) -> int:
        return self._count

    @property
    def badge(self) -> str:
        return badge_label(self._count)

    @property
    def marker(self) -> datetime | None:
        return self._markers.get(self.key)

    def set_viewing(self, viewing: bool) -> None:
        """
        Switch modes. Entering viewing zeroes the badge and fast-forwards the marker from the
        latest snapshot. Leaving it keeps the marker where it is and recounts.
        """
        with self._lock:
            if viewing == self._viewing:
                return
            self._viewing = viewing
            if viewing:
                self._fast_forward(self.records)
                self._set_count(0)
            else:
                self._set_count(self._count_unread(self.records))

    # --- Delivery ---

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        with self._lock:
            self.records = snapshot.records
            if self._viewing:
                self._fast_forward(snapshot.records)
                self._set_count(0)
            else:
                self._set_count(self._count_unread(snapshot.records))

    def _timestamp(self, record: Record) -> datetime | None:
        return coerce_timestamp(record.get(self.spec.timestamp_field))

    def _is_unread(self, record: Record, marker: datetime | None) -> bool:
        if self.spec.author_field and record.get(self.spec.author_field) == self.viewer_id:
            return False
        if self.spec.read_field and record.get(self.spec.read_field):
            return False
        ts = self._timestamp(record)
        if ts is None:
            # Pending server timestamp: just written, newer than anything read
            return True
        return marker is None or ts > marker

    def _count_unread(self, records: tuple[Record, ...]) -> int:
        marker = self.marker
        return sum(1 for r in records if self._is_unread(r, marker))

    def _fast_forward(self, records: tuple[Record, ...]) -> None:
        stamps = [ts for ts in (self._timestamp(r) for r in records) if ts is not None]
        if not stamps:
            return
        latest = max(stamps)
        current = self.marker
        if current is not None and latest <= current:
            return
        try:
            self._markers.set(self.key, latest)
        except Exception as e:
            logger.warning("Could not persist read marker %s: %s", self.key, e)

    def _set_count(self, count: int) -> None:
        if count == self._count:
            return
        self._count = count
        if self._on_change is not None:
            self._on_change(self)
