"""
Live query subscriptions and materialized views.

A Subscription receives the full ordered snapshot of its query on open and after every
change. Consumers replace their list wholesale, so a repeated or stale-but-complete
delivery cannot corrupt state. Once cancelled, a subscription applies nothing.
"""
import logging
from typing import TYPE_CHECKING, Any, Callable

from nexus.store.query import Query
from nexus.store.types import Record, Snapshot

if TYPE_CHECKING:
    from nexus.store.documents import DocumentStore

logger = logging.getLogger(__name__)

SnapshotHandler = Callable[[Snapshot], Any]
ErrorHandler = Callable[[Exception], Any]


class Subscription:
    """Cancellation handle for one live query. Delivery is a plain callback and never awaited."""

    def __init__(
        self,
        query: Query,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler | None = None,
        on_cancel: Callable[["Subscription"], None] | None = None,
    ):
        self.query = query
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def deliver(self, snapshot: Snapshot) -> bool:
        """Hand a snapshot to the consumer. Returns False if dropped because the subscription is closed."""
        if not self._active:
            logger.debug("Dropping snapshot for cancelled subscription %s", self.query)
            return False
        try:
            self._on_snapshot(snapshot)
        except Exception:
            logger.exception("Snapshot handler failed for %s", self.query)
        return True

    def fail(self, exc: Exception) -> None:
        """Report a delivery failure. Logged; no retry."""
        if not self._active:
            return
        logger.warning("Live query %s failed: %s", self.query, exc)
        if self._on_error is not None:
            try:
                self._on_error(exc)
            except Exception:
                logger.exception("Error handler failed for %s", self.query)

    def cancel(self) -> None:
        """Stop deliveries. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        if self._on_cancel is not None:
            self._on_cancel(self)


class LiveView:
    """
    Materialized ordered list mirrored from one live query.

    `records` is replaced wholesale on every delivery; `on_change` fires only when the
    delivered snapshot differs from what is already held. `rescope` closes the current
    subscription before opening the next, so nothing from the old scope lands afterwards.
    """

    def __init__(
        self,
        store: "DocumentStore",
        query: Query | None = None,
        on_change: Callable[["LiveView"], Any] | None = None,
    ):
        self._store = store
        self.query = query
        self._on_change = on_change
        self._subscription: Subscription | None = None
        self.records: tuple[Record, ...] = ()
        self.has_pending_writes = False
        self.error: Exception | None = None

    @property
    def is_open(self) -> bool:
        return self._subscription is not None and self._subscription.active

    @property
    def first(self) -> Record | None:
        return self.records[0] if self.records else None

    def open(self, query: Query | None = None) -> "LiveView":
        if query is not None:
            self.query = query
        if self.query is None:
            raise ValueError("LiveView.open needs a query")
        if self.is_open:
            return self
        self._subscription = self._store.subscribe(self.query, self.apply, on_error=self._set_error)
        return self

    def rescope(self, query: Query) -> "LiveView":
        """Point the view at a new query (e.g. another project). Old subscription is cancelled first."""
        self.close()
        self.records = ()
        self.has_pending_writes = False
        return self.open(query)

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def apply(self, snapshot: Snapshot) -> bool:
        """Replace the held list with the snapshot. Returns True if anything changed."""
        if snapshot.records == self.records and snapshot.has_pending_writes == self.has_pending_writes:
            return False
        self.records = snapshot.records
        self.has_pending_writes = snapshot.has_pending_writes
        self.error = None
        if self._on_change is not None:
            self._on_change(self)
        return True

    def _set_error(self, exc: Exception) -> None:
        self.error = exc

    def __iter__(self):
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)
