"""
Document store backed by the `documents` table, with live query subscriptions.

Every commit re-evaluates each open subscription and delivers the full ordered snapshot.
Writes carrying SERVER_TIMESTAMP first deliver a pending snapshot (sentinel fields present
but None, has_pending_writes=True), then commit and deliver the resolved snapshot.
Batches run in one transaction: either every operation lands or none does.
"""
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from sqlalchemy.orm import Session

from nexus.core.errors import NotFoundError
from nexus.db.session import SessionLocal
from nexus.models.document import Document
from nexus.store.query import SCOPE_COLLECTION, SCOPE_DOCUMENT, Query
from nexus.store.subscription import ErrorHandler, SnapshotHandler, Subscription
from nexus.store.types import (
    SERVER_TIMESTAMP,
    ArrayUnion,
    Record,
    Snapshot,
    decode_value,
    encode_value,
)

logger = logging.getLogger(__name__)

OP_SET = "set"
OP_MERGE = "merge"
OP_UPDATE = "update"
OP_DELETE = "delete"

# (kind, path, fields); fields is None for deletes
WriteOp = tuple[str, str, dict[str, Any] | None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate a document id (20 hex chars)."""
    return uuid.uuid4().hex[:20]


def split_document_path(path: str) -> tuple[str, str, str]:
    """projects/p1/tasks/t1 -> ('projects/p1/tasks', 'tasks', 't1'). Raises ValueError for collection paths."""
    path = path.strip("/")
    parts = path.split("/")
    if len(parts) < 2 or len(parts) % 2 != 0 or not all(parts):
        raise ValueError(f"Not a document path: {path}")
    return "/".join(parts[:-1]), parts[-2], parts[-1]


def _has_server_timestamp(fields: dict[str, Any]) -> bool:
    return any(v is SERVER_TIMESTAMP for v in fields.values())


def _resolve(fields: dict[str, Any], existing: dict[str, Any], now: datetime | None) -> dict[str, Any]:
    """Resolve write sentinels. now=None leaves server timestamps pending (None)."""
    out = {}
    for key, value in fields.items():
        if value is SERVER_TIMESTAMP:
            out[key] = now
        elif isinstance(value, ArrayUnion):
            out[key] = value.apply(existing.get(key))
        else:
            out[key] = value
    return out


class WriteBatch:
    """Collects set/update/delete operations and commits them atomically."""

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._ops: list[WriteOp] = []
        self._committed = False

    def set(self, path: str, fields: dict[str, Any], merge: bool = False) -> "WriteBatch":
        self._ops.append((OP_MERGE if merge else OP_SET, path, dict(fields)))
        return self

    def update(self, path: str, fields: dict[str, Any]) -> "WriteBatch":
        self._ops.append((OP_UPDATE, path, dict(fields)))
        return self

    def delete(self, path: str) -> "WriteBatch":
        self._ops.append((OP_DELETE, path, None))
        return self

    def __len__(self) -> int:
        return len(self._ops)

    def commit(self) -> None:
        if self._committed:
            raise RuntimeError("Batch already committed")
        self._committed = True
        if self._ops:
            self._store._commit(self._ops)


class DocumentStore:
    """Path-addressed JSON documents with one-shot reads, atomic writes, and live queries."""

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._session_factory = session_factory or SessionLocal
        self._clock = clock or _utcnow
        self._subscriptions: list[Subscription] = []
        # Serializes commit + delivery so snapshots reach each subscriber in commit order
        self._lock = threading.RLock()

    # --- Reads ---

    def get(self, path: str) -> Record | None:
        db = self._session_factory()
        try:
            row = db.query(Document).filter(Document.path == path.strip("/")).first()
            return self._to_record(row) if row else None
        finally:
            db.close()

    def get_once(self, query: Query) -> list[Record]:
        """Run a query once (no subscription)."""
        db = self._session_factory()
        try:
            return query.apply(self._load_scope(db, query))
        finally:
            db.close()

    # --- Writes ---

    def add(self, collection_path: str, fields: dict[str, Any]) -> Record:
        """Create a document with a generated id. Returns the committed record."""
        path = f"{collection_path.strip('/')}/{new_id()}"
        self._commit([(OP_SET, path, dict(fields))])
        record = self.get(path)
        return record if record is not None else Record(path, {})

    def set(self, path: str, fields: dict[str, Any], merge: bool = False) -> None:
        self._commit([(OP_MERGE if merge else OP_SET, path, dict(fields))])

    def update(self, path: str, fields: dict[str, Any]) -> None:
        """Merge fields into an existing document. Raises NotFoundError if it does not exist."""
        self._commit([(OP_UPDATE, path, dict(fields))])

    def delete(self, path: str) -> None:
        self._commit([(OP_DELETE, path, None)])

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    def atomic_batch(self, ops: Iterable[WriteOp]) -> None:
        """Commit (kind, path, fields) operations all-or-none."""
        ops = list(ops)
        if ops:
            self._commit(ops)

    # --- Subscriptions ---

    def subscribe(
        self,
        query: Query,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler | None = None,
    ) -> Subscription:
        """Open a live query. The current snapshot is delivered before this returns."""
        sub = Subscription(query, on_snapshot, on_error=on_error, on_cancel=self._remove)
        with self._lock:
            self._subscriptions.append(sub)
            self._deliver(sub, None)
        return sub

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    # --- Internals ---

    def _to_record(self, row: Document) -> Record:
        return Record(row.path, decode_value(row.fields or {}))

    def _load_scope(self, db: Session, query: Query) -> list[Record]:
        q = db.query(Document)
        if query.scope == SCOPE_DOCUMENT:
            q = q.filter(Document.path == query.target)
        elif query.scope == SCOPE_COLLECTION:
            q = q.filter(Document.collection_path == query.target)
        else:
            q = q.filter(Document.collection_id == query.target)
        return [self._to_record(row) for row in q.all()]

    def _pending_overlay(self, ops: list[WriteOp]) -> dict[str, dict[str, Any]]:
        """Local view of documents whose writes wait on a server timestamp."""
        overlay: dict[str, dict[str, Any]] = {}
        for kind, path, fields in ops:
            if fields is None or not _has_server_timestamp(fields):
                continue
            path = path.strip("/")
            current = overlay.get(path)
            if current is None:
                existing = self.get(path)
                current = existing.fields if existing else None
            if kind == OP_SET:
                overlay[path] = _resolve(fields, {}, None)
            elif current is not None:
                overlay[path] = {**current, **_resolve(fields, current, None)}
            elif kind == OP_MERGE:
                overlay[path] = _resolve(fields, {}, None)
        return overlay

    def _apply(self, db: Session, kind: str, path: str, fields: dict[str, Any] | None, now: datetime) -> None:
        collection_path, collection_id, doc_id = split_document_path(path)
        path = f"{collection_path}/{doc_id}"
        row = db.query(Document).filter(Document.path == path).first()
        if kind == OP_DELETE:
            if row is not None:
                db.delete(row)
            return
        existing = decode_value(row.fields or {}) if row is not None else {}
        if kind == OP_UPDATE and row is None:
            raise NotFoundError(f"No document to update: {path}")
        resolved = _resolve(fields or {}, existing, now)
        merged = resolved if kind == OP_SET else {**existing, **resolved}
        if row is None:
            db.add(
                Document(
                    path=path,
                    collection_path=collection_path,
                    collection_id=collection_id,
                    doc_id=doc_id,
                    fields=encode_value(merged),
                )
            )
        else:
            # Assign a new dict: in-place JSON mutation is not tracked
            row.fields = encode_value(merged)
            row.updated_at = now
        db.flush()

    def _commit(self, ops: list[WriteOp]) -> None:
        paths = {path.strip("/") for _, path, _ in ops}
        with self._lock:
            overlay = self._pending_overlay(ops)
            if overlay:
                self._notify(overlay.keys(), overlay)
            db = self._session_factory()
            try:
                now = self._clock()
                for kind, path, fields in ops:
                    self._apply(db, kind, path, fields, now)
                db.commit()
            except Exception:
                db.rollback()
                if overlay:
                    # Retract the optimistic view
                    self._notify(overlay.keys(), None)
                raise
            finally:
                db.close()
            self._notify(paths, None)

    def _notify(self, paths: Iterable[str], overlay: dict[str, dict[str, Any]] | None) -> None:
        """Re-run every live query whose scope holds one of the written paths."""
        paths = list(paths)
        for sub in list(self._subscriptions):
            if not sub.active:
                continue
            if not any(sub.query.matches_path(p) for p in paths):
                continue
            self._deliver(sub, overlay)

    def _deliver(self, sub: Subscription, overlay: dict[str, dict[str, Any]] | None) -> None:
        try:
            snapshot = self._snapshot(sub.query, overlay)
        except Exception as e:
            sub.fail(e)
            return
        sub.deliver(snapshot)

    def _snapshot(self, query: Query, overlay: dict[str, dict[str, Any]] | None) -> Snapshot:
        db = self._session_factory()
        try:
            records = {r.path: r for r in self._load_scope(db, query)}
        finally:
            db.close()
        pending = False
        for path, fields in (overlay or {}).items():
            if query.matches_path(path):
                records[path] = Record(path, fields)
                pending = True
        return Snapshot(query.apply(records.values()), has_pending_writes=pending)
