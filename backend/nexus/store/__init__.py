from nexus.store.documents import DocumentStore, WriteBatch, new_id
from nexus.store.query import Filter, Query
from nexus.store.subscription import LiveView, Subscription
from nexus.store.types import SERVER_TIMESTAMP, ArrayUnion, Record, Snapshot, coerce_timestamp

__all__ = [
    "ArrayUnion",
    "DocumentStore",
    "Filter",
    "LiveView",
    "Query",
    "Record",
    "SERVER_TIMESTAMP",
    "Snapshot",
    "Subscription",
    "WriteBatch",
    "coerce_timestamp",
    "new_id",
]
