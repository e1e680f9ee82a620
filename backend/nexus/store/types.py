"""
Store value types: records, snapshots, write sentinels, and JSON field encoding.

Fields live in a JSON column, so datetimes are tagged on the way in and restored on the way out.
"""
from datetime import datetime, timezone
from typing import Any, Iterator

_DATETIME_TAG = "__datetime__"


class _ServerTimestamp:
    """Sentinel resolved to the store clock at commit time."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


class ArrayUnion:
    """Sentinel: append each value to the stored list unless already present."""

    __slots__ = ("values",)

    def __init__(self, *values: Any):
        self.values = values

    def apply(self, existing: Any) -> list:
        out = list(existing) if isinstance(existing, list) else []
        for v in self.values:
            if v not in out:
                out.append(v)
        return out

    def __repr__(self) -> str:
        return f"ArrayUnion{self.values!r}"


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def coerce_timestamp(value: Any) -> datetime | None:
    """Datetime or ISO string -> aware UTC datetime. Anything else (incl. pending None) -> None."""
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str) and value:
        try:
            return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return {_DATETIME_TAG: ensure_utc(value).isoformat()}
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


def decode_value(value: Any) -> Any:
    if isinstance(value, dict):
        if len(value) == 1 and _DATETIME_TAG in value:
            return datetime.fromisoformat(value[_DATETIME_TAG])
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    return value


class Record:
    """One document as seen by a reader. Treat as immutable; snapshots replace records wholesale."""

    __slots__ = ("id", "path", "fields")

    def __init__(self, path: str, fields: dict[str, Any]):
        self.path = path
        self.id = path.rsplit("/", 1)[-1]
        self.fields = dict(fields)

    @property
    def parent_id(self) -> str | None:
        """Id of the document owning this record's collection (p1 for projects/p1/tasks/t1), if nested."""
        parts = self.path.split("/")
        return parts[-3] if len(parts) >= 4 else None

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    def __getitem__(self, name: str) -> Any:
        return self.fields[name]

    def __contains__(self, name: str) -> bool:
        return name in self.fields

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self.path == other.path and self.fields == other.fields

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Record({self.path!r})"


class Snapshot:
    """Full ordered result set of a live query at one point in time."""

    __slots__ = ("records", "has_pending_writes")

    def __init__(self, records: tuple[Record, ...] | list[Record], has_pending_writes: bool = False):
        self.records = tuple(records)
        self.has_pending_writes = has_pending_writes

    @property
    def empty(self) -> bool:
        return not self.records

    def ids(self) -> list[str]:
        return [r.id for r in self.records]

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Snapshot):
            return NotImplemented
        return self.records == other.records and self.has_pending_writes == other.has_pending_writes

    __hash__ = None  # type: ignore[assignment]
