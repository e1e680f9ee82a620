"""
Live query specification: a scope (collection, collection group, or one document),
equality/range/membership filters, ordering, and an optional limit.

Filtering and ordering run in Python over the scope's documents. Builders return new
Query objects, so a query can be shared between views.
"""
import operator
from typing import Any, Callable, Iterable

from nexus.core.constants import PREFIX_UPPER_BOUND
from nexus.store.types import Record


def _array_contains(field_value: Any, value: Any) -> bool:
    return isinstance(field_value, list) and value in field_value


def _in(field_value: Any, value: Any) -> bool:
    return field_value in value


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": _in,
    "array-contains": _array_contains,
}

def _order_key(field: str) -> Callable[[Record], tuple]:
    def key(record: Record) -> tuple:
        value = record.fields[field]
        if value is None:
            return (1, record.path)
        return (0, value, record.path)

    return key


SCOPE_COLLECTION = "collection"
SCOPE_GROUP = "collection_group"
SCOPE_DOCUMENT = "document"


class Filter:
    __slots__ = ("field", "op", "value")

    def __init__(self, field: str, op: str, value: Any):
        if op not in OPERATORS:
            raise ValueError(f"Unsupported operator: {op}. Available: {list(OPERATORS)}")
        self.field = field
        self.op = op
        self.value = value

    def matches(self, fields: dict[str, Any]) -> bool:
        # Missing or null fields never match, same as the hosted store
        current = fields.get(self.field)
        if current is None:
            return False
        try:
            return bool(OPERATORS[self.op](current, self.value))
        except TypeError:
            return False

    def __repr__(self) -> str:
        return f"{self.field} {self.op} {self.value!r}"


class Query:
    """Immutable query description; see Query.collection / collection_group / document."""

    __slots__ = ("scope", "target", "filters", "order_field", "descending", "max_results")

    def __init__(
        self,
        scope: str,
        target: str,
        filters: tuple[Filter, ...] = (),
        order_field: str | None = None,
        descending: bool = False,
        max_results: int | None = None,
    ):
        self.scope = scope
        self.target = target.strip("/")
        self.filters = tuple(filters)
        self.order_field = order_field
        self.descending = descending
        self.max_results = max_results

    @classmethod
    def collection(cls, *segments: str) -> "Query":
        path = "/".join(s.strip("/") for s in segments)
        if len(path.split("/")) % 2 != 1:
            raise ValueError(f"Not a collection path: {path}")
        return cls(SCOPE_COLLECTION, path)

    @classmethod
    def collection_group(cls, collection_id: str) -> "Query":
        """Every sub-collection named collection_id, under any parent."""
        return cls(SCOPE_GROUP, collection_id)

    @classmethod
    def document(cls, *segments: str) -> "Query":
        path = "/".join(s.strip("/") for s in segments)
        if len(path.split("/")) % 2 != 0:
            raise ValueError(f"Not a document path: {path}")
        return cls(SCOPE_DOCUMENT, path)

    def _replace(self, **changes: Any) -> "Query":
        kwargs = {name: getattr(self, name) for name in self.__slots__}
        kwargs.update(changes)
        return Query(**kwargs)

    def where(self, field: str, op: str, value: Any) -> "Query":
        return self._replace(filters=self.filters + (Filter(field, op, value),))

    def starts_with(self, field: str, prefix: str) -> "Query":
        """Prefix match as a >= / <= range (e.g. email suggestions)."""
        return self.where(field, ">=", prefix).where(field, "<=", prefix + PREFIX_UPPER_BOUND)

    def order_by(self, field: str, descending: bool = False) -> "Query":
        return self._replace(order_field=field, descending=descending)

    def limit(self, n: int) -> "Query":
        return self._replace(max_results=n)

    def matches_path(self, path: str) -> bool:
        """True when a document at `path` is in this query's scope (filters not applied)."""
        parent, _, _ = path.rpartition("/")
        if self.scope == SCOPE_DOCUMENT:
            return path == self.target
        if self.scope == SCOPE_COLLECTION:
            return parent == self.target
        return parent.rsplit("/", 1)[-1] == self.target

    def apply(self, records: Iterable[Record]) -> list[Record]:
        """Filter, order, and limit records already narrowed to this query's scope."""
        out = [r for r in records if all(f.matches(r.fields) for f in self.filters)]
        if self.order_field:
            field = self.order_field
            # Missing field: excluded. Present but None (pending server value): treated as newest.
            out = [r for r in out if field in r.fields]
            out.sort(key=_order_key(field), reverse=self.descending)
        else:
            out.sort(key=lambda r: r.path)
        if self.max_results is not None:
            out = out[: self.max_results]
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Query):
            return NotImplemented
        return repr(self) == repr(other)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        parts = [f"{self.scope}:{self.target}"]
        parts.extend(repr(f) for f in self.filters)
        if self.order_field:
            parts.append(f"order_by {self.order_field}{' desc' if self.descending else ''}")
        if self.max_results is not None:
            parts.append(f"limit {self.max_results}")
        return f"Query({', '.join(parts)})"
