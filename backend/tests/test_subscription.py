from __future__ import annotations

from nexus.store.documents import DocumentStore
from nexus.store.query import Query
from nexus.store.subscription import LiveView, Subscription
from nexus.store.types import Record, Snapshot


def _tasks(pid: str) -> Query:
    return Query.collection("projects", pid, "tasks").order_by("taskId")


def test_live_view_mirrors_query(store: DocumentStore) -> None:
    changes: list[int] = []
    view = LiveView(store, _tasks("p1"), on_change=lambda v: changes.append(len(v))).open()
    store.set("projects/p1/tasks/t2", {"taskId": "T-2"})
    store.set("projects/p1/tasks/t1", {"taskId": "T-1"})
    assert [r.get("taskId") for r in view] == ["T-1", "T-2"]
    assert changes == [1, 2]


def test_replayed_snapshot_is_a_no_op(store: DocumentStore) -> None:
    changes: list[LiveView] = []
    view = LiveView(store, _tasks("p1"), on_change=changes.append).open()
    store.set("projects/p1/tasks/t1", {"taskId": "T-1"})
    snapshot = Snapshot(view.records)
    before = len(changes)
    assert view.apply(snapshot) is False
    assert view.apply(Snapshot(list(view.records))) is False
    assert len(changes) == before


def test_writes_outside_scope_do_not_change_view(store: DocumentStore) -> None:
    changes: list[LiveView] = []
    LiveView(store, _tasks("p1"), on_change=changes.append).open()
    store.set("projects/p2/tasks/t1", {"taskId": "T-1"})
    assert changes == []


def test_closed_view_applies_nothing(store: DocumentStore) -> None:
    view = LiveView(store, _tasks("p1")).open()
    store.set("projects/p1/tasks/t1", {"taskId": "T-1"})
    view.close()
    view.close()
    store.set("projects/p1/tasks/t2", {"taskId": "T-2"})
    assert [r.id for r in view] == ["t1"]
    assert not view.is_open


def test_rescope_drops_old_project_before_subscribing(store: DocumentStore) -> None:
    store.set("projects/p1/tasks/a", {"taskId": "A"})
    store.set("projects/p2/tasks/b", {"taskId": "B"})
    view = LiveView(store, _tasks("p1")).open()
    assert [r.id for r in view] == ["a"]

    view.rescope(_tasks("p2"))
    assert [r.id for r in view] == ["b"]
    store.set("projects/p1/tasks/c", {"taskId": "C"})
    assert [r.id for r in view] == ["b"]
    assert store.subscription_count == 1


def test_cancelled_subscription_drops_late_delivery() -> None:
    seen: list[Snapshot] = []
    sub = Subscription(Query.collection("projects"), seen.append)
    assert sub.deliver(Snapshot([Record("projects/p1", {})])) is True
    sub.cancel()
    assert sub.deliver(Snapshot([])) is False
    assert len(seen) == 1


def test_handler_exception_is_contained(store: DocumentStore) -> None:
    def boom(snapshot: Snapshot) -> None:
        if not snapshot.empty:
            raise RuntimeError("render failed")

    store.subscribe(Query.collection("projects"), boom)
    store.set("projects/p1", {"name": "ok"})
    assert store.get("projects/p1") is not None


def test_query_error_sets_view_error(store: DocumentStore) -> None:
    store.set("projects/p1", {"name": 1})
    view = LiveView(store, Query.collection("projects").order_by("name")).open()
    store.set("projects/p2", {"name": "two"})
    assert isinstance(view.error, TypeError)
    assert [r.id for r in view] == ["p1"]
