from __future__ import annotations

import pytest

from nexus.core.errors import NotFoundError
from nexus.store.documents import OP_SET, OP_UPDATE, DocumentStore, split_document_path
from nexus.store.query import Query
from nexus.store.types import SERVER_TIMESTAMP, ArrayUnion, Snapshot


def test_set_get_and_merge(store: DocumentStore) -> None:
    store.set("projects/p1", {"name": "Apollo", "ownerId": "alice"})
    store.set("projects/p1", {"status": "active"}, merge=True)
    record = store.get("projects/p1")
    assert record is not None
    assert record.id == "p1"
    assert record.fields == {"name": "Apollo", "ownerId": "alice", "status": "active"}

    store.set("projects/p1", {"name": "Replaced"})
    assert store.get("projects/p1").fields == {"name": "Replaced"}


def test_update_missing_document_raises(store: DocumentStore) -> None:
    with pytest.raises(NotFoundError):
        store.update("projects/missing", {"name": "x"})
    # delete of a missing document is a no-op
    store.delete("projects/missing")


def test_split_document_path_rejects_collections() -> None:
    assert split_document_path("projects/p1/tasks/t1") == ("projects/p1/tasks", "tasks", "t1")
    with pytest.raises(ValueError):
        split_document_path("projects/p1/tasks")


def test_add_returns_committed_record_with_datetimes(store: DocumentStore, clock) -> None:
    rec = store.add("projects/p1/messages", {"text": "hi", "createdAt": SERVER_TIMESTAMP})
    assert rec.parent_id == "p1"
    assert rec.get("createdAt") == clock.now
    again = store.get(rec.path)
    assert again == rec


def test_array_union_appends_without_duplicates(store: DocumentStore) -> None:
    store.set("projects/p1", {"members": ["bob"]})
    store.update("projects/p1", {"members": ArrayUnion("bob", "carol")})
    assert store.get("projects/p1").get("members") == ["bob", "carol"]


def test_query_filters_order_and_limit(store: DocumentStore) -> None:
    for i, (owner, status) in enumerate([("a", "Pending"), ("b", "Pending"), ("a", "Completed"), ("a", "Pending")]):
        store.set(f"projects/p1/tasks/t{i}", {"taskId": f"T-{3 - i}", "assignedTo": owner, "status": status})

    q = (
        Query.collection("projects", "p1", "tasks")
        .where("assignedTo", "==", "a")
        .where("status", "==", "Pending")
        .order_by("taskId")
    )
    assert [r.get("taskId") for r in store.get_once(q)] == ["T-0", "T-3"]
    assert [r.get("taskId") for r in store.get_once(q.limit(1))] == ["T-0"]
    desc = Query.collection("projects", "p1", "tasks").order_by("taskId", descending=True)
    assert [r.id for r in store.get_once(desc)] == ["t0", "t1", "t2", "t3"]


def test_missing_fields_never_match_and_drop_out_of_ordered_queries(store: DocumentStore) -> None:
    store.set("users/u1", {"email": "a@example.com"})
    store.set("users/u2", {"name": "no email"})
    assert [r.id for r in store.get_once(Query.collection("users").where("email", "!=", "x"))] == ["u1"]
    assert [r.id for r in store.get_once(Query.collection("users").order_by("email"))] == ["u1"]


def test_array_contains_and_in(store: DocumentStore) -> None:
    store.set("projects/p1", {"members": ["bob", "carol"], "status": "active"})
    store.set("projects/p2", {"members": ["carol"], "status": "archived"})
    assert [r.id for r in store.get_once(Query.collection("projects").where("members", "array-contains", "bob"))] == ["p1"]
    assert [r.id for r in store.get_once(Query.collection("projects").where("status", "in", ["archived"]))] == ["p2"]


def test_collection_group_spans_parents(store: DocumentStore) -> None:
    store.set("projects/p1/tasks/t1", {"assignedTo": "bob", "status": "Pending"})
    store.set("projects/p2/tasks/t9", {"assignedTo": "bob", "status": "Pending"})
    store.set("projects/p2/history/h1", {"assignedTo": "bob", "status": "Pending"})
    rows = store.get_once(Query.collection_group("tasks").where("assignedTo", "==", "bob"))
    assert sorted(r.path for r in rows) == ["projects/p1/tasks/t1", "projects/p2/tasks/t9"]
    assert {r.parent_id for r in rows} == {"p1", "p2"}


def test_starts_with_is_a_prefix_match(store: DocumentStore) -> None:
    for uid, email in [("1", "alice@example.com"), ("2", "alfred@example.com"), ("3", "bob@example.com")]:
        store.set(f"users/{uid}", {"email": email})
    q = Query.collection("users").starts_with("email", "al").order_by("email")
    assert [r.get("email") for r in store.get_once(q)] == ["alfred@example.com", "alice@example.com"]


def test_document_query(store: DocumentStore) -> None:
    store.set("projects/p1", {"name": "Apollo"})
    store.set("projects/p2", {"name": "Gemini"})
    assert [r.id for r in store.get_once(Query.document("projects", "p1"))] == ["p1"]


def test_subscribe_delivers_initial_and_each_commit(store: DocumentStore) -> None:
    seen: list[Snapshot] = []
    sub = store.subscribe(Query.collection("projects").order_by("name"), seen.append)
    assert len(seen) == 1 and seen[0].empty

    store.set("projects/p1", {"name": "B"})
    store.set("projects/p2", {"name": "A"})
    assert seen[-1].ids() == ["p2", "p1"]

    sub.cancel()
    store.set("projects/p3", {"name": "C"})
    assert len(seen) == 3
    assert store.subscription_count == 0


def test_pending_server_timestamp_delivers_local_view_first(store: DocumentStore, clock) -> None:
    seen: list[Snapshot] = []
    store.subscribe(Query.collection("projects", "p1", "messages").order_by("createdAt"), seen.append)
    store.add("projects/p1/messages", {"text": "hi", "createdAt": SERVER_TIMESTAMP})

    pending, resolved = seen[1], seen[2]
    assert pending.has_pending_writes
    assert pending.records[0].get("createdAt") is None
    assert pending.records[0].get("text") == "hi"
    assert not resolved.has_pending_writes
    assert resolved.records[0].get("createdAt") == clock.now


def test_pending_record_sorts_as_newest(store: DocumentStore, clock) -> None:
    store.add("projects/p1/messages", {"text": "old", "createdAt": clock.now})
    seen: list[Snapshot] = []
    store.subscribe(Query.collection("projects", "p1", "messages").order_by("createdAt"), seen.append)
    clock.advance(5)
    store.add("projects/p1/messages", {"text": "new", "createdAt": SERVER_TIMESTAMP})
    assert [r.get("text") for r in seen[1]] == ["old", "new"]


def test_atomic_batch_rolls_back_everything(store: DocumentStore) -> None:
    store.set("projects/p1", {"name": "Apollo"})
    store.set("projects/p1/tasks/t1", {"taskId": "T-1"})
    seen: list[Snapshot] = []
    store.subscribe(Query.collection("projects"), seen.append)

    with pytest.raises(NotFoundError):
        store.atomic_batch(
            [
                ("delete", "projects/p1/tasks/t1", None),
                (OP_SET, "users/bob/notifications/n1", {"message": "gone"}),
                (OP_UPDATE, "projects/missing", {"name": "boom"}),
            ]
        )
    assert store.get("projects/p1/tasks/t1") is not None
    assert store.get("users/bob/notifications/n1") is None
    assert len(seen) == 1


def test_write_batch_commits_once(store: DocumentStore) -> None:
    batch = store.batch().set("projects/p1", {"name": "A"}).set("projects/p2", {"name": "B"})
    assert len(batch) == 2
    batch.commit()
    assert store.get("projects/p2") is not None
    with pytest.raises(RuntimeError):
        batch.commit()


def test_failing_snapshot_reports_error_without_breaking_commit(store: DocumentStore) -> None:
    errors: list[Exception] = []
    store.set("projects/p1", {"name": 1})
    store.subscribe(Query.collection("projects").order_by("name"), lambda s: None, on_error=errors.append)
    # int vs str ordering raises inside the snapshot; the write itself still lands
    store.set("projects/p2", {"name": "x"})
    assert store.get("projects/p2") is not None
    assert len(errors) == 1


def test_writes_elsewhere_deliver_nothing(store: DocumentStore) -> None:
    seen: list[Snapshot] = []
    store.subscribe(Query.collection("projects", "A", "messages").order_by("createdAt"), seen.append)
    store.subscribe(Query.collection_group("tasks"), lambda s: None)
    for i in range(5):
        store.add("projects/B/messages", {"text": f"m{i}", "createdAt": SERVER_TIMESTAMP})
    store.set("users/zed", {"isOnline": True})
    store.set("projects/A", {"name": "A"})
    store.atomic_batch([(OP_SET, "projects/B/tasks/t1", {"taskId": "T-1"})])
    assert len(seen) == 1

    store.add("projects/A/messages", {"text": "here", "createdAt": SERVER_TIMESTAMP})
    assert len(seen) == 3
