from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from nexus.api.deps import get_auth, get_store
from nexus.auth.local import LocalAuthProvider
from nexus.core.errors import MSG_REAUTHENTICATE
from nexus.main import app
from nexus.services.notification_service import notify


@pytest.fixture
def api(store, session_factory, clock):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_auth] = lambda: LocalAuthProvider(
        session_factory=session_factory, clock=clock, mailer=lambda to, link: True
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def _sign_up(api: TestClient, name: str, email: str) -> dict[str, str]:
    r = api.post("/auth/sign-up", json={"name": name, "email": email, "password": "secret1"})
    assert r.status_code == 201, r.text
    return {"X-User-Id": r.json()["uid"]}


def test_health(api: TestClient) -> None:
    assert api.get("/health").json() == {"status": "ok"}


def test_auth_errors_map_to_status_codes(api: TestClient) -> None:
    _sign_up(api, "Dana", "dana@example.com")
    r = api.post("/auth/sign-up", json={"name": "Dana", "email": "dana@example.com", "password": "secret1"})
    assert r.status_code == 409
    r = api.post("/auth/sign-up", json={"name": "Eli", "email": "eli@example.com", "password": "123"})
    assert r.status_code == 400
    r = api.post("/auth/sign-in", json={"email": "dana@example.com", "password": "nope!!"})
    assert r.status_code == 401
    r = api.post("/auth/password-reset", json={"email": "ghost@example.com"})
    assert r.status_code == 404
    assert api.post("/auth/password-reset", json={"email": "dana@example.com"}).json() == {"ok": True}


def test_caller_header_required(api: TestClient) -> None:
    assert api.get("/projects").status_code == 401
    assert api.get("/projects", headers={"X-User-Id": "ghost"}).status_code == 401


def test_project_task_flow(api: TestClient) -> None:
    owner = _sign_up(api, "Alice", "alice@example.com")
    member = _sign_up(api, "Bob", "bob@example.com")
    outsider = _sign_up(api, "Carol", "carol@example.com")

    r = api.post("/projects", json={"name": "Apollo", "description": "Moon"}, headers=owner)
    assert r.status_code == 201
    pid = r.json()["id"]

    assert api.post(f"/projects/{pid}/members", json={"email": "ghost@example.com"}, headers=owner).status_code == 404
    r = api.post(f"/projects/{pid}/members", json={"email": "bob@example.com"}, headers=owner)
    assert r.status_code == 201
    assert api.post(f"/projects/{pid}/members", json={"email": "bob@example.com"}, headers=owner).status_code == 400
    assert api.post(f"/projects/{pid}/members", json={"email": "carol@example.com"}, headers=member).status_code == 403

    assert api.get(f"/projects/{pid}", headers=member).json()["is_admin"] is False
    assert api.get(f"/projects/{pid}", headers=outsider).status_code == 403
    assert [p["id"] for p in api.get("/projects", headers=member).json()["projects"]] == [pid]

    r = api.post(
        f"/projects/{pid}/tasks",
        json={"taskId": "T-1", "assignedTo": member["X-User-Id"], "priority": "High"},
        headers=owner,
    )
    assert r.status_code == 201
    tid = r.json()["id"]
    assert api.post(f"/projects/{pid}/tasks", json={"taskId": "T-2"}, headers=member).status_code == 403
    assert [t["taskId"] for t in api.get("/tasks/pending", headers=member).json()["tasks"]] == ["T-1"]

    r = api.patch(f"/projects/{pid}/tasks/{tid}", json={"field": "status", "value": "Completed"}, headers=member)
    assert r.status_code == 200
    assert r.json()["percentDone"] == 100
    r = api.patch(f"/projects/{pid}/tasks/{tid}", json={"field": "priority", "value": "Low"}, headers=member)
    assert r.status_code == 403
    assert api.get("/tasks/pending", headers=member).json()["tasks"] == []

    analytics = api.get(f"/projects/{pid}/analytics", headers=member).json()
    assert analytics["overall_progress"] == 100
    history = api.get(f"/projects/{pid}/history", headers=member).json()["history"]
    assert {h["action"] for h in history} >= {"Added Member", "Created Task", "Updated Task"}

    assert api.delete(f"/projects/{pid}/tasks/{tid}", headers=member).status_code == 403
    assert api.delete(f"/projects/{pid}", headers=member).status_code == 403
    r = api.delete(f"/projects/{pid}", headers=owner)
    assert r.json() == {"ok": True, "deleted_tasks": 1}
    assert api.get(f"/projects/{pid}", headers=owner).status_code == 404

    types = [n["type"] for n in api.get("/notifications", headers=member).json()["notifications"]]
    assert sorted(types) == ["assignment", "project_deleted", "project_invite"]


def test_messages(api: TestClient) -> None:
    owner = _sign_up(api, "Alice", "alice@example.com")
    outsider = _sign_up(api, "Carol", "carol@example.com")
    pid = api.post("/projects", json={"name": "Apollo"}, headers=owner).json()["id"]

    r = api.post(f"/projects/{pid}/messages", json={"text": "hello"}, headers=owner)
    assert r.status_code == 201
    assert r.json()["message"]["is_me"] is True
    assert api.post(f"/projects/{pid}/messages", json={"text": "  "}, headers=owner).json() == {"message": None}
    assert api.post(f"/projects/{pid}/messages", json={"text": "hi"}, headers=outsider).status_code == 403

    messages = api.get(f"/projects/{pid}/messages", headers=owner).json()["messages"]
    assert [m["text"] for m in messages] == ["hello"]
    assert messages[0]["sender_name"] == "Alice"
    assert messages[0]["created_at"] is not None


def test_notifications_endpoints(api: TestClient, store) -> None:
    me = _sign_up(api, "Bob", "bob@example.com")
    first = notify(store, me["X-User-Id"], "assignment", "one")
    notify(store, me["X-User-Id"], "assignment", "two")
    assert api.get("/notifications", headers=me).json()["unread_count"] == 2

    assert api.post(f"/notifications/{first.id}/read", headers=me).json() == {"ok": True}
    assert api.post("/notifications/nope/read", headers=me).status_code == 404
    assert api.get("/notifications?unread_only=true", headers=me).json()["unread_count"] == 1
    assert api.post("/notifications/read-all", headers=me).json() == {"ok": True, "marked": 1}
    assert api.delete(f"/notifications/{first.id}", headers=me).json() == {"ok": True}
    assert len(api.get("/notifications", headers=me).json()["notifications"]) == 1


def test_member_suggestions(api: TestClient) -> None:
    me = _sign_up(api, "Alice", "alice@example.com")
    _sign_up(api, "Albert", "albert@example.com")
    _sign_up(api, "Bob", "bob@example.com")
    r = api.get("/users/suggestions", params={"q": "al"}, headers=me)
    assert r.json()["users"] == []
    r = api.get("/users/suggestions", params={"q": "alb"}, headers=me)
    assert [u["email"] for u in r.json()["users"]] == ["albert@example.com"]
    r = api.get("/users/suggestions", params={"q": "ali"}, headers=me)
    assert r.json()["users"] == []


def test_delete_account_needs_recent_login(api: TestClient, clock) -> None:
    me = _sign_up(api, "Dana", "dana@example.com")
    clock.advance(3600)
    r = api.delete("/auth/account", headers=me)
    assert r.status_code == 401
    assert r.json()["detail"] == MSG_REAUTHENTICATE

    assert api.post("/auth/sign-in", json={"email": "dana@example.com", "password": "secret1"}).status_code == 200
    assert api.delete("/auth/account", headers=me).json() == {"ok": True}
    assert api.get("/projects", headers=me).status_code == 401
