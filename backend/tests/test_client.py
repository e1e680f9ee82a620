from __future__ import annotations

import pytest

from nexus.client import NexusClient
from nexus.core.errors import PermissionDeniedError
from nexus.services import notification_service, project_service, task_service
from nexus.services.account_service import register
from nexus.services.chat_service import send_message


@pytest.fixture
def client(auth, store, markers, scheduler):
    c = NexusClient(auth, store, markers=markers, scheduler=scheduler)
    c.start()
    yield c
    c.close()


@pytest.fixture
def dana(client, auth, store):
    return register(auth, store, "Dana", "dana@example.com", "secret1")


def _shared_project(store, owner, member, name: str):
    return project_service.create_project(store, owner, name, "", [store.get(f"users/{member.uid}")])


def test_sign_in_opens_dashboard_and_badge(client, store, alice, dana) -> None:
    assert client.dashboard is not None and client.notifications is not None
    project = _shared_project(store, alice, dana, "Apollo")
    assert [p.id for p in client.dashboard.projects] == [project.id]

    activity = client.activity
    task_service.add_task(store, activity, project.id, alice, {"taskId": "T-1", "assignedTo": dana.uid})
    assert [t.get("taskId") for t in client.dashboard.pending_tasks] == ["T-1"]
    assert client.notifications.unread_count == 1

    client.open_notifications()
    assert client.notifications.unread_count == 0
    client.close_notifications()
    notification_service.notify(store, dana.uid, "assignment", "again")
    assert client.notifications.badge == "1"


def test_switching_projects_cancels_previous_before_next(client, store, alice, dana) -> None:
    a = _shared_project(store, alice, dana, "A")
    b = _shared_project(store, alice, dana, "B")
    ws_a = client.open_project(a.id)
    assert ws_a.project.first.get("name") == "A"
    count_with_a = store.subscription_count

    ws_b = client.open_project(b.id)
    assert not ws_a.tasks.is_open and not ws_a.chat.is_open
    assert store.subscription_count == count_with_a

    task_service.add_task(store, client.activity, a.id, alice, {"taskId": "A-late"})
    assert ws_a.tasks.records == ()
    assert ws_b.tasks.records == ()
    assert client.workspace is ws_b


def test_workspace_chat_badge_and_viewing(client, store, alice, dana) -> None:
    project = _shared_project(store, alice, dana, "Apollo")
    ws = client.open_project(project.id)
    assert not ws.is_admin
    ws.send_message("my own")
    send_message(store, project.id, alice, "hello")
    send_message(store, project.id, alice, "are you there")
    assert ws.chat.unread_count == 2
    ws.open_chat()
    assert ws.chat.unread_count == 0
    send_message(store, project.id, alice, "still here")
    assert ws.chat.unread_count == 0
    ws.close_chat()
    assert ws.chat.unread_count == 0


def test_workspace_member_actions(client, store, alice, dana) -> None:
    project = _shared_project(store, alice, dana, "Apollo")
    task = task_service.add_task(store, client.activity, project.id, alice, {"taskId": "T-1", "assignedTo": dana.uid})
    ws = client.open_project(project.id)
    ws.open_history()
    ws.update_task(task.id, "status", "Completed")
    assert ws.tasks.first.get("percentDone") == 100
    assert any(h.get("action") == "Updated Task" for h in ws.history)
    ws.close_history()
    assert not ws.history.is_open
    assert ws.analytics()["overall_progress"] == 100
    assert client.dashboard.pending_tasks.records == ()
    with pytest.raises(PermissionDeniedError):
        ws.delete_task(task.id)


def test_open_project_requires_membership(client, store, alice, dana) -> None:
    project = project_service.create_project(store, alice, "Private")
    with pytest.raises(PermissionDeniedError):
        client.open_project(project.id)
    assert client.workspace is None


def test_sign_out_closes_everything(client, auth, store, alice, dana, scheduler) -> None:
    project = _shared_project(store, alice, dana, "Apollo")
    client.open_project(project.id)
    assert store.subscription_count > 0
    auth.sign_out()
    assert client.workspace is None
    assert client.dashboard is None and client.notifications is None
    assert store.subscription_count == 0
    assert scheduler.jobs == {}
    with pytest.raises(RuntimeError):
        client.open_project(project.id)


def test_owner_deletes_open_project(client, auth, store, dana) -> None:
    project = project_service.create_project(store, dana, "Mine")
    ws = client.open_project(project.id)
    assert ws.is_admin
    assert client.delete_project(project.id) == 0
    assert client.workspace is None
    assert not ws.project.is_open
    assert client.dashboard.projects == []
