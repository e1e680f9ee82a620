"""
Tasks API: per-project task table plus the caller's pending tasks across projects.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from nexus.api.deps import current_user, get_activity, get_store, raise_http
from nexus.auth.provider import Identity
from nexus.core.errors import NexusError
from nexus.services import project_service, task_service
from nexus.store.documents import DocumentStore
from nexus.sync.activity import ActivityLogger

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateTaskRequest(BaseModel):
    taskId: str
    module: str = ""
    description: str = ""
    assignedTo: str = ""
    priority: str = "Medium"
    startDate: str = ""
    dueDate: str = ""
    status: str = "Pending"
    percentDone: int = 0
    comments: str = ""


class UpdateTaskFieldRequest(BaseModel):
    field: str
    value: Any


@router.get("/tasks/pending")
def pending_tasks(
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    """Pending tasks assigned to the caller in any project."""
    rows = store.get_once(task_service.pending_tasks_query(user.uid))
    return {"tasks": [task_service.serialize_task(t) for t in rows]}


@router.get("/projects/{project_id}/tasks")
def list_tasks(
    project_id: str,
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    try:
        project_service.require_access(store, project_id, user.uid)
    except NexusError as e:
        raise_http(e)
    rows = store.get_once(task_service.tasks_query(project_id))
    return {"tasks": [task_service.serialize_task(t) for t in rows]}


@router.post("/projects/{project_id}/tasks", status_code=201)
def create_task(
    project_id: str,
    body: CreateTaskRequest,
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
    activity: ActivityLogger = Depends(get_activity),
) -> dict[str, Any]:
    try:
        task = task_service.add_task(store, activity, project_id, user, body.model_dump())
    except NexusError as e:
        raise_http(e)
    return task_service.serialize_task(task)


@router.patch("/projects/{project_id}/tasks/{task_id}")
def update_task(
    project_id: str,
    task_id: str,
    body: UpdateTaskFieldRequest,
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
    activity: ActivityLogger = Depends(get_activity),
) -> dict[str, Any]:
    """Change one field. Members may change status, percentDone, and comments only."""
    try:
        task = task_service.update_task_field(store, activity, project_id, user, task_id, body.field, body.value)
    except NexusError as e:
        raise_http(e)
    return task_service.serialize_task(task)


@router.delete("/projects/{project_id}/tasks/{task_id}")
def delete_task(
    project_id: str,
    task_id: str,
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
    activity: ActivityLogger = Depends(get_activity),
) -> dict[str, bool]:
    try:
        task_service.delete_task(store, activity, project_id, user, task_id)
    except NexusError as e:
        raise_http(e)
    return {"ok": True}
