"""
Projects API: list, create, read, delete, members, history, analytics.
"""
import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from nexus.api.deps import current_user, get_activity, get_store, raise_http
from nexus.auth.provider import Identity
from nexus.core.errors import NexusError, NotFoundError
from nexus.services import project_service
from nexus.services.analytics import project_analytics
from nexus.services.task_service import tasks_query
from nexus.store.documents import DocumentStore
from nexus.sync.activity import ActivityLogger

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateProjectRequest(BaseModel):
    name: str
    description: str = ""
    member_emails: list[str] = Field(default_factory=list, max_length=100)


class AddMemberRequest(BaseModel):
    email: str


@router.get("")
def list_projects(
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    """Projects the caller owns or belongs to."""
    projects = project_service.list_projects(store, user.uid)
    return {"projects": [project_service.serialize_project(p) for p in projects]}


@router.post("", status_code=201)
def create_project(
    body: CreateProjectRequest,
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    try:
        members = []
        for email in body.member_emails:
            member = project_service.find_user_by_email(store, email)
            if member is None:
                raise NotFoundError(f"User not found: {email}")
            members.append(member)
        project = project_service.create_project(store, user, body.name, body.description, members)
    except NexusError as e:
        raise_http(e)
    return project_service.serialize_project(project)


@router.get("/{project_id}")
def get_project(
    project_id: str,
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    try:
        project = project_service.require_access(store, project_id, user.uid)
    except NexusError as e:
        raise_http(e)
    out = project_service.serialize_project(project)
    out["is_admin"] = project_service.is_owner(project, user.uid)
    return out


@router.delete("/{project_id}")
def delete_project(
    project_id: str,
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    """Delete the project, its tasks, and notify members, all at once. Owner only."""
    try:
        deleted_tasks = project_service.delete_project(store, project_id, user)
    except NexusError as e:
        raise_http(e)
    return {"ok": True, "deleted_tasks": deleted_tasks}


@router.post("/{project_id}/members", status_code=201)
def add_member(
    project_id: str,
    body: AddMemberRequest,
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
    activity: ActivityLogger = Depends(get_activity),
) -> dict[str, Any]:
    try:
        member = project_service.add_member(store, activity, project_id, user, body.email)
    except NexusError as e:
        raise_http(e)
    return {"uid": member.id, "name": member.get("name"), "email": member.get("email")}


@router.get("/{project_id}/history")
def project_history(
    project_id: str,
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
    activity: ActivityLogger = Depends(get_activity),
    limit: int = Query(100, ge=1, le=500),
) -> dict[str, Any]:
    """Activity log, newest first."""
    try:
        project_service.require_access(store, project_id, user.uid)
    except NexusError as e:
        raise_http(e)
    entries = []
    for h in activity.recent(project_id, limit=limit):
        created = h.get("createdAt")
        entries.append(
            {
                "id": h.id,
                "action": h.get("action"),
                "details": h.get("details"),
                "performed_by": h.get("performedBy"),
                "performed_by_name": h.get("performedByName"),
                "created_at": created.isoformat() if isinstance(created, datetime) else None,
            }
        )
    return {"history": entries}


@router.get("/{project_id}/analytics")
def analytics(
    project_id: str,
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    try:
        project = project_service.require_access(store, project_id, user.uid)
    except NexusError as e:
        raise_http(e)
    return project_analytics(store.get_once(tasks_query(project_id)), project)
