"""
Per-project task table: projects/{pid}/tasks.

Every mutation appends a history entry and notifies the assignee (unless the assignee is
the actor). Log and notification failures never fail the task write itself.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from nexus.auth.provider import Identity
from nexus.core.constants import (
    MEMBER_EDITABLE_TASK_FIELDS,
    NOTIFY_ASSIGNMENT,
    NOTIFY_TASK_DELETED,
    NOTIFY_TASK_UPDATE,
    PENDING_STATUS,
    PROJECTS,
    STATUS_PERCENT_DONE,
    TASK_PRIORITIES,
    TASK_STATUSES,
    TASKS,
    USERS,
)
from nexus.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from nexus.services.notification_service import notify_quietly
from nexus.services.project_service import is_owner, require_access, require_owner
from nexus.services.uploads import FileUploadClient, UploadFile
from nexus.store.documents import DocumentStore
from nexus.store.query import Query
from nexus.store.types import Record
from nexus.sync.activity import ActivityLogger

logger = logging.getLogger(__name__)

TASK_DEFAULTS: dict[str, Any] = {
    "taskId": "",
    "module": "",
    "page": "",
    "description": "",
    "assignedTo": "",
    "priority": "Medium",
    "startDate": "",
    "dueDate": "",
    "status": PENDING_STATUS,
    "percentDone": 0,
    "comments": "",
    "attachments": [],
}


def tasks_path(project_id: str) -> str:
    return f"{PROJECTS}/{project_id}/{TASKS}"


def tasks_query(project_id: str) -> Query:
    """Project task table ordered by taskId."""
    return Query.collection(PROJECTS, project_id, TASKS).order_by("taskId")


def pending_tasks_query(user_id: str) -> Query:
    """Pending tasks assigned to user_id across every project (collection group)."""
    return (
        Query.collection_group(TASKS)
        .where("assignedTo", "==", user_id)
        .where("status", "==", PENDING_STATUS)
    )


def _validate(fields: dict[str, Any]) -> None:
    if "status" in fields and fields["status"] not in TASK_STATUSES:
        raise ValidationError(f"Unknown status: {fields['status']}. Available: {list(TASK_STATUSES)}")
    if "priority" in fields and fields["priority"] not in TASK_PRIORITIES:
        raise ValidationError(f"Unknown priority: {fields['priority']}. Available: {list(TASK_PRIORITIES)}")
    if "percentDone" in fields:
        try:
            pct = int(fields["percentDone"])
        except (TypeError, ValueError):
            raise ValidationError("percentDone must be a number from 0 to 100.")
        if not 0 <= pct <= 100:
            raise ValidationError("percentDone must be a number from 0 to 100.")
        fields["percentDone"] = pct


def _get_task(store: DocumentStore, project_id: str, task_doc_id: str) -> Record:
    task = store.get(f"{tasks_path(project_id)}/{task_doc_id}")
    if task is None:
        raise NotFoundError("Task not found.")
    return task


def add_task(
    store: DocumentStore,
    activity: ActivityLogger,
    project_id: str,
    actor: Identity,
    fields: dict[str, Any],
    files: Iterable[UploadFile] = (),
    uploader: FileUploadClient | None = None,
) -> Record:
    """
    Create a task (owner only). Files are uploaded first; a file that fails to upload is
    skipped and the task is still created with the rest.
    """
    project = require_owner(store, project_id, actor.uid)
    data = {**TASK_DEFAULTS, **{k: v for k, v in fields.items() if k in TASK_DEFAULTS}}
    data["taskId"] = str(data["taskId"] or "").strip()
    if not data["taskId"]:
        raise ValidationError("Task ID is required.")
    _validate(data)
    files = list(files)
    attachments = (uploader or FileUploadClient()).upload_all(files) if files else []
    if files and len(attachments) < len(files):
        logger.warning("Task %s: %s of %s attachments uploaded", data["taskId"], len(attachments), len(files))
    data["attachments"] = attachments
    # Older readers use `page` as the single file link
    data["page"] = attachments[0]["url"] if attachments else ""
    data["createdAt"] = datetime.now(timezone.utc)
    task = store.add(tasks_path(project_id), data)
    activity.record(project_id, "Created Task", f"Task {data['taskId']} was created by {actor.label}", actor)

    assignee = data["assignedTo"]
    if assignee and assignee != actor.uid and store.get(f"{USERS}/{assignee}") is not None:
        notify_quietly(
            store,
            assignee,
            NOTIFY_ASSIGNMENT,
            f"You were assigned task {data['taskId']} in {project.get('name')}",
            project,
        )
    return task


def update_task_field(
    store: DocumentStore,
    activity: ActivityLogger,
    project_id: str,
    actor: Identity,
    task_doc_id: str,
    field: str,
    value: Any,
) -> Record:
    """
    Change one task field. Members may edit status, percentDone, and comments; the owner
    may edit anything. Setting status to Completed/Pending also sets percentDone to 100/0.
    """
    project = require_access(store, project_id, actor.uid)
    if field not in TASK_DEFAULTS or field == "attachments":
        raise ValidationError(f"Field {field} cannot be edited.")
    if field not in MEMBER_EDITABLE_TASK_FIELDS and not is_owner(project, actor.uid):
        raise PermissionDeniedError("Only the project owner can edit this field.")
    task = _get_task(store, project_id, task_doc_id)
    changes = {field: value}
    _validate(changes)
    if field == "status" and value in STATUS_PERCENT_DONE:
        changes["percentDone"] = STATUS_PERCENT_DONE[value]
    store.update(task.path, changes)

    display_id = task.get("taskId") or "Unknown Task"
    for name, new_value in changes.items():
        activity.record(project_id, "Updated Task", f"Task {display_id}: {name} changed to {new_value}", actor)
    assignee = task.get("assignedTo")
    if assignee and assignee != actor.uid:
        notify_quietly(
            store,
            assignee,
            NOTIFY_TASK_UPDATE,
            f"Task {display_id} updated: {field} changed to {changes[field]}",
            project,
        )
    return _get_task(store, project_id, task_doc_id)


def delete_task(
    store: DocumentStore,
    activity: ActivityLogger,
    project_id: str,
    actor: Identity,
    task_doc_id: str,
) -> None:
    project = require_owner(store, project_id, actor.uid)
    task = _get_task(store, project_id, task_doc_id)
    store.delete(task.path)
    display_id = task.get("taskId") or "Unknown"
    activity.record(project_id, "Deleted Task", f"Task {display_id} was deleted.", actor)
    assignee = task.get("assignedTo")
    if assignee and assignee != actor.uid:
        notify_quietly(
            store,
            assignee,
            NOTIFY_TASK_DELETED,
            f"Task {display_id} was deleted from {project.get('name')}",
            project,
        )


def serialize_task(t: Record) -> dict[str, Any]:
    created = t.get("createdAt")
    return {
        "id": t.id,
        "project_id": t.parent_id,
        **{k: t.get(k, default) for k, default in TASK_DEFAULTS.items()},
        "created_at": created.isoformat() if isinstance(created, datetime) else created,
    }
