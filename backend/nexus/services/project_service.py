"""
Projects: create, membership, access checks, listing, and atomic deletion.

A project is projects/{pid} with ownerId, members (uids), and memberDetails
({uid, name, email} snapshots). The owner is not listed in members.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from nexus.auth.provider import Identity
from nexus.core.constants import (
    NOTIFICATIONS,
    NOTIFY_PROJECT_DELETED,
    NOTIFY_PROJECT_INVITE,
    PROJECTS,
    SUGGESTION_LIMIT,
    SUGGESTION_MIN_CHARS,
    TASKS,
    USERS,
)
from nexus.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from nexus.services.notification_service import notification_fields, notify_quietly
from nexus.store.documents import DocumentStore, new_id
from nexus.store.query import Query
from nexus.store.types import ArrayUnion, Record
from nexus.sync.activity import ActivityLogger

logger = logging.getLogger(__name__)


def project_path(project_id: str) -> str:
    return f"{PROJECTS}/{project_id}"


def project_query(project_id: str) -> Query:
    """Single-document live query for one project."""
    return Query.document(PROJECTS, project_id)


def owned_projects_query(user_id: str) -> Query:
    return Query.collection(PROJECTS).where("ownerId", "==", user_id)


def member_projects_query(user_id: str) -> Query:
    return Query.collection(PROJECTS).where("members", "array-contains", user_id)


def merge_projects(owned: Iterable[Record], member: Iterable[Record]) -> list[Record]:
    """Owned then member projects, first occurrence of each id wins."""
    seen: set[str] = set()
    out = []
    for p in [*owned, *member]:
        if p.id in seen:
            continue
        seen.add(p.id)
        out.append(p)
    return out


def list_projects(store: DocumentStore, user_id: str) -> list[Record]:
    return merge_projects(
        store.get_once(owned_projects_query(user_id)),
        store.get_once(member_projects_query(user_id)),
    )


def is_owner(project: Record, user_id: str) -> bool:
    return project.get("ownerId") == user_id


def can_access(project: Record, user_id: str) -> bool:
    return is_owner(project, user_id) or user_id in (project.get("members") or [])


def get_project(store: DocumentStore, project_id: str) -> Record:
    project = store.get(project_path(project_id))
    if project is None:
        raise NotFoundError("Project not found.")
    return project


def require_access(store: DocumentStore, project_id: str, user_id: str) -> Record:
    """Load the project; raise unless user_id is its owner or a member."""
    project = get_project(store, project_id)
    if not can_access(project, user_id):
        raise PermissionDeniedError("You do not have access to this project.")
    return project


def require_owner(store: DocumentStore, project_id: str, user_id: str) -> Record:
    project = get_project(store, project_id)
    if not is_owner(project, user_id):
        raise PermissionDeniedError("Only the project owner can do this.")
    return project


def member_name(project: Record, user_id: str) -> str:
    """Display name for a project participant (owner, member, or 'Unknown')."""
    if user_id == project.get("ownerId"):
        return project.get("ownerName") or "Owner"
    for m in project.get("memberDetails") or []:
        if m.get("uid") == user_id:
            return m.get("name") or m.get("email") or "Unknown"
    return "Unknown"


# --- User lookup ---


def find_user_by_email(store: DocumentStore, email: str) -> Record | None:
    rows = store.get_once(Query.collection(USERS).where("email", "==", (email or "").strip()).limit(1))
    return rows[0] if rows else None


def suggest_members(
    store: DocumentStore,
    prefix: str,
    viewer_email: str,
    selected_emails: Iterable[str] = (),
) -> list[Record]:
    """Registered users whose email starts with prefix, minus the viewer and already-selected emails."""
    prefix = (prefix or "").strip()
    if len(prefix) < SUGGESTION_MIN_CHARS:
        return []
    excluded = {viewer_email, *selected_emails}
    rows = store.get_once(
        Query.collection(USERS).starts_with("email", prefix).order_by("email").limit(SUGGESTION_LIMIT)
    )
    return [u for u in rows if u.get("email") not in excluded]


def _member_detail(user: Record) -> dict[str, Any]:
    return {"uid": user.id, "name": user.get("name"), "email": user.get("email")}


# --- Mutations ---


def create_project(
    store: DocumentStore,
    owner: Identity,
    name: str,
    description: str = "",
    members: Iterable[Record] = (),
) -> Record:
    """Create a project owned by `owner` with pre-selected member user records."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Project name is required.")
    members = [m for m in members if m.id != owner.uid]
    project = store.add(
        PROJECTS,
        {
            "name": name,
            "description": (description or "").strip(),
            "ownerId": owner.uid,
            "ownerName": owner.label,
            "members": [m.id for m in members],
            "memberDetails": [_member_detail(m) for m in members],
            "createdAt": datetime.now(timezone.utc),
            "status": "active",
        },
    )
    logger.info("Project %s created by %s", project.id, owner.uid)
    return project


def add_member(
    store: DocumentStore,
    activity: ActivityLogger,
    project_id: str,
    actor: Identity,
    email: str,
) -> Record:
    """
    Add a registered user (by exact email) to the project. Returns the user record.
    Owner only. Raises NotFoundError for an unknown email, ValidationError if already in.
    """
    project = require_owner(store, project_id, actor.uid)
    email = (email or "").strip()
    if not email:
        raise ValidationError("Enter an email address.")
    user = find_user_by_email(store, email)
    if user is None:
        raise NotFoundError("User not found. They must be registered with this email.")
    if user.id in (project.get("members") or []) or is_owner(project, user.id):
        raise ValidationError("User is already a member of this project.")
    store.update(
        project_path(project_id),
        {
            "members": ArrayUnion(user.id),
            "memberDetails": ArrayUnion(_member_detail(user)),
        },
    )
    activity.record(
        project_id,
        "Added Member",
        f"Member {user.get('name') or user.get('email')} was added to the project.",
        actor,
    )
    notify_quietly(
        store,
        user.id,
        NOTIFY_PROJECT_INVITE,
        f'You were added to project "{project.get("name")}" by {actor.label}',
        project,
    )
    return user


def delete_project(store: DocumentStore, project_id: str, actor: Identity) -> int:
    """
    Delete the project and all of its tasks, and notify every other member, in one atomic
    batch: either all of it happens or none of it does. Owner only. Returns tasks deleted.
    """
    project = require_owner(store, project_id, actor.uid)
    tasks = store.get_once(Query.collection(PROJECTS, project_id, TASKS))
    batch = store.batch()
    for task in tasks:
        batch.delete(task.path)
    now = datetime.now(timezone.utc)
    for member_id in project.get("members") or []:
        if member_id == actor.uid:
            continue
        batch.set(
            f"{USERS}/{member_id}/{NOTIFICATIONS}/{new_id()}",
            notification_fields(
                NOTIFY_PROJECT_DELETED,
                f'Project "{project.get("name")}" has been deleted by Admin.',
                created_at=now,
            ),
        )
    batch.delete(project.path)
    batch.commit()
    logger.info("Project %s and %s tasks deleted by %s", project_id, len(tasks), actor.uid)
    return len(tasks)


def serialize_project(p: Record) -> dict[str, Any]:
    created = p.get("createdAt")
    return {
        "id": p.id,
        "name": p.get("name"),
        "description": p.get("description") or "",
        "owner_id": p.get("ownerId"),
        "owner_name": p.get("ownerName"),
        "members": list(p.get("members") or []),
        "member_details": list(p.get("memberDetails") or []),
        "status": p.get("status"),
        "created_at": created.isoformat() if isinstance(created, datetime) else created,
    }
