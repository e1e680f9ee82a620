"""
User notifications: users/{uid}/notifications.

Created by mutations elsewhere (task assignment, task update/deletion, membership, project
deletion). Only the `read` flag is ever changed; the owner may delete entries.
"""
import logging
from datetime import datetime, timezone
from typing import Any

from nexus.core.constants import NOTIFICATIONS, USERS
from nexus.core.errors import NotFoundError
from nexus.store.documents import DocumentStore
from nexus.store.query import Query
from nexus.store.types import Record

logger = logging.getLogger(__name__)


def notifications_path(user_id: str) -> str:
    return f"{USERS}/{user_id}/{NOTIFICATIONS}"


def notifications_query(user_id: str) -> Query:
    """Inbox, newest first."""
    return Query.collection(USERS, user_id, NOTIFICATIONS).order_by("createdAt", descending=True)


def notification_fields(
    type_: str,
    message: str,
    project: Record | None = None,
    created_at: datetime | None = None,
) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "type": type_,
        "message": message,
        "read": False,
        "createdAt": created_at or datetime.now(timezone.utc),
    }
    if project is not None:
        fields["projectId"] = project.id
        fields["projectName"] = project.get("name")
    return fields


def notify(
    store: DocumentStore,
    user_id: str,
    type_: str,
    message: str,
    project: Record | None = None,
    created_at: datetime | None = None,
) -> Record:
    """Create one unread notification for user_id."""
    return store.add(notifications_path(user_id), notification_fields(type_, message, project, created_at))


def notify_quietly(
    store: DocumentStore,
    user_id: str,
    type_: str,
    message: str,
    project: Record | None = None,
) -> Record | None:
    """notify(), but a failure is logged instead of failing the caller's mutation."""
    try:
        return notify(store, user_id, type_, message, project)
    except Exception as e:
        logger.warning("Failed to notify %s (%s): %s", user_id, type_, e)
        return None


def mark_read(store: DocumentStore, user_id: str, notification_id: str) -> None:
    """Mark one notification read. Raises NotFoundError if it does not exist."""
    store.update(f"{notifications_path(user_id)}/{notification_id}", {"read": True})


def mark_all_read(store: DocumentStore, user_id: str) -> int:
    """Mark every unread notification read, one write each. A failed write is logged; the rest continue."""
    unread = store.get_once(Query.collection(USERS, user_id, NOTIFICATIONS).where("read", "==", False))
    marked = 0
    for n in unread:
        try:
            store.update(n.path, {"read": True})
            marked += 1
        except Exception as e:
            logger.warning("Failed to mark notification %s read: %s", n.id, e)
    return marked


def delete_notification(store: DocumentStore, user_id: str, notification_id: str) -> None:
    path = f"{notifications_path(user_id)}/{notification_id}"
    if store.get(path) is None:
        raise NotFoundError("Notification not found.")
    store.delete(path)


def serialize_notification(n: Record) -> dict[str, Any]:
    created = n.get("createdAt")
    return {
        "id": n.id,
        "type": n.get("type"),
        "message": n.get("message"),
        "read": bool(n.get("read")),
        "created_at": created.isoformat() if isinstance(created, datetime) else created,
        "project_id": n.get("projectId"),
        "project_name": n.get("projectName"),
    }


def list_notifications(
    store: DocumentStore,
    user_id: str,
    limit: int = 80,
    unread_only: bool = False,
) -> dict[str, Any]:
    """Inbox for display plus the count of entries not yet flagged read."""
    rows = store.get_once(notifications_query(user_id))
    unread_count = sum(1 for n in rows if not n.get("read"))
    if unread_only:
        rows = [n for n in rows if not n.get("read")]
    return {
        "notifications": [serialize_notification(n) for n in rows[:limit]],
        "unread_count": unread_count,
    }
