"""
User notifications API: list (with unread filter), mark one read, mark all read, delete.

Recipient is always the caller (X-User-Id).
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends, Query

from nexus.api.deps import current_user, get_store, raise_http
from nexus.auth.provider import Identity
from nexus.core.errors import NexusError
from nexus.services import notification_service
from nexus.store.documents import DocumentStore

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("")
def list_notifications(
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
    limit: int = Query(80, ge=1, le=200),
    unread_only: bool = Query(False),
) -> dict[str, Any]:
    """
    List notifications for the caller, newest first.
    Use unread_only=true to only return unread (e.g. for badge count or filtered view).
    """
    return notification_service.list_notifications(store, user.uid, limit=limit, unread_only=unread_only)


@router.post("/read-all")
def mark_all_read(
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    marked = notification_service.mark_all_read(store, user.uid)
    return {"ok": True, "marked": marked}


@router.post("/{notification_id}/read")
def mark_read(
    notification_id: str,
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, bool]:
    try:
        notification_service.mark_read(store, user.uid, notification_id)
    except NexusError as e:
        raise_http(e)
    return {"ok": True}


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: str,
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, bool]:
    try:
        notification_service.delete_notification(store, user.uid, notification_id)
    except NexusError as e:
        raise_http(e)
    return {"ok": True}
