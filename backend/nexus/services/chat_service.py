"""
Project team chat: projects/{pid}/messages, stamped with the server time on commit.
"""
from datetime import datetime
from typing import Any

from nexus.auth.provider import Identity
from nexus.core.constants import MESSAGES, PROJECTS
from nexus.store.documents import DocumentStore
from nexus.store.query import Query
from nexus.store.types import SERVER_TIMESTAMP, Record


def messages_query(project_id: str) -> Query:
    """Transcript, oldest first."""
    return Query.collection(PROJECTS, project_id, MESSAGES).order_by("createdAt")


def send_message(store: DocumentStore, project_id: str, sender: Identity, text: str) -> Record | None:
    """Post a message. Blank text is ignored (returns None)."""
    text = (text or "").strip()
    if not text:
        return None
    return store.add(
        f"{PROJECTS}/{project_id}/{MESSAGES}",
        {
            "text": text,
            "senderId": sender.uid,
            "senderName": sender.label,
            "createdAt": SERVER_TIMESTAMP,
        },
    )


def serialize_message(m: Record, viewer_id: str | None = None) -> dict[str, Any]:
    created = m.get("createdAt")
    return {
        "id": m.id,
        "text": m.get("text"),
        "sender_id": m.get("senderId"),
        "sender_name": m.get("senderName"),
        "is_me": viewer_id is not None and m.get("senderId") == viewer_id,
        "created_at": created.isoformat() if isinstance(created, datetime) else None,
    }
