"""
Project chat API: transcript, send, and an SSE stream of live transcript snapshots.

Each stream event is the whole ordered transcript (data: {"messages": [...], "pending": bool}).
A message written moments ago may appear first with created_at null and pending true.
"""
import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from nexus.api.deps import current_user, get_store, raise_http
from nexus.auth.provider import Identity
from nexus.core.errors import NexusError
from nexus.services import chat_service, project_service
from nexus.store.documents import DocumentStore
from nexus.store.types import Snapshot

router = APIRouter()
logger = logging.getLogger(__name__)


class SendMessageRequest(BaseModel):
    text: str


def _sse_line(obj: dict) -> bytes:
    """Single SSE event line as bytes so proxies/clients stream immediately."""
    return (f"data: {json.dumps(obj)}\n\n").encode("utf-8")


def _snapshot_event(snapshot: Snapshot, viewer_id: str) -> dict[str, Any]:
    return {
        "messages": [chat_service.serialize_message(m, viewer_id) for m in snapshot],
        "pending": snapshot.has_pending_writes,
    }


async def _stream_messages_sse(store: DocumentStore, project_id: str, viewer_id: str):
    """Bridge a live query into SSE. The subscription is cancelled when the client goes away."""
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def on_snapshot(snapshot: Snapshot) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, ("snapshot", snapshot))

    def on_error(exc: Exception) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, ("error", exc))

    sub = store.subscribe(chat_service.messages_query(project_id), on_snapshot, on_error=on_error)
    try:
        while True:
            kind, payload = await queue.get()
            if kind == "error":
                yield _sse_line({"error": str(payload)})
                return
            yield _sse_line(_snapshot_event(payload, viewer_id))
    finally:
        sub.cancel()
        logger.debug("Chat stream for project %s closed", project_id)


@router.get("/{project_id}/messages")
def list_messages(
    project_id: str,
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    try:
        project_service.require_access(store, project_id, user.uid)
    except NexusError as e:
        raise_http(e)
    rows = store.get_once(chat_service.messages_query(project_id))
    return {"messages": [chat_service.serialize_message(m, user.uid) for m in rows]}


@router.post("/{project_id}/messages", status_code=201)
def send_message(
    project_id: str,
    body: SendMessageRequest,
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    """Post a message. Blank text is accepted and ignored (message is null)."""
    try:
        project_service.require_access(store, project_id, user.uid)
    except NexusError as e:
        raise_http(e)
    message = chat_service.send_message(store, project_id, user, body.text)
    return {"message": chat_service.serialize_message(message, user.uid) if message else None}


@router.get("/{project_id}/messages/stream")
async def stream_messages(
    project_id: str,
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
):
    try:
        project_service.require_access(store, project_id, user.uid)
    except NexusError as e:
        raise_http(e)
    return StreamingResponse(
        _stream_messages_sse(store, project_id, user.uid),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
