"""
User lookup API: member suggestions for the project forms.
"""
from typing import Any

from fastapi import APIRouter, Depends, Query

from nexus.api.deps import current_user, get_store
from nexus.auth.provider import Identity
from nexus.services.project_service import suggest_members
from nexus.store.documents import DocumentStore

router = APIRouter()


@router.get("/suggestions")
def suggestions(
    q: str = Query("", description="Email prefix; at least 3 characters"),
    exclude: list[str] | None = Query(None, description="Emails already selected"),
    user: Identity = Depends(current_user),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    rows = suggest_members(store, q, user.email, exclude or ())
    return {"users": [{"uid": u.id, "name": u.get("name"), "email": u.get("email")} for u in rows]}
