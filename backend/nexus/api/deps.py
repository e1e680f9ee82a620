"""
Shared route dependencies: the process-wide document store, a per-request auth provider,
and the calling user resolved from the X-User-Id header.
"""
from functools import lru_cache
from typing import NoReturn

from fastapi import Depends, Header, HTTPException

from nexus.auth.local import LocalAuthProvider
from nexus.auth.provider import Identity
from nexus.core.errors import STATUS_UNAUTHORIZED, error_to_http
from nexus.services.account_service import get_profile, identity_from_profile
from nexus.store.documents import DocumentStore
from nexus.sync.activity import ActivityLogger


@lru_cache
def get_store() -> DocumentStore:
    """One store per process so live streams see every write."""
    return DocumentStore()


def get_auth() -> LocalAuthProvider:
    return LocalAuthProvider()


def get_activity(store: DocumentStore = Depends(get_store)) -> ActivityLogger:
    return ActivityLogger(store)


def current_user(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
    store: DocumentStore = Depends(get_store),
) -> Identity:
    uid = (x_user_id or "").strip()
    if not uid:
        raise HTTPException(status_code=STATUS_UNAUTHORIZED, detail="Sign in required.")
    profile = get_profile(store, uid)
    if profile is None:
        raise HTTPException(status_code=STATUS_UNAUTHORIZED, detail="Unknown user.")
    return identity_from_profile(profile)


def raise_http(exc: Exception) -> NoReturn:
    raise error_to_http(exc) from exc
