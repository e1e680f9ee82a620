"""
Account API: sign-up, sign-in (password or federated token), password reset, account deletion.

Responses carry the uid; later calls identify the caller with the X-User-Id header.
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from nexus.api.deps import current_user, get_auth, get_store, raise_http
from nexus.auth.local import LocalAuthProvider
from nexus.auth.provider import Identity
from nexus.core.errors import NexusError
from nexus.services import account_service
from nexus.store.documents import DocumentStore

router = APIRouter()
logger = logging.getLogger(__name__)


class SignUpRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str
    password: str
    phone: str = ""


class SignInRequest(BaseModel):
    email: str
    password: str


class FederatedSignInRequest(BaseModel):
    id_token: str


class PasswordResetRequest(BaseModel):
    email: str


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str


def _identity_out(identity: Identity) -> dict[str, Any]:
    return {
        "uid": identity.uid,
        "email": identity.email,
        "display_name": identity.display_name,
        "photo_url": identity.photo_url,
    }


@router.post("/sign-up", status_code=201)
def sign_up(
    body: SignUpRequest,
    auth: LocalAuthProvider = Depends(get_auth),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    try:
        identity = account_service.register(auth, store, body.name, body.email, body.password, body.phone)
    except NexusError as e:
        raise_http(e)
    return _identity_out(identity)


@router.post("/sign-in")
def sign_in(body: SignInRequest, auth: LocalAuthProvider = Depends(get_auth)) -> dict[str, Any]:
    try:
        identity = auth.sign_in(body.email, body.password)
    except NexusError as e:
        raise_http(e)
    return _identity_out(identity)


@router.post("/federated")
def sign_in_federated(
    body: FederatedSignInRequest,
    auth: LocalAuthProvider = Depends(get_auth),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    try:
        identity = account_service.sign_in_federated(auth, store, body.id_token)
    except NexusError as e:
        raise_http(e)
    return _identity_out(identity)


@router.post("/password-reset")
def request_password_reset(body: PasswordResetRequest, auth: LocalAuthProvider = Depends(get_auth)) -> dict[str, bool]:
    try:
        auth.send_password_reset(body.email)
    except NexusError as e:
        raise_http(e)
    return {"ok": True}


@router.post("/password-reset/confirm")
def confirm_password_reset(body: PasswordResetConfirm, auth: LocalAuthProvider = Depends(get_auth)) -> dict[str, bool]:
    try:
        auth.confirm_password_reset(body.token, body.new_password)
    except NexusError as e:
        raise_http(e)
    return {"ok": True}


@router.delete("/account")
def delete_account(
    user: Identity = Depends(current_user),
    auth: LocalAuthProvider = Depends(get_auth),
    store: DocumentStore = Depends(get_store),
) -> dict[str, bool]:
    """Delete the caller's account and profile. 401 with a sign-in-again message when the session is stale."""
    try:
        auth.resume(user.uid)
        account_service.delete_account(auth, store)
    except NexusError as e:
        raise_http(e)
    return {"ok": True}
