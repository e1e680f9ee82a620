"""
Accounts: auth provider calls plus the users/{uid} profile document other screens read
(member lookup, suggestions, presence).
"""
import logging
from datetime import datetime, timezone

from nexus.auth.provider import AuthProvider, Identity
from nexus.core.constants import USERS
from nexus.store.documents import DocumentStore
from nexus.store.types import Record

logger = logging.getLogger(__name__)


def user_path(user_id: str) -> str:
    return f"{USERS}/{user_id}"


def get_profile(store: DocumentStore, user_id: str) -> Record | None:
    return store.get(user_path(user_id))


def identity_from_profile(profile: Record) -> Identity:
    return Identity(
        uid=profile.id,
        email=profile.get("email") or "",
        display_name=profile.get("name"),
        photo_url=profile.get("photoURL"),
    )


def register(
    auth: AuthProvider,
    store: DocumentStore,
    name: str,
    email: str,
    password: str,
    phone: str = "",
) -> Identity:
    """Create the auth account and the users/{uid} profile."""
    identity = auth.sign_up(email, password, display_name=name)
    # Merge: the presence heartbeat may already have written isOnline/lastSeen
    store.set(
        user_path(identity.uid),
        {
            "uid": identity.uid,
            "name": (name or "").strip(),
            "email": identity.email,
            "phone": (phone or "").strip(),
            "createdAt": datetime.now(timezone.utc),
        },
        merge=True,
    )
    return identity


def sign_in_federated(auth: AuthProvider, store: DocumentStore, id_token: str) -> Identity:
    """Federated sign-in; creates the profile on first login only."""
    identity = auth.sign_in_with_federated_provider(id_token)
    profile = get_profile(store, identity.uid)
    if profile is None or not profile.get("email"):
        store.set(
            user_path(identity.uid),
            {
                "uid": identity.uid,
                "name": identity.display_name,
                "email": identity.email,
                "phone": "",
                "photoURL": identity.photo_url,
                "createdAt": datetime.now(timezone.utc),
            },
            merge=True,
        )
    return identity


def delete_account(auth: AuthProvider, store: DocumentStore) -> None:
    """
    Delete the signed-in account, then its profile. RequiresRecentLogin propagates before
    anything is removed, so a stale session leaves account and profile intact.
    """
    current = auth.current_user
    uid = current.uid if current else None
    auth.delete_current_user()
    if uid:
        store.delete(user_path(uid))
        logger.info("Profile %s deleted", uid)
