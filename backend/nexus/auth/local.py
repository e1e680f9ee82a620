"""
Local auth provider: accounts in the `accounts` table.

Email/password accounts store PBKDF2 hashes. Federated sign-in accepts an HS256 ID token
(signed with AUTH_TOKEN_SECRET, audience FEDERATED_AUDIENCE) and creates the account on
first use. Password-reset tokens are short-lived JWTs mailed to the account address.

One provider instance tracks one signed-in user (the local device's session).
"""
import hashlib
import hmac
import logging
import re
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt
from sqlalchemy.orm import Session

from nexus.auth.provider import AuthStateCallback, Identity
from nexus.config import settings
from nexus.core.errors import AuthError, RequiresRecentLogin
from nexus.db.session import SessionLocal
from nexus.models.account import Account
from nexus.services.email_notify import send_password_reset_email
from nexus.store.types import ensure_utc

logger = logging.getLogger(__name__)

PASSWORD_MIN_LENGTH = 6
RESET_TOKEN_TTL_SECONDS = 60 * 60
RESET_TOKEN_PURPOSE = "password_reset"
_HASH_ALGORITHM = "pbkdf2_sha256"
_HASH_ITERATIONS = 200_000
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def hash_password(password: str, salt: str | None = None) -> str:
    """Return 'pbkdf2_sha256$iterations$salt$hexdigest'."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), _HASH_ITERATIONS)
    return f"{_HASH_ALGORITHM}${_HASH_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str | None) -> bool:
    if not stored:
        return False
    try:
        algorithm, iterations, salt, expected = stored.split("$", 3)
    except ValueError:
        return False
    if algorithm != _HASH_ALGORITHM:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _identity(account: Account) -> Identity:
    return Identity(
        uid=account.uid,
        email=account.email,
        display_name=account.display_name,
        photo_url=account.photo_url,
    )


class LocalAuthProvider:
    """AuthProvider over SQLAlchemy accounts."""

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        clock: Callable[[], datetime] | None = None,
        mailer: Callable[[str, str], bool] | None = None,
        recent_login_seconds: int | None = None,
    ):
        self._session_factory = session_factory or SessionLocal
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._mailer = mailer or send_password_reset_email
        self.recent_login_seconds = recent_login_seconds or settings.recent_login_seconds
        self._current: Identity | None = None
        self._callbacks: list[AuthStateCallback] = []

    @property
    def current_user(self) -> Identity | None:
        return self._current

    # --- Sign-up / sign-in ---

    def sign_up(self, email: str, password: str, display_name: str | None = None) -> Identity:
        email = _normalize_email(email)
        if not _EMAIL_RE.match(email):
            raise AuthError("invalid-email", "Enter a valid email address.")
        if len(password or "") < PASSWORD_MIN_LENGTH:
            raise AuthError("weak-password", f"Password should be at least {PASSWORD_MIN_LENGTH} characters.")
        db = self._session_factory()
        try:
            if db.query(Account).filter(Account.email == email).first():
                raise AuthError("email-already-in-use", "An account with this email already exists.")
            account = Account(
                uid=uuid.uuid4().hex[:28],
                email=email,
                password_hash=hash_password(password),
                display_name=(display_name or "").strip() or None,
                provider="password",
                last_sign_in_at=self._clock(),
            )
            db.add(account)
            db.commit()
            identity = _identity(account)
        finally:
            db.close()
        logger.info("Account created: %s", identity.uid)
        self._set_current(identity)
        return identity

    def sign_in(self, email: str, password: str) -> Identity:
        db = self._session_factory()
        try:
            account = db.query(Account).filter(Account.email == _normalize_email(email)).first()
            if account is None or not verify_password(password or "", account.password_hash):
                raise AuthError("invalid-credential", "Invalid email or password.")
            account.last_sign_in_at = self._clock()
            db.commit()
            identity = _identity(account)
        finally:
            db.close()
        self._set_current(identity)
        return identity

    def sign_in_with_federated_provider(self, id_token: str) -> Identity:
        """Verify a federated ID token (claims: sub, email, name?, picture?) and sign in."""
        try:
            claims = jwt.decode(
                id_token,
                settings.auth_token_secret,
                algorithms=["HS256"],
                audience=settings.federated_audience,
            )
        except jwt.PyJWTError as e:
            raise AuthError("invalid-token", f"Federated sign-in failed: {e}") from e
        email = _normalize_email(claims.get("email") or "")
        if not _EMAIL_RE.match(email):
            raise AuthError("invalid-token", "Federated token has no usable email.")
        db = self._session_factory()
        try:
            account = db.query(Account).filter(Account.email == email).first()
            if account is None:
                account = Account(
                    uid=uuid.uuid4().hex[:28],
                    email=email,
                    password_hash=None,
                    display_name=claims.get("name"),
                    photo_url=claims.get("picture"),
                    provider="federated",
                )
                db.add(account)
            account.last_sign_in_at = self._clock()
            db.commit()
            identity = _identity(account)
        finally:
            db.close()
        self._set_current(identity)
        return identity

    def resume(self, uid: str) -> Identity:
        """Restore a persisted session for uid. Does not count as a fresh sign-in."""
        db = self._session_factory()
        try:
            account = db.query(Account).filter(Account.uid == uid).first()
            if account is None:
                raise AuthError("user-not-found", "Account no longer exists.")
            identity = _identity(account)
        finally:
            db.close()
        self._set_current(identity)
        return identity

    def sign_out(self) -> None:
        self._set_current(None)

    # --- Sensitive operations ---

    def delete_current_user(self) -> None:
        current = self._current
        if current is None:
            raise AuthError("no-current-user", "No user is signed in.")
        db = self._session_factory()
        try:
            account = db.query(Account).filter(Account.uid == current.uid).first()
            if account is None:
                raise AuthError("user-not-found", "Account no longer exists.")
            last = ensure_utc(account.last_sign_in_at) if account.last_sign_in_at else None
            if last is None or self._clock() - last > timedelta(seconds=self.recent_login_seconds):
                raise RequiresRecentLogin()
            db.delete(account)
            db.commit()
        finally:
            db.close()
        logger.info("Account deleted: %s", current.uid)
        self._set_current(None)

    def send_password_reset(self, email: str) -> None:
        email = _normalize_email(email)
        db = self._session_factory()
        try:
            account = db.query(Account).filter(Account.email == email).first()
            if account is None:
                raise AuthError("user-not-found", "No account for this email.")
            uid = account.uid
        finally:
            db.close()
        token = jwt.encode(
            {
                "sub": uid,
                "purpose": RESET_TOKEN_PURPOSE,
                "exp": self._clock() + timedelta(seconds=RESET_TOKEN_TTL_SECONDS),
            },
            settings.auth_token_secret,
            algorithm="HS256",
        )
        link = f"{settings.password_reset_url}?token={token}"
        if not self._mailer(email, link):
            logger.warning("Password reset email for %s was not sent", email)

    def confirm_password_reset(self, token: str, new_password: str) -> None:
        """Set a new password from a reset token."""
        try:
            # Expiry is checked against the provider clock below
            claims = jwt.decode(
                token,
                settings.auth_token_secret,
                algorithms=["HS256"],
                options={"verify_exp": False, "require": ["exp", "sub"]},
            )
        except jwt.PyJWTError as e:
            raise AuthError("invalid-token", f"Reset link is invalid or expired: {e}") from e
        if claims["exp"] < self._clock().timestamp():
            raise AuthError("invalid-token", "Reset link is invalid or expired.")
        if claims.get("purpose") != RESET_TOKEN_PURPOSE:
            raise AuthError("invalid-token", "Not a password reset token.")
        if len(new_password or "") < PASSWORD_MIN_LENGTH:
            raise AuthError("weak-password", f"Password should be at least {PASSWORD_MIN_LENGTH} characters.")
        db = self._session_factory()
        try:
            account = db.query(Account).filter(Account.uid == claims.get("sub")).first()
            if account is None:
                raise AuthError("user-not-found", "Account no longer exists.")
            account.password_hash = hash_password(new_password)
            db.commit()
        finally:
            db.close()

    # --- State callbacks ---

    def on_auth_state_change(self, callback: AuthStateCallback) -> Callable[[], None]:
        self._callbacks.append(callback)
        callback(self._current)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def _set_current(self, identity: Identity | None) -> None:
        if identity == self._current:
            return
        self._current = identity
        for callback in list(self._callbacks):
            try:
                callback(identity)
            except Exception:
                logger.exception("Auth state callback failed")
