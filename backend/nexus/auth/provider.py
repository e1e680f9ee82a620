"""Protocol for auth providers. Session tracking and account services depend only on this."""
from typing import Callable, Protocol


class Identity:
    """Authenticated user as reported by the provider."""

    __slots__ = ("uid", "email", "display_name", "photo_url")

    def __init__(
        self,
        *,
        uid: str,
        email: str,
        display_name: str | None = None,
        photo_url: str | None = None,
    ):
        self.uid = uid
        self.email = email
        self.display_name = display_name
        self.photo_url = photo_url

    @property
    def label(self) -> str:
        """Name shown to other users (display name, else email)."""
        return self.display_name or self.email

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Identity):
            return NotImplemented
        return (self.uid, self.email, self.display_name, self.photo_url) == (
            other.uid,
            other.email,
            other.display_name,
            other.photo_url,
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Identity(uid={self.uid!r}, email={self.email!r})"


AuthStateCallback = Callable[[Identity | None], None]


class AuthProvider(Protocol):
    """Sign-up/sign-in/sign-out plus state-change callbacks. Errors raise nexus.core.errors.AuthError."""

    @property
    def current_user(self) -> Identity | None:
        ...

    def sign_up(self, email: str, password: str, display_name: str | None = None) -> Identity:
        ...

    def sign_in(self, email: str, password: str) -> Identity:
        ...

    def sign_in_with_federated_provider(self, id_token: str) -> Identity:
        ...

    def resume(self, uid: str) -> Identity:
        """Restore a persisted session without refreshing its sign-in time."""
        ...

    def sign_out(self) -> None:
        ...

    def delete_current_user(self) -> None:
        """Raises RequiresRecentLogin when the session is too old for a sensitive operation."""
        ...

    def send_password_reset(self, email: str) -> None:
        ...

    def on_auth_state_change(self, callback: AuthStateCallback) -> Callable[[], None]:
        """Register a callback (called now with the current user, then on every change). Returns unsubscribe."""
        ...
