"""
Centralized error handling for service and API failures.

Exception taxonomy raised by services, plus a rules table mapping them to HTTPException
so routes stay thin and new error types are easy to add.
"""
from __future__ import annotations

from typing import Callable

from fastapi import HTTPException

# ---------------------------------------------------------------------------
# Constants: status codes and user-facing messages
# ---------------------------------------------------------------------------

MSG_REAUTHENTICATE = "For security, please log out and log in again before continuing."
MSG_GENERIC_FAILURE = "Something went wrong. Please try again."

STATUS_BAD_REQUEST = 400
STATUS_UNAUTHORIZED = 401
STATUS_FORBIDDEN = 403
STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_INTERNAL_ERROR = 500


class NexusError(Exception):
    """Base for errors scoped to one user action."""


class NotFoundError(NexusError):
    """Referenced user, project, or document does not exist."""


class ValidationError(NexusError):
    """Input rejected before any state change."""


class PermissionDeniedError(NexusError):
    """Caller is not allowed to touch this project."""


class AuthError(NexusError):
    """Auth provider failure. `code` is a stable kind such as 'invalid-credential'."""

    def __init__(self, code: str, message: str | None = None):
        self.code = code
        super().__init__(message or code)


class RequiresRecentLogin(AuthError):
    """Sensitive operation on a stale session; the user must sign in again."""

    def __init__(self, message: str = MSG_REAUTHENTICATE):
        super().__init__("requires-recent-login", message)


# ---------------------------------------------------------------------------
# Error rules: (predicate, status_code, detail). First match wins.
# ---------------------------------------------------------------------------

def _detail(exc: Exception) -> str:
    return str(exc)


ERROR_RULES: list[tuple[Callable[[Exception], bool], int, Callable[[Exception], str]]] = [
    (lambda e: isinstance(e, RequiresRecentLogin), STATUS_UNAUTHORIZED, lambda e: MSG_REAUTHENTICATE),
    (lambda e: isinstance(e, AuthError) and e.code == "email-already-in-use", STATUS_CONFLICT, _detail),
    (lambda e: isinstance(e, AuthError) and e.code == "user-not-found", STATUS_NOT_FOUND, _detail),
    (lambda e: isinstance(e, AuthError) and e.code in ("invalid-email", "weak-password"), STATUS_BAD_REQUEST, _detail),
    (lambda e: isinstance(e, AuthError), STATUS_UNAUTHORIZED, _detail),
    (lambda e: isinstance(e, PermissionDeniedError), STATUS_FORBIDDEN, _detail),
    (lambda e: isinstance(e, NotFoundError), STATUS_NOT_FOUND, _detail),
    (lambda e: isinstance(e, ValidationError), STATUS_BAD_REQUEST, _detail),
]


def error_to_http(exc: Exception) -> HTTPException:
    """
    Map a service exception into an HTTPException.
    Uses ERROR_RULES for known error types; otherwise returns 500 with a generic message.
    """
    for predicate, status_code, detail in ERROR_RULES:
        if predicate(exc):
            return HTTPException(status_code=status_code, detail=detail(exc))
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=MSG_GENERIC_FAILURE)
