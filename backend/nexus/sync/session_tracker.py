"""
Session tracking and presence heartbeat.

SIGNED_OUT -> SIGNED_IN (heartbeat running) -> SIGNED_OUT, driven only by the auth
provider's state-change callback. While signed in, an interval job marks users/{uid}
online and refreshes lastSeen. On teardown the job is removed first, then one
"offline" write is attempted.

Presence is best-effort: every write is fire-and-forget (failures logged, never raised,
never retried), and the final offline write can lose a race with process exit.
"""
import enum
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable

from apscheduler.jobstores.base import JobLookupError

from nexus.auth.provider import AuthProvider, Identity
from nexus.config import settings
from nexus.core.constants import PRESENCE_JOB_ID_PREFIX, USERS
from nexus.store.documents import DocumentStore
from nexus.store.types import SERVER_TIMESTAMP

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    SIGNED_OUT = "signed_out"
    SIGNED_IN = "signed_in"


class Session:
    """Current user identity plus local presence state."""

    __slots__ = ("user_id", "display_name", "email", "photo_url", "is_online", "last_seen_at")

    def __init__(self, identity: Identity):
        self.user_id = identity.uid
        self.display_name = identity.display_name
        self.email = identity.email
        self.photo_url = identity.photo_url
        self.is_online = False
        self.last_seen_at: datetime | None = None


class SessionTracker:
    """
    Reacts to auth state changes and keeps a presence heartbeat running while signed in.

    `scheduler` is an APScheduler scheduler (or anything with add_job/remove_job); it must
    already be started for jobs to fire.
    """

    def __init__(
        self,
        auth: AuthProvider,
        store: DocumentStore,
        scheduler: Any,
        interval_seconds: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._auth = auth
        self._store = store
        self._scheduler = scheduler
        self.interval_seconds = interval_seconds or settings.heartbeat_interval_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._unsubscribe: Callable[[], None] | None = None
        self._listeners: list[Callable[[Session | None], Any]] = []
        self.session: Session | None = None
        self._job_id: str | None = None
        # Held across the session check and the presence write, so a heartbeat already
        # running on a scheduler thread cannot land after the offline write
        self._lock = threading.RLock()

    @property
    def state(self) -> SessionState:
        return SessionState.SIGNED_IN if self.session is not None else SessionState.SIGNED_OUT

    def add_listener(self, listener: Callable[[Session | None], Any]) -> None:
        """Called with the new Session on sign-in and None on sign-out."""
        self._listeners.append(listener)

    def start(self) -> None:
        """Subscribe to the auth provider. Idempotent."""
        if self._unsubscribe is None:
            self._unsubscribe = self._auth.on_auth_state_change(self._on_auth_state)

    def close(self) -> None:
        """Unsubscribe from the provider and tear down any live session."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._end_session()

    # --- Transitions ---

    def _on_auth_state(self, identity: Identity | None) -> None:
        if identity is None:
            self._end_session()
            return
        if self.session is not None:
            if self.session.user_id == identity.uid:
                return
            self._end_session()
        self._begin_session(identity)

    def _begin_session(self, identity: Identity) -> None:
        with self._lock:
            self.session = Session(identity)
            self._mark_online()
        self._job_id = f"{PRESENCE_JOB_ID_PREFIX}_{identity.uid}"
        self._scheduler.add_job(
            self._heartbeat,
            "interval",
            seconds=self.interval_seconds,
            id=self._job_id,
            replace_existing=True,
        )
        logger.info("Session started for %s; heartbeat every %ss", identity.uid, self.interval_seconds)
        self._emit()

    def _end_session(self) -> None:
        if self._job_id is not None:
            try:
                self._scheduler.remove_job(self._job_id)
            except JobLookupError:
                logger.debug("Heartbeat job %s already gone", self._job_id)
            self._job_id = None
        with self._lock:
            session = self.session
            if session is None:
                return
            self.session = None
            # Best-effort: may not land if the process is exiting
            self._write_presence(session.user_id, {"isOnline": False})
            session.is_online = False
        logger.info("Session ended for %s", session.user_id)
        self._emit()

    # --- Presence ---

    def _heartbeat(self) -> None:
        if self.session is None:
            return
        self._mark_online()

    def _mark_online(self) -> None:
        with self._lock:
            session = self.session
            if session is None:
                return
            if self._write_presence(session.user_id, {"isOnline": True, "lastSeen": SERVER_TIMESTAMP}):
                session.is_online = True
                session.last_seen_at = self._clock()

    def _write_presence(self, user_id: str, fields: dict[str, Any]) -> bool:
        try:
            self._store.set(f"{USERS}/{user_id}", fields, merge=True)
            return True
        except Exception as e:
            logger.warning("Presence update for %s failed: %s", user_id, e)
            return False

    def _emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.session)
            except Exception:
                logger.exception("Session listener failed")
