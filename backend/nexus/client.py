"""
Client-side session context: one object owning every live view for the signed-in user.

start() subscribes to the auth provider; while signed in it keeps the dashboard (owned and
member projects, pending tasks) and the notification badge live. open_project() closes the
previous workspace before the next one subscribes, so nothing from the old project is
applied after the switch. close() cancels every subscription and timer.
"""
import logging
from typing import Any, Iterable

from apscheduler.schedulers.background import BackgroundScheduler

from nexus.auth.provider import AuthProvider, Identity
from nexus.config import settings
from nexus.services import chat_service, project_service, task_service
from nexus.services.analytics import project_analytics
from nexus.services.uploads import FileUploadClient, UploadFile
from nexus.store.documents import DocumentStore
from nexus.store.subscription import LiveView
from nexus.store.types import Record
from nexus.sync.activity import ActivityLogger, history_query
from nexus.sync.read_markers import JsonFileReadMarkers, ReadMarkerStore
from nexus.sync.session_tracker import Session, SessionTracker
from nexus.sync.unread import UnreadTracker, chat_stream, notification_stream

logger = logging.getLogger(__name__)


class Dashboard:
    """Projects the user owns or belongs to, plus their pending tasks across all projects."""

    def __init__(self, store: DocumentStore, user_id: str):
        self.user_id = user_id
        self.owned = LiveView(store, project_service.owned_projects_query(user_id))
        self.member = LiveView(store, project_service.member_projects_query(user_id))
        self.pending_tasks = LiveView(store, task_service.pending_tasks_query(user_id))

    def open(self) -> "Dashboard":
        self.owned.open()
        self.member.open()
        self.pending_tasks.open()
        return self

    def close(self) -> None:
        self.owned.close()
        self.member.close()
        self.pending_tasks.close()

    @property
    def projects(self) -> list[Record]:
        return project_service.merge_projects(self.owned.records, self.member.records)


class ProjectWorkspace:
    """Live project document, task table, history (on demand), and chat badge for one project."""

    def __init__(
        self,
        store: DocumentStore,
        project_id: str,
        identity: Identity,
        markers: ReadMarkerStore,
        activity: ActivityLogger,
        uploader: FileUploadClient | None = None,
    ):
        self._store = store
        self.project_id = project_id
        self.identity = identity
        self._activity = activity
        self._uploader = uploader
        self.project = LiveView(store, project_service.project_query(project_id))
        self.tasks = LiveView(store, task_service.tasks_query(project_id))
        self.history = LiveView(store, history_query(project_id))
        self.chat = UnreadTracker(store, chat_stream(project_id), markers, identity.uid)

    def open(self) -> "ProjectWorkspace":
        self.project.open()
        self.tasks.open()
        self.chat.open()
        return self

    def close(self) -> None:
        self.project.close()
        self.tasks.close()
        self.history.close()
        self.chat.close()

    @property
    def is_admin(self) -> bool:
        project = self.project.first
        return project is not None and project_service.is_owner(project, self.identity.uid)

    # --- Surfaces ---

    def open_chat(self) -> None:
        self.chat.set_viewing(True)

    def close_chat(self) -> None:
        self.chat.set_viewing(False)

    def open_history(self) -> None:
        self.history.open()

    def close_history(self) -> None:
        self.history.close()

    def analytics(self) -> dict[str, Any]:
        project = self.project.first
        if project is None:
            return project_analytics([], Record(project_service.project_path(self.project_id), {}))
        return project_analytics(self.tasks.records, project)

    # --- Actions ---

    def send_message(self, text: str) -> Record | None:
        return chat_service.send_message(self._store, self.project_id, self.identity, text)

    def add_task(self, fields: dict[str, Any], files: Iterable[UploadFile] = ()) -> Record:
        return task_service.add_task(
            self._store, self._activity, self.project_id, self.identity, fields, files, uploader=self._uploader
        )

    def update_task(self, task_doc_id: str, field: str, value: Any) -> Record:
        return task_service.update_task_field(
            self._store, self._activity, self.project_id, self.identity, task_doc_id, field, value
        )

    def delete_task(self, task_doc_id: str) -> None:
        task_service.delete_task(self._store, self._activity, self.project_id, self.identity, task_doc_id)

    def add_member(self, email: str) -> Record:
        return project_service.add_member(self._store, self._activity, self.project_id, self.identity, email)


class NexusClient:
    """Process-wide session context. Call start() once and close() on shutdown."""

    def __init__(
        self,
        auth: AuthProvider,
        store: DocumentStore,
        markers: ReadMarkerStore | None = None,
        scheduler: Any = None,
        uploader: FileUploadClient | None = None,
    ):
        self.auth = auth
        self.store = store
        self.markers = markers or JsonFileReadMarkers(settings.read_marker_path)
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or BackgroundScheduler()
        self.uploader = uploader
        self.activity = ActivityLogger(store)
        self.session_tracker = SessionTracker(auth, store, self.scheduler)
        self.session_tracker.add_listener(self._on_session)
        self.dashboard: Dashboard | None = None
        self.notifications: UnreadTracker | None = None
        self.workspace: ProjectWorkspace | None = None
        self._started = False

    @property
    def identity(self) -> Identity | None:
        return self.auth.current_user

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        if self._owns_scheduler:
            self.scheduler.start()
        self.session_tracker.start()

    def close(self) -> None:
        """Tear down views, then the session (heartbeat stop + best-effort offline write)."""
        self._close_user_views()
        self.session_tracker.close()
        if self._owns_scheduler and self._started:
            self.scheduler.shutdown(wait=False)
        self._started = False

    # --- Views ---

    def open_project(self, project_id: str) -> ProjectWorkspace:
        """Switch the open workspace. The previous one is closed before the new one subscribes."""
        identity = self._require_identity()
        self.close_project()
        project_service.require_access(self.store, project_id, identity.uid)
        self.workspace = ProjectWorkspace(
            self.store, project_id, identity, self.markers, self.activity, uploader=self.uploader
        ).open()
        return self.workspace

    def close_project(self) -> None:
        if self.workspace is not None:
            self.workspace.close()
            self.workspace = None

    def open_notifications(self) -> None:
        if self.notifications is not None:
            self.notifications.set_viewing(True)

    def close_notifications(self) -> None:
        if self.notifications is not None:
            self.notifications.set_viewing(False)

    def delete_project(self, project_id: str) -> int:
        identity = self._require_identity()
        if self.workspace is not None and self.workspace.project_id == project_id:
            self.close_project()
        return project_service.delete_project(self.store, project_id, identity)

    def sign_out(self) -> None:
        self.auth.sign_out()

    # --- Session wiring ---

    def _require_identity(self) -> Identity:
        identity = self.identity
        if identity is None:
            raise RuntimeError("Not signed in")
        return identity

    def _on_session(self, session: Session | None) -> None:
        self._close_user_views()
        if session is None:
            return
        self.dashboard = Dashboard(self.store, session.user_id).open()
        self.notifications = UnreadTracker(
            self.store, notification_stream(session.user_id), self.markers, session.user_id
        ).open()

    def _close_user_views(self) -> None:
        self.close_project()
        if self.dashboard is not None:
            self.dashboard.close()
            self.dashboard = None
        if self.notifications is not None:
            self.notifications.close()
            self.notifications = None
