from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from nexus.auth.local import LocalAuthProvider
from nexus.auth.provider import Identity
from nexus.db.base import Base
from nexus.models import Account, Document  # noqa: F401
from nexus.store.documents import DocumentStore
from nexus.sync.activity import ActivityLogger
from nexus.sync.read_markers import MemoryReadMarkers

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class Clock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeScheduler:
    """add_job/remove_job like APScheduler; interval jobs fire on advance()."""

    def __init__(self) -> None:
        self.jobs: dict[str, dict[str, Any]] = {}
        self.removed: list[str] = []

    def add_job(self, func: Callable[[], Any], trigger: str, *, seconds: int, id: str, replace_existing: bool = False):
        assert trigger == "interval"
        if id in self.jobs and not replace_existing:
            raise ValueError(f"duplicate job {id}")
        self.jobs[id] = {"func": func, "seconds": seconds, "elapsed": 0}

    def remove_job(self, job_id: str) -> None:
        from apscheduler.jobstores.base import JobLookupError

        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]
        self.removed.append(job_id)

    def advance(self, seconds: int) -> int:
        """Fire each job once per elapsed interval. Returns number of runs."""
        runs = 0
        for job in list(self.jobs.values()):
            job["elapsed"] += seconds
            while job["elapsed"] >= job["seconds"]:
                job["elapsed"] -= job["seconds"]
                job["func"]()
                runs += 1
        return runs


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def store(session_factory, clock: Clock) -> DocumentStore:
    return DocumentStore(session_factory=session_factory, clock=clock)


@pytest.fixture
def markers() -> MemoryReadMarkers:
    return MemoryReadMarkers()


@pytest.fixture
def activity(store: DocumentStore, clock: Clock) -> ActivityLogger:
    return ActivityLogger(store, clock=clock)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def sent_mail() -> list[tuple[str, str]]:
    return []


@pytest.fixture
def auth(session_factory, clock: Clock, sent_mail: list[tuple[str, str]]) -> LocalAuthProvider:
    def mailer(to_email: str, link: str) -> bool:
        sent_mail.append((to_email, link))
        return True

    return LocalAuthProvider(session_factory=session_factory, clock=clock, mailer=mailer, recent_login_seconds=300)


def make_user(store: DocumentStore, uid: str, name: str, email: str) -> Identity:
    """Profile document only (no auth account)."""
    store.set(f"users/{uid}", {"uid": uid, "name": name, "email": email, "phone": ""})
    return Identity(uid=uid, email=email, display_name=name)


@pytest.fixture
def alice(store: DocumentStore) -> Identity:
    return make_user(store, "alice", "Alice", "alice@example.com")


@pytest.fixture
def bob(store: DocumentStore) -> Identity:
    return make_user(store, "bob", "Bob", "bob@example.com")


@pytest.fixture
def carol(store: DocumentStore) -> Identity:
    return make_user(store, "carol", "Carol", "carol@example.com")
