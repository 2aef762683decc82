"""Pytest fixtures: in-memory DB, fake video provider, service harness, test clients."""
import os
import uuid
from dataclasses import dataclass

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Test environment must be in place before the app is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("OPENAI_API_KEY", "sk-test-dummy")
os.environ.setdefault("OPENAI_MODERATION_MODEL", "")
os.environ.setdefault("BACKEND_URL", "http://testserver")
# High limits so the suite never trips the rate limiter
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")
os.environ.setdefault("RATE_LIMIT_AUTH_PER_MINUTE", "1000")
os.environ.setdefault("RATE_LIMIT_VIDEO_PER_MINUTE", "1000")

from app import models  # noqa: E402,F401
from app.core.database import engine as app_engine  # noqa: E402
from app.core.security import create_access_token, hash_password  # noqa: E402
from app.main import app, create_app  # noqa: E402
from app.models import User  # noqa: E402
from app.services.job_store import JobStore  # noqa: E402
from app.services.live_updates import LiveUpdateDispatcher  # noqa: E402
from app.services.poller import JobPoller, JobTracker  # noqa: E402
from app.services.session_registry import SessionRegistry  # noqa: E402
from app.services.videos import VideoService  # noqa: E402
from tests.fakes import FakeProvider, RecordingSleep, RecordingTransport  # noqa: E402


@dataclass
class Harness:
    store: JobStore
    provider: FakeProvider
    registry: SessionRegistry
    transport: RecordingTransport
    dispatcher: LiveUpdateDispatcher
    sleep: RecordingSleep
    poller: JobPoller
    tracker: JobTracker
    videos: VideoService


@pytest.fixture
def engine():
    """Fresh in-memory database per test for service-level tests."""
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine):
    return JobStore(engine)


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def harness(store, fake_provider):
    registry = SessionRegistry()
    transport = RecordingTransport()
    dispatcher = LiveUpdateDispatcher(registry, transport)
    sleep = RecordingSleep()
    poller = JobPoller(fake_provider, store, dispatcher, sleep=sleep)
    tracker = JobTracker(poller)
    return Harness(
        store=store,
        provider=fake_provider,
        registry=registry,
        transport=transport,
        dispatcher=dispatcher,
        sleep=sleep,
        poller=poller,
        tracker=tracker,
        videos=VideoService(fake_provider, store, tracker),
    )


@pytest.fixture(scope="function")
def client():
    """TestClient on the default app; lifespan prepares the in-memory DB."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_client(fake_provider):
    """Factory for a TestClient whose app talks to the fake provider and never really sleeps."""

    async def no_sleep(seconds):
        return None

    def _make():
        return TestClient(create_app(provider=fake_provider, sleep=no_sleep))

    return _make


@pytest.fixture
def make_user():
    def _make(email: str | None = None) -> tuple[User, dict]:
        email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
        SQLModel.metadata.create_all(app_engine)
        with Session(app_engine) as db:
            user = User(email=email, hashed_password=hash_password("test123456"), full_name="Test User")
            db.add(user)
            db.commit()
            db.refresh(user)
        token = create_access_token({"sub": str(user.id)})
        return user, {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def auth_user(make_user):
    return make_user()


@pytest.fixture
def auth_headers(auth_user):
    return auth_user[1]
