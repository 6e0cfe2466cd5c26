"""
Shared test fixtures.

Sets up an isolated test database so tests never touch
the real database. Tables are created before each test and
dropped after it, so no test data persists.
"""

import os
from datetime import datetime, timedelta

# Settings are read at import time, so point them at SQLite first
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("EXPIRY_SCHEDULER_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from override_engine.handlers.backend import InMemoryUserStateBackend
from override_engine.handlers.registry import build_default_registry, get_registry
from override_engine.main import app
from override_engine.models.base import Base, get_db
from override_engine.services.override_service import OverrideService


TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)

ACTOR = "admin-1"
ACTOR_HEADERS = {"X-Admin-Actor-Id": ACTOR}


class FrozenClock:
    """A clock that only moves when a test moves it."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 3, 1, 12, 0, 0))


@pytest.fixture
def backend():
    """User state owned by the rest of the platform, kept in memory."""
    return InMemoryUserStateBackend()


@pytest.fixture
def registry(backend):
    return build_default_registry(backend)


@pytest.fixture
def service(db_session, registry, clock):
    return OverrideService(db_session, registry, clock=clock)


@pytest.fixture
def client(db_session, registry):
    """
    Provide a test client with the test database and test registry.

    get_db and get_registry are overridden so the app uses our
    session and our in-memory user state.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_registry] = lambda: registry
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def session_factory():
    """For code that opens its own sessions, like the expiry sweep."""
    return TestSessionLocal
