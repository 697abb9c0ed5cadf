"""
Shared test fixtures and configuration.
"""

import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Set test environment variables before importing meetnear modules
_DB_PATH = Path(tempfile.gettempdir()) / f"meetnear_test_{os.getpid()}.db"
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ["JWT_SECRET"] = "test-secret-key-for-testing"
os.environ["RUN_MIGRATIONS"] = "false"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi.testclient import TestClient  # noqa: E402

from meetnear.database import SessionLocal, create_all, drop_all  # noqa: E402
from meetnear.main import app  # noqa: E402
from meetnear.repositories.chat import ChatRepository  # noqa: E402
from meetnear.repositories.session import SessionRepository  # noqa: E402
from meetnear.repositories.user import UserRepository  # noqa: E402
from meetnear.services.auth_service import AuthService  # noqa: E402

from helpers import HERE  # noqa: E402


@pytest.fixture(autouse=True)
def _tables():
    """Fresh schema for every test."""
    drop_all()
    create_all()
    yield
    drop_all()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def session_repo():
    return SessionRepository()


@pytest.fixture
def chat_repo():
    return ChatRepository()


@pytest.fixture
def make_user(db):
    """Create a member straight through the repository."""
    repo = UserRepository()
    counter = {"n": 0}

    def _make(name: str = "Member"):
        counter["n"] += 1
        return repo.create_user(db, f"{name.lower()}{counter['n']}@meetnear.app", "not-a-real-hash", name)

    return _make


@pytest.fixture
def make_session(db, session_repo, make_user):
    """Create a scheduled session starting in an hour."""

    def _make(creator=None, *, coordinates=None, hours_ahead: float = 1, max_participants: int = 10, **kwargs):
        creator = creator or make_user("Host")
        start = datetime.utcnow() + timedelta(hours=hours_ahead)
        return session_repo.create_session(
            db,
            creator_id=creator.id,
            title=kwargs.pop("title", "Coffee at the corner"),
            description=kwargs.pop("description", "Quick coffee and a chat with neighbours"),
            type=kwargs.pop("type", "coffee"),
            location={"type": "Point", "coordinates": coordinates or HERE},
            start_time=start,
            end_time=start + timedelta(hours=1),
            max_participants=max_participants,
            **kwargs,
        )

    return _make


@pytest.fixture
def auth_service():
    return AuthService()
