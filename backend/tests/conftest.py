"""Shared test fixtures.

Sets environment variables BEFORE any app imports so that
``newsdesk.config.settings`` and the Fernet key in ``newsdesk.auth``
resolve without needing a real .env file or database server.
"""

import os

from cryptography.fernet import Fernet

# --- Environment setup (must happen before app imports) -------------------
_test_key = Fernet.generate_key().decode()

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SESSION_KEY", _test_key)
os.environ.setdefault("API_BASE_URL", "http://testserver")
os.environ.setdefault("ADMIN_USER_ID", "1")

# --- Now it's safe to import app modules ---------------------------------
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.testclient import TestClient

from newsdesk.auth import issue_session_token
from newsdesk.config import settings
from newsdesk.database import Base, get_db
from newsdesk.main import app
from newsdesk.models.message import Message  # noqa: F401  (registers the table)
from newsdesk.models.user import User


# In-memory SQLite engine shared across the test session
_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=_engine)


@pytest.fixture(scope="session", autouse=True)
def _create_tables():
    """Create all tables once, drop them when the session ends."""
    Base.metadata.create_all(bind=_engine)
    yield
    Base.metadata.drop_all(bind=_engine)


@pytest.fixture()
def db_session():
    """Yield a DB session whose rows are wiped after each test."""
    session = _TestingSession()
    yield session
    session.rollback()
    session.query(Message).delete()
    session.query(User).delete()
    session.commit()
    session.close()


@pytest.fixture()
def client(db_session):
    """FastAPI TestClient with ``get_db`` overridden to use the test session."""

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def admin(db_session) -> User:
    user = User(id=settings.ADMIN_USER_ID, email="admin@breachtimes.test", role="admin")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture()
def make_user(db_session, admin):
    counter = {"n": 0}

    def _make(role: str = "user", email: str | None = None) -> User:
        counter["n"] += 1
        user = User(email=email or f"reader-{counter['n']}@example.com", role=role)
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def login(client):
    """Attach a session cookie for ``user`` to the test client."""

    def _login(user: User) -> TestClient:
        client.cookies.set(settings.SESSION_COOKIE_NAME, issue_session_token(user.id))
        return client

    return _login
