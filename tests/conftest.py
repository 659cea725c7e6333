"""Pytest fixtures for testing."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ADMIN_EMAIL", "admin@example.com")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.db.database import Base, get_db
from app.main import app
from app.constants import COOKIE_NAME
from tests.factories import add_admin, add_student


@pytest.fixture(scope="function")
def engine():
    """In-memory database shared across threads for the duration of a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def test_db(engine):
    """Create a test database session for each test."""
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    db = SessionLocal()
    yield db
    db.close()


@pytest.fixture
def student(test_db):
    return add_student(test_db)


@pytest.fixture
def admin(test_db):
    return add_admin(test_db)


@pytest.fixture(scope="function")
def test_client(engine):
    """Create a test client bound to the in-memory database."""
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def client_for(test_client):
    """Build a client that carries the session cookie of a user."""
    def _client(user_id: str) -> TestClient:
        client = TestClient(app)
        client.cookies.set(COOKIE_NAME, user_id)
        return client
    return _client
