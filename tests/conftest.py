# tests/conftest.py
import os

# Settings are read at import time
os.environ.setdefault("ENV", "local")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["PAYSTACK_SECRET_KEY"] = ""

import pytest
from starlette.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy_utils import create_database, database_exists, drop_database
from unittest.mock import MagicMock

from registration_service.main import app
from registration_service.api import deps
from registration_service.db.session import get_db
from registration_service.db.base_class import Base
import registration_service.models  # noqa: F401


# --- E2E Test Database Setup ---
TEST_DATABASE_URL = os.environ.get(
    "TEST_DATABASE_URL", "sqlite:///./registration_db_test.sqlite3"
)
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    if database_exists(engine.url):
        drop_database(engine.url)
    create_database(engine.url)
    Base.metadata.create_all(bind=engine)
    yield
    engine.dispose()
    drop_database(engine.url)


@pytest.fixture(scope="function")
def db_session_e2e():
    """A session whose work is rolled back after the test."""
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def committing_sessions():
    """
    Factory for independent sessions that really commit, for tests where
    several readers must see each other's writes. Tables are emptied afterwards.
    """
    sessions = []

    def factory():
        session = TestingSessionLocal()
        sessions.append(session)
        return session

    yield factory

    for session in sessions:
        session.close()
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


# --- Mock Dependencies Setup ---
class MockTokenPayload:
    def __init__(self, sub="admin_1", role="admin"):
        self.sub = sub
        self.role = role


def override_get_current_user():
    return MockTokenPayload()


# --- Test Client Fixtures ---
@pytest.fixture(scope="function")
def test_client():
    """
    Provides a TestClient where the database and authentication are mocked.
    This is for INTEGRATION tests.
    """
    app.dependency_overrides[get_db] = lambda: MagicMock()
    app.dependency_overrides[deps.get_current_user] = override_get_current_user

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def test_client_e2e(db_session_e2e):
    """
    Provides a TestClient that uses the LIVE test database and real admin
    token checks. This is for E2E tests.
    """

    def override_get_db_e2e():
        yield db_session_e2e

    app.dependency_overrides[get_db] = override_get_db_e2e

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
