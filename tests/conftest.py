"""Pytest fixtures and configuration for floatingtasks tests."""

import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
import uuid

from floatingtasks.database.database import Base
from floatingtasks.database.repository import TaskRepository
from floatingtasks.database.recurring_template_repository import RecurringTemplateRepository
from floatingtasks.database.state_repository import AppStateRepository, ResetStateRepository
from floatingtasks.models.task import Task, TaskStatus
from floatingtasks.reconcile.overrides import LocalOverrideCache
from floatingtasks.store import TaskStore


# Use in-memory SQLite database for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_session():
    """Create a database session for testing.

    Uses an in-memory SQLite database that is created fresh for each test.
    """
    from floatingtasks.database import models  # noqa: F401

    # Create engine with StaticPool for in-memory database
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    # Create all tables
    Base.metadata.create_all(bind=engine)

    # Create session
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def task_repository(db_session: Session):
    """Create a TaskRepository instance for testing."""
    return TaskRepository(db_session)


@pytest.fixture
def template_repository(db_session: Session):
    return RecurringTemplateRepository(db_session)


@pytest.fixture
def reset_repository(db_session: Session):
    return ResetStateRepository(db_session)


@pytest.fixture
def app_state_repository(db_session: Session):
    return AppStateRepository(db_session)


@pytest.fixture
def sample_task_base():
    """Base task data for creating test tasks.

    Returns a dict with default task attributes that can be overridden.
    """
    return {
        "id": str(uuid.uuid4()),
        "text": "Test Task",
        "status": TaskStatus.PENDING,
        "created_at": datetime(2024, 1, 1, 9, 0),
        "parent_id": None,
        "calendar_event_id": None,
        "recurring_template_id": None,
        "external_goal_id": None,
    }


@pytest.fixture
def make_task(sample_task_base):
    """Factory for tasks with explicit ids: make_task("a", parent_id="root")."""
    def _make(task_id, text=None, **overrides):
        return Task(**{**sample_task_base, "id": task_id, "text": text or task_id, **overrides})
    return _make


@pytest.fixture
def sample_tree(make_task):
    """A small forest in persisted order.

    a
      a1
        a1x
      a2
    b
    c
    """
    return [
        make_task("a"),
        make_task("a1", parent_id="a"),
        make_task("a1x", parent_id="a1"),
        make_task("a2", parent_id="a"),
        make_task("b"),
        make_task("c"),
    ]


@pytest.fixture
def fake_clock():
    """Mutable clock returning `fake_clock.now`."""
    class _Clock:
        def __init__(self):
            self.now = 1000.0

        def __call__(self):
            return self.now

        def advance(self, seconds):
            self.now += seconds

    return _Clock()


@pytest.fixture
def store(task_repository, template_repository, reset_repository, fake_clock):
    """TaskStore persisted to the in-memory database."""
    return TaskStore(
        task_repo=task_repository,
        template_repo=template_repository,
        reset_repo=reset_repository,
        override_cache=LocalOverrideCache(clock=fake_clock),
    )


@pytest.fixture
def test_client(store):
    """Create a FastAPI test client with the store dependency overridden."""
    from floatingtasks.api.app import app, get_store

    app.dependency_overrides[get_store] = lambda: store

    with TestClient(app) as client:
        yield client

    # Clean up dependency overrides
    app.dependency_overrides.clear()
