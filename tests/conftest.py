"""
Pytest configuration and fixtures for the import pipeline tests.

Each test gets its own in-memory SQLite database with the import tables
created and a small set of reference data seeded, so tests never share
state.
"""

import os

# Never bootstrap the configured database from the app lifespan in tests.
os.environ.setdefault("SKIP_DB_INIT", "1")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from tracker_import.api.dependencies import get_records_cache, get_session_factory
from tracker_import.db.models import (
    Priority,
    Profile,
    Project,
    WorkItemStatus,
    WorkItemType,
    create_tables,
)
from tracker_import.db.repositories import build_repositories
from tracker_import.db.session import build_engine
from tracker_import.domain.imports.jobs import ImportJobTracker
from tracker_import.main import app
from tracker_import.utils.cache import RecordsCache


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def seeded(session_factory):
    """
    Reference data shared by most tests.

    Statuses are seeded so that "To Do" is not the first status, which lets
    tests tell the canonical default apart from the first-available fallback.
    """
    with session_factory() as session:
        types = [WorkItemType(name=name, position=i) for i, name in enumerate(["Task", "Bug", "Story"])]
        priorities = [Priority(name=name, position=i) for i, name in enumerate(["High", "Medium", "Low"])]
        statuses = [WorkItemStatus(name=name, position=i) for i, name in enumerate(["Backlog", "To Do", "Done"])]
        project = Project(key="CORE", name="Core Platform")
        alice = Profile(email="alice@example.com", display_name="Alice")
        bob = Profile(email="bob@example.com", display_name="Bob")
        session.add_all(types + priorities + statuses + [project, alice, bob])
        session.commit()

        return {
            "types": {t.name: t.id for t in types},
            "priorities": {p.name: p.id for p in priorities},
            "statuses": {s.name: s.id for s in statuses},
            "project_id": project.id,
            "alice_id": alice.id,
            "bob_id": bob.id,
        }


@pytest.fixture
def tracker(session_factory):
    return ImportJobTracker(session_factory)


@pytest.fixture
def store(session_factory):
    return build_repositories(session_factory)


@pytest.fixture
def client(session_factory, seeded):
    cache = RecordsCache(ttl_seconds=300, max_entries=8)
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_records_cache] = lambda: cache
    yield TestClient(app)
    app.dependency_overrides.clear()
