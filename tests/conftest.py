"""
Test fixtures for the study tracker.

Provides app and db fixtures with file-based SQLite, seeded university /
student fixtures, a fake Redis client, and an in-memory status store with
a fixed clock for detector tests.
"""

from __future__ import annotations

from datetime import datetime

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Wednesday noon
FIXED_NOW = datetime(2026, 3, 18, 12, 0, 0)


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite for testing."""
    from app import create_app

    db_file = str(tmp_path / "test.db")
    app = create_app({
        "TESTING": True,
        "DATABASE": db_file,
        "SECRET_KEY": "test-secret-key",
        "REDIS_URL": "",
    })

    with app.app_context():
        yield app


@pytest.fixture
def db(app):
    """Direct database access for store tests."""
    from database import get_db
    yield get_db()


@pytest.fixture
def university(app):
    """Seed a university and return its id."""
    from db_stores import UniversityStoreDB
    return UniversityStoreDB.create("Test University", "test.edu")


@pytest.fixture
def student(app, university):
    """Seed one student with a default profile."""
    from db_stores import StudentStoreDB
    return StudentStoreDB.create(
        "Test Student", "student@test.edu", university_id=university, codename="Falcon",
    )


@pytest.fixture
def fake_redis():
    """In-process Redis stand-in."""
    import fakeredis
    client = fakeredis.FakeRedis()
    yield client
    client.flushall()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def memory_store():
    from status_store import InMemoryStatusStore
    return InMemoryStatusStore()


@pytest.fixture
def detector(memory_store, clock):
    from status_detector import StudentStatusDetector
    return StudentStatusDetector(memory_store, clock=clock)
