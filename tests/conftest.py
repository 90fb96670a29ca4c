"""
Pytest configuration for the to-do service tests.

IMPORTANT: DATABASE_URL must be set before any todo_service imports because
todo_service/main.py builds its module-level app (and engine) at import time.
"""

import os
import sys
from pathlib import Path

# --- Environment setup (before ANY todo_service imports) ---
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_SAMPLE_DATA"] = "false"

# Add project root so `from todo_service.xxx import ...` works
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from todo_service.database import Base
from todo_service.main import create_app
from todo_service.store import TaskStore


# ---------------------------------------------------------------------------
# Test engine: SQLite in-memory with StaticPool so all threads/connections
# share the same database (required for TestClient which runs in a thread).
# ---------------------------------------------------------------------------
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def store():
    """A TaskStore on an empty tasks table, dropped after the test."""
    task_store = TaskStore(engine)
    task_store.initialize(seed=False)
    yield task_store
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def app(store):
    return create_app(store=store)


@pytest.fixture
def client(app):
    """FastAPI TestClient around an app using the test store."""
    with TestClient(app) as c:
        yield c
