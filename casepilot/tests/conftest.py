"""
Shared fixtures: a fresh SQLite database per test, a temporary blob store
and a TestClient bound to the app.
"""

import os
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


@pytest.fixture
def sqlalchemy_db(tmp_path):
    from casepilot.db.session import reset_engine, init_db

    old_db_url = os.environ.get("DATABASE_URL")
    db_path = tmp_path / "casepilot_test.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"
    reset_engine()
    init_db()

    yield

    if old_db_url is not None:
        os.environ["DATABASE_URL"] = old_db_url
    else:
        os.environ.pop("DATABASE_URL", None)
    reset_engine()


@pytest.fixture
def db_session(sqlalchemy_db):
    """A session on the test database for service-level tests."""
    from casepilot.db.session import SessionLocal, get_engine

    get_engine()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage(tmp_path):
    from casepilot.storage import LocalStorage

    return LocalStorage(base_path=str(tmp_path / "blobs"), base_url="/files")


@pytest.fixture
def client(sqlalchemy_db, storage):
    """Create test client with the blob store swapped for a temp directory"""
    from fastapi.testclient import TestClient
    from casepilot.api import app
    from casepilot.dependencies import get_storage_dependency

    app.dependency_overrides[get_storage_dependency] = lambda: storage
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_storage_dependency, None)
