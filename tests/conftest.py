"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests
(file-backed so that worker threads in the concurrency tests share it).
Every test works on its own location id, so tests never see each other's rows.
"""
import os
import uuid

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_engagement.db")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from engagement.db.base import Base, get_db
from engagement.main import app
from engagement.routers.tasks import get_catalog, get_listing_updater
from engagement.services.game_state import game_state_cache

from tests.fakes import FailingUpdater, FakeCatalog, candidate

SQLITE_URL = "sqlite:///./test_engagement.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False, "timeout": 30})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clear_cache():
    game_state_cache.clear()
    yield
    game_state_cache.clear()


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def location_id():
    return f"loc-{uuid.uuid4().hex[:12]}"


@pytest.fixture()
def catalog():
    return FakeCatalog([
        candidate("def_a", points=100, type="hours", category="basic_info", priority="high"),
        candidate("def_b", points=50, type="reviews", category="engagement"),
        candidate("def_c", points=10, type="posts", category="content", priority="low"),
    ])


@pytest.fixture()
def client(db, catalog):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_catalog] = lambda: catalog
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def failing_client(client):
    app.dependency_overrides[get_listing_updater] = lambda: FailingUpdater()
    yield client
