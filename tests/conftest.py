import os
import tempfile
import time

# must be set before app modules read their settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="fileshare-logs-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings
from app.core.exceptions import StorageError
from app.main import app
from app.models.database import Base, get_db
from app.services.auth import sign_up
from app.services.storage import get_storage


class InMemoryStorage:
    """Stands in for ObjectStorage: keeps bytes in a dict."""

    def __init__(self, base_url: str = "https://files.test/bucket"):
        self.base_url = base_url
        self.objects = {}
        self.fail_put = False
        self.delay = 0.0

    def put(self, key, data, content_type="application/octet-stream"):
        if self.delay:
            time.sleep(self.delay)
        if self.fail_put:
            raise StorageError("bucket unavailable")
        self.objects[key] = (data, content_type)

    def get_public_url(self, key):
        return f"{self.base_url}/{key}"

    def fetch(self, url):
        key = url[len(self.base_url) + 1:]
        return self.objects[key][0]


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def storage():
    return InMemoryStorage()


@pytest.fixture()
def client(engine, storage):
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def alice(db_session):
    return sign_up(db_session, "alice@example.com", "wonderland", "Alice Liddell")


@pytest.fixture()
def bob(db_session):
    return sign_up(db_session, "bob@example.com", "builder")


@pytest.fixture()
def carol(db_session):
    return sign_up(db_session, "carol@example.com", "singer")


def sign_in_as(client, session):
    client.cookies.set(get_settings().session_cookie_name, session.token)
    return client


@pytest.fixture()
def login(client):
    return lambda session: sign_in_as(client, session)
