"""Shared pytest fixtures for test suite"""
import os
import sys
from pathlib import Path
from typing import Callable, Generator, List
from unittest.mock import patch

import fakeredis
import httpx
import pytest
from cryptography.fernet import Fernet

# Configure the app before it is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.setdefault("APP_URL", "http://localhost:3000")
os.environ.setdefault("YOUTUBE_CLIENT_ID", "yt-client-id")
os.environ.setdefault("YOUTUBE_CLIENT_SECRET", "yt-client-secret")
os.environ.setdefault("TIKTOK_CLIENT_KEY", "tt-client-key")
os.environ.setdefault("TIKTOK_CLIENT_SECRET", "tt-client-secret")
os.environ.setdefault("INSTAGRAM_CLIENT_ID", "ig-client-id")
os.environ.setdefault("INSTAGRAM_CLIENT_SECRET", "ig-client-secret")

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.exceptions import StorageError
from app.core.security import AuthContext
from app.db import helpers as db_helpers
from app.db import redis as redis_module
from app.db.session import get_db
from app.models import Base
from app.models.social_connection import SocialConnection
from app.models.video import Video
from app.services.storage.object_store import get_object_store
from app.utils.encryption import encrypt


# SQLite in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

# Create test engine with StaticPool for in-memory database
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

TEST_USER_ID = "user-1"
OTHER_USER_ID = "user-2"
TEST_SESSION_ID = "test-session-0001"
SESSION_TTL = 30 * 24 * 60 * 60


class FakeObjectStore:
    """In-memory stand-in for the S3 object store"""

    def __init__(self):
        self.objects = {}
        self.deleted: List[str] = []
        self.fail_signing = False
        self.signed: List[tuple] = []

    def generate_download_url(self, object_key: str, expires_in: int = None) -> str:
        if self.fail_signing:
            raise StorageError("Failed to create signed URL")
        self.signed.append((object_key, expires_in))
        return f"https://storage.test/{object_key}?expires={expires_in}"

    def upload_fileobj(self, fileobj, object_key: str, content_type: str) -> None:
        self.objects[object_key] = (fileobj.read(), content_type)

    def delete_object(self, object_key: str) -> bool:
        self.deleted.append(object_key)
        self.objects.pop(object_key, None)
        return True

    def delete_objects(self, object_keys) -> int:
        keys = list(object_keys)
        for key in keys:
            self.delete_object(key)
        return len(keys)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh SQLite in-memory database session for each test"""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def mock_redis():
    """Replace the lazy Redis client with fakeredis"""
    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)
    with patch.object(redis_module, "_client", fake_redis):
        yield fake_redis


@pytest.fixture(scope="function")
def session_for(mock_redis):
    """Write sessions the way the identity provider does"""
    def _seed(session_id: str, user_id: str) -> None:
        mock_redis.setex(f"session:{session_id}", SESSION_TTL, user_id)
    return _seed


@pytest.fixture(scope="function")
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture(scope="function")
def client(db_session: Session, mock_redis, object_store) -> Generator[TestClient, None, None]:
    """FastAPI test client with test database, fake storage and mocked Redis"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close session here, handled by fixture

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_object_store] = lambda: object_store

    try:
        # Disable OpenTelemetry in tests
        with patch("app.core.otel.initialize_tracing", return_value=False):
            with TestClient(app) as test_client:
                yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def authenticated_client(client: TestClient, session_for) -> TestClient:
    """Client carrying a session cookie for TEST_USER_ID"""
    session_for(TEST_SESSION_ID, TEST_USER_ID)
    client.cookies.set("session_id", TEST_SESSION_ID)
    return client


@pytest.fixture
def auth() -> AuthContext:
    return AuthContext(user_id=TEST_USER_ID, session_id=TEST_SESSION_ID)


@pytest.fixture
def other_auth() -> AuthContext:
    return AuthContext(user_id=OTHER_USER_ID, session_id="other-session")


@pytest.fixture
def make_video(db_session: Session) -> Callable[..., Video]:
    """Factory for stored videos"""

    def _make(user_id: str = TEST_USER_ID, **overrides) -> Video:
        fields = dict(
            title="Demo",
            description="A demo video",
            file_path=f"{user_id}/1700000000000.mp4",
            file_name="demo.mp4",
            file_size=11,
            mime_type="video/mp4",
        )
        fields.update(overrides)
        return db_helpers.add_video(db_session, user_id, **fields)

    return _make


@pytest.fixture
def make_connection(db_session: Session) -> Callable[..., SocialConnection]:
    """Factory for stored platform connections"""

    def _make(platform: str, user_id: str = TEST_USER_ID, access_token: str = "access-token",
              refresh_token: str = None, token_expires_at=None,
              platform_user_id: str = None) -> SocialConnection:
        return db_helpers.upsert_connection(db_session, user_id, platform, {
            "platform_user_id": platform_user_id or f"{platform}-account-1",
            "platform_username": f"{platform} user",
            "access_token": encrypt(access_token),
            "refresh_token": encrypt(refresh_token),
            "token_expires_at": token_expires_at,
            "scope": None,
        })

    return _make


class VendorRecorder:
    """httpx.MockTransport handler that records requests and answers from a routing function"""

    def __init__(self, route: Callable[[httpx.Request], httpx.Response]):
        self.route = route
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.route(request)

    def client_factory(self):
        transport = httpx.MockTransport(self)

        def factory(timeout=None):
            return httpx.AsyncClient(transport=transport)

        return factory

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    def calls_to(self, path_fragment: str) -> List[httpx.Request]:
        return [r for r in self.requests if path_fragment in str(r.url)]


@pytest.fixture
def vendor():
    """Build a VendorRecorder from a routing function"""
    return VendorRecorder
