"""Shared pytest fixtures for test suite"""
import json
import os
import secrets
import sys
import time
from pathlib import Path
from typing import Generator
from unittest.mock import patch

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("APP_URL", "https://pay.flowkora.test")
os.environ.setdefault("FRONTEND_URL", "https://app.flowkora.test")
os.environ.setdefault("WEBHOOK_SECRET", "whsec_test_secret")

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from app.main import app
from app.core.config import settings
from app.core.exceptions import Unauthorized
from app.core.security import get_identity_provider, get_merchant_notifier
from app.db import redis as redis_module
from app.db.session import get_db
from app.models import Base
from app.models.merchant import Merchant
from app.services.identity_service import Principal
from app.services.notification_service import compute_signature, SIGNATURE_HEADER, TIMESTAMP_HEADER


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

VALID_AUTH_CODE = "valid-auth-code"


class FakeIdentityProvider:
    """Accepts VALID_AUTH_CODE and signs in merchant-a"""

    def __init__(self):
        self.exchanged = []

    def exchange_code(self, code, code_verifier=None):
        self.exchanged.append(code)
        if code != VALID_AUTH_CODE:
            raise Unauthorized("Invalid or expired authorization code.")
        return Principal(id="merchant-a", email="merchant-a@example.com")

    def close(self):
        pass


class RecordingNotifier:
    """Collects merchant notifications instead of sending them"""

    def __init__(self):
        self.sent = []

    def notify(self, webhook_url, event):
        self.sent.append((webhook_url, event))
        return True

    def close(self):
        pass


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
    """Replace the Redis client with fakeredis"""
    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)
    with patch.object(redis_module, "_client", fake_redis):
        yield fake_redis


@pytest.fixture(scope="function")
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture(scope="function")
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture(scope="function")
def client(db_session: Session, mock_redis, identity_provider, notifier) -> Generator[TestClient, None, None]:
    """FastAPI test client with test database, fakeredis and fake third-party clients"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close session here, handled by fixture

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider
    app.dependency_overrides[get_merchant_notifier] = lambda: notifier

    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def merchant(db_session: Session) -> Merchant:
    merchant = Merchant(id="merchant-a", email="merchant-a@example.com")
    db_session.add(merchant)
    db_session.commit()
    db_session.refresh(merchant)
    return merchant


@pytest.fixture(scope="function")
def other_merchant(db_session: Session) -> Merchant:
    merchant = Merchant(id="merchant-b", email="merchant-b@example.com")
    db_session.add(merchant)
    db_session.commit()
    db_session.refresh(merchant)
    return merchant


def login_as(client: TestClient, redis_client, merchant_id: str) -> str:
    """Open a session for merchant_id and attach its cookie to the client"""
    session_id = secrets.token_urlsafe(32)
    redis_client.setex(f"session:{session_id}", redis_module.SESSION_TTL, merchant_id)
    client.cookies.set("session_id", session_id)
    return session_id


@pytest.fixture(scope="function")
def authenticated_client(client: TestClient, merchant: Merchant, mock_redis) -> TestClient:
    """Client with a session for merchant-a"""
    login_as(client, mock_redis, merchant.id)
    return client


def signed_webhook(payload: dict, secret: str = None, timestamp: int = None):
    """Body and headers for a signed payment status webhook"""
    body = json.dumps(payload).encode()
    ts = timestamp if timestamp is not None else int(time.time())
    signature = compute_signature(body, secret or settings.WEBHOOK_SECRET, ts)
    headers = {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: signature,
        TIMESTAMP_HEADER: str(ts),
    }
    return body, headers
