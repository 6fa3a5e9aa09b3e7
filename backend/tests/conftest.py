"""Shared pytest fixtures for test suite"""
import hashlib
import hmac
import json
import sys
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import fakeredis
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
from fastapi.testclient import TestClient
from google.auth import crypt
from google.auth import jwt as google_jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from scholarstream.main import app
from scholarstream.core.config import settings
from scholarstream.core import security as security_module
from scholarstream.core.security import require_auth
from scholarstream.db import redis as redis_module
from scholarstream.db.session import get_db
from scholarstream.db.store import Store
from scholarstream.models import Base, Scholarship, User
from scholarstream.services.scholarship_service import format_calendar_date


# SQLite in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

TEST_WEBHOOK_SECRET = "whsec_test_secret"
TEST_FIREBASE_PROJECT = "scholarstream-test"
TEST_SIGNING_KEY_ID = "test-signing-key"


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
def store(db_session: Session) -> Store:
    return Store(db_session)


@pytest.fixture(scope="function")
def mock_redis():
    """Swap the lazily created Redis client for fakeredis"""
    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)
    with patch.object(redis_module, "_client", fake_redis):
        yield fake_redis


@pytest.fixture(scope="function")
def client(db_session: Session, mock_redis) -> Generator[TestClient, None, None]:
    """FastAPI test client with test database and mocked Redis"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close session here, handled by fixture

    app.dependency_overrides[get_db] = override_get_db

    try:
        with patch("scholarstream.main.init_db"):
            with patch("scholarstream.main.instrument_sqlalchemy"):
                with TestClient(app) as test_client:
                    yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def login_as(client: TestClient):
    """Make subsequent requests arrive with a verified identity for ``email``"""
    def _login(email: str) -> TestClient:
        app.dependency_overrides[require_auth] = lambda: email
        return client
    return _login


def _make_user(db_session: Session, email: str, role: str = "student", name: str = None) -> User:
    user = User(email=email, name=name or email.split("@")[0], role=role)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
def student(db_session: Session) -> User:
    return _make_user(db_session, "student@example.com", name="Test Student")


@pytest.fixture(scope="function")
def other_student(db_session: Session) -> User:
    return _make_user(db_session, "other@example.com", name="Other Student")


@pytest.fixture(scope="function")
def moderator(db_session: Session) -> User:
    return _make_user(db_session, "moderator@example.com", role="moderator")


@pytest.fixture(scope="function")
def admin_user(db_session: Session) -> User:
    return _make_user(db_session, "admin@example.com", role="admin")


def _make_scholarship(db_session: Session, deadline: str, **overrides) -> Scholarship:
    fields = dict(
        name="Global Excellence Scholarship",
        university_name="University of Testing",
        image="https://img.example.com/scholarship.png",
        country="Canada",
        category="Full fund",
        degree="Masters",
        application_fee=50,
        service_charge=10,
        deadline=deadline,
        post_date=format_calendar_date(datetime.now(timezone.utc).date()),
        posted_by="admin@example.com"
    )
    fields.update(overrides)
    scholarship = Scholarship(**fields)
    db_session.add(scholarship)
    db_session.commit()
    db_session.refresh(scholarship)
    return scholarship


@pytest.fixture(scope="function")
def scholarship(db_session: Session) -> Scholarship:
    """Open scholarship: fee 50, service charge 10, deadline 30 days out"""
    deadline = datetime.now(timezone.utc).date() + timedelta(days=30)
    return _make_scholarship(db_session, format_calendar_date(deadline))


@pytest.fixture(scope="function")
def expired_scholarship(db_session: Session) -> Scholarship:
    deadline = datetime.now(timezone.utc).date() - timedelta(days=1)
    return _make_scholarship(db_session, format_calendar_date(deadline), name="Closed Scholarship")


@pytest.fixture(scope="function")
def make_scholarship(db_session: Session):
    def _factory(deadline: str, **overrides) -> Scholarship:
        return _make_scholarship(db_session, deadline, **overrides)
    return _factory


@pytest.fixture(scope="function")
def webhook_secret():
    with patch.object(settings, "STRIPE_WEBHOOK_SECRET", TEST_WEBHOOK_SECRET):
        yield TEST_WEBHOOK_SECRET


def sign_stripe_payload(payload: bytes, secret: str = TEST_WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a stripe-signature header the way Stripe does (v1 HMAC-SHA256)"""
    timestamp = timestamp or int(time.time())
    signed_payload = f"{timestamp}.".encode() + payload
    signature = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def checkout_completed_event(application_id, session_id: str = "cs_test_123", event_id: str = "evt_test_123") -> bytes:
    """Serialized checkout.session.completed event"""
    metadata = {} if application_id is None else {"application_id": str(application_id)}
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "payment_status": "paid",
                "metadata": metadata
            }
        }
    }).encode()


@pytest.fixture(scope="session")
def token_signing_keys():
    """RSA key and self-signed certificate standing in for Google's securetoken keys"""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "securetoken.test")])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption()
    )
    return private_pem, cert.public_bytes(serialization.Encoding.PEM).decode()


@pytest.fixture(scope="function")
def firebase_project(token_signing_keys):
    """Configure the Firebase project and serve the test certificate instead of Google's"""
    _, cert_pem = token_signing_keys
    with patch.object(settings, "FIREBASE_PROJECT_ID", TEST_FIREBASE_PROJECT):
        with patch.object(security_module.id_token, "_fetch_certs", return_value={TEST_SIGNING_KEY_ID: cert_pem}):
            yield TEST_FIREBASE_PROJECT


@pytest.fixture(scope="function")
def mint_id_token(token_signing_keys):
    """Sign Firebase-shaped ID tokens; keyword arguments override claims"""
    private_pem, _ = token_signing_keys

    def _mint(email: str, project: str = TEST_FIREBASE_PROJECT, **claims) -> str:
        now = int(time.time())
        payload = {
            "iss": f"https://securetoken.google.com/{project}",
            "aud": project,
            "sub": "firebase-uid-123",
            "email": email,
            "email_verified": True,
            "iat": now - 10,
            "exp": now + 3600,
        }
        payload.update(claims)
        signer = crypt.RSASigner.from_string(private_pem, key_id=TEST_SIGNING_KEY_ID)
        return google_jwt.encode(signer, payload).decode()

    return _mint
