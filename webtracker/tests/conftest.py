"""
Shared fixtures: keypairs, in-memory collaborators, and a test app wired to
an in-memory SQLite database.
"""
import asyncio
import uuid
from datetime import datetime, timedelta
from typing import Dict, Optional, Set, Tuple

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from webtracker.core.auth import Authenticator, ClaimResult, DeviceRecord
from webtracker.core.auth.bearer import JwtBearerVerifier
from webtracker.core.config import AuthConfig, Settings
from webtracker.core.database import Base, Device, SqlAuthStore, User, get_db
from webtracker.core.signing import generate_keypair, public_key_to_base64

JWT_SECRET = "test-secret-with-enough-length-for-hs256"
JWT_ISSUER = "webtracker-test"
JWT_AUDIENCE = "webtracker-test-api"


# ============================================================
# In-memory collaborators
# ============================================================

class FakeDeviceRegistry:
    """Dict-backed device registry; records every lookup."""

    def __init__(self):
        self.devices: Dict[str, DeviceRecord] = {}
        self.lookups = []
        self.delay: float = 0.0

    def add(self, record: DeviceRecord) -> None:
        self.devices[record.device_id] = record

    def revoke(self, device_id: str) -> None:
        current = self.devices[device_id]
        self.devices[device_id] = DeviceRecord(
            device_id=current.device_id,
            public_key=current.public_key,
            user_id=current.user_id,
            revoked=True,
        )

    async def get_device(self, device_id: str) -> Optional[DeviceRecord]:
        self.lookups.append(device_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.devices.get(device_id)


class FakeNonceStore:
    """
    Set-backed nonce store.

    Check-and-insert happens without an await in between, so it is atomic
    with respect to other coroutines on the loop.
    """

    def __init__(self):
        self.claimed: Set[Tuple[str, str]] = set()
        self.calls = []
        self.delay: float = 0.0

    async def claim_nonce(self, nonce: str, device_id: str, timestamp: int) -> ClaimResult:
        self.calls.append((nonce, device_id, timestamp))
        if self.delay:
            await asyncio.sleep(self.delay)
        key = (nonce, device_id)
        if key in self.claimed:
            return ClaimResult.ALREADY_USED
        self.claimed.add(key)
        return ClaimResult.CLAIMED


class FakeBearerVerifier:
    """Maps known tokens to user ids."""

    def __init__(self, tokens: Optional[Dict[str, str]] = None):
        self.tokens = tokens or {}
        self.calls = []

    async def verify_bearer(self, token: str) -> Optional[str]:
        self.calls.append(token)
        return self.tokens.get(token)


# ============================================================
# Keys and signed-request helpers
# ============================================================

@pytest.fixture
def keypair():
    private_key, public_key = generate_keypair()
    return private_key, public_key_to_base64(public_key)


@pytest.fixture
def device_registry():
    return FakeDeviceRegistry()


@pytest.fixture
def nonce_store():
    return FakeNonceStore()


@pytest.fixture
def bearer_verifier():
    return FakeBearerVerifier({"good-token": "firebase-uid-1"})


@pytest.fixture
def registered_device(device_registry, keypair):
    """A usable device in the fake registry, with its private key."""
    private_key, public_b64 = keypair
    record = DeviceRecord(
        device_id="phone-0001",
        public_key=public_b64,
        user_id=str(uuid.uuid4()),
        revoked=False,
    )
    device_registry.add(record)
    return record, private_key


# ============================================================
# Database and app
# ============================================================

@pytest.fixture
def session_factory():
    """In-memory SQLite shared by every session and thread of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def test_db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def test_settings():
    return Settings(
        database_url="sqlite://",
        bearer_backend="jwt",
        jwt_secret=JWT_SECRET,
        jwt_issuer=JWT_ISSUER,
        jwt_audience=JWT_AUDIENCE,
        auto_create_tables=False,
    )


@pytest.fixture
def jwt_verifier():
    return JwtBearerVerifier(JWT_SECRET, JWT_ISSUER, JWT_AUDIENCE)


@pytest.fixture
def app(test_settings, session_factory, jwt_verifier):
    from webtracker.api.main import create_app

    store = SqlAuthStore(session_factory)
    app_authenticator = Authenticator(
        config=AuthConfig.from_settings(test_settings),
        devices=store,
        nonces=store,
        bearer=jwt_verifier,
    )
    application = create_app(test_settings, authenticator=app_authenticator)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


def make_token(user_id: str, expires_in: int = 3600, **overrides) -> str:
    """Mint an identity token the jwt bearer backend accepts."""
    now = datetime.utcnow()
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
        "iss": JWT_ISSUER,
        "aud": JWT_AUDIENCE,
    }
    payload.update(overrides)
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def user(test_db):
    """Registered user row."""
    row = User(id=uuid.uuid4(), auth_uid="firebase-uid-1", email="owner@example.com")
    test_db.add(row)
    test_db.commit()
    test_db.refresh(row)
    return row


@pytest.fixture
def user_token(user):
    return make_token(user.auth_uid)


@pytest.fixture
def linked_device(test_db, user, keypair):
    """Device row owned by `user`, with the private key to sign for it."""
    private_key, public_b64 = keypair
    device = Device(
        device_id="phone-0001",
        user_id=user.id,
        public_key=public_b64,
        label="Test phone",
        revoked=False,
    )
    test_db.add(device)
    test_db.commit()
    return device.device_id, private_key
