"""Shared fixtures: in-memory database, recording mailer and fake Redis."""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("EMAIL_ASYNC", "false")
os.environ.setdefault("FRONTEND_URL", "http://frontend.test")

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_mailer, get_rate_limiter
from app.core.database import Base, build_engine, get_db
from app.main import app
from app.models.track import Track
from app.models.user import User
from app.services.rate_limit import RateLimiter
from app.services.security import PasswordHasher
from app.services.sessions import SessionIssuer


class RecordingMailer:
    """Captures outgoing messages instead of sending them."""

    def __init__(self):
        self.sent = []

    def send_verification_email(self, address, code):
        self.sent.append(("verification", address, code))

    def send_welcome_email(self, address, username):
        self.sent.append(("welcome", address, username))

    def send_password_reset_email(self, address, link):
        self.sent.append(("reset", address, link))

    def send_reset_success_email(self, address):
        self.sent.append(("reset_success", address, None))

    def of_kind(self, kind):
        return [message for message in self.sent if message[0] == kind]

    def last_code(self, address):
        codes = [code for kind, to, code in self.sent if kind == "verification" and to == address]
        return codes[-1]

    def last_reset_token(self, address):
        links = [link for kind, to, link in self.sent if kind == "reset" and to == address]
        return links[-1].rsplit("/", 1)[-1]


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.expiries = {}

    def incr(self, key):
        self.store[key] = int(self.store.get(key, 0)) + 1
        return self.store[key]

    def expire(self, key, seconds):
        self.expiries[key] = seconds
        return True

    def set(self, key, value, ex=None, nx=False):
        if nx and key in self.store:
            return None
        self.store[key] = value
        if ex is not None:
            self.expiries[key] = ex
        return True


@pytest.fixture
def db_session_maker():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(db_session_maker):
    session = db_session_maker()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def issuer():
    return SessionIssuer("test-secret-key", ttl=timedelta(hours=24))


@pytest.fixture
def client(db_session_maker, mailer, fake_redis):
    def override_get_db():
        session = db_session_maker()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_rate_limiter] = lambda: RateLimiter(fake_redis)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def signup(test_client, username="alice", email="alice@x.com", password="pw123456", full_name="Alice A"):
    return test_client.post(
        "/auth/signup",
        json={"username": username, "fullName": full_name, "email": email, "password": password},
    )


def signup_and_verify(test_client, mailer, username="alice", email="alice@x.com", password="pw123456"):
    """Sign up and verify an account; the session cookie stays on the client."""
    signup(test_client, username=username, email=email, password=password)
    response = test_client.post(
        "/auth/verify-email",
        json={"email": email, "code": mailer.last_code(email)},
    )
    assert response.status_code == 200
    return response.json()


def create_track(db_session_maker, author_id, title="Night Drive"):
    session = db_session_maker()
    track = Track(title=title, author_id=author_id)
    session.add(track)
    session.commit()
    track_id = track.id
    session.close()
    return track_id


def get_user(db_session_maker, username):
    session = db_session_maker()
    user = session.query(User).filter(User.username == username).first()
    session.expunge_all()
    session.close()
    return user
