"""
Pytest configuration and shared fixtures for email verification tests.
"""

import os

# Set required environment variables BEFORE importing app modules
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_import_only.db")
os.environ.setdefault("SMTP_HOST", "")
os.environ.setdefault("SMTP_USER", "")
os.environ.setdefault("VERIFICATION_DEV_MODE", "false")

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import sessionmaker

from app.core.database import Base, make_engine
from app.core.errors import NotificationDeliveryFailed
from app.models import User
from app.services.identity import SqlIdentityDirectory
from app.services.notifier import Notifier
from app.services.verification import VerificationService


class FakeClock:
    """Mutable UTC clock; advance() moves time forward without sleeping."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent = []

    def send(self, address, kind, payload):
        self.sent.append((address, kind, payload))
        return True


class FailingNotifier(Notifier):
    """Fails every delivery, either by returning False or by raising."""

    def __init__(self, raise_error=True):
        self.raise_error = raise_error
        self.attempts = 0

    def send(self, address, kind, payload):
        self.attempts += 1
        if self.raise_error:
            raise NotificationDeliveryFailed("SMTP relay down")
        return False


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so several sessions can share one database."""
    eng = make_engine(f"sqlite:///{tmp_path / 'verification.db'}", timeout_seconds=1)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


def create_user(db, email="a@example.com", full_name="Alice Example", confirmed_at=None):
    user = User(
        id=str(uuid.uuid4()),
        email=email,
        full_name=full_name,
        email_confirmed_at=confirmed_at,
    )
    db.add(user)
    db.commit()
    return user.id


@pytest.fixture
def user_id(db):
    """Unconfirmed user a@example.com."""
    return create_user(db)


@pytest.fixture
def make_service(db, clock, notifier):
    def _make(session=None, **kwargs):
        session = session or db
        kwargs.setdefault("notifier", notifier)
        return VerificationService(
            session,
            identity=SqlIdentityDirectory(session, clock=clock),
            clock=clock,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_user(db):
    def _make(email, **kwargs):
        return create_user(db, email=email, **kwargs)

    return _make


@pytest.fixture
def failing_notifier():
    return FailingNotifier(raise_error=True)


@pytest.fixture
def silent_failing_notifier():
    return FailingNotifier(raise_error=False)
