"""Shared test fixtures."""

import uuid
from datetime import UTC, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from afroconnect.auth.models import User
from afroconnect.companies.models import Company
from afroconnect.consultations.models import Consultation
from afroconnect.database.base import Base
from afroconnect.documents.models import Document
from afroconnect.integrations.cache import NullCacheService
from afroconnect.messaging.models import Conversation, Message, ScheduledMessage
from afroconnect.notifications.models import Notification
from afroconnect.spotlight.models import Spotlight

# Models must be imported so Base.metadata.create_all() sees all tables.
_ALL_MODELS = [Company, Consultation, Document, Conversation, Message, ScheduledMessage, Notification, Spotlight]

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)


@pytest.fixture
def engine():
    """In-memory SQLite engine shared by every session of one test.

    SQLite doesn't support all PostgreSQL features (native UUID, enums),
    but works for service and job logic testing.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def make_user(db, email: str, first_name: str = "", last_name: str = "") -> User:
    user = User(
        id=uuid.uuid4(),
        email=email,
        password_hash="$2b$12$fakehash",
        first_name=first_name,
        last_name=last_name,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def test_user(db_session):
    return make_user(db_session, "amara@example.com", "Amara", "Okafor")


@pytest.fixture
def other_user(db_session):
    return make_user(db_session, "li.wei@example.com", "Li", "Wei")


@pytest.fixture
def conversation(db_session, test_user, other_user):
    conv = Conversation(id=uuid.uuid4(), is_group=False, participants=[test_user, other_user])
    db_session.add(conv)
    db_session.commit()
    return conv


@pytest.fixture
def null_cache():
    """No-op cache for testing."""
    return NullCacheService()


@pytest.fixture
def now():
    """Fixed clock for job tests."""
    return NOW


@pytest.fixture
def user_factory(db_session):
    def _make(email: str, first_name: str = "", last_name: str = "") -> User:
        return make_user(db_session, email, first_name, last_name)

    return _make
