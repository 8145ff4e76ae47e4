# tests/conftest.py

import os

# Settings are read at import time, so the test environment goes in first.
os.environ["ENV"] = "local"
os.environ["DATABASE_URL_LOCAL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = ""
os.environ["VENUE_TIMEZONE"] = "Europe/Paris"

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.testclient import TestClient

from app.main import app
from app.api import deps
from app.models import Base
from app.schemas.token import TokenPayload
from app.services.notifications import TicketNotifier
from app.services.payment.provider_interface import PaymentProviderInterface


# --- In-memory test database ---
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def second_db(db):
    """A second session on the same database, for interleaving two requests."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def session_factory(db):
    """Factory handing out the test session, for code that opens its own."""
    # Background jobs close their session; keep the test session usable.
    db.close = MagicMock()
    yield MagicMock(return_value=db)
    del db.close


# --- Collaborator mocks ---
@pytest.fixture
def notifier():
    return MagicMock(spec=TicketNotifier)


@pytest.fixture
def provider():
    mock = MagicMock(spec=PaymentProviderInterface)
    mock.create_checkout_session = AsyncMock()
    mock.expire_checkout_session = AsyncMock()
    mock.get_checkout_session = AsyncMock()
    mock.health_check = AsyncMock()
    return mock


def override_get_current_user():
    return TokenPayload(sub="staff_123", orgId="museum", exp=9999999999)


# --- Test Client Fixtures ---
@pytest.fixture(scope="function")
def client(db, provider, notifier):
    """
    TestClient bound to the test database, with staff auth, the payment
    provider and the notifier replaced by mocks.
    """
    app.dependency_overrides[deps.get_db] = lambda: db
    app.dependency_overrides[deps.get_current_user] = override_get_current_user
    app.dependency_overrides[deps.get_payment_provider_optional] = lambda: provider
    app.dependency_overrides[deps.get_notifier] = lambda: notifier

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def anonymous_client(db, provider, notifier):
    """TestClient without the staff auth override."""
    app.dependency_overrides[deps.get_db] = lambda: db
    app.dependency_overrides[deps.get_payment_provider_optional] = lambda: provider
    app.dependency_overrides[deps.get_notifier] = lambda: notifier

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
