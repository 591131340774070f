"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app
from api.scheduler import get_scheduler
from services.evaluation_scheduler import EvaluationScheduler
from services.price_cache import PriceCache
from services.repositories import (
    SqlAlertRepository,
    SqlHoldingRepository,
    SqlSnapshotRepository,
)
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import (  # noqa: F401
    alert,
    holding,
    triggered_alert,
)
from tests.fixtures.mocks import MockPriceSource, RecordingNotificationDispatcher


@pytest.fixture(name="db_engine")
def engine_fixture():
    """Create an in-memory SQLite engine shared by every session in a test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(name="session_factory")
def session_factory_fixture(db_engine):
    """Sessionmaker bound to the test engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(name="db")
def db_fixture(session_factory):
    """Create a session on the in-memory SQLite database for testing."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(name="price_source")
def price_source_fixture():
    """Mock price source with bitcoin and ethereum quotes."""
    return MockPriceSource({"bitcoin": "40000", "ethereum": "2500"})


@pytest.fixture(name="dispatcher")
def dispatcher_fixture():
    """Notification dispatcher that records what it sends."""
    return RecordingNotificationDispatcher()


@pytest.fixture(name="scheduler")
def scheduler_fixture(session_factory, price_source, dispatcher):
    """EvaluationScheduler wired to the test database and mock prices.

    A single worker keeps units serial on the shared SQLite connection.
    """
    return EvaluationScheduler(
        price_cache=PriceCache(price_source, ttl_seconds=0.0),
        holding_repository=SqlHoldingRepository(session_factory),
        alert_repository=SqlAlertRepository(session_factory),
        snapshot_repository=SqlSnapshotRepository(session_factory),
        dispatcher=dispatcher,
        max_workers=1,
    )


@pytest.fixture(name="client")
def client_fixture(session_factory, scheduler):
    """Create a test client with the test database and scheduler."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def override_get_scheduler():
        return scheduler

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_scheduler] = override_get_scheduler
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
