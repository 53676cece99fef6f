"""
Test configuration and fixtures for Foodcheck.

- SQLite in-memory engine shared across the session (StaticPool, one connection)
- Function-scoped session; tables are created before and dropped after each test
- TestClient with the database, Claude and gateway dependencies overridden
- Public data calls go through httpx.MockTransport, never the network
"""

import os

# Must be set before app.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ANTHROPIC_API_KEY", "")
os.environ.setdefault("PUBLIC_DATA_SERVICE_KEY", "")
os.environ.setdefault("RECIPE_API_KEY", "")

from typing import Generator

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.dependencies import get_claude_service, get_gateway, get_quota
from app.database import Base, get_db
from app.main import app
from app.models import User
from app.services.external_data_service import ExternalDataGateway
from app.services.medicine_cache_service import MedicineCacheService
from app.services.quota_service import InMemoryUsageStore, QuotaGate


# =============================================================================
# Database Fixtures
# =============================================================================


def get_test_database_url() -> str:
    """TEST_DATABASE_URL if set, otherwise a private in-memory SQLite database."""
    return os.environ.get("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture(scope="session")
def test_engine():
    database_url = get_test_database_url()
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(database_url)

    yield engine

    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test engine, with fresh tables per test."""
    Base.metadata.create_all(test_engine)
    factory = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)

    yield factory

    Base.metadata.drop_all(test_engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()

    yield session

    session.rollback()
    session.close()


# =============================================================================
# Service Fixtures
# =============================================================================


def offline_transport(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("network disabled in tests", request=request)


@pytest.fixture
def quota() -> QuotaGate:
    """Fresh in-memory quota gate with small ceilings."""
    return QuotaGate(
        limits={"drug_info": 10, "health_food": 10, "recipe": 10},
        store=InMemoryUsageStore(),
        timezone="Asia/Seoul",
        warning_ratio=0.8,
    )


@pytest.fixture
async def gateway(db: Session, quota: QuotaGate):
    """Gateway without service keys: drug lookups and recipes use synthetic data."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(offline_transport))
    gateway = ExternalDataGateway(
        quota=quota,
        medicine_cache=MedicineCacheService(db),
        client=client,
        service_key="",
        recipe_key="",
    )

    yield gateway

    await client.aclose()


@pytest.fixture
def mock_claude_service():
    """Configurable stand-in for ClaudeService."""
    from tests.fixtures.mocks import MockClaudeService

    return MockClaudeService()


# =============================================================================
# TestClient Fixtures
# =============================================================================


@pytest.fixture
def client(db: Session, quota: QuotaGate, mock_claude_service) -> Generator[TestClient, None, None]:
    """
    TestClient with database, Claude and gateway dependency overrides.

    The database session is injected into the app's get_db dependency.
    """

    def override_get_db():
        try:
            yield db
        finally:
            pass  # Don't close - managed by db fixture

    async def override_get_gateway():
        client = httpx.AsyncClient(transport=httpx.MockTransport(offline_transport))
        gateway = ExternalDataGateway(
            quota=quota,
            medicine_cache=MedicineCacheService(db),
            client=client,
            service_key="",
            recipe_key="",
        )
        try:
            yield gateway
        finally:
            await client.aclose()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_quota] = lambda: quota
    app.dependency_overrides[get_claude_service] = lambda: mock_claude_service
    app.dependency_overrides[get_gateway] = override_get_gateway

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# Test Data Fixtures
# =============================================================================


@pytest.fixture
def test_user(db: Session) -> User:
    from tests.factories import create_user

    return create_user(db, email="testuser@example.com", age=58, gender="female")


# =============================================================================
# pytest markers
# =============================================================================


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m not slow')")
