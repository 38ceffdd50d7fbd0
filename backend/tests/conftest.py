import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import oncelink.main as main_module
from oncelink.clock import get_clock
from oncelink.config import Settings, get_settings
from oncelink.database import Base, get_db
from oncelink.main import app
from tests.test_utils import FixedClock


@pytest.fixture
def db_session():
    """Create a fresh in-memory database for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def app_settings():
    """Settings with a generous rate limit; tests lower it where they need to."""
    return Settings(
        database_url="sqlite:///:memory:",
        max_requests=1000,
        time_window=60,
        data_storage_time=86400,
        max_payload=10_000,
        trust_forwarded_for=False,
    )


@pytest.fixture
def client(db_session, clock, app_settings):
    """Create a test client wired to the test database, clock and settings."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_settings] = lambda: app_settings

    # Override the engine used by check_database_tables() so it checks the test database
    original_engine = main_module.engine
    main_module.engine = db_session.get_bind()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    main_module.engine = original_engine
