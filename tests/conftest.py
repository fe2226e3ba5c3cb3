"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from weekly_picks.database import connection
from weekly_picks.database.connection import Base, enable_sqlite_savepoints
from weekly_picks.database.models import Profile
from weekly_picks.security.auth import hash_token
from weekly_picks.security.rate_limiter import rate_limiter

from tests.fixtures.sample_reports import make_report_payload, report_filename

ADMIN_TOKEN = "test-admin-token"
MEMBER_TOKEN = "test-member-token"


@pytest.fixture
def test_db_engine(tmp_path):
    """File-backed SQLite engine with SAVEPOINT support, fresh per test."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'weekly_picks.db'}",
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_db_engine):
    return sessionmaker(bind=test_db_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def test_db_session(session_factory):
    """Create a test database session with proper cleanup."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def bound_database(monkeypatch, test_db_engine, session_factory):
    """Point the lazily initialized application engine at the test database."""
    monkeypatch.setattr(connection, "engine", test_db_engine)
    monkeypatch.setattr(connection, "SessionLocal", session_factory)
    return test_db_engine


@pytest.fixture
def admin_profile(session_factory) -> Profile:
    """Admin profile authenticated by ADMIN_TOKEN."""
    with session_factory() as session:
        profile = Profile(display_name="Test Admin", is_admin=True, api_token_hash=hash_token(ADMIN_TOKEN))
        session.add(profile)
        session.commit()
        return profile


@pytest.fixture
def member_profile(session_factory) -> Profile:
    """Non-admin profile authenticated by MEMBER_TOKEN."""
    with session_factory() as session:
        profile = Profile(display_name="Test Member", is_admin=False, api_token_hash=hash_token(MEMBER_TOKEN))
        session.add(profile)
        session.commit()
        return profile


@pytest.fixture
def sample_payload():
    """Valid v1 report for 2025-01-07 (ISO week 2025-W02) with three picks."""
    return make_report_payload()


@pytest.fixture
def sample_filename():
    return report_filename("2025-01-07")


@pytest.fixture
def mock_settings():
    """Mock settings for testing."""
    return {
        "DATABASE_URL": "sqlite:///:memory:",
        "DEPLOYMENT_MODE": "test",
        "DEFAULT_REPORT_VERSION": "v1",
        "PERMALINK_SUFFIX": "us-market-report",
        "IMPORTS_LIST_RATE_LIMIT": 30,
        "IMPORTS_UPLOAD_RATE_LIMIT": 10,
        "MAX_REQUEST_BYTES": 6 * 1024 * 1024,
    }


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Setup test environment variables and reset in-memory state."""
    monkeypatch.setenv("DEPLOYMENT_MODE", "test")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("AUTO_CREATE_SCHEMA", "false")
    rate_limiter.reset()
    yield
    rate_limiter.reset()
