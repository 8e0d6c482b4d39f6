"""Shared test fixtures."""
from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from tiktrack.config import Settings
from tiktrack.models.profile import ProfileAnalytics, ProfileRecord, TrackedAccount  # noqa: F401
from tiktrack.models.status import StatusRecord  # noqa: F401

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="test_session")
def test_session_fixture(engine) -> Generator[Session, None, None]:
    """Provides a DB session connected to in-memory SQLite."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="settings")
def settings_fixture() -> Settings:
    """Settings with a fake API key and short timeouts; never reads .env."""
    return Settings(
        _env_file=None,
        rapidapi_key="test-key",
        provider_timeout_seconds=2.0,
        refresh_concurrency=2,
        posts_per_refresh=10,
    )


@pytest.fixture(name="tracked_accounts")
def tracked_accounts_fixture(test_session: Session):
    """Three tracked accounts A, B, C."""
    accounts = [
        TrackedAccount(account_id="1111111111", handle="alpha"),
        TrackedAccount(account_id="2222222222", handle="bravo"),
        TrackedAccount(account_id="3333333333", handle="charlie"),
    ]
    for a in accounts:
        test_session.add(a)
    test_session.commit()
    return [a.account_id for a in accounts]
