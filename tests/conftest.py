"""Shared test fixtures."""
from typing import Generator
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from wellcheck.models.forward import ForwardLog  # noqa: F401
from wellcheck.models.meal import MealRecord  # noqa: F401
from wellcheck.models.profile import DeviceProfile  # noqa: F401
from wellcheck.models.state import (  # noqa: F401
    AlertStateRecord,
    BatchStateRecord,
    LocationStateRecord,
    SleepWindowRecord,
)
from wellcheck.config import Settings
from wellcheck.db.state_store import StateStore

FAMILY_ID = "family_test-0001"


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
    """Default thresholds, no .env, no remote credentials."""
    return Settings(_env_file=None, firestore_project_id="test-project")


@pytest.fixture(name="store")
def store_fixture(engine) -> StateStore:
    return StateStore(engine)


@pytest.fixture(name="paired_store")
def paired_store_fixture(store) -> StateStore:
    """StateStore with a completed pairing profile."""
    store.save_profile(
        family_id=FAMILY_ID,
        pairing_code="4821",
        elderly_name="김말자",
    )
    return store


@pytest.fixture(name="remote")
def remote_fixture() -> AsyncMock:
    """Remote store double: every write succeeds, queries return nothing."""
    remote = AsyncMock()
    remote.update.return_value = None
    remote.query.return_value = []
    return remote
