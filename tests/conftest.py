# =============================================================================
# Shared Test Fixtures
# =============================================================================
#
# Persistence tests run against in-memory SQLite (one shared connection via
# StaticPool) with a controllable clock, so no database server is needed.
# =============================================================================

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rfi_agent.db.models import Base
from rfi_agent.services.job_store import JobStore


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def job_store(session_factory, clock) -> JobStore:
    return JobStore(
        session_factory=session_factory,
        clock=clock,
        retention=timedelta(hours=1),
    )
