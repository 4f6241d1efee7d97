"""Shared fixtures for the test suite."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from journey.main import app
from journey.tracker.calendar_policy import CalendarPolicy
from journey.tracker.engine import ActivityTracker
from journey.tracker.router import get_tracker
from journey.tracker.store import InMemoryStore

# Wednesday; the Sunday-based week is 2026-10-11 .. 2026-10-17.
NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)
TODAY = date(2026, 10, 14)


# ---------------------------------------------------------------------------
# Controllable clock (no wall-clock time in tests)
# ---------------------------------------------------------------------------

class FakeClock:
    """Callable clock whose current moment tests move by hand."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store():
    return InMemoryStore()


@pytest.fixture()
def policy():
    return CalendarPolicy()


@pytest.fixture()
def tracker(store, policy, clock):
    return ActivityTracker(store, policy=policy, clock=clock)


@pytest.fixture()
def override_tracker(tracker):
    """Override the FastAPI dependency so no real storage is needed."""
    app.dependency_overrides[get_tracker] = lambda: tracker
    yield tracker
    app.dependency_overrides.clear()


@pytest.fixture()
async def client(override_tracker):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def days_ago(n: int, today: date = TODAY) -> date:
    return today - timedelta(days=n)
