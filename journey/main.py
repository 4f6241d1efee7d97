"""Main FastAPI application."""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI

from journey.config import settings
from journey.db import build_store
from journey.tracker.calendar_policy import CalendarPolicy
from journey.tracker.engine import ActivityTracker
from journey.tracker.router import router as activity_router
from journey.tracker.store import InMemoryStore, StoreUnavailable

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_tracker() -> ActivityTracker:
    """Construct the one tracker instance for this process from settings."""
    try:
        store = build_store()
    except StoreUnavailable as exc:
        logger.warning("Storage unavailable, tracking in memory only: %s", exc)
        store = InMemoryStore()
    return ActivityTracker(
        store=store,
        policy=CalendarPolicy.from_names(settings.default_tz, settings.week_start),
        freeze_limit=settings.period_freeze_limit,
        streak_grace=timedelta(hours=settings.streak_grace_hours),
    )


async def run_ticks(tracker: ActivityTracker, interval: float) -> None:
    """Poll the tracker every ``interval`` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        tracker.tick()


@asynccontextmanager
async def lifespan(app: FastAPI):
    tracker = build_tracker()
    tracker.ensure_fresh_after_first_goal()
    app.state.tracker = tracker
    logger.info(
        "Tracker ready: %d logged days, goal=%r",
        len(tracker.logs),
        tracker.goal.title if tracker.goal else None,
    )

    ticker = asyncio.create_task(run_ticks(tracker, settings.tick_interval_seconds))
    try:
        yield
    finally:
        ticker.cancel()
        try:
            await ticker
        except asyncio.CancelledError:
            pass


app = FastAPI(title="Learning Journey", version="0.1.0", lifespan=lifespan)
app.include_router(activity_router)


@app.get("/")
async def root() -> dict:
    return {
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
        "activity": {
            "state": "/activity/state",
            "day": "/activity/days/{day}",
            "week": "/activity/week",
            "months": "/activity/months",
            "month": "/activity/months/{year}/{month}",
            "select": "/activity/select",
            "shift": "/activity/shift",
            "show_month": "/activity/month",
            "learned": "/activity/learned",
            "frozen": "/activity/frozen",
            "goal": "/activity/goal",
            "goal_start": "/activity/goal/start",
            "reset": "/activity/reset",
        },
    }


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
