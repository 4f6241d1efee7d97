"""Activity HTTP router — the UI-facing command and query surface.

Commands always answer with a fresh snapshot; a denied command (freeze over
quota, selecting a day other than today) is visible only as unchanged state.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Request

from journey.auth import verify_api_key
from journey.tracker.calendar_policy import parse_day_key
from journey.tracker.engine import ActivityTracker
from journey.tracker.models import (
    ActivitySnapshot,
    DayView,
    DurationUnit,
    GoalRequest,
    GoalStartRequest,
    GoalView,
    MonthView,
    SelectRequest,
    ShiftRequest,
    ShowMonthRequest,
)

router = APIRouter(prefix="/activity", tags=["activity"])


def get_tracker(request: Request) -> ActivityTracker:
    tracker = getattr(request.app.state, "tracker", None)
    if tracker is None:
        raise HTTPException(status_code=503, detail="Tracker not initialized")
    return tracker


def _day_view(tracker: ActivityTracker, day: date) -> DayView:
    return DayView(
        day=day,
        state=tracker.state_of(day),
        is_today=tracker.is_today(day),
        is_selected=day == tracker.selected_day,
    )


def _month_view(tracker: ActivityTracker, month: date) -> MonthView:
    return MonthView(
        month=month,
        title=month.strftime("%B %Y"),
        cells=[_day_view(tracker, d) if d is not None else None for d in tracker.month_grid(month)],
    )


def build_snapshot(tracker: ActivityTracker) -> ActivitySnapshot:
    period_start, period_end = tracker.period_range()
    goal = tracker.goal
    return ActivitySnapshot(
        today=tracker.today(),
        selected_day=tracker.selected_day,
        month=tracker.month,
        month_title=tracker.month_title(),
        goal=GoalView(
            title=goal.title if goal else "",
            duration=goal.duration if goal else DurationUnit.week,
            created_at=tracker.goal_created_at,
            start_at=tracker.goal_start_at,
        ),
        week=[_day_view(tracker, d) for d in tracker.week_days()],
        period_start=period_start,
        period_end=period_end,
        streak=tracker.streak_count(),
        learned_in_period=tracker.learned_count_in_period(),
        frozen_in_period=tracker.frozen_count_in_period(),
        freezes_left=tracker.freezes_left(),
        learned_in_month=tracker.learned_count_in_month(),
        frozen_in_month=tracker.frozen_count_in_month(),
        last_log_at=tracker.last_log_at,
        can_log_learned=tracker.can_log_learned(),
        can_log_frozen=tracker.can_log_frozen(),
    )


def _parse_day(value: str) -> date:
    day = parse_day_key(value)
    if day is None:
        raise HTTPException(status_code=422, detail=f"Invalid day '{value}' (expected YYYY-MM-DD)")
    return day


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@router.get("/state", response_model=ActivitySnapshot)
async def get_state(
    tracker: ActivityTracker = Depends(get_tracker),
    _: str = Depends(verify_api_key),
) -> ActivitySnapshot:
    return build_snapshot(tracker)


@router.get("/days/{day}", response_model=DayView)
async def get_day(
    day: str,
    tracker: ActivityTracker = Depends(get_tracker),
    _: str = Depends(verify_api_key),
) -> DayView:
    return _day_view(tracker, _parse_day(day))


@router.get("/week", response_model=list[DayView])
async def get_week(
    day: str | None = None,
    tracker: ActivityTracker = Depends(get_tracker),
    _: str = Depends(verify_api_key),
) -> list[DayView]:
    containing = _parse_day(day) if day is not None else None
    return [_day_view(tracker, d) for d in tracker.week_days(containing)]


@router.get("/months", response_model=list[date])
async def get_months_span(
    tracker: ActivityTracker = Depends(get_tracker),
    _: str = Depends(verify_api_key),
) -> list[date]:
    return tracker.months_span()


@router.get("/months/{year}/{month}", response_model=MonthView)
async def get_month(
    year: int,
    month: int,
    tracker: ActivityTracker = Depends(get_tracker),
    _: str = Depends(verify_api_key),
) -> MonthView:
    try:
        first = date(year, month, 1)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid month: {year}-{month}")
    return _month_view(tracker, first)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@router.post("/select", response_model=ActivitySnapshot)
async def select_day(
    body: SelectRequest,
    tracker: ActivityTracker = Depends(get_tracker),
    _: str = Depends(verify_api_key),
) -> ActivitySnapshot:
    tracker.select(body.day)
    return build_snapshot(tracker)


@router.post("/shift", response_model=ActivitySnapshot)
async def shift_selection(
    body: ShiftRequest,
    tracker: ActivityTracker = Depends(get_tracker),
    _: str = Depends(verify_api_key),
) -> ActivitySnapshot:
    tracker.shift_selection(body.days)
    return build_snapshot(tracker)


@router.post("/month", response_model=ActivitySnapshot)
async def show_month(
    body: ShowMonthRequest,
    tracker: ActivityTracker = Depends(get_tracker),
    _: str = Depends(verify_api_key),
) -> ActivitySnapshot:
    tracker.show_month(body.year, body.month)
    return build_snapshot(tracker)


@router.post("/learned", response_model=ActivitySnapshot)
async def log_learned(
    tracker: ActivityTracker = Depends(get_tracker),
    _: str = Depends(verify_api_key),
) -> ActivitySnapshot:
    tracker.log_learned()
    return build_snapshot(tracker)


@router.post("/frozen", response_model=ActivitySnapshot)
async def log_frozen(
    tracker: ActivityTracker = Depends(get_tracker),
    _: str = Depends(verify_api_key),
) -> ActivitySnapshot:
    tracker.log_frozen()
    return build_snapshot(tracker)


@router.put("/goal", response_model=ActivitySnapshot)
async def commit_goal(
    body: GoalRequest,
    tracker: ActivityTracker = Depends(get_tracker),
    _: str = Depends(verify_api_key),
) -> ActivitySnapshot:
    tracker.commit_goal(body.title, body.duration)
    return build_snapshot(tracker)


@router.put("/goal/start", response_model=ActivitySnapshot)
async def set_goal_start(
    body: GoalStartRequest,
    tracker: ActivityTracker = Depends(get_tracker),
    _: str = Depends(verify_api_key),
) -> ActivitySnapshot:
    tracker.set_goal_start(body.start_at)
    return build_snapshot(tracker)


@router.post("/reset", response_model=ActivitySnapshot)
async def reset_for_new_goal(
    tracker: ActivityTracker = Depends(get_tracker),
    _: str = Depends(verify_api_key),
) -> ActivitySnapshot:
    tracker.reset_for_new_goal()
    return build_snapshot(tracker)
