"""Tracker data model — Pydantic v2 models and enums."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

SCHEMA_VERSION = 1


class DayState(str, Enum):
    none = "none"
    learned = "learned"
    frozen = "frozen"


class DurationUnit(str, Enum):
    week = "week"
    month = "month"
    year = "year"

    @property
    def months(self) -> int:
        """Goal length in months, as used to size the calendar span."""
        return 12 if self is DurationUnit.year else 1


class Goal(BaseModel):
    title: str = ""
    duration: DurationUnit = DurationUnit.week


class StoredActivity(BaseModel):
    """Typed view of the persisted ``activity.*`` keys."""

    schema_version: int = SCHEMA_VERSION
    goal_title: str | None = None
    duration: DurationUnit = DurationUnit.week
    logs: dict[date, DayState] = Field(default_factory=dict)
    last_log_at: datetime | None = None
    goal_created_at: datetime | None = None
    goal_start_at: datetime | None = None
    dropped_entries: int = 0  # Log entries discarded while decoding


# ---------------------------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------------------------


class DayView(BaseModel):
    day: date
    state: DayState
    is_today: bool = False
    is_selected: bool = False


class GoalView(BaseModel):
    title: str
    duration: DurationUnit
    created_at: datetime | None = None
    start_at: datetime | None = None


class ActivitySnapshot(BaseModel):
    """Everything the activity screen renders, read in one go."""

    today: date
    selected_day: date
    month: date
    month_title: str
    goal: GoalView
    week: list[DayView] = Field(default_factory=list)
    period_start: date
    period_end: date
    streak: int = 0
    learned_in_period: int = 0
    frozen_in_period: int = 0
    freezes_left: int = 0
    learned_in_month: int = 0
    frozen_in_month: int = 0
    last_log_at: datetime | None = None
    can_log_learned: bool = False
    can_log_frozen: bool = False


class MonthView(BaseModel):
    month: date
    title: str
    cells: list[DayView | None] = Field(default_factory=list)


class SelectRequest(BaseModel):
    day: date | datetime


class ShiftRequest(BaseModel):
    days: int = 7


class ShowMonthRequest(BaseModel):
    year: int = Field(ge=1, le=9999)
    month: int = Field(ge=1, le=12)


class GoalRequest(BaseModel):
    title: str
    duration: DurationUnit = DurationUnit.week

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Goal title must not be blank")
        return v


class GoalStartRequest(BaseModel):
    start_at: datetime | None = None
