"""Calendar policy — every piece of date arithmetic the tracker relies on.

Days are plain ``datetime.date`` values: a moment is normalized to a day by
converting it to the policy timezone and dropping the time of day. Weeks start
on the configured week-start day (Sunday by default).
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

DAY_KEY_FORMAT = "%Y-%m-%d"

_DAY_KEY_RE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")

WEEKDAYS: dict[str, int] = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


def day_key(day: date) -> str:
    """Fixed, locale-independent ``YYYY-MM-DD`` key for a calendar day."""
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def parse_day_key(key: str) -> date | None:
    """Parse a ``YYYY-MM-DD`` key. Returns None for anything else; never raises."""
    if not isinstance(key, str) or not _DAY_KEY_RE.match(key):
        return None
    try:
        return date.fromisoformat(key)
    except ValueError:
        return None


def first_of_month(day: date) -> date:
    return day.replace(day=1)


def add_months(day: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length.

    Results are clamped to the representable range (year 1 through 9999).
    """
    index = day.year * 12 + (day.month - 1) + months
    index = min(max(index, 12), 9999 * 12 + 11)
    year, month = divmod(index, 12)
    last = calendar.monthrange(year, month + 1)[1]
    return date(year, month + 1, min(day.day, last))


def days_in_month(month: date) -> int:
    return calendar.monthrange(month.year, month.month)[1]


@dataclass(frozen=True, slots=True)
class CalendarPolicy:
    tz: tzinfo = timezone.utc
    week_start: int = WEEKDAYS["sunday"]  # date.weekday() numbering

    @classmethod
    def from_names(cls, tz_name: str, week_start: str = "sunday") -> CalendarPolicy:
        start = WEEKDAYS.get(week_start.strip().lower(), WEEKDAYS["sunday"])
        return cls(tz=ZoneInfo(tz_name), week_start=start)

    # ------------------------------------------------------------------
    # Days
    # ------------------------------------------------------------------

    def normalize(self, value: date | datetime) -> date:
        """Calendar day of a moment (aware datetimes are converted to the policy tz)."""
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(self.tz)
            return value.date()
        return value

    def start_of_day(self, day: date) -> datetime:
        """Local midnight of ``day`` as an aware datetime."""
        return datetime.combine(day, time.min, tzinfo=self.tz)

    def is_same_day(self, a: date | datetime, b: date | datetime) -> bool:
        return self.normalize(a) == self.normalize(b)

    # ------------------------------------------------------------------
    # Weeks
    # ------------------------------------------------------------------

    def week_start_of(self, day: date | datetime) -> date:
        d = self.normalize(day)
        offset = (d.weekday() - self.week_start) % 7
        return d - timedelta(days=offset)

    def week_range(self, day: date | datetime) -> tuple[date, date]:
        """``[start, end)`` of the week containing ``day``; end is start + 7 days."""
        start = self.week_start_of(day)
        return start, start + timedelta(days=7)

    def week_days(self, day: date | datetime) -> list[date]:
        start = self.week_start_of(day)
        return [start + timedelta(days=i) for i in range(7)]

    def weekday_index(self, day: date) -> int:
        """Column of ``day`` in a week row (0 = week-start day)."""
        return (day.weekday() - self.week_start) % 7

    # ------------------------------------------------------------------
    # Months
    # ------------------------------------------------------------------

    def month_days(self, month: date) -> list[date]:
        start = first_of_month(month)
        return [start + timedelta(days=i) for i in range(days_in_month(start))]

    def month_grid(self, month: date) -> list[date | None]:
        """Month days preceded by blanks so the first day lands in its weekday column."""
        days = self.month_days(month)
        blanks: list[date | None] = [None] * self.weekday_index(days[0])
        return blanks + days
