"""Pure stateless tracker computations — counts, streaks, spans. Never raises."""

from __future__ import annotations

from datetime import date, datetime, timedelta

from journey.tracker.calendar_policy import add_months, first_of_month
from journey.tracker.models import DayState, DurationUnit

# Months shown around the goal in the history calendar, and the hard cap.
SPAN_MARGIN_MONTHS = 5
MAX_SPAN_MONTHS = 36


def count_in_range(
    logs: dict[date, DayState],
    state: DayState,
    start: date,
    end_exclusive: date,
) -> int:
    """Number of days in [start, end_exclusive) logged with ``state``."""
    return sum(1 for d, s in logs.items() if s is state and start <= d < end_exclusive)


def count_in_days(logs: dict[date, DayState], state: DayState, days: list[date]) -> int:
    return sum(1 for d in days if logs.get(d) is state)


def freezes_left(limit: int, frozen_in_period: int) -> int:
    return max(0, limit - frozen_in_period)


def streak_is_live(
    last_log_at: datetime | None,
    now: datetime,
    grace: timedelta = timedelta(hours=32),
) -> bool:
    """A streak survives only while the last log is at most ``grace`` old."""
    if last_log_at is None:
        return False
    return now - last_log_at <= grace


def streak_length(logs: dict[date, DayState], today: date) -> int:
    """Consecutive non-``none`` days ending at ``today``."""
    count = 0
    cursor = today
    while logs.get(cursor, DayState.none) is not DayState.none:
        count += 1
        try:
            cursor = cursor - timedelta(days=1)
        except OverflowError:
            break
    return count


def streak_count(
    logs: dict[date, DayState],
    today: date,
    last_log_at: datetime | None,
    now: datetime,
    grace: timedelta = timedelta(hours=32),
) -> int:
    if not streak_is_live(last_log_at, now, grace):
        return 0
    return streak_length(logs, today)


def earliest_logged_day(logs: dict[date, DayState]) -> date | None:
    return min(logs) if logs else None


def goal_start_guess(
    goal_start_at: date | None,
    logs: dict[date, DayState],
    today: date,
) -> date:
    """Explicit goal start, else the earliest logged day, else today."""
    if goal_start_at is not None:
        return goal_start_at
    earliest = earliest_logged_day(logs)
    if earliest is not None:
        return earliest
    return today


def goal_duration_months(duration: DurationUnit | str | None) -> int:
    """week → 1, month → 1, year → 12. Unknown values count as one month."""
    if isinstance(duration, DurationUnit):
        return duration.months
    try:
        return DurationUnit(str(duration).lower()).months
    except ValueError:
        return 1


def months_span(
    goal_start: date,
    duration_months: int,
    today: date,
    margin: int = SPAN_MARGIN_MONTHS,
    cap: int = MAX_SPAN_MONTHS,
) -> list[date]:
    """First-of-month dates to show in the history calendar.

    From ``margin`` months before the goal start month through ``margin``
    months after the goal end month, widened to include the current month,
    and never more than ``cap`` months long. When the cap bites, the window is
    cut from the end unless that would drop the current month, in which case
    it ends at the current month instead.
    """
    start = first_of_month(goal_start)
    end = first_of_month(add_months(start, duration_months))

    visible_start = add_months(start, -margin)
    visible_end = add_months(end, margin)

    current = first_of_month(today)
    if current < visible_start:
        visible_start = current
    if current > visible_end:
        visible_end = current

    total = _month_index(visible_end) - _month_index(visible_start) + 1
    if total > cap:
        if _month_index(current) - _month_index(visible_start) >= cap:
            visible_start = add_months(current, -(cap - 1))
        total = cap

    return [add_months(visible_start, i) for i in range(total)]


def _month_index(month: date) -> int:
    return month.year * 12 + month.month - 1
