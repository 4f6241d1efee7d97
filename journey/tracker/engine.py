"""ActivityTracker — the streak/calendar engine.

Single source of truth for day states, streaks, freeze quotas and goal-change
resets. Commands never raise: a denied action is a silent no-op (the command
returns False) and a storage failure is logged while the in-memory state stays
authoritative until the next successful write.

Observers registered with ``subscribe`` are called with the tracker after
every state change.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable

from journey.tracker import features, persistence
from journey.tracker.calendar_policy import CalendarPolicy, first_of_month
from journey.tracker.models import DayState, DurationUnit, Goal
from journey.tracker.store import KeyValueStore, StoreUnavailable

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Observer = Callable[["ActivityTracker"], None]

DEFAULT_FREEZE_LIMIT = 2
DEFAULT_STREAK_GRACE = timedelta(hours=32)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ActivityTracker:
    def __init__(
        self,
        store: KeyValueStore,
        policy: CalendarPolicy | None = None,
        clock: Clock = utc_now,
        freeze_limit: int = DEFAULT_FREEZE_LIMIT,
        streak_grace: timedelta = DEFAULT_STREAK_GRACE,
    ):
        self.store = store
        self.policy = policy or CalendarPolicy()
        self._clock = clock
        self.period_freeze_limit = freeze_limit
        self.streak_grace = streak_grace

        self.logs: dict[date, DayState] = {}
        self.last_log_at: datetime | None = None
        self.goal: Goal | None = None
        self.goal_created_at: datetime | None = None
        self.goal_start_at: datetime | None = None

        self.selected_day: date = self.today()
        self.month: date = first_of_month(self.selected_day)

        self._observers: list[Observer] = []
        self.load()

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self.policy.normalize(self.now())

    def is_today(self, day: date | datetime) -> bool:
        return self.policy.normalize(day) == self.today()

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer``; returns a callable that unregisters it."""
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def _notify(self) -> None:
        for observer in list(self._observers):
            try:
                observer(self)
            except Exception:
                logger.exception("Tracker observer %r failed", observer)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        try:
            stored = persistence.load_activity(self.store)
        except StoreUnavailable as exc:
            logger.warning("Could not load activity, starting empty: %s", exc)
            return

        self.logs = dict(stored.logs)
        self.last_log_at = stored.last_log_at
        self.goal = (
            Goal(title=stored.goal_title, duration=stored.duration)
            if stored.goal_title is not None
            else None
        )
        self.goal_created_at = stored.goal_created_at
        self.goal_start_at = stored.goal_start_at
        logger.debug("Loaded %d logged days (goal=%r)", len(self.logs), self.goal)

    def _write(self, action: Callable[[], None], what: str) -> None:
        try:
            action()
        except StoreUnavailable as exc:
            logger.warning("Could not persist %s, keeping it in memory: %s", what, exc)

    def _save_log(self) -> None:
        self._write(lambda: persistence.save_log(self.store, self.logs, self.last_log_at), "activity log")

    # ------------------------------------------------------------------
    # Day states
    # ------------------------------------------------------------------

    def state_of(self, day: date | datetime) -> DayState:
        return self.logs.get(self.policy.normalize(day), DayState.none)

    def _record(self, state: DayState) -> None:
        now = self.now()
        self.logs[self.selected_day] = state
        if self.last_log_at is None or now > self.last_log_at:
            self.last_log_at = now
        self._save_log()
        self._notify()

    def log_learned(self) -> bool:
        self._record(DayState.learned)
        return True

    def log_frozen(self) -> bool:
        if self.freezes_left() <= 0:
            logger.debug("Freeze denied for %s: no freezes left this period", self.selected_day)
            return False
        self._record(DayState.frozen)
        return True

    def can_log_learned(self) -> bool:
        return self.is_today(self.selected_day) and self.state_of(self.selected_day) is DayState.none

    def can_log_frozen(self) -> bool:
        return self.can_log_learned() and self.freezes_left() > 0

    # ------------------------------------------------------------------
    # Selection & navigation
    # ------------------------------------------------------------------

    def select(self, day: date | datetime) -> bool:
        """Focus ``day``, which must be today; any other day is ignored."""
        target = self.policy.normalize(day)
        if target != self.today():
            logger.debug("Ignoring selection of %s: only today can be selected", target)
            return False
        self.selected_day = target
        self.month = first_of_month(target)
        self._notify()
        return True

    def shift_selection(self, delta_days: int = 7) -> bool:
        try:
            target = self.selected_day + timedelta(days=delta_days)
        except OverflowError:
            return False
        self.selected_day = target
        self.month = first_of_month(target)
        self._notify()
        return True

    def show_month(self, year: int, month: int) -> bool:
        """Display another month without moving the selected day."""
        try:
            self.month = date(year, month, 1)
        except (TypeError, ValueError):
            return False
        self._notify()
        return True

    # ------------------------------------------------------------------
    # Period & counts
    # ------------------------------------------------------------------

    def period_range(self) -> tuple[date, date]:
        """Current calendar week, [start, start + 7 days)."""
        return self.policy.week_range(self.now())

    def learned_count_in_period(self) -> int:
        start, end = self.period_range()
        return features.count_in_range(self.logs, DayState.learned, start, end)

    def frozen_count_in_period(self) -> int:
        start, end = self.period_range()
        return features.count_in_range(self.logs, DayState.frozen, start, end)

    def freezes_left(self) -> int:
        return features.freezes_left(self.period_freeze_limit, self.frozen_count_in_period())

    def learned_count_in_month(self) -> int:
        return features.count_in_days(self.logs, DayState.learned, self.policy.month_days(self.month))

    def frozen_count_in_month(self) -> int:
        return features.count_in_days(self.logs, DayState.frozen, self.policy.month_days(self.month))

    def streak_count(self) -> int:
        return features.streak_count(
            self.logs, self.today(), self.last_log_at, self.now(), self.streak_grace
        )

    # ------------------------------------------------------------------
    # Calendar views
    # ------------------------------------------------------------------

    def week_days(self, containing: date | datetime | None = None) -> list[date]:
        return self.policy.week_days(self.selected_day if containing is None else containing)

    def month_grid(self, month: date | None = None) -> list[date | None]:
        return self.policy.month_grid(self.month if month is None else month)

    def month_title(self) -> str:
        return self.selected_day.strftime("%B %Y")

    def months_span(self) -> list[date]:
        start_at = self.policy.normalize(self.goal_start_at) if self.goal_start_at else None
        start = features.goal_start_guess(start_at, self.logs, self.today())
        duration = self.goal.duration if self.goal else DurationUnit.week
        return features.months_span(start, duration.months, self.today())

    # ------------------------------------------------------------------
    # Goal lifecycle
    # ------------------------------------------------------------------

    def reset_for_new_goal(self) -> None:
        """Clear every logged day and the last-log moment, in memory and in storage."""
        self.logs.clear()
        self.last_log_at = None
        self._write(lambda: persistence.clear_log(self.store), "log reset")
        logger.info("Activity log reset for new goal")
        self._notify()

    def commit_goal(self, title: str, duration: DurationUnit | str = DurationUnit.week) -> bool:
        """Store a new or edited goal, resetting the log when title or duration changed."""
        if not isinstance(title, str) or not title.strip():
            logger.debug("Ignoring goal with blank title")
            return False
        try:
            duration = DurationUnit(duration)
        except ValueError:
            logger.debug("Ignoring goal with unknown duration %r", duration)
            return False

        previous_title = self.goal.title if self.goal else ""
        previous_duration = self.goal.duration if self.goal else DurationUnit.week
        if previous_title != title or previous_duration is not duration:
            self.reset_for_new_goal()

        self.goal = Goal(title=title, duration=duration)
        self._write(lambda: persistence.save_goal(self.store, self.goal), "goal")

        if self.goal_created_at is None:
            self.goal_created_at = self.now()
            self._write(
                lambda: persistence.save_goal_created_at(self.store, self.goal_created_at),
                "goal creation time",
            )
        self._notify()
        return True

    def set_goal_start(self, moment: datetime | None) -> None:
        self.goal_start_at = moment
        self._write(lambda: persistence.save_goal_start_at(self.store, moment), "goal start")
        self._notify()

    def ensure_fresh_after_first_goal(self) -> bool:
        """Reset once when a goal exists but was never stamped with a creation time."""
        if self.goal is None or not self.goal.title or self.goal_created_at is not None:
            return False
        logger.info("First goal %r has no creation time; starting it fresh", self.goal.title)
        self.reset_for_new_goal()
        self.goal_created_at = self.now()
        self._write(
            lambda: persistence.save_goal_created_at(self.store, self.goal_created_at),
            "goal creation time",
        )
        return True

    # ------------------------------------------------------------------
    # Periodic poll
    # ------------------------------------------------------------------

    def tick(self) -> None:
        """First-goal normalization plus day rollover of the selection."""
        self.ensure_fresh_after_first_goal()
        now = self.now()
        if not self.policy.is_same_day(self.selected_day, now):
            self.select(now)
