"""Persisted schema for the tracker — encode, decode, migrate.

Keys (all JSON values):
  activity.goalTitle      string
  activity.duration       "week" | "month" | "year"
  activity.logs           {"YYYY-MM-DD": "none" | "learned" | "frozen"}
  activity.lastLogAt      float seconds since epoch (absent => no value)
  activity.goalCreatedAt  float seconds since epoch
  activity.goalStartAt    float seconds since epoch (optional override)
  activity.schemaVersion  int

Decoding is tolerant: a malformed log entry is dropped on its own, a malformed
scalar reads as absent. Nothing here raises except ``StoreUnavailable`` from
the underlying store.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable

from journey.tracker.calendar_policy import day_key, parse_day_key
from journey.tracker.models import SCHEMA_VERSION, DayState, DurationUnit, Goal, StoredActivity
from journey.tracker.store import KeyValueStore, StoreUnavailable

logger = logging.getLogger(__name__)

GOAL_TITLE_KEY = "activity.goalTitle"
DURATION_KEY = "activity.duration"
LOGS_KEY = "activity.logs"
LAST_LOG_AT_KEY = "activity.lastLogAt"
GOAL_CREATED_AT_KEY = "activity.goalCreatedAt"
GOAL_START_AT_KEY = "activity.goalStartAt"
SCHEMA_VERSION_KEY = "activity.schemaVersion"

ALL_KEYS: tuple[str, ...] = (
    GOAL_TITLE_KEY,
    DURATION_KEY,
    LOGS_KEY,
    LAST_LOG_AT_KEY,
    GOAL_CREATED_AT_KEY,
    GOAL_START_AT_KEY,
    SCHEMA_VERSION_KEY,
)

_TIMESTAMP_KEYS = (LAST_LOG_AT_KEY, GOAL_CREATED_AT_KEY, GOAL_START_AT_KEY)


# ---------------------------------------------------------------------------
# Scalar codecs
# ---------------------------------------------------------------------------

def encode_timestamp(moment: datetime) -> float:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.timestamp()


def decode_timestamp(raw: Any) -> datetime | None:
    """Seconds since epoch → aware UTC datetime. None on bad input."""
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(raw, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def decode_duration(raw: Any) -> DurationUnit:
    try:
        return DurationUnit(raw)
    except ValueError:
        return DurationUnit.week


def encode_logs(logs: dict[date, DayState]) -> dict[str, str]:
    return {day_key(d): s.value for d, s in logs.items()}


def decode_logs(raw: Any) -> tuple[dict[date, DayState], int]:
    """Decode the persisted log mapping. Returns (logs, dropped_entry_count)."""
    if not isinstance(raw, dict):
        return {}, 0
    out: dict[date, DayState] = {}
    dropped = 0
    for k, v in raw.items():
        d = parse_day_key(k)
        try:
            state = DayState(v)
        except ValueError:
            state = None
        if d is None or state is None:
            logger.debug("Dropping malformed log entry %r=%r", k, v)
            dropped += 1
            continue
        out[d] = state
    return out, dropped


# ---------------------------------------------------------------------------
# Migrations: each step takes the raw key→value dict of version N and
# returns the dict for version N + 1.
# ---------------------------------------------------------------------------

def _migrate_v0_to_v1(raw: dict[str, Any]) -> dict[str, Any]:
    """Legacy layout: zero timestamps meant "unset", durations could be capitalized."""
    out = dict(raw)
    for key in _TIMESTAMP_KEYS:
        ts = out.get(key)
        if ts is not None and (isinstance(ts, bool) or not isinstance(ts, (int, float)) or ts <= 0):
            out[key] = None
    duration = out.get(DURATION_KEY)
    if isinstance(duration, str):
        lowered = duration.strip().lower()
        out[DURATION_KEY] = lowered if lowered in DurationUnit.__members__ else DurationUnit.week.value
    elif duration is not None:
        out[DURATION_KEY] = DurationUnit.week.value
    return out


MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    0: _migrate_v0_to_v1,
}


def migrate(raw: dict[str, Any]) -> tuple[dict[str, Any], int, int]:
    """Bring a raw record up to SCHEMA_VERSION. Returns (raw, from_version, to_version)."""
    version = raw.get(SCHEMA_VERSION_KEY)
    if isinstance(version, bool) or not isinstance(version, int) or version < 0:
        version = 0
    start = version
    while version < SCHEMA_VERSION:
        step = MIGRATIONS.get(version)
        if step is None:
            break
        raw = step(raw)
        version += 1
    raw[SCHEMA_VERSION_KEY] = version
    return raw, start, version


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------

def read_raw(store: KeyValueStore) -> dict[str, Any]:
    return {key: store.get(key) for key in ALL_KEYS}


def load_activity(store: KeyValueStore) -> StoredActivity:
    """Read, migrate and decode the tracker record.

    The migrated record is written back when possible. A failed write-back is
    logged and the migrated values are still returned.
    """
    raw = read_raw(store)
    has_data = any(raw[k] is not None for k in ALL_KEYS if k != SCHEMA_VERSION_KEY)
    raw, from_version, to_version = migrate(raw)

    if from_version != to_version and has_data:
        logger.info("Migrating activity record v%d -> v%d", from_version, to_version)
        try:
            write_raw(store, raw)
        except StoreUnavailable as exc:
            logger.warning("Could not write migrated activity record back: %s", exc)

    logs, dropped = decode_logs(raw.get(LOGS_KEY))
    if dropped:
        logger.debug("Dropped %d malformed log entries on load", dropped)

    title = raw.get(GOAL_TITLE_KEY)
    return StoredActivity(
        schema_version=to_version,
        goal_title=title if isinstance(title, str) else None,
        duration=decode_duration(raw.get(DURATION_KEY)),
        logs=logs,
        last_log_at=decode_timestamp(raw.get(LAST_LOG_AT_KEY)),
        goal_created_at=decode_timestamp(raw.get(GOAL_CREATED_AT_KEY)),
        goal_start_at=decode_timestamp(raw.get(GOAL_START_AT_KEY)),
        dropped_entries=dropped,
    )


def write_raw(store: KeyValueStore, raw: dict[str, Any]) -> None:
    for key in ALL_KEYS:
        value = raw.get(key)
        if value is None:
            store.delete(key)
        else:
            store.set(key, value)


def _put_timestamp(store: KeyValueStore, key: str, moment: datetime | None) -> None:
    if moment is None:
        store.delete(key)
    else:
        store.set(key, encode_timestamp(moment))


def save_log(store: KeyValueStore, logs: dict[date, DayState], last_log_at: datetime | None) -> None:
    store.set(LOGS_KEY, encode_logs(logs))
    _put_timestamp(store, LAST_LOG_AT_KEY, last_log_at)
    store.set(SCHEMA_VERSION_KEY, SCHEMA_VERSION)


def clear_log(store: KeyValueStore) -> None:
    store.delete(LOGS_KEY)
    store.delete(LAST_LOG_AT_KEY)


def save_goal(store: KeyValueStore, goal: Goal) -> None:
    store.set(GOAL_TITLE_KEY, goal.title)
    store.set(DURATION_KEY, goal.duration.value)
    store.set(SCHEMA_VERSION_KEY, SCHEMA_VERSION)


def save_goal_created_at(store: KeyValueStore, moment: datetime | None) -> None:
    _put_timestamp(store, GOAL_CREATED_AT_KEY, moment)


def save_goal_start_at(store: KeyValueStore, moment: datetime | None) -> None:
    _put_timestamp(store, GOAL_START_AT_KEY, moment)
