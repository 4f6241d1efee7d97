"""Durable key-value storage for the tracker.

Values are JSON-compatible Python objects. ``SqlStore`` keeps them JSON-encoded
in a single ``kv_store`` table:

  kv_store
    key   TEXT PRIMARY KEY
    value TEXT NOT NULL   -- JSON document

``InMemoryStore`` is the same contract backed by a dict.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy import text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class StoreUnavailable(Exception):
    """The backing storage could not be read or written."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class InMemoryStore:
    def __init__(self, data: dict[str, Any] | None = None):
        self._data: dict[str, Any] = dict(data or {})

    def get(self, key: str) -> Any | None:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        # Round-trip through JSON so callers see exactly what a durable store returns
        self._data[key] = json.loads(json.dumps(value))

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class SqlStore:
    """Key-value store on any SQLAlchemy engine (SQLite by default)."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._init_db()

    def _init_db(self) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    text(
                        "CREATE TABLE IF NOT EXISTS kv_store ("
                        "key TEXT PRIMARY KEY, "
                        "value TEXT NOT NULL)"
                    )
                )
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Cannot initialize kv_store: {exc}") from exc
        logger.info("Key-value store ready at %s", self.engine.url.render_as_string(hide_password=True))

    def get(self, key: str) -> Any | None:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    text("SELECT value FROM kv_store WHERE key = :key"), {"key": key}
                ).fetchone()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Cannot read '{key}': {exc}") from exc
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except ValueError:
            logger.warning("Discarding undecodable value for key %s", key)
            return None

    def set(self, key: str, value: Any) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    text(
                        "INSERT INTO kv_store (key, value) VALUES (:key, :value) "
                        "ON CONFLICT (key) DO UPDATE SET value = excluded.value"
                    ),
                    {"key": key, "value": json.dumps(value, sort_keys=True)},
                )
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Cannot write '{key}': {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(text("DELETE FROM kv_store WHERE key = :key"), {"key": key})
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Cannot delete '{key}': {exc}") from exc

    def keys(self) -> list[str]:
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(text("SELECT key FROM kv_store ORDER BY key")).fetchall()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Cannot list keys: {exc}") from exc
        return [r[0] for r in rows]


def ensure_sqlite_dir(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(database_url)
    if not url.drivername.startswith("sqlite"):
        return
    if not url.database or url.database == ":memory:":
        return
    try:
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StoreUnavailable(f"Cannot create database directory: {exc}") from exc
