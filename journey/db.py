from sqlalchemy import create_engine

from journey.config import settings
from journey.tracker.store import SqlStore, ensure_sqlite_dir

_raw_url = settings.database_url

if _raw_url.startswith("postgres://"):
    _raw_url = _raw_url.replace("postgres://", "postgresql://", 1)


def build_store() -> SqlStore:
    ensure_sqlite_dir(_raw_url)
    engine = create_engine(_raw_url, pool_pre_ping=True)
    return SqlStore(engine)
