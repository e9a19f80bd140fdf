"""Key-value persistence on SQLite.

Every collection is stored whole, as one JSON document under a fixed key.
Writes that must land together go through ``ActivityStore.transaction()``,
so readers never observe a half-written sync.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from burbs.models import StoredActivity

logger = logging.getLogger(__name__)

ACTIVITIES_KEY = "activities"
ACTIVITY_DATES_KEY = "activity_dates"
LAST_SYNC_KEY = "last_sync"

SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS kv (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""

DEFAULT_DB_PATH = Path.home() / "burbs" / "data" / "burbs.db"


class StoreError(RuntimeError):
    """Raised when the store cannot be read or written."""


def get_db_path(config=None):
    """Resolve the database path from config or fall back to default."""
    if config and "paths" in config and "db" in config["paths"]:
        return Path(config["paths"]["db"])
    return DEFAULT_DB_PATH


def get_connection(config=None, db_path=None):
    """Return a sqlite3 connection in autocommit mode; transactions are explicit."""
    db_path = Path(db_path) if db_path else get_db_path(config)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), isolation_level=None)
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


def init_db(config=None, db_path=None):
    """Create the kv table."""
    conn = get_connection(config, db_path)
    conn.executescript(SCHEMA_SQL)
    conn.close()
    path = Path(db_path) if db_path else get_db_path(config)
    logger.info("Database initialized at %s", path)
    return path


class _Transaction:
    def __init__(self, conn):
        self._conn = conn

    def get(self, key, default=None):
        row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if row is None:
            return default
        try:
            return json.loads(row[0])
        except ValueError as e:
            raise StoreError(f"Corrupt value under '{key}': {e}") from e

    def set(self, key, value):
        now = datetime.now(timezone.utc).isoformat()
        self._conn.execute(
            """INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET value=excluded.value,
                                              updated_at=excluded.updated_at""",
            (key, json.dumps(value), now),
        )


class ActivityStore:
    """Whole-collection get/set over the kv table."""

    def __init__(self, db_path):
        self.db_path = Path(db_path)
        self._initialized = False

    @classmethod
    def from_config(cls, config=None):
        return cls(get_db_path(config))

    def _connect(self):
        try:
            conn = get_connection(db_path=self.db_path)
            if not self._initialized:
                conn.executescript(SCHEMA_SQL)
                self._initialized = True
            return conn
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"Cannot open store at {self.db_path}: {e}") from e

    @contextmanager
    def transaction(self):
        """Yield a handle whose writes commit together or not at all."""
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            txn = _Transaction(conn)
            try:
                yield txn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise StoreError(f"Store transaction failed: {e}") from e
        finally:
            conn.close()

    def get(self, key, default=None):
        conn = self._connect()
        try:
            return _Transaction(conn).get(key, default)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot read '{key}': {e}") from e
        finally:
            conn.close()

    def set(self, key, value):
        with self.transaction() as txn:
            txn.set(key, value)

    # Convenience readers for the fixed keys

    def load_activities(self):
        return [StoredActivity.from_dict(d) for d in self.get(ACTIVITIES_KEY, [])]

    def load_date_overrides(self) -> dict:
        return dict(self.get(ACTIVITY_DATES_KEY, {}))

    def last_sync(self):
        return self.get(LAST_SYNC_KEY)
