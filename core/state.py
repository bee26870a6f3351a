# core/state.py
import json
import os
import sqlite3
from typing import Any

from .logger import get_logger

logger = get_logger(__name__)

DATA_DIR = os.getenv("DATA_DIR", "/data")
STATE_DB_PATH = os.getenv(
    "STATE_DB_PATH", os.path.join(DATA_DIR, "merchant_state.sqlite3")
)

LAST_FETCH_KEY = "last_history_fetch_at"
MIGRATED_KEY_PREFIX = "legacy_migrated:"


class StateStore:
    """
    Process-wide key/value state persisted in SQLite, kept outside every
    partition. Values are stored as JSON text.
    """

    def __init__(self, db_path: str = STATE_DB_PATH):
        self.db_path = db_path
        self.ensure_db()

    def _connect(self) -> sqlite3.Connection:
        os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
        return sqlite3.connect(self.db_path)

    def ensure_db(self) -> None:
        with self._connect() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """
            )

    def get(self, key: str, default: Any = None) -> Any:
        with self._connect() as con:
            row = con.execute(
                "SELECT value FROM kv_state WHERE key=?", (key,)
            ).fetchone()
        if row is None:
            return default
        return json.loads(row[0])

    def set(self, key: str, value: Any) -> None:
        with self._connect() as con:
            con.execute(
                """
                INSERT INTO kv_state (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
            """,
                (key, json.dumps(value)),
            )
        logger.debug("State %s updated.", key)
