# core/storage.py
import json
import os
import re
import sqlite3
from typing import Iterable, List

from .errors import StoreError
from .locale import normalize_locale
from .logger import get_logger
from .models import Record

logger = get_logger(__name__)

DATA_DIR = os.getenv("DATA_DIR", "/data")
PARTITION_PREFIX = "trade-history"
TABLE = "trade_history"

_COLUMNS = (
    "id",
    "item_name",
    "item_name_unique",
    "currency",
    "amount",
    "time",
    "league",
    "details_json",
    "source_item_key",
)


def to_league_key(league: str) -> str:
    key = re.sub(r"\s+", "_", league.strip())
    return re.sub(r"[^A-Za-z0-9_]", "", key)


def partition_name(locale: str, league: str) -> str:
    return f"{PARTITION_PREFIX}-{normalize_locale(locale)}-{to_league_key(league)}"


def legacy_partition_name(league: str) -> str:
    return f"{PARTITION_PREFIX}-{to_league_key(league)}"


def sort_newest_first(records: Iterable[Record]) -> List[Record]:
    return sorted(records, key=lambda r: r.time_key(), reverse=True)


def _row_to_record(row: sqlite3.Row) -> Record:
    details = row["details_json"]
    return Record(
        id=row["id"],
        item_name=row["item_name"],
        item_name_unique=row["item_name_unique"],
        currency=row["currency"],
        amount=row["amount"],
        time=row["time"],
        league=row["league"],
        details_json=json.loads(details) if details else {},
        source_item_key=row["source_item_key"] or "",
    )


def _record_params(record: Record) -> tuple:
    return (
        record.id,
        record.item_name,
        record.item_name_unique,
        record.currency,
        record.amount,
        record.time,
        record.league,
        json.dumps(record.details_json, ensure_ascii=False),
        record.source_item_key,
    )


class PartitionStore:
    """
    One durable SQLite file per partition, holding a single keyed table.
    A partition is created on first access and never deleted here.
    """

    def __init__(self, name: str, data_dir: str = DATA_DIR, create: bool = True):
        self.name = name
        self.path = os.path.join(data_dir, f"{name}.sqlite3")
        if create:
            self.ensure_db()

    @classmethod
    def for_partition(cls, locale: str, league: str, data_dir: str = DATA_DIR) -> "PartitionStore":
        return cls(partition_name(locale, league), data_dir)

    @classmethod
    def legacy(cls, league: str, data_dir: str = DATA_DIR) -> "PartitionStore":
        # Never created implicitly; see exists().
        return cls(legacy_partition_name(league), data_dir, create=False)

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def _connect(self) -> sqlite3.Connection:
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        con = sqlite3.connect(self.path)
        con.row_factory = sqlite3.Row
        return con

    def ensure_db(self) -> None:
        with self._connect() as con:
            cur = con.cursor()
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {TABLE} (
                    id TEXT PRIMARY KEY,
                    item_name TEXT,
                    item_name_unique TEXT,
                    currency TEXT,
                    amount REAL,
                    time TEXT,
                    league TEXT,
                    details_json TEXT,
                    source_item_key TEXT
                )
            """
            )
            for column in ("time", "currency", "amount", "item_name"):
                cur.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{TABLE}_{column} ON {TABLE} ({column})"
                )
            con.commit()

    @staticmethod
    def _insert(cur: sqlite3.Cursor, record: Record) -> bool:
        try:
            cur.execute(
                f"""
                INSERT INTO {TABLE} ({", ".join(_COLUMNS)})
                VALUES (?,?,?,?,?,?,?,?,?)
                ON CONFLICT(id) DO NOTHING
            """,
                _record_params(record),
            )
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise StoreError(f"Failed to add record {record.id}: {e}") from e
        return cur.rowcount == 1

    def insert_many(self, records: Iterable[Record]) -> int:
        """
        Insert records that are not stored yet, in one transaction.
        Existing ids are skipped. Any other failure rolls back the whole batch.
        """
        records = list(records)
        if not records:
            return 0

        added = 0
        con = self._connect()
        try:
            with con:
                cur = con.cursor()
                for record in records:
                    if self._insert(cur, record):
                        added += 1
        except sqlite3.Error as e:
            raise StoreError(f"Transaction on {self.name} failed: {e}") from e
        finally:
            con.close()
        return added

    def insert_if_absent(self, record: Record) -> bool:
        return self.insert_many([record]) == 1

    def get_all(self) -> List[Record]:
        with self._connect() as con:
            rows = con.execute(f"SELECT * FROM {TABLE}").fetchall()
        return [_row_to_record(row) for row in rows]

    def count(self) -> int:
        with self._connect() as con:
            row = con.execute(f"SELECT COUNT(*) FROM {TABLE}").fetchone()
        return row[0] if row and row[0] is not None else 0
