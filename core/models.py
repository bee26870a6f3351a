# core/models.py
import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import pytz


def parse_time(value: str) -> datetime.datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return pytz.UTC.localize(parsed)
    return parsed.astimezone(pytz.UTC)


@dataclass
class Record:
    """
    Canonical trade-history entry as stored in a partition.
    `details_json` is the raw item payload from the feed, kept verbatim.
    """
    id: str
    item_name: str
    item_name_unique: Optional[str]
    currency: str
    amount: float
    time: str
    league: str
    details_json: Dict[str, Any] = field(default_factory=dict)
    source_item_key: str = ""

    def time_key(self) -> datetime.datetime:
        return parse_time(self.time)


@dataclass
class SyncResult:
    added_count: int
    fetched_count: int
    total_count: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "addedCount": self.added_count,
            "fetchedCount": self.fetched_count,
            "totalCount": self.total_count,
        }
