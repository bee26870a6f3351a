# core/normalize.py
from typing import Any, Dict, List, Optional

from .errors import FETCH_FAILED, LEAGUE_MISMATCH, SyncError
from .logger import get_logger
from .models import Record

logger = get_logger(__name__)


def _unique_name(item: Dict[str, Any]) -> Optional[str]:
    name = item.get("name")
    if isinstance(name, str) and name.strip():
        return name
    return None


def _display_name(item: Dict[str, Any]) -> str:
    type_line = item.get("typeLine") or ""
    unique = _unique_name(item)
    if unique:
        return f"{unique} {type_line}"
    return type_line


def normalize_history(response: Any, league: str) -> List[Record]:
    """
    Turn a raw history response into canonical Records for `league`.

    Entries missing any of item_id/item/price/time are skipped. Repeated
    ids keep their first occurrence. An entry from another league aborts
    the whole batch with LEAGUE_MISMATCH. Input order is preserved.
    """
    entries = response.get("result") if isinstance(response, dict) else None
    if not isinstance(entries, list):
        raise SyncError(FETCH_FAILED, "History response has no result list.", None)

    records: List[Record] = []
    seen_ids = set()
    skipped = 0

    for entry in entries:
        if not isinstance(entry, dict):
            skipped += 1
            continue

        item_id = entry.get("item_id")
        item = entry.get("item")
        price = entry.get("price")
        time = entry.get("time")
        if not item_id or not item or not price or not time:
            skipped += 1
            continue
        if not isinstance(item, dict) or not isinstance(price, dict):
            skipped += 1
            continue

        if item.get("league") != league:
            raise SyncError(
                LEAGUE_MISMATCH,
                "League does not match the requested league.",
                {"expected_league": league, "actual_league": item.get("league")},
            )

        if item_id in seen_ids:
            continue
        seen_ids.add(item_id)

        records.append(
            Record(
                id=item_id,
                item_name=_display_name(item),
                item_name_unique=_unique_name(item),
                currency=price.get("currency"),
                amount=price.get("amount"),
                time=time,
                league=item["league"],
                details_json=item,
                source_item_key=league,
            )
        )

    if skipped:
        logger.debug("Skipped %d unsupported history entries for %s.", skipped, league)
    return records
