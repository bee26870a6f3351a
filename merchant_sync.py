import os
import json
import time
import random
from typing import Any, Dict, List, Tuple

from core.errors import RATE_LIMIT
from core.locale import normalize_locale
from core.logger import get_logger
from core.migration import LegacyMigrator
from core.orchestrator import Synchronizer, handle_update
from core.state import StateStore
from core.storage import DATA_DIR, PartitionStore, sort_newest_first
from fetchers import build_session, fetch_leagues, LeagueListError

logger = get_logger(__name__)

POLL_MINUTES = int(os.getenv("POLL_MINUTES", "10"))
MODE = os.getenv("MODE", "daemon").lower()  # daemon|once|leagues|history
CONFIG_PATH = os.getenv("CONFIG_PATH", "/data/config.json")
LOCALE = os.getenv("LOCALE", "en")
LEAGUE = os.getenv("LEAGUE", "").strip()
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "50"))


def jitter_sleep_minutes(minutes: int) -> None:
    base = max(1, minutes)
    jitter = random.uniform(-0.1 * base, 0.1 * base)
    total = base + jitter
    logger.info("Sleeping %.1f minutes before next cycle.", total)
    time.sleep(total * 60)


def load_config(path: str = CONFIG_PATH) -> Dict[str, Any]:
    if not os.path.exists(path):
        logger.error("Config file not found at %s", path)
        raise SystemExit(1)
    try:
        with open(path, "r", encoding="utf-8") as f:
            cfg: Dict[str, Any] = json.load(f)
    except Exception as e:
        logger.error("Failed to load config.json at %s: %s", path, e)
        raise SystemExit(1)

    if not isinstance(cfg, dict) or "leagues" not in cfg:
        logger.error("config.json must be an object with a 'leagues' key.")
        raise SystemExit(1)

    if not isinstance(cfg["leagues"], list) or not cfg["leagues"]:
        logger.error("config.json 'leagues' must be a non-empty list.")
        raise SystemExit(1)

    return cfg


def _entry_key(entry: Dict[str, Any]) -> Tuple[str, str] | None:
    league = str(entry.get("league", "")).strip()
    if not league:
        return None
    return league, normalize_locale(entry.get("locale"))


def process_league(
    synchronizer: Synchronizer,
    migrator: LegacyMigrator,
    entry: Dict[str, Any],
    wait_on_rate_limit: bool = True,
) -> Dict[str, Any] | None:
    key = _entry_key(entry)
    if key is None:
        logger.error("Invalid league entry (missing league): %s", entry)
        return None
    league, locale = key

    if not entry.get("enabled", True):
        logger.info("League '%s' (%s) is disabled; skipping.", league, locale)
        return None

    # Selecting a partition triggers the one-time legacy copy.
    migrator.migrate_if_needed(league, locale)

    response = handle_update(synchronizer, league, locale)
    error = response.get("error") or {}
    if error.get("code") == RATE_LIMIT and wait_on_rate_limit:
        remaining = (error.get("meta") or {}).get("remaining_sec", 0)
        logger.info("Waiting %s seconds for the rate limit before '%s'.", remaining, league)
        time.sleep(remaining)
        response = handle_update(synchronizer, league, locale)

    if response["ok"]:
        result = response["result"]
        logger.info(
            "Updated '%s' (%s): total %d / added %d",
            league, locale, result["totalCount"], result["addedCount"],
        )
    else:
        error = response["error"]
        logger.error(
            "Update failed for '%s' (%s): %s %s meta=%s",
            league, locale, error["code"], error["message"], error.get("meta"),
        )
    return response


def _build_components() -> Tuple[Synchronizer, LegacyMigrator]:
    state = StateStore()
    return Synchronizer(state), LegacyMigrator(state)


def run_once() -> int:
    cfg = load_config()
    synchronizer, migrator = _build_components()

    failures = 0
    for entry in cfg.get("leagues", []):
        if not isinstance(entry, dict):
            logger.error("Invalid league entry: %s", entry)
            continue
        try:
            response = process_league(synchronizer, migrator, entry)
            if response is not None and not response["ok"]:
                failures += 1
        except Exception as e:
            logger.exception("Unhandled error in run_once: %s", e)
            failures += 1

    return 1 if failures else 0


def run_daemon() -> None:
    logger.info("Starting daemon; poll every %d minutes.", POLL_MINUTES)
    synchronizer, migrator = _build_components()
    last_run_map: Dict[Tuple[str, str], float] = {}

    while True:
        try:
            cfg = load_config()
            entries: List[Any] = cfg.get("leagues", [])
            now = time.time()

            for entry in entries:
                if not isinstance(entry, dict):
                    logger.error("Invalid league entry: %s", entry)
                    continue

                key = _entry_key(entry)
                if key is None:
                    logger.error("Invalid league entry (missing league): %s", entry)
                    continue

                poll_val = entry.get("poll_minutes")
                try:
                    poll_minutes = int(poll_val) if poll_val is not None else POLL_MINUTES
                except Exception:
                    poll_minutes = POLL_MINUTES
                poll_minutes = max(1, poll_minutes)

                last_ts = last_run_map.get(key)
                if last_ts:
                    elapsed = (now - last_ts) / 60
                    if elapsed < poll_minutes:
                        logger.debug(
                            "Skip %s:%s (%.1f < %d minutes).",
                            key[1], key[0], elapsed, poll_minutes,
                        )
                        continue

                try:
                    process_league(synchronizer, migrator, entry)
                except Exception as e:
                    logger.exception("Error processing %s:%s: %s", key[1], key[0], e)
                finally:
                    last_run_map[key] = time.time()

        except SystemExit:
            logger.error("Config invalid; retrying next cycle.")
        except Exception as e:
            logger.exception("Unhandled error in daemon loop: %s", e)

        jitter_sleep_minutes(POLL_MINUTES)


def list_leagues(locale: str = LOCALE) -> int:
    locale = normalize_locale(locale)
    try:
        leagues = fetch_leagues(build_session(locale), locale)
    except LeagueListError as e:
        logger.error("Failed to load leagues: %s", e)
        return 1
    for league in leagues:
        print(f"{league['id']}\t{league.get('text', league['id'])}")
    return 0


def show_history(
    league: str = LEAGUE,
    locale: str = LOCALE,
    limit: int = HISTORY_LIMIT,
    state: StateStore | None = None,
    data_dir: str = DATA_DIR,
) -> int:
    """Print the stored trade history of one partition, newest first."""
    if not league:
        logger.error("LEAGUE must be set to show history.")
        return 1
    locale = normalize_locale(locale)
    LegacyMigrator(state or StateStore(), data_dir).migrate_if_needed(league, locale)

    records = sort_newest_first(PartitionStore.for_partition(locale, league, data_dir).get_all())
    for record in records[:limit] if limit > 0 else records:
        print(f"{record.time_key().isoformat()}\t{record.item_name}\t{record.currency}\t{record.amount}")
    return 0


if __name__ == "__main__":
    try:
        if MODE == "once":
            raise SystemExit(run_once())
        elif MODE == "history":
            raise SystemExit(show_history())
        elif MODE == "leagues":
            raise SystemExit(list_leagues())
        else:
            run_daemon()
    except SystemExit:
        raise
    except Exception as e:
        logger.exception("Fatal sync error: %s", e)
        raise SystemExit(2)
