# core/orchestrator.py
from typing import Any, Callable, Dict, Optional

import requests

from fetchers.history import fetch_history
from fetchers.session import build_session, missing_credentials

from .errors import AUTH_EXPIRED, UNKNOWN, SyncError, StoreError
from .locale import normalize_locale
from .logger import get_logger
from .models import SyncResult
from .normalize import normalize_history
from .ratelimit import RateLimiter
from .state import StateStore
from .storage import DATA_DIR, PartitionStore

logger = get_logger(__name__)

SessionFactory = Callable[[str], requests.Session]
HistoryFetcher = Callable[[requests.Session, str, str], Any]


class Synchronizer:
    """
    Runs one synchronization pass for a (league, locale) partition:
    gate, credentials, fetch, normalize, insert, count. Each step
    short-circuits the rest by raising.
    """

    def __init__(
        self,
        state: StateStore,
        data_dir: str = DATA_DIR,
        rate_limiter: Optional[RateLimiter] = None,
        session_factory: SessionFactory = build_session,
        fetcher: HistoryFetcher = fetch_history,
    ):
        self.state = state
        self.data_dir = data_dir
        self.rate_limiter = rate_limiter or RateLimiter(state)
        self.session_factory = session_factory
        self.fetcher = fetcher

    def store_for(self, league: str, locale: str) -> PartitionStore:
        return PartitionStore.for_partition(locale, league, self.data_dir)

    def synchronize(self, league: str, locale: str) -> SyncResult:
        locale = normalize_locale(locale)
        logger.info("Synchronizing league '%s' (locale=%s).", league, locale)

        self.rate_limiter.check_and_arm()

        session = self.session_factory(locale)
        missing = missing_credentials(session, locale)
        if missing:
            logger.warning("Missing credentials for %s: %s", locale, missing)
            raise SyncError(AUTH_EXPIRED, "Login expired. Please sign in again.", {"missing": missing})

        response = self.fetcher(session, league, locale)
        records = normalize_history(response, league)

        store = self.store_for(league, locale)
        added = store.insert_many(records)
        total = store.count()

        result = SyncResult(added_count=added, fetched_count=len(records), total_count=total)
        logger.info(
            "League '%s' (%s): fetched=%d added=%d total=%d",
            league, locale, result.fetched_count, result.added_count, result.total_count,
        )
        return result


def handle_update(synchronizer: Synchronizer, league: str, locale: str) -> Dict[str, Any]:
    """Run a synchronization and wrap the outcome in an ok/error envelope."""
    try:
        result = synchronizer.synchronize(league, locale)
    except SyncError as e:
        return {"ok": False, "error": e.to_dict()}
    except StoreError as e:
        logger.error("Storage failure while synchronizing %s: %s", league, e)
        return {
            "ok": False,
            "error": {"code": UNKNOWN, "message": str(e), "meta": {"store_code": e.code}},
        }
    except Exception as e:
        logger.exception("Unexpected error while synchronizing %s: %s", league, e)
        return {
            "ok": False,
            "error": {"code": UNKNOWN, "message": "An unexpected error occurred.", "meta": None},
        }
    return {"ok": True, "result": result.to_dict()}
