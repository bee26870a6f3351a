# fetchers/history.py
import os
from typing import Any
from urllib.parse import quote

import requests

from core.errors import FETCH_FAILED, SyncError
from core.locale import accept_language, host_for_locale
from core.logger import get_logger

logger = get_logger(__name__)

HISTORY_TIMEOUT = float(os.getenv("HISTORY_TIMEOUT", "30"))


def history_url(league: str, locale: str) -> str:
    return f"{host_for_locale(locale)}/api/trade2/history/{quote(league, safe='')}"


def fetch_history(session: requests.Session, league: str, locale: str) -> Any:
    """
    Fetch the raw trade history for a league. One GET, no retries:
    the caller's rate limit already bounds how often this runs.
    """
    host = host_for_locale(locale)
    url = history_url(league, locale)
    logger.info("Fetching trade history for '%s' from %s", league, url)

    try:
        r = session.get(
            url,
            headers={
                "Accept": "*/*",
                "Accept-Language": accept_language(locale),
                "X-Requested-With": "XMLHttpRequest",
                "Referer": f"{host}/trade2/history",
            },
            timeout=HISTORY_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.error("History fetch threw for %s: %s", url, e)
        raise SyncError(FETCH_FAILED, "Failed to fetch history.", {"status": None}) from e

    if not r.ok:
        logger.error("History fetch for %s returned HTTP %s", url, r.status_code)
        raise SyncError(FETCH_FAILED, "Failed to fetch history.", {"status": r.status_code})

    try:
        return r.json()
    except ValueError as e:
        logger.error("History response from %s is not JSON: %s", url, e)
        raise SyncError(
            FETCH_FAILED, "History response is not valid JSON.", {"status": r.status_code}
        ) from e
