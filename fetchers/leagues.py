# fetchers/leagues.py
import json
import os
from typing import Dict, List

import requests
from bs4 import BeautifulSoup
from tenacity import retry, wait_exponential_jitter, stop_after_attempt, RetryError

from core.locale import host_for_locale
from core.logger import get_logger

logger = get_logger(__name__)

LEAGUE_FETCH_RETRIES = int(os.getenv("LEAGUE_FETCH_RETRIES", "3"))
TRADE_MARKER = 'require(["trade"]'
CONFIG_MARKER = "t("


class LeagueListError(Exception):
    """League list could not be fetched or parsed."""


@retry(wait=wait_exponential_jitter(initial=1, max=30), stop=stop_after_attempt(LEAGUE_FETCH_RETRIES))
def _fetch(session: requests.Session, url: str) -> str:
    r = session.get(url, timeout=30)
    r.raise_for_status()
    return r.text


def extract_object_literal(source: str, marker: str) -> str:
    """Return the first balanced {...} block that follows `marker`."""
    marker_index = source.find(marker)
    if marker_index == -1:
        raise LeagueListError(f"Marker {marker!r} not found")
    start = source.find("{", marker_index)
    if start == -1:
        raise LeagueListError("No object literal after marker")

    depth = 0
    for index in range(start, len(source)):
        char = source[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return source[start:index + 1]
    raise LeagueListError("Unbalanced object literal")


def extract_trade_config(html: str) -> Dict:
    soup = BeautifulSoup(html, "html.parser")
    target = None
    for script in soup.find_all("script"):
        text = script.string or script.get_text() or ""
        if TRADE_MARKER in text and "leagues" in text:
            target = text
            break
    if target is None:
        raise LeagueListError("Trade config script not found")

    try:
        return json.loads(extract_object_literal(target, CONFIG_MARKER))
    except json.JSONDecodeError as e:
        raise LeagueListError(f"Trade config is not valid JSON: {e}") from e


def fetch_leagues(session: requests.Session, locale: str) -> List[Dict[str, str]]:
    """Return the league list ({id, text}) advertised by the trade history page."""
    url = f"{host_for_locale(locale)}/trade2/history"
    try:
        html = _fetch(session, url)
    except RetryError as e:
        logger.error("League list fetch failed for %s after retries: %s", url, e)
        raise LeagueListError(f"Failed to load leagues from {url}") from e

    leagues = extract_trade_config(html).get("leagues") or []
    logger.info("Found %d leagues at %s", len(leagues), url)
    return [lg for lg in leagues if isinstance(lg, dict) and lg.get("id")]
