# fetchers/session.py
import os
from http.cookiejar import LoadError, MozillaCookieJar
from typing import List

import requests

from core.locale import accept_language, cookie_domain
from core.logger import get_logger

logger = get_logger(__name__)

REQUIRED_COOKIES = ["POESESSID"]

USER_AGENT = os.getenv(
    "USER_AGENT",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
)
COOKIE_FILE = os.getenv("COOKIE_FILE", "").strip()
POESESSID = os.getenv("POESESSID", "").strip()
PROXY_URL = os.getenv("PROXY_URL", "").strip()


def _load_cookie_file(session: requests.Session, path: str) -> None:
    jar = MozillaCookieJar(path)
    try:
        jar.load(ignore_discard=True, ignore_expires=True)
    except (OSError, LoadError) as e:
        logger.warning("Could not load cookie file %s: %s", path, e)
        return
    session.cookies.update(jar)
    logger.debug("Loaded %d cookies from %s", len(jar), path)


def build_session(
    locale: str,
    cookie_file: str = COOKIE_FILE,
    session_id: str = POESESSID,
) -> requests.Session:
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": USER_AGENT,
            "Accept-Language": accept_language(locale),
        }
    )
    if PROXY_URL:
        session.proxies.update({"http": PROXY_URL, "https": PROXY_URL})
    if cookie_file:
        _load_cookie_file(session, cookie_file)
    if session_id:
        session.cookies.set("POESESSID", session_id, domain=cookie_domain(locale), path="/")
    return session


def _domain_matches(cookie_domain_value: str, host: str) -> bool:
    d = cookie_domain_value.lstrip(".").lower()
    return bool(d) and (host == d or host.endswith("." + d))


def has_cookie(session: requests.Session, name: str, locale: str) -> bool:
    host = cookie_domain(locale)
    for cookie in session.cookies:
        if cookie.name == name and cookie.value and _domain_matches(cookie.domain, host):
            return True
    return False


def missing_credentials(session: requests.Session, locale: str) -> List[str]:
    return [name for name in REQUIRED_COOKIES if not has_cookie(session, name, locale)]
