# core/locale.py
from typing import Optional
from urllib.parse import urlparse

LOCALES = ("en", "ja")

_HOSTS = {
    "ja": "https://jp.pathofexile.com",
    "en": "https://pathofexile.com",
}

_ACCEPT_LANGUAGE = {
    "ja": "ja,en-US;q=0.9,en;q=0.8",
    "en": "en-US,en;q=0.9,ja;q=0.8",
}


def normalize_locale(value: Optional[str]) -> str:
    if not value:
        return "en"
    return "ja" if value.strip().lower().startswith("ja") else "en"


def host_for_locale(locale: Optional[str]) -> str:
    return _HOSTS[normalize_locale(locale)]


def accept_language(locale: Optional[str]) -> str:
    return _ACCEPT_LANGUAGE[normalize_locale(locale)]


def cookie_domain(locale: Optional[str]) -> str:
    return urlparse(host_for_locale(locale)).hostname or ""
