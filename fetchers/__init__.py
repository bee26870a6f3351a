# fetchers/__init__.py
from .history import fetch_history
from .leagues import fetch_leagues, LeagueListError
from .session import build_session, missing_credentials, REQUIRED_COOKIES

__all__ = [
    "fetch_history",
    "fetch_leagues",
    "LeagueListError",
    "build_session",
    "missing_credentials",
    "REQUIRED_COOKIES",
]
