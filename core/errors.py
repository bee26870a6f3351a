# core/errors.py
from typing import Any, Dict, Optional

FETCH_FAILED = "FETCH_FAILED"
LEAGUE_MISMATCH = "LEAGUE_MISMATCH"
AUTH_EXPIRED = "AUTH_EXPIRED"
RATE_LIMIT = "RATE_LIMIT"
UNKNOWN = "UNKNOWN"

ERROR_CODES = (FETCH_FAILED, LEAGUE_MISMATCH, AUTH_EXPIRED, RATE_LIMIT, UNKNOWN)

IDB_ADD_FAILED = "IDB_ADD_FAILED"


class SyncError(Exception):
    """
    Structured failure of a synchronization step.
    `code` is one of ERROR_CODES; `meta` carries code-specific details
    (remaining_sec, status, missing, expected_league/actual_league).
    """

    def __init__(self, code: str, message: str, meta: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code if code in ERROR_CODES else UNKNOWN
        self.message = message
        self.meta = meta

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "meta": self.meta}


class StoreError(Exception):
    """Unexpected persistence failure (anything other than a duplicate id)."""

    def __init__(self, message: str, code: str = IDB_ADD_FAILED):
        super().__init__(message)
        self.code = code
