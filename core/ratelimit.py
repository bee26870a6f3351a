# core/ratelimit.py
import datetime
import math
import threading
from typing import Callable

import pytz

from .errors import RATE_LIMIT, SyncError
from .logger import get_logger
from .state import LAST_FETCH_KEY, StateStore

logger = get_logger(__name__)

MIN_INTERVAL_SECONDS = 60


def now_utc() -> datetime.datetime:
    return datetime.datetime.now(tz=pytz.UTC)


class RateLimiter:
    """
    Persisted cooldown gate shared by every synchronization in the process.
    The check and the write of the new timestamp happen under one lock, so
    two callers can never both pass within the same interval.
    """

    _lock = threading.Lock()

    def __init__(
        self,
        state: StateStore,
        clock: Callable[[], datetime.datetime] = now_utc,
        interval_seconds: int = MIN_INTERVAL_SECONDS,
    ):
        self.state = state
        self.clock = clock
        self.interval_seconds = interval_seconds

    def _last_armed_at(self) -> datetime.datetime | None:
        raw = self.state.get(LAST_FETCH_KEY)
        if not raw:
            return None
        return datetime.datetime.fromisoformat(raw)

    def remaining_seconds(self, now: datetime.datetime | None = None) -> int:
        last = self._last_armed_at()
        if last is None:
            return 0
        elapsed = ((now or self.clock()) - last).total_seconds()
        if elapsed >= self.interval_seconds:
            return 0
        return math.ceil(self.interval_seconds - elapsed)

    def check_and_arm(self) -> None:
        with self._lock:
            now = self.clock()
            remaining = self.remaining_seconds(now)
            if remaining > 0:
                logger.warning("History update throttled; %d seconds remaining.", remaining)
                raise SyncError(
                    RATE_LIMIT,
                    f"Update is limited to once per minute. Wait {remaining} sec.",
                    {"remaining_sec": remaining},
                )
            self.state.set(LAST_FETCH_KEY, now.isoformat())
            logger.debug("Rate limit gate passed at %s.", now.isoformat())
