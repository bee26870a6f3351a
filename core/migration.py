# core/migration.py
import threading
from typing import Dict

from .logger import get_logger
from .state import MIGRATED_KEY_PREFIX, StateStore
from .storage import DATA_DIR, PartitionStore, to_league_key

logger = get_logger(__name__)


class LegacyMigrator:
    """
    One-time copy of a league-only store into its locale-qualified partition.

    The per-league flag is set after every attempt, including failed ones,
    so the copy runs at most once per league.
    """

    _locks: Dict[str, threading.Lock] = {}
    _locks_guard = threading.Lock()

    def __init__(self, state: StateStore, data_dir: str = DATA_DIR):
        self.state = state
        self.data_dir = data_dir

    def _flag_key(self, league: str) -> str:
        return f"{MIGRATED_KEY_PREFIX}{to_league_key(league)}"

    def _lock_for(self, league: str) -> threading.Lock:
        key = to_league_key(league)
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())

    def is_migrated(self, league: str) -> bool:
        return bool(self.state.get(self._flag_key(league), False))

    def migrate_if_needed(self, league: str, locale: str) -> int:
        """Return the number of legacy records copied (0 when skipped)."""
        with self._lock_for(league):
            if self.is_migrated(league):
                return 0
            copied = 0
            try:
                copied = self._migrate(league, locale)
            except Exception as e:
                logger.exception("Legacy migration for %s failed: %s", league, e)
            finally:
                self.state.set(self._flag_key(league), True)
            return copied

    def _migrate(self, league: str, locale: str) -> int:
        legacy = PartitionStore.legacy(league, self.data_dir)
        if not legacy.exists():
            logger.debug("No legacy store for %s.", league)
            return 0

        current = PartitionStore.for_partition(locale, league, self.data_dir)
        if current.count() > 0:
            logger.info(
                "Partition %s already has records; skipping legacy copy.", current.name
            )
            return 0

        records = legacy.get_all()
        if not records:
            return 0

        copied = current.insert_many(records)
        logger.info(
            "Migrated %d/%d legacy records from %s into %s.",
            copied, len(records), legacy.name, current.name,
        )
        return copied
