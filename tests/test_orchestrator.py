import pytest

from conftest import LEAGUE, OTHER_LEAGUE, fake_session, make_entry
from core.errors import (
    AUTH_EXPIRED,
    FETCH_FAILED,
    LEAGUE_MISMATCH,
    RATE_LIMIT,
    UNKNOWN,
    SyncError,
)
from core.orchestrator import Synchronizer, handle_update
from core.ratelimit import RateLimiter
from core.storage import PartitionStore


class FakeFeed:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, session, league, locale):
        self.calls.append((league, locale))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _synchronizer(state, data_dir, clock, feed, with_cookie=True):
    def session_factory(locale):
        domain = "jp.pathofexile.com" if locale == "ja" else "pathofexile.com"
        return fake_session(domain, with_cookie=with_cookie)

    return Synchronizer(
        state,
        data_dir=data_dir,
        rate_limiter=RateLimiter(state, clock=clock),
        session_factory=session_factory,
        fetcher=feed,
    )


def test_synchronize_inserts_new_records(state, data_dir, clock):
    feed = FakeFeed(
        {"result": [make_entry("a"), make_entry("b"), make_entry("a")]},
        {"result": [make_entry("b"), make_entry("c")]},
    )
    sync = _synchronizer(state, data_dir, clock, feed)

    first = sync.synchronize(LEAGUE, "en")
    assert (first.fetched_count, first.added_count, first.total_count) == (2, 2, 2)

    clock.advance(61)
    second = sync.synchronize(LEAGUE, "en")
    assert (second.fetched_count, second.added_count, second.total_count) == (2, 1, 3)
    assert feed.calls == [(LEAGUE, "en"), (LEAGUE, "en")]


def test_league_mismatch_commits_nothing(state, data_dir, clock):
    feed = FakeFeed(
        {"result": [make_entry("a"), make_entry("a"), make_entry("b", league=OTHER_LEAGUE)]}
    )
    sync = _synchronizer(state, data_dir, clock, feed)

    with pytest.raises(SyncError) as exc:
        sync.synchronize(LEAGUE, "en")
    assert exc.value.code == LEAGUE_MISMATCH
    assert exc.value.meta["actual_league"] == OTHER_LEAGUE
    assert PartitionStore.for_partition("en", LEAGUE, data_dir).count() == 0


def test_rate_limit_short_circuits_before_fetch(state, data_dir, clock):
    feed = FakeFeed({"result": []}, {"result": []})
    sync = _synchronizer(state, data_dir, clock, feed)
    sync.synchronize(LEAGUE, "en")
    clock.advance(5)

    with pytest.raises(SyncError) as exc:
        sync.synchronize(LEAGUE, "en")
    assert exc.value.code == RATE_LIMIT
    assert exc.value.meta["remaining_sec"] == 55
    assert len(feed.calls) == 1


def test_missing_cookie_is_auth_expired(state, data_dir, clock):
    feed = FakeFeed({"result": []})
    sync = _synchronizer(state, data_dir, clock, feed, with_cookie=False)

    with pytest.raises(SyncError) as exc:
        sync.synchronize(LEAGUE, "ja")
    assert exc.value.code == AUTH_EXPIRED
    assert exc.value.meta == {"missing": ["POESESSID"]}
    assert feed.calls == []


def test_locales_sync_into_separate_partitions(state, data_dir, clock):
    feed = FakeFeed({"result": [make_entry("a")]}, {"result": [make_entry("a"), make_entry("b")]})
    sync = _synchronizer(state, data_dir, clock, feed)

    sync.synchronize(LEAGUE, "en")
    clock.advance(60)
    result = sync.synchronize(LEAGUE, "ja-JP")

    assert result.added_count == 2
    assert PartitionStore.for_partition("en", LEAGUE, data_dir).count() == 1
    assert PartitionStore.for_partition("ja", LEAGUE, data_dir).count() == 2


def test_handle_update_success_envelope(state, data_dir, clock):
    feed = FakeFeed({"result": [make_entry("a")]})
    response = handle_update(_synchronizer(state, data_dir, clock, feed), LEAGUE, "en")
    assert response == {
        "ok": True,
        "result": {"addedCount": 1, "fetchedCount": 1, "totalCount": 1},
    }


def test_handle_update_error_envelopes(state, data_dir, clock):
    feed = FakeFeed(
        SyncError(FETCH_FAILED, "Failed to fetch history.", {"status": 503}),
        RuntimeError("boom"),
    )
    sync = _synchronizer(state, data_dir, clock, feed)

    failed = handle_update(sync, LEAGUE, "en")
    assert failed["ok"] is False
    assert failed["error"]["code"] == FETCH_FAILED
    assert failed["error"]["meta"] == {"status": 503}

    clock.advance(60)
    unknown = handle_update(sync, LEAGUE, "en")
    assert unknown["error"]["code"] == UNKNOWN
    assert unknown["error"]["meta"] is None


def test_handle_update_storage_failure_envelope(state, data_dir, clock):
    feed = FakeFeed({"result": [make_entry("a"), make_entry("b", currency={"bad": 1})]})
    response = handle_update(_synchronizer(state, data_dir, clock, feed), LEAGUE, "en")

    assert response["ok"] is False
    assert response["error"]["code"] == UNKNOWN
    assert response["error"]["meta"] == {"store_code": "IDB_ADD_FAILED"}
    assert PartitionStore.for_partition("en", LEAGUE, data_dir).count() == 0
