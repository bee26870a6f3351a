import datetime
import os

os.environ.setdefault("LOG_TO_FILE", "false")

import pytest
import pytz
import requests

from core.state import StateStore

LEAGUE = "Rise of the Abyssal"
OTHER_LEAGUE = "Standard"


def make_entry(item_id, league=LEAGUE, name="", type_line="Gold Ring", amount=3, currency="exalted",
               time="2025-01-02T03:04:05Z"):
    return {
        "item_id": item_id,
        "time": time,
        "price": {"amount": amount, "currency": currency},
        "item": {"league": league, "name": name, "typeLine": type_line, "ilvl": 80},
    }


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime.datetime(2025, 1, 1, 12, 0, 0, tzinfo=pytz.UTC)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + datetime.timedelta(seconds=seconds)


def fake_session(locale_domain="pathofexile.com", with_cookie=True):
    session = requests.Session()
    if with_cookie:
        session.cookies.set("POESESSID", "abc123", domain=locale_domain, path="/")
    return session


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "data"
    path.mkdir()
    return str(path)


@pytest.fixture
def state(tmp_path):
    return StateStore(str(tmp_path / "state.sqlite3"))


@pytest.fixture
def clock():
    return FakeClock()
