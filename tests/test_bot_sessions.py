"""Tests for the expiring bot session store."""

from __future__ import annotations

import pytest

from src.app.bot.sessions import BotSessionStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def test_start_then_get(clock):
    store = BotSessionStore(ttl_seconds=60, clock=clock)
    session = store.start("telegram", "42", "lead_company")
    session.data["companyName"] = "Acme Foods"

    fetched = store.get("telegram", "42")
    assert fetched is session
    assert fetched.step == "lead_company"
    assert store.get("telegram", "43") is None
    assert store.get("slack", "42") is None


def test_session_expires_after_idle_ttl(clock):
    store = BotSessionStore(ttl_seconds=60, clock=clock)
    store.start("telegram", "42", "lead_company")

    clock.advance(60)

    assert store.get("telegram", "42") is None
    assert len(store) == 0


def test_save_extends_expiry(clock):
    store = BotSessionStore(ttl_seconds=60, clock=clock)
    session = store.start("telegram", "42", "lead_company")

    clock.advance(45)
    session.step = "lead_sector"
    store.save("telegram", "42", session)
    clock.advance(45)

    assert store.get("telegram", "42") is session


def test_start_replaces_session_in_progress(clock):
    store = BotSessionStore(clock=clock)
    first = store.start("telegram", "42", "link_email")
    first.data["email"] = "nitin@maple.example"

    second = store.start("telegram", "42", "lead_company")

    assert store.get("telegram", "42") is second
    assert second.data == {}
    assert len(store) == 1


def test_capacity_evicts_least_recently_saved(clock):
    store = BotSessionStore(max_sessions=2, clock=clock)
    a = store.start("telegram", "a", "lead_company")
    store.start("telegram", "b", "lead_company")
    store.save("telegram", "a", a)

    store.start("telegram", "c", "lead_company")

    assert store.get("telegram", "b") is None
    assert store.get("telegram", "a") is a
    assert store.get("telegram", "c") is not None


def test_full_store_purges_expired_before_evicting(clock):
    store = BotSessionStore(ttl_seconds=60, max_sessions=2, clock=clock)
    store.start("telegram", "stale", "lead_company")
    clock.advance(30)
    store.start("telegram", "live", "lead_company")
    clock.advance(40)

    store.start("telegram", "new", "lead_company")

    assert store.get("telegram", "live") is not None
    assert store.get("telegram", "new") is not None
    assert len(store) == 2


def test_discard_reports_whether_session_was_live(clock):
    store = BotSessionStore(ttl_seconds=60, clock=clock)
    store.start("telegram", "42", "lead_company")

    assert store.discard("telegram", "42") is True
    assert store.discard("telegram", "42") is False


def test_purge_expired_counts_removed(clock):
    store = BotSessionStore(ttl_seconds=60, clock=clock)
    store.start("telegram", "1", "lead_company")
    store.start("telegram", "2", "lead_company")
    clock.advance(61)
    store.start("telegram", "3", "lead_company")

    assert store.purge_expired() == 2
    assert len(store) == 1


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        BotSessionStore(max_sessions=0)
