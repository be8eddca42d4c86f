"""
Tests for the database module.
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

from bet_sentinel.database import Database, EventCache
from bet_sentinel.models import BetEvent, InvalidEventError

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def make_event(actor_id="user_1", minutes_ago=0, **kwargs) -> BetEvent:
    fields = {
        "actor_id": actor_id,
        "amount": 10.0,
        "game_id": "g_dice",
        "game_name": "Dice",
        "timestamp": NOW - timedelta(minutes=minutes_ago),
    }
    fields.update(kwargs)
    return BetEvent(**fields)


@pytest.fixture
def test_db():
    """Create a temporary test database."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    db = Database(db_path=path)
    yield db
    os.unlink(path)


class TestDatabase:
    """Tests for Database class."""

    def test_init_creates_tables(self, test_db):
        """Test that initialization creates all required tables."""
        stats = test_db.get_stats()
        assert stats["total_bets"] == 0
        assert stats["total_actors"] == 0
        assert stats["total_amount"] == 0.0
        assert stats["first_bet"] is None

    def test_insert_bet(self, test_db):
        """Test storing a single bet."""
        bet_id = test_db.insert_bet(make_event(flagged=True, ip_address="198.51.100.2"))
        assert bet_id == 1

        bets = test_db.get_all_bets()
        assert len(bets) == 1
        assert bets[0]["actor_id"] == "user_1"
        assert bets[0]["amount"] == 10.0
        assert bets[0]["flagged"] is True
        assert bets[0]["ip_address"] == "198.51.100.2"
        assert bets[0]["geo"] is None

    def test_insert_raw_record(self, test_db):
        """Test storing a wire-format record."""
        test_db.insert_bet({
            "userId": "raw",
            "betAmount": 5,
            "gameId": "g1",
            "gameName": "Poker",
            "timestamp": NOW.isoformat(),
            "geo": {"country": "IE"},
        })
        bet = test_db.get_all_bets()[0]
        assert bet["actor_id"] == "raw"
        assert bet["geo"] == {"country": "IE"}

    def test_insert_invalid_record(self, test_db):
        """Test that invalid records are rejected before storage."""
        with pytest.raises(InvalidEventError):
            test_db.insert_bet({"userId": "x", "betAmount": -1})
        assert test_db.get_stats()["total_bets"] == 0

    def test_insert_bets(self, test_db):
        """Test bulk insert."""
        stored = test_db.insert_bets([make_event(minutes_ago=i) for i in range(5)])
        assert stored == 5
        assert test_db.get_stats()["total_bets"] == 5

    def test_get_bets_between(self, test_db):
        """Test time-range scan with inclusive bounds."""
        test_db.insert_bets([
            make_event("a", minutes_ago=120),
            make_event("b", minutes_ago=60),
            make_event("c", minutes_ago=30),
            make_event("d", minutes_ago=0),
        ])

        events = test_db.get_bets_between(NOW - timedelta(minutes=60), NOW - timedelta(minutes=30))
        assert [e.actor_id for e in events] == ["b", "c"]
        assert all(isinstance(e, BetEvent) for e in events)
        assert events[0].timestamp == NOW - timedelta(minutes=60)

    def test_get_bets_between_sub_second(self, test_db):
        """Test ordering when timestamps differ by microseconds."""
        test_db.insert_bets([
            make_event("whole", timestamp=NOW),
            make_event("fraction", timestamp=NOW + timedelta(microseconds=500)),
        ])
        events = test_db.get_bets_between(NOW, NOW)
        assert [e.actor_id for e in events] == ["whole"]

    def test_get_bets_between_mixed_offsets(self, test_db):
        """Test that stored timestamps are normalized to UTC."""
        plus_two = timezone(timedelta(hours=2))
        test_db.insert_bet(make_event("local", timestamp=datetime(2026, 10, 19, 13, tzinfo=plus_two)))

        events = test_db.get_bets_between(NOW - timedelta(hours=1, minutes=1), NOW - timedelta(minutes=59))
        assert [e.actor_id for e in events] == ["local"]

    def test_round_trip_fields(self, test_db):
        """Test that stored events come back unchanged."""
        original = make_event(flagged=True, geo={"country": "MT", "ll": [35.9, 14.5]})
        test_db.insert_bet(original)
        loaded = test_db.get_bets_between(NOW - timedelta(days=1), NOW)[0]
        assert loaded == original

    def test_get_stats(self, test_db):
        """Test aggregate statistics."""
        test_db.insert_bets([
            make_event("a", amount=10, flagged=True, minutes_ago=10),
            make_event("a", amount=20, game_id="g_poker", game_name="Poker"),
            make_event("b", amount=5),
        ])
        stats = test_db.get_stats()
        assert stats["total_bets"] == 3
        assert stats["total_actors"] == 2
        assert stats["total_games"] == 2
        assert stats["flagged_bets"] == 1
        assert stats["total_amount"] == 35
        assert stats["first_bet"].startswith("2026-10-19T11:50:00")
        assert stats["last_bet"].startswith("2026-10-19T12:00:00")


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestEventCache:
    """Tests for EventCache."""

    def test_caches_until_expiry(self):
        clock = FakeClock()
        cache = EventCache(ttl_seconds=30, clock=clock)
        calls = []

        def loader():
            calls.append(1)
            return len(calls)

        assert cache.get_or_load("k", loader) == 1
        clock.now = 29
        assert cache.get_or_load("k", loader) == 1
        clock.now = 30
        assert cache.get_or_load("k", loader) == 2
        assert len(calls) == 2

    def test_invalidate_key(self):
        cache = EventCache(ttl_seconds=30, clock=FakeClock())
        values = iter([1, 2, 3])
        assert cache.get_or_load("k", lambda: next(values)) == 1
        cache.invalidate("k")
        assert cache.get_or_load("k", lambda: next(values)) == 2

    def test_invalidate_all(self):
        cache = EventCache(ttl_seconds=30, clock=FakeClock())
        cache.get_or_load("a", lambda: "a1")
        cache.get_or_load("b", lambda: "b1")
        cache.invalidate()
        assert cache.get_or_load("a", lambda: "a2") == "a2"
        assert cache.get_or_load("b", lambda: "b2") == "b2"

    def test_disabled(self):
        cache = EventCache(ttl_seconds=0)
        values = iter([1, 2])
        assert cache.get_or_load("k", lambda: next(values)) == 1
        assert cache.get_or_load("k", lambda: next(values)) == 2

    def test_loader_errors_propagate(self):
        cache = EventCache(ttl_seconds=30, clock=FakeClock())

        def broken():
            raise RuntimeError("store down")

        with pytest.raises(RuntimeError):
            cache.get_or_load("k", broken)
