"""
Tests for the sample data generator.
"""

import os
import tempfile
from datetime import datetime, timezone

import pytest

from bet_sentinel.database import Database
from bet_sentinel.detection import SuspiciousBettorDetector
from bet_sentinel.sample_data import (
    clear_sample_data,
    generate_sample_data,
    generate_sample_events,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def test_db():
    """Create a temporary test database."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    db = Database(db_path=path)
    yield db
    os.unlink(path)


class TestGenerateSampleEvents:
    """Tests for generate_sample_events."""

    def test_seed_is_reproducible(self):
        first = generate_sample_events(NOW, num_actors=10, num_bots=2, seed=7)
        second = generate_sample_events(NOW, num_actors=10, num_bots=2, seed=7)
        assert first == second

    def test_actor_counts(self):
        events = generate_sample_events(NOW, num_actors=10, num_bots=2, seed=1)
        actors = {e.actor_id for e in events}
        assert len(actors) == 12
        assert len([a for a in actors if a.startswith("bot_")]) == 2

    def test_bots_are_detected(self):
        events = generate_sample_events(NOW, num_actors=30, num_bots=3, seed=42)
        report = SuspiciousBettorDetector().analyze(events, NOW, top_n=100)

        bots = {a for a in (e.actor_id for e in events) if a.startswith("bot_")}
        flagged = {a.actor_id: a.suspicion_score for a in report.suspicious_actors}
        assert bots <= set(flagged)
        assert all(flagged[bot] >= 60 for bot in bots)

    def test_no_events_after_now(self):
        events = generate_sample_events(NOW, num_actors=5, num_bots=1, seed=3)
        assert all(e.timestamp <= NOW for e in events)


class TestGenerateSampleData:
    """Tests for storing sample data."""

    def test_store_and_clear(self, test_db):
        stats = generate_sample_data(database=test_db, num_actors=5, num_bots=1, seed=11)
        assert stats["actors_created"] == 6
        assert test_db.get_stats()["total_bets"] == stats["bets_created"]

        clear_sample_data(database=test_db)
        assert test_db.get_stats()["total_bets"] == 0
