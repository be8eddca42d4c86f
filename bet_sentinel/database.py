"""
SQLite event store for Bet Sentinel.

This module handles all database operations including:
- Schema creation
- Recording bet events from upstream ingestion
- Listing and time-range scans of stored bets
- Store statistics

It also provides a short-lived in-process cache for bet listings.
"""

import json
import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Generator, Iterable, Optional

from .config import settings
from .models import BetEvent
from .utils import ensure_utc, safe_float

logger = logging.getLogger(__name__)


# SQL schema for all tables
SCHEMA = """
-- Bets table: append-only record of bet events
CREATE TABLE IF NOT EXISTS bets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    actor_id TEXT NOT NULL,
    amount REAL NOT NULL,
    game_id TEXT NOT NULL,
    game_name TEXT NOT NULL,
    timestamp TEXT NOT NULL,  -- ISO-8601 UTC, fixed microsecond precision
    flagged BOOLEAN DEFAULT 0,
    ip_address TEXT,
    geo TEXT,  -- JSON object
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_bets_actor ON bets(actor_id);
CREATE INDEX IF NOT EXISTS idx_bets_timestamp ON bets(timestamp);
CREATE INDEX IF NOT EXISTS idx_bets_game ON bets(game_id);
"""


def _format_ts(value: datetime) -> str:
    # Fixed precision keeps lexical order equal to chronological order
    return ensure_utc(value).isoformat(timespec="microseconds")


class Database:
    """SQLite database manager for bet events."""

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file. Uses settings default if not provided.
        """
        self.db_path = db_path or settings.database_path
        self._ensure_db_directory()
        self._init_schema()

    def _ensure_db_directory(self) -> None:
        """Ensure the database directory exists."""
        db_dir = Path(self.db_path).parent
        if db_dir and not db_dir.exists():
            db_dir.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Get a database connection with automatic cleanup.

        Yields:
            sqlite3.Connection: Database connection.
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self.get_connection() as conn:
            conn.executescript(SCHEMA)
        logger.info(f"Database initialized at {self.db_path}")

    # ========== Bet Operations ==========

    @staticmethod
    def _event_params(event: BetEvent) -> tuple:
        geo = event.geo.model_dump(exclude_none=True) if event.geo else None
        return (
            event.actor_id,
            event.amount,
            event.game_id,
            event.game_name,
            _format_ts(event.timestamp),
            event.flagged,
            event.ip_address,
            json.dumps(geo) if geo else None,
        )

    def insert_bet(self, event: Any) -> int:
        """
        Record a bet event.

        Args:
            event: BetEvent or raw bet record.

        Returns:
            Row id of the stored bet.

        Raises:
            InvalidEventError: If a raw record fails validation.
        """
        event = BetEvent.from_record(event)
        with self.get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO bets (
                    actor_id, amount, game_id, game_name, timestamp,
                    flagged, ip_address, geo
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                self._event_params(event)
            )
            return cursor.lastrowid

    def insert_bets(self, events: Iterable[BetEvent]) -> int:
        """
        Record many validated bet events in one transaction.

        Args:
            events: BetEvent instances.

        Returns:
            Number of bets stored.
        """
        rows = [self._event_params(BetEvent.from_record(e)) for e in events]
        with self.get_connection() as conn:
            conn.executemany(
                """
                INSERT INTO bets (
                    actor_id, amount, game_id, game_name, timestamp,
                    flagged, ip_address, geo
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows
            )
        logger.info(f"Stored {len(rows)} bets")
        return len(rows)

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> dict:
        record = dict(row)
        record["amount"] = safe_float(record["amount"])
        record["flagged"] = bool(record["flagged"])
        record["geo"] = json.loads(record["geo"]) if record["geo"] else None
        return record

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> BetEvent:
        geo = json.loads(row["geo"]) if row["geo"] else None
        return BetEvent(
            actor_id=row["actor_id"],
            amount=row["amount"],
            game_id=row["game_id"],
            game_name=row["game_name"],
            timestamp=row["timestamp"],
            flagged=bool(row["flagged"]),
            ip_address=row["ip_address"],
            geo=geo,
        )

    def get_bets_between(self, start: datetime, end: datetime) -> list[BetEvent]:
        """
        Time-range scan of stored bets, both bounds inclusive.

        Args:
            start: Earliest bet timestamp.
            end: Latest bet timestamp.

        Returns:
            BetEvent list ordered by timestamp ascending.
        """
        with self.get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT * FROM bets
                WHERE timestamp >= ? AND timestamp <= ?
                ORDER BY timestamp ASC, id ASC
                """,
                (_format_ts(start), _format_ts(end))
            )
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def get_all_bets(self) -> list[dict]:
        """
        Get every stored bet, newest first.

        Returns:
            List of bet records.
        """
        with self.get_connection() as conn:
            cursor = conn.execute("SELECT * FROM bets ORDER BY timestamp DESC, id DESC")
            return [self._row_to_dict(row) for row in cursor.fetchall()]

    # ========== Statistics ==========

    def get_stats(self) -> dict:
        """
        Get database statistics.

        Returns:
            Dictionary with counts and totals.
        """
        with self.get_connection() as conn:
            stats = {}

            cursor = conn.execute("SELECT COUNT(*) as count FROM bets")
            stats["total_bets"] = cursor.fetchone()["count"]

            cursor = conn.execute("SELECT COUNT(DISTINCT actor_id) as count FROM bets")
            stats["total_actors"] = cursor.fetchone()["count"]

            cursor = conn.execute("SELECT COUNT(DISTINCT game_id) as count FROM bets")
            stats["total_games"] = cursor.fetchone()["count"]

            cursor = conn.execute("SELECT COUNT(*) as count FROM bets WHERE flagged = 1")
            stats["flagged_bets"] = cursor.fetchone()["count"]

            cursor = conn.execute("SELECT SUM(amount) as total FROM bets")
            row = cursor.fetchone()
            stats["total_amount"] = row["total"] or 0.0

            cursor = conn.execute(
                "SELECT MIN(timestamp) as first, MAX(timestamp) as last FROM bets"
            )
            row = cursor.fetchone()
            stats["first_bet"] = row["first"]
            stats["last_bet"] = row["last"]

            return stats


class EventCache:
    """
    Short-lived cache for bet listings.

    Entries expire after ttl_seconds; a ttl of 0 disables caching.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.ttl_seconds = settings.cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        """
        Return the cached value for key, loading it on a miss or expiry.

        Args:
            key: Cache key.
            loader: Callable producing a fresh value.

        Returns:
            Cached or freshly loaded value.
        """
        if self.ttl_seconds <= 0:
            return loader()

        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry and now - entry[0] < self.ttl_seconds:
                return entry[1]

        value = loader()
        with self._lock:
            self._entries[key] = (now, value)
        logger.debug(f"Cache refreshed for {key}")
        return value

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one key, or every key when none is given."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)


# Global database instance
db = Database()
