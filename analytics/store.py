"""
analytics/store.py — SQLite-backed append-only log of player events.

Records one row per event (currently logins) so operators can see activity
per account. Recording is best effort: a failure is logged and the caller
carries on, since losing one analytics row must never fail a login.

Usage:
    analytics = AnalyticsStore()
    analytics.record("1234567890", AnalyticType.LOGINS)
    analytics.count("1234567890", AnalyticType.LOGINS)   # -> 1
    analytics.close()
"""

import logging
import sqlite3
import threading
import time
from enum import Enum
from pathlib import Path

logger = logging.getLogger("runauth.analytics")

_DEFAULT_DB = Path(__file__).parent / "runauth_analytics.db"

_DDL = """
CREATE TABLE IF NOT EXISTS analytics_events (
    player_id    TEXT NOT NULL,
    event_type   TEXT NOT NULL,
    recorded_at  REAL NOT NULL
);
"""

_INDEX = "CREATE INDEX IF NOT EXISTS ix_events_player ON analytics_events (player_id, event_type)"


class AnalyticType(str, Enum):
    LOGINS = "logins"


class AnalyticsStore:
    def __init__(self, db_path: Path = _DEFAULT_DB) -> None:
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        # One connection shared across the request threadpool.
        self._lock = threading.Lock()
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_DDL)
        self._conn.execute(_INDEX)
        self._conn.commit()

    def record(self, player_id: str, event: AnalyticType) -> bool:
        """Append one event. Returns False (and logs) if the write failed."""
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT INTO analytics_events (player_id, event_type, recorded_at) VALUES (?, ?, ?)",
                    (player_id, event.value, time.time()),
                )
                self._conn.commit()
        except sqlite3.Error:
            logger.exception("Error recording %s event for player %s", event.value, player_id)
            return False
        return True

    def count(self, player_id: str, event: AnalyticType) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM analytics_events WHERE player_id = ? AND event_type = ?",
                (player_id, event.value),
            ).fetchone()
        return row[0]

    def close(self) -> None:
        self._conn.close()
