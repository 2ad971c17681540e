"""
VoyageWatch — Alert Store
=========================
Append-only persistence for dispatched alerts.

  InMemoryAlertStore  process-local list (tests, demo)
  SqliteAlertStore    sqlite3 file, queries run in a worker thread

Both raise PersistenceError when a write fails; callers log and move on.
"""

import asyncio
import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import List

from .errors import PersistenceError
from .models import Alert, utcnow

log = logging.getLogger("common.store")


def _recent_order(alerts: List[Alert]) -> List[Alert]:
    """Most urgent first; newest first within a priority."""
    by_time = sorted(alerts, key=lambda a: a.created_at, reverse=True)
    return sorted(by_time, key=lambda a: a.priority)


class InMemoryAlertStore:

    def __init__(self):
        self._alerts: List[Alert] = []
        self._lock = threading.Lock()

    async def insert(self, alert: Alert) -> None:
        with self._lock:
            self._alerts.append(alert)

    async def query_recent(self, voyage_id: str, window: timedelta) -> List[Alert]:
        cutoff = utcnow() - window
        with self._lock:
            rows = [a for a in self._alerts if a.voyage_id == voyage_id and a.created_at > cutoff]
        return _recent_order(rows)

    @property
    def alerts(self) -> List[Alert]:
        with self._lock:
            return list(self._alerts)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS alerts (
    id              TEXT PRIMARY KEY,
    voyage_id       TEXT NOT NULL,
    recipient_id    TEXT,
    alert_type      TEXT NOT NULL,
    message         TEXT NOT NULL,
    severity        TEXT NOT NULL,
    priority        INTEGER NOT NULL DEFAULT 5,
    category        TEXT NOT NULL DEFAULT 'general',
    recommendations TEXT NOT NULL DEFAULT '[]',
    weather_data    TEXT NOT NULL DEFAULT '{}',
    created_at      TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_alerts_voyage_created ON alerts (voyage_id, created_at);
"""


class SqliteAlertStore:
    """
    SQLite-backed store. Each call opens its own connection inside
    `asyncio.to_thread`, so the event loop never blocks on disk I/O.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._init_database()

    @contextmanager
    def _connect(self):
        """Commit on success, roll back on error, always close."""
        conn = sqlite3.connect(self.db_path)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_database(self):
        with self._connect() as conn:
            conn.executescript(_SCHEMA)

    # ── Writes ────────────────────────────────────────────────────────────────

    def _insert_sync(self, alert: Alert) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO alerts (
                    id, voyage_id, recipient_id, alert_type, message, severity,
                    priority, category, recommendations, weather_data, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    alert.id,
                    alert.voyage_id,
                    alert.recipient_id,
                    alert.alert_type,
                    alert.message,
                    alert.severity,
                    alert.priority,
                    alert.category,
                    json.dumps(alert.recommendations),
                    json.dumps(alert.weather_data),
                    alert.created_at.isoformat(),
                ),
            )

    async def insert(self, alert: Alert) -> None:
        try:
            await asyncio.to_thread(self._insert_sync, alert)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to insert alert {alert.id}: {exc}") from exc

    # ── Reads ─────────────────────────────────────────────────────────────────

    def _query_recent_sync(self, voyage_id: str, cutoff: datetime) -> List[Alert]:
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                """
                SELECT * FROM alerts
                WHERE voyage_id = ? AND created_at > ?
                ORDER BY priority ASC, created_at DESC
                """,
                (voyage_id, cutoff.isoformat()),
            ).fetchall()

        return [
            Alert(
                id              = row["id"],
                voyage_id       = row["voyage_id"],
                recipient_id    = row["recipient_id"],
                alert_type      = row["alert_type"],
                message         = row["message"],
                severity        = row["severity"],
                priority        = row["priority"],
                category        = row["category"],
                recommendations = json.loads(row["recommendations"]),
                weather_data    = json.loads(row["weather_data"]),
                created_at      = datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    async def query_recent(self, voyage_id: str, window: timedelta) -> List[Alert]:
        cutoff = utcnow() - window
        try:
            return await asyncio.to_thread(self._query_recent_sync, voyage_id, cutoff)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to query alerts for voyage {voyage_id}: {exc}") from exc


def build_store(db_path=None):
    if db_path:
        log.info(f"Using SQLite alert store at {db_path}")
        return SqliteAlertStore(db_path)
    log.info("Using in-memory alert store")
    return InMemoryAlertStore()
