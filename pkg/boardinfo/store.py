"""
Layout persistence gateways.

A gateway is a key/value store scoped to widget instances:
  get(key) -> str | None
  set(key, value) -> None
Both are coroutines. Failures surface as IOFailure.
"""
import asyncio
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from .errors import IOFailure

logger = logging.getLogger(__name__)


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection in WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class MemoryGateway:
    """Dict-backed gateway for tests and offline runs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.values: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    async def set(self, key: str, value: str) -> None:
        self.values[key] = value


class SqliteGateway:
    """SQLite-backed gateway; one row per key in widget_state."""

    def __init__(self, db_path: str = None):
        """Initialize store and create the table if needed."""
        if db_path is None:
            db_path = str(Path.home() / ".local" / "share" / "board-info" / "widget.db")
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS widget_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    def get_sync(self, key: str) -> Optional[str]:
        try:
            with _connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT value FROM widget_state WHERE key = ? LIMIT 1",
                    (key,)
                ).fetchone()
        except (sqlite3.Error, OSError) as e:
            raise IOFailure(f"Error reading {key}: {e}") from e
        return row["value"] if row else None

    def set_sync(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        try:
            with _connect(self.db_path) as conn:
                conn.execute("""
                    INSERT INTO widget_state (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
                """, (key, value, now))
                conn.commit()
        except (sqlite3.Error, OSError) as e:
            raise IOFailure(f"Error writing {key}: {e}") from e
        logger.debug(f"Stored {key} ({len(value)} bytes)")

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self.get_sync, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self.set_sync, key, value)
