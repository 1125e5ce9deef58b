"""Work queue storage using SQLite.

Persists auctions waiting to go live or to be processed. A finalized
auction is removed from the queue by its identifier.
"""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional, List

from ..config import DatabaseConfig
from ..models.types import QueueEntry, parse_timestamp

logger = logging.getLogger(__name__)


class QueueStoreError(Exception):
    """Raised when a work queue operation cannot be completed."""


class SqliteWorkQueueStore:
    """SQLite storage for the pending-auction work queue."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.db_path = Path(config.data_dir) / config.queue_db
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self) -> None:
        """Connect to the database."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row
        self._create_tables()
        logger.info(f"Connected to queue store: {self.db_path}")

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    async def start(self) -> None:
        if self._conn is None:
            self.connect()

    async def stop(self) -> None:
        self.close()

    def _create_tables(self) -> None:
        """Create tables if they don't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS auction_queue (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                auction_id TEXT NOT NULL UNIQUE,
                position INTEGER NOT NULL,
                scheduled_time TEXT,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """)

        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_queue_position
            ON auction_queue (position)
        """)

        self._conn.commit()

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise QueueStoreError("Queue store not connected")
        return self._conn

    def next_position(self) -> int:
        """Position after the current tail of the queue."""
        conn = self._require_conn()
        row = conn.execute(
            "SELECT COALESCE(MAX(position), 0) AS tail FROM auction_queue"
        ).fetchone()
        return row["tail"] + 1

    def enqueue(
        self,
        auction_id: str,
        position: Optional[int] = None,
        scheduled_time: Optional[datetime] = None,
    ) -> QueueEntry:
        """Add an auction to the queue, or update its slot if present."""
        conn = self._require_conn()
        if position is None:
            position = self.next_position()

        conn.execute("""
            INSERT INTO auction_queue (auction_id, position, scheduled_time)
            VALUES (?, ?, ?)
            ON CONFLICT(auction_id) DO UPDATE SET
                position = excluded.position,
                scheduled_time = excluded.scheduled_time,
                updated_at = CURRENT_TIMESTAMP
        """, [
            auction_id,
            position,
            scheduled_time.isoformat() if scheduled_time else None,
        ])
        conn.commit()
        return QueueEntry(
            auction_id=auction_id,
            position=position,
            scheduled_time=scheduled_time,
        )

    def contains(self, auction_id: str) -> bool:
        conn = self._require_conn()
        row = conn.execute(
            "SELECT 1 FROM auction_queue WHERE auction_id = ?", [auction_id]
        ).fetchone()
        return row is not None

    def list_pending(self, limit: Optional[int] = None) -> List[QueueEntry]:
        """List queued auctions in position order."""
        conn = self._require_conn()
        query = "SELECT * FROM auction_queue ORDER BY position ASC"
        params = []
        if limit:
            query += " LIMIT ?"
            params.append(limit)

        rows = conn.execute(query, params).fetchall()
        return [
            QueueEntry(
                auction_id=row["auction_id"],
                position=row["position"],
                scheduled_time=(
                    parse_timestamp(row["scheduled_time"])
                    if row["scheduled_time"] else None
                ),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def delete(self, auction_id: str) -> int:
        """Delete an auction's entry. Returns the number of rows removed."""
        conn = self._require_conn()
        try:
            cursor = conn.execute(
                "DELETE FROM auction_queue WHERE auction_id = ?", [auction_id]
            )
            conn.commit()
        except sqlite3.Error as e:
            raise QueueStoreError(f"Failed to delete {auction_id}: {e}") from e
        return cursor.rowcount

    async def remove(self, auction_id: str) -> int:
        return self.delete(auction_id)
