"""SQLite-backed storage layer shared by the replica registry and readiness probe."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import aiosqlite

from replica_readiness.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS replicas (
    id TEXT PRIMARY KEY,
    hostname TEXT NOT NULL,
    started_at REAL NOT NULL,
    last_seen_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_replicas_last_seen ON replicas(last_seen_at);
"""


class SqliteStorage:
    """Owns the aiosqlite connection and answers readiness pings.

    If the database could not be opened at start-up, ``ensure_started()``
    (called by every ping) retries the open. After ``stop()`` the storage
    stays closed until ``start()`` is called again.
    """

    def __init__(self, db_path: Path):
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None
        self._stopped = False
        self._open_lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._db_path

    @property
    def connection(self) -> aiosqlite.Connection:
        """The open connection; raises StorageUnavailableError if not started."""
        if self._db is None:
            raise StorageUnavailableError("Storage not started")
        return self._db

    async def start(self) -> None:
        """Open the database and create tables."""
        self._stopped = False
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(self._db_path))
        try:
            await db.executescript(_SCHEMA)
            await db.commit()
        except BaseException:
            await db.close()
            raise
        self._db = db
        logger.info("SqliteStorage started (%s)", self._db_path)

    async def ensure_started(self) -> None:
        """Open the database if a previous open failed. No-op after stop()."""
        if self._db is not None or self._stopped:
            return
        async with self._open_lock:
            if self._db is None and not self._stopped:
                await self.start()

    async def stop(self) -> None:
        """Close DB connection."""
        self._stopped = True
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("SqliteStorage stopped")

    async def ping(self) -> None:
        """Round-trip a trivial query. Raises on any failure."""
        await self.ensure_started()
        async with self.connection.execute("SELECT 1") as cur:
            row = await cur.fetchone()
        if row is None or row[0] != 1:
            raise StorageUnavailableError("Unexpected ping result")
