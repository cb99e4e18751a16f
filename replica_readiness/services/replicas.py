"""Replica heartbeats in SQLite, feeding the active replica count to entitlements."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone

from replica_readiness.models.replica import ReplicaRecord
from replica_readiness.services.entitlements import EntitlementTracker
from replica_readiness.services.storage import SqliteStorage

logger = logging.getLogger(__name__)


class ReplicaRegistry:
    """Register this process as a replica and count the live ones."""

    def __init__(
        self,
        storage: SqliteStorage,
        entitlements: EntitlementTracker,
        replica_id: str,
        hostname: str,
        interval_s: float = 10.0,
        stale_after_s: float = 30.0,
    ):
        self._storage = storage
        self._entitlements = entitlements
        self._replica_id = replica_id
        self._hostname = hostname
        self._interval_s = interval_s
        self._stale_after_s = stale_after_s
        self._started_at = time.time()
        self._task: asyncio.Task | None = None

    @property
    def replica_id(self) -> str:
        return self._replica_id

    async def start(self) -> None:
        """Send a first heartbeat, then keep beating in background."""
        try:
            await self.sync()
        except Exception:
            logger.warning("Initial replica heartbeat failed", exc_info=True)
        self._task = asyncio.create_task(self._heartbeat_loop(), name="replica-heartbeat")
        logger.info(
            "ReplicaRegistry started (id=%s, interval=%.1fs, stale_after=%.1fs)",
            self._replica_id,
            self._interval_s,
            self._stale_after_s,
        )

    async def stop(self) -> None:
        """Stop beating and remove this replica's row."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        try:
            await self.deregister()
        except Exception:
            logger.warning("Could not deregister replica %s", self._replica_id, exc_info=True)
        logger.info("ReplicaRegistry stopped")

    async def heartbeat(self) -> None:
        """Upsert this replica's row with the current time."""
        db = self._storage.connection
        await db.execute(
            "INSERT INTO replicas (id, hostname, started_at, last_seen_at) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET hostname = excluded.hostname, "
            "last_seen_at = excluded.last_seen_at",
            (self._replica_id, self._hostname, self._started_at, time.time()),
        )
        await db.commit()

    async def deregister(self) -> None:
        db = self._storage.connection
        await db.execute("DELETE FROM replicas WHERE id = ?", (self._replica_id,))
        await db.commit()

    async def active_replicas(self) -> list[ReplicaRecord]:
        """Replicas whose last heartbeat is younger than ``stale_after_s``."""
        cutoff = time.time() - self._stale_after_s
        db = self._storage.connection
        async with db.execute(
            "SELECT id, hostname, started_at, last_seen_at FROM replicas "
            "WHERE last_seen_at >= ? ORDER BY started_at, id",
            (cutoff,),
        ) as cur:
            rows = await cur.fetchall()

        return [
            ReplicaRecord(
                id=replica_id,
                hostname=hostname,
                startedAt=datetime.fromtimestamp(started_at, tz=timezone.utc),
                lastSeenAt=datetime.fromtimestamp(last_seen_at, tz=timezone.utc),
            )
            for replica_id, hostname, started_at, last_seen_at in rows
        ]

    async def sync(self) -> int:
        """Heartbeat, count active replicas, and refresh entitlements."""
        await self._storage.ensure_started()
        await self.heartbeat()
        count = len(await self.active_replicas())
        self._entitlements.refresh(count)
        logger.debug("Heartbeat sent (%d active replica(s))", count)
        return count

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_s)
            try:
                await self.sync()
            except asyncio.CancelledError:
                raise
            except Exception:
                # Storage outages show up in /readyz; keep the last known count.
                logger.warning("Replica heartbeat failed", exc_info=True)
