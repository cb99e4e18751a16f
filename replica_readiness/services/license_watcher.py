"""Watch the license file and reload entitlements when it changes."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path

from watchfiles import awatch

from replica_readiness.services.entitlements import EntitlementTracker

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_RETRY_DELAY_S = 0.2
_COOLDOWN_S = 5.0


class LicenseWatcher:
    """Reload the license on change, with retries and a per-path cooldown."""

    def __init__(self, entitlements: EntitlementTracker, debounce_ms: int = 500):
        self._entitlements = entitlements
        self._debounce_ms = debounce_ms
        self._cooldowns: dict[str, float] = {}  # path -> cooldown_until timestamp
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        """Start watching in background."""
        self._task = asyncio.create_task(self._watch_loop(), name="license-watcher")
        logger.info("LicenseWatcher started (debounce=%dms)", self._debounce_ms)

    async def stop(self) -> None:
        """Stop watching."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("LicenseWatcher stopped")

    async def _watch_loop(self) -> None:
        license_path = self._entitlements.path
        if license_path is None:
            logger.info("No license file configured, not watching")
            return

        # Watch the directory so replacements and re-creations are seen
        watch_dir = Path(license_path).resolve().parent
        if not watch_dir.is_dir():
            logger.warning("License directory %s does not exist, not watching", watch_dir)
            return

        logger.info("Watching license file %s", license_path)

        try:
            async for changes in awatch(str(watch_dir), debounce=self._debounce_ms, step=100):
                for _change_type, path in changes:
                    await self._handle_change(path)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("License watcher loop error")

    async def _handle_change(self, path: str) -> None:
        """Reload after a change to the license file."""
        license_path = self._entitlements.path
        if license_path is None:
            return
        changed = Path(path).resolve()
        if changed != Path(license_path).resolve():
            return
        path = str(changed)

        now = time.monotonic()
        if now < self._cooldowns.get(path, 0):
            logger.debug("Skipping %s (in cooldown)", path)
            return

        last_error = None
        for attempt in range(1, _MAX_RETRIES + 1):
            try:
                self._entitlements.load()
                self._entitlements.refresh()
                logger.info("Reloaded license after file change")
                return
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "License reload attempt %d/%d failed for %s: %s",
                    attempt,
                    _MAX_RETRIES,
                    path,
                    exc,
                )
                if attempt < _MAX_RETRIES:
                    await asyncio.sleep(_RETRY_DELAY_S)

        # Persistent failure: keep the previous license
        logger.warning(
            "All %d retries failed for %s, setting %ds cooldown: %s",
            _MAX_RETRIES,
            path,
            _COOLDOWN_S,
            last_error,
        )
        self._cooldowns[path] = time.monotonic() + _COOLDOWN_S
