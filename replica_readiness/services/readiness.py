"""Readiness decision: storage reachability, then entitlement errors, under a deadline."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from replica_readiness.models.readiness import (
    DATABASE_PING_FAILED,
    ENTITLEMENT_ERROR,
    NotReady,
    ReadinessVerdict,
    Ready,
)

logger = logging.getLogger(__name__)

READINESS_TIMEOUT_S = 5.0


class StoragePing(Protocol):
    async def ping(self) -> None:
        """Return once storage answered; raise on any failure."""


class EntitlementState(Protocol):
    def has_errors(self) -> bool:
        """Synchronous, side-effect free."""


class ReadinessEvaluator:
    """Aggregate storage and entitlement health into a single verdict.

    Every call re-runs both checks; verdicts are never cached, so one instance
    can serve any number of concurrent requests. The only thing remembered
    between calls is the last reported reason, used to log a failure at
    WARNING when it starts and at DEBUG while it persists.
    """

    def __init__(self, timeout_s: float = READINESS_TIMEOUT_S):
        if timeout_s <= 0:
            raise ValueError("timeout_s must be greater than zero")
        self._timeout_s = timeout_s
        self._last_reason: str | None = None  # None -> ready or not yet evaluated

    @property
    def timeout_s(self) -> float:
        return self._timeout_s

    async def evaluate(
        self,
        storage: StoragePing,
        entitlements: EntitlementState,
        deadline: float | None = None,
    ) -> ReadinessVerdict:
        """Evaluate readiness once.

        ``deadline`` is an absolute event-loop time already carried by the
        request; the tighter of it and ``timeout_s`` bounds the storage ping.
        Entitlements are only consulted after a successful ping.
        """
        budget = self._timeout_s
        if deadline is not None:
            budget = min(budget, deadline - asyncio.get_running_loop().time())

        if budget <= 0:
            return self._not_ready(
                DATABASE_PING_FAILED, "request deadline already passed, skipping database ping"
            )

        try:
            await asyncio.wait_for(storage.ping(), timeout=budget)
        except asyncio.TimeoutError:
            return self._not_ready(DATABASE_PING_FAILED, f"database ping timed out after {budget:.3f}s")
        except Exception as exc:
            return self._not_ready(DATABASE_PING_FAILED, f"database ping failed: {exc}")

        if entitlements.has_errors():
            return self._not_ready(ENTITLEMENT_ERROR, "entitlement errors are active")

        if self._last_reason is not None:
            logger.info("Readiness: ready again (was: %s)", self._last_reason)
            self._last_reason = None
        return Ready()

    def _not_ready(self, reason: str, detail: str) -> NotReady:
        if reason != self._last_reason:
            logger.warning("Readiness: %s", detail)
            self._last_reason = reason
        else:
            logger.debug("Readiness: %s", detail)
        return NotReady(reason)
