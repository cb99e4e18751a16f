"""Attach an absolute deadline to each request."""

from __future__ import annotations

import asyncio
import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)

ENVOY_TIMEOUT_HEADER = "x-envoy-expected-rq-timeout-ms"


class RequestDeadlineMiddleware(BaseHTTPMiddleware):
    """Set ``request.state.deadline`` (event-loop time) for handlers to honour.

    The deadline is the tighter of the server-wide ``timeout_s`` and, when
    ``honor_envoy_timeout`` is set, the timeout an Envoy proxy announces in
    ``x-envoy-expected-rq-timeout-ms``. With neither, ``deadline`` is None.
    """

    def __init__(self, app, timeout_s: float | None = None, honor_envoy_timeout: bool = True):
        super().__init__(app)
        self._timeout_s = timeout_s
        self._honor_envoy = honor_envoy_timeout

    async def dispatch(self, request: Request, call_next):
        budgets = []
        if self._timeout_s is not None:
            budgets.append(self._timeout_s)
        if self._honor_envoy:
            announced = _parse_timeout_ms(request.headers.get(ENVOY_TIMEOUT_HEADER))
            if announced is not None:
                budgets.append(announced)

        request.state.deadline = (
            asyncio.get_running_loop().time() + min(budgets) if budgets else None
        )
        return await call_next(request)


def _parse_timeout_ms(raw: str | None) -> float | None:
    """Milliseconds header value -> seconds; None if absent or unusable."""
    if not raw:
        return None
    try:
        ms = int(raw.strip())
    except ValueError:
        logger.debug("Ignoring malformed %s header: %r", ENVOY_TIMEOUT_HEADER, raw)
        return None
    if ms <= 0:
        return None
    return ms / 1000
