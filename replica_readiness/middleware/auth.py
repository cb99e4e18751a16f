"""Bearer token authentication for the /api/ routes."""

from __future__ import annotations

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

_PROTECTED_PREFIX = "/api/"


class AuthMiddleware(BaseHTTPMiddleware):
    """Require a known bearer token on /api/ paths; probes stay open."""

    def __init__(self, app, tokens: set[str]):
        super().__init__(app)
        self._tokens = tokens

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(_PROTECTED_PREFIX):
            return await call_next(request)

        auth = request.headers.get("Authorization", "")
        token = auth[7:] if auth.startswith("Bearer ") else ""
        if not token or token not in self._tokens:
            logger.debug("Rejected unauthenticated request to %s", request.url.path)
            return JSONResponse(
                status_code=401,
                content={
                    "error": "UNAUTHORIZED",
                    "message": "Missing or invalid Authorization header",
                },
            )

        return await call_next(request)
