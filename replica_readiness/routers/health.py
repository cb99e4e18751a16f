"""Liveness and readiness endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from replica_readiness.dependencies import (
    get_deadline,
    get_entitlements,
    get_readiness,
    get_storage,
)
from replica_readiness.models.health import HealthResponse
from replica_readiness.models.readiness import NotReady

router = APIRouter(tags=["health"])

_PLAIN_TEXT = {"text/plain": {"schema": {"type": "string"}}}


@router.get("/healthz", response_model=HealthResponse)
async def healthz(request: Request) -> HealthResponse:
    from replica_readiness.main import get_uptime

    return HealthResponse(
        status="ok",
        version=request.app.state.version,
        uptime=get_uptime(),
    )


@router.get(
    "/readyz",
    response_class=PlainTextResponse,
    summary="Readiness check",
    responses={
        200: {"description": "Ready to serve traffic", "content": _PLAIN_TEXT},
        503: {"description": "Not ready; body names the failing check", "content": _PLAIN_TEXT},
    },
)
async def readyz(
    storage=Depends(get_storage),
    entitlements=Depends(get_entitlements),
    readiness=Depends(get_readiness),
    deadline: float | None = Depends(get_deadline),
) -> PlainTextResponse:
    verdict = await readiness.evaluate(storage, entitlements, deadline=deadline)
    if isinstance(verdict, NotReady):
        return PlainTextResponse(verdict.reason, status_code=503)
    return PlainTextResponse("OK")
