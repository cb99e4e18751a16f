"""Entitlement and replica inspection endpoints."""

from __future__ import annotations

import aiosqlite
from fastapi import APIRouter, Depends

from replica_readiness.dependencies import get_entitlement_tracker, get_replicas
from replica_readiness.exceptions import StorageUnavailableError
from replica_readiness.models.entitlements import EntitlementsResponse
from replica_readiness.models.error import ErrorResponse
from replica_readiness.models.replica import ReplicaRecord

router = APIRouter(
    prefix="/api/v2",
    tags=["entitlements"],
    responses={401: {"model": ErrorResponse}},
)


@router.get("/entitlements", response_model=EntitlementsResponse)
async def get_entitlements(tracker=Depends(get_entitlement_tracker)) -> EntitlementsResponse:
    return tracker.snapshot()


@router.get(
    "/replicas",
    response_model=list[ReplicaRecord],
    responses={503: {"model": ErrorResponse}},
)
async def list_replicas(replicas=Depends(get_replicas)) -> list[ReplicaRecord]:
    try:
        return await replicas.active_replicas()
    except aiosqlite.Error as exc:
        raise StorageUnavailableError(f"Replica lookup failed: {exc}") from exc
