"""FastAPI dependency injection via Depends()."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Request

if TYPE_CHECKING:
    from replica_readiness.config import Settings
    from replica_readiness.services.entitlements import EntitlementTracker
    from replica_readiness.services.readiness import (
        EntitlementState,
        ReadinessEvaluator,
        StoragePing,
    )
    from replica_readiness.services.replicas import ReplicaRegistry


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> StoragePing:
    return request.app.state.storage


def get_entitlements(request: Request) -> EntitlementState:
    return request.app.state.entitlements


def get_entitlement_tracker(request: Request) -> EntitlementTracker:
    return request.app.state.entitlements


def get_replicas(request: Request) -> ReplicaRegistry:
    return request.app.state.replicas


def get_readiness(request: Request) -> ReadinessEvaluator:
    return request.app.state.readiness


def get_deadline(request: Request) -> float | None:
    return getattr(request.state, "deadline", None)
