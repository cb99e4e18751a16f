"""FastAPI application factory with lifespan context manager."""

from __future__ import annotations

import logging
import socket
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from replica_readiness.config import Settings
from replica_readiness.exceptions import register_exception_handlers

logger = logging.getLogger(__name__)

_start_time: float = 0.0


def get_uptime() -> int:
    """Return process uptime in seconds."""
    return int(time.monotonic() - _start_time)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: open storage, load license, start heartbeat and watcher."""
    global _start_time
    _start_time = time.monotonic()

    settings: Settings = app.state.settings

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    # --- Import here to avoid circular imports at module level ---
    from replica_readiness.services.entitlements import EntitlementTracker, LicenseError
    from replica_readiness.services.readiness import ReadinessEvaluator
    from replica_readiness.services.replicas import ReplicaRegistry
    from replica_readiness.services.storage import SqliteStorage

    # --- Storage (a failure here only makes /readyz report 503) ---
    storage = SqliteStorage(settings.db_path)
    try:
        await storage.start()
    except Exception:
        logger.exception("Could not open storage at %s", settings.db_path)
    app.state.storage = storage

    # --- Entitlements ---
    entitlements = EntitlementTracker(settings.license_file)
    try:
        entitlements.load()
    except LicenseError:
        logger.warning("License could not be loaded, running unlicensed", exc_info=True)
    entitlements.refresh()
    app.state.entitlements = entitlements

    app.state.readiness = ReadinessEvaluator(settings.readiness_timeout_s)

    # --- Replica heartbeat ---
    replicas = ReplicaRegistry(
        storage=storage,
        entitlements=entitlements,
        replica_id=settings.resolve_replica_id(),
        hostname=socket.gethostname(),
        interval_s=settings.heartbeat_interval_s,
        stale_after_s=settings.replica_stale_after_s,
    )
    await replicas.start()
    app.state.replicas = replicas

    # --- License watcher (optional) ---
    watcher = None
    if settings.license_file is not None:
        try:
            from replica_readiness.services.license_watcher import LicenseWatcher

            watcher = LicenseWatcher(entitlements, debounce_ms=settings.watcher_debounce_ms)
            await watcher.start()
            app.state.watcher = watcher
        except Exception:
            logger.warning("License watcher could not start (non-fatal)", exc_info=True)

    logger.info(
        "Replica readiness API started: replica=%s, license=%s, readiness timeout=%.1fs",
        replicas.replica_id,
        entitlements.license.license_id if entitlements.license else "none",
        settings.readiness_timeout_s,
    )

    yield

    # --- Shutdown ---
    if watcher:
        await watcher.stop()
    await replicas.stop()
    await storage.stop()
    logger.info("Replica readiness API stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    version = "1.0.0"
    version_file = Path(__file__).parent.parent / "VERSION"
    try:
        if version_file.exists():
            version = version_file.read_text().strip()
    except OSError:
        logger.warning("Could not read %s", version_file)

    app = FastAPI(
        title="Replica Readiness API",
        version=version,
        summary="Readiness probe aggregating storage and entitlement health",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.version = version

    register_exception_handlers(app)

    from replica_readiness.middleware.auth import AuthMiddleware
    from replica_readiness.middleware.deadline import RequestDeadlineMiddleware

    # Middleware is applied in reverse order (last added = first executed).
    # The deadline is stamped first so auth time counts against it.
    app.add_middleware(AuthMiddleware, tokens=settings.resolve_tokens())
    app.add_middleware(
        RequestDeadlineMiddleware,
        timeout_s=settings.request_timeout_s,
        honor_envoy_timeout=settings.honor_envoy_timeout,
    )

    from replica_readiness.routers import entitlements, health

    app.include_router(health.router)
    app.include_router(entitlements.router)

    return app


# Default app instance for uvicorn
app = create_app()
