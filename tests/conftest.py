"""Shared test fixtures for the replica readiness API."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from replica_readiness.config import Settings


@pytest.fixture
def tmp_settings(tmp_path: Path) -> Settings:
    """Settings pointing to tmp_path for all data files."""
    return Settings(
        db_path=tmp_path / "state.db",
        readiness_timeout_s=5.0,
        request_timeout_s=None,
        honor_envoy_timeout=True,
        license_file=None,
        replica_id="replica-test-1",
        heartbeat_interval_s=60.0,
        replica_stale_after_s=30.0,
        bearer_tokens="test-token-alpha,test-token-beta",
        log_level="WARNING",
    )


@pytest.fixture
def write_license(tmp_path: Path):
    """Write a license JSON file and return its path."""

    def _write(
        high_availability: bool = True,
        expires_in: timedelta | None = timedelta(days=365),
        license_id: str = "lic-0001",
    ) -> Path:
        path = tmp_path / "license.json"
        data = {
            "license_id": license_id,
            "account": "acme",
            "high_availability": high_availability,
            "expires_at": (
                (datetime.now(timezone.utc) + expires_in).isoformat()
                if expires_in is not None
                else None
            ),
        }
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


@pytest_asyncio.fixture
async def app(tmp_settings: Settings):
    """The real FastAPI app with test settings, inside its lifespan."""
    from replica_readiness.main import create_app

    application = create_app(settings=tmp_settings)
    async with application.router.lifespan_context(application):
        yield application


@pytest_asyncio.fixture
async def app_client(app):
    """AsyncClient backed by the app fixture."""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def auth_headers(token: str = "test-token-alpha") -> dict[str, str]:
    """Return Authorization header dict."""
    return {"Authorization": f"Bearer {token}"}
