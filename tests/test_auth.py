"""Tests for AuthMiddleware."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from replica_readiness.middleware.auth import AuthMiddleware

VALID_TOKEN = "test-token-abc"
TOKENS = {VALID_TOKEN}


def _make_app(tokens: set[str] = TOKENS) -> FastAPI:
    """Create a minimal FastAPI app with AuthMiddleware."""
    app = FastAPI()
    app.add_middleware(AuthMiddleware, tokens=tokens)

    @app.get("/api/v2/thing")
    async def thing():
        return {"ok": True}

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    @app.get("/readyz")
    async def readyz():
        return "OK"

    return app


@pytest.fixture
async def client():
    async with AsyncClient(
        transport=ASGITransport(app=_make_app()), base_url="http://test"
    ) as c:
        yield c


# -- Protected Paths -----------------------------------------------------------


async def test_no_auth_header(client: AsyncClient):
    resp = await client.get("/api/v2/thing")
    assert resp.status_code == 401
    assert resp.json()["error"] == "UNAUTHORIZED"


async def test_invalid_token(client: AsyncClient):
    resp = await client.get("/api/v2/thing", headers={"Authorization": "Bearer wrong-token"})
    assert resp.status_code == 401


async def test_bearer_prefix_required(client: AsyncClient):
    resp = await client.get("/api/v2/thing", headers={"Authorization": f"Basic {VALID_TOKEN}"})
    assert resp.status_code == 401


async def test_empty_bearer_token(client: AsyncClient):
    resp = await client.get("/api/v2/thing", headers={"Authorization": "Bearer "})
    assert resp.status_code == 401


async def test_valid_token(client: AsyncClient):
    resp = await client.get("/api/v2/thing", headers={"Authorization": f"Bearer {VALID_TOKEN}"})
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


async def test_no_tokens_configured_rejects_api():
    app = _make_app(tokens=set())
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        resp = await c.get("/api/v2/thing", headers={"Authorization": "Bearer anything"})
    assert resp.status_code == 401


# -- Probe Endpoints -----------------------------------------------------------


@pytest.mark.parametrize("path", ["/healthz", "/readyz"])
async def test_probes_need_no_auth(client: AsyncClient, path: str):
    resp = await client.get(path)
    assert resp.status_code == 200
