"""Tests for RequestDeadlineMiddleware."""

from __future__ import annotations

import asyncio

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from replica_readiness.middleware.deadline import (
    ENVOY_TIMEOUT_HEADER,
    RequestDeadlineMiddleware,
    _parse_timeout_ms,
)


def _make_app(timeout_s: float | None = None, honor_envoy_timeout: bool = True) -> FastAPI:
    """App whose endpoint reports the remaining budget in seconds."""
    app = FastAPI()
    app.add_middleware(
        RequestDeadlineMiddleware,
        timeout_s=timeout_s,
        honor_envoy_timeout=honor_envoy_timeout,
    )

    @app.get("/budget")
    async def budget(request: Request):
        deadline = request.state.deadline
        if deadline is None:
            return {"remaining": None}
        return {"remaining": deadline - asyncio.get_running_loop().time()}

    return app


async def _remaining(app: FastAPI, headers: dict | None = None) -> float | None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        resp = await c.get("/budget", headers=headers or {})
    assert resp.status_code == 200
    return resp.json()["remaining"]


# -- Header parsing ------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, None),
        ("", None),
        ("1500", 1.5),
        (" 250 ", 0.25),
        ("0", None),
        ("-10", None),
        ("abc", None),
        ("1.5", None),
    ],
)
def test_parse_timeout_ms(raw, expected):
    assert _parse_timeout_ms(raw) == expected


# -- Middleware ----------------------------------------------------------------


async def test_no_deadline_by_default():
    assert await _remaining(_make_app()) is None


async def test_server_timeout_sets_deadline():
    remaining = await _remaining(_make_app(timeout_s=2.0))
    assert 0 < remaining <= 2.0


async def test_envoy_header_sets_deadline():
    remaining = await _remaining(_make_app(), {ENVOY_TIMEOUT_HEADER: "300"})
    assert 0 < remaining <= 0.3


async def test_tighter_of_server_and_envoy_wins():
    app = _make_app(timeout_s=0.2)

    assert await _remaining(app, {ENVOY_TIMEOUT_HEADER: "10000"}) <= 0.2
    assert await _remaining(app, {ENVOY_TIMEOUT_HEADER: "100"}) <= 0.1


async def test_envoy_header_ignored_when_disabled():
    app = _make_app(honor_envoy_timeout=False)
    assert await _remaining(app, {ENVOY_TIMEOUT_HEADER: "100"}) is None
