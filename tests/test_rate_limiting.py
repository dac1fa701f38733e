"""Tests for rate limiting.

Covers:
  - Per-endpoint limit on /api/auth/login (10/minute)
  - 429 response with Retry-After header
  - Disabling rate limits
"""

from __future__ import annotations

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from pesthub.api.app import _db, app, limiter

LOGIN_LIMIT = 10


@pytest_asyncio.fixture
async def rl_client(tmp_path):
    """HTTP test client with rate limiting ENABLED."""
    _db.db_path = tmp_path / "rl_test.db"
    await _db.connect()

    limiter.enabled = True
    limiter._limiter.storage.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    limiter.enabled = False
    limiter._limiter.storage.reset()
    await _db.close()


async def _exhaust_login(client):
    for i in range(LOGIN_LIMIT):
        resp = await client.post(
            "/api/auth/login", json={"email": f"nobody{i}@example.com", "password": "x"}
        )
        assert resp.status_code == 401


class TestRateLimitEnforcement:
    async def test_login_limit_returns_429(self, rl_client):
        await _exhaust_login(rl_client)
        resp = await rl_client.post(
            "/api/auth/login", json={"email": "late@example.com", "password": "x"}
        )
        assert resp.status_code == 429
        assert resp.headers["Retry-After"] == "60"

    async def test_429_error_structure(self, rl_client):
        await _exhaust_login(rl_client)
        resp = await rl_client.post(
            "/api/auth/login", json={"email": "late@example.com", "password": "x"}
        )
        data = resp.json()
        assert data["error"] == "rate_limit_exceeded"
        assert "message" in data
        assert data["request_id"] == resp.headers["X-Request-ID"]


class TestRateLimitDisabled:
    async def test_disabled_limiter_allows_unlimited(self, client):
        for _ in range(LOGIN_LIMIT + 5):
            resp = await client.post(
                "/api/auth/login", json={"email": "nobody@example.com", "password": "x"}
            )
            assert resp.status_code == 401
