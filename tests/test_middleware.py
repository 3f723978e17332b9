"""Tests for the middleware chain and the JSON error contract."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from meetup.main import close_services, create_app, init_services


class FakePipeline:
    def __init__(self, store, fail):
        self.store = store
        self.fail = fail
        self.ops = []

    def incr(self, key):
        self.ops.append(key)
        return self

    def expire(self, key, seconds):
        return self

    async def execute(self):
        if self.fail:
            raise RedisConnectionError("connection refused")
        results = []
        for key in self.ops:
            self.store[key] = self.store.get(key, 0) + 1
            results.extend([self.store[key], True])
        return results


class FakeRedis:
    """Just enough of the client for the rate limiter."""

    def __init__(self, *, fail=False):
        self.store = {}
        self.fail = fail

    def pipeline(self):
        return FakePipeline(self.store, self.fail)


class TestRequestId:
    async def test_generated(self, client):
        response = await client.get("/health")
        assert len(response.headers["X-Request-Id"]) == 36

    async def test_propagated(self, client):
        response = await client.get("/health", headers={"X-Request-Id": "abc-123"})
        assert response.headers["X-Request-Id"] == "abc-123"


async def test_cors_preflight(client):
    response = await client.options(
        "/api/v1/events",
        headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "POST"},
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


class TestErrorContract:
    async def test_unknown_route(self, client):
        response = await client.get("/api/v1/nope")
        assert response.status_code == 404
        assert response.json() == {"detail": "Not Found", "reason": "not_found"}

    async def test_method_not_allowed(self, client):
        response = await client.put("/health")
        assert response.status_code == 405
        assert response.json()["reason"] == "method_not_allowed"

    async def test_validation_error_lists_fields(self, client, organizer):
        response = await client.post("/api/v1/events", json={"title": "No dates"}, headers=organizer.headers)
        assert response.status_code == 422
        data = response.json()
        assert data["reason"] == "validation_error"
        assert {tuple(e["loc"]) for e in data["errors"]} >= {("body", "start_at"), ("body", "end_at")}

    async def test_unhandled_error_is_generic_500(self, app):
        @app.get("/boom")
        async def boom():
            msg = "secret internals"
            raise RuntimeError(msg)

        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/boom")
        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error", "reason": "internal_error"}


class TestRateLimit:
    @pytest_asyncio.fixture
    async def limited_client(self, settings, mail):
        """Separate app with a small limit and an hour-long window."""
        tight = settings.model_copy(update={"rate_limit_requests": 5, "rate_limit_window_seconds": 3600})
        application = create_app(tight, email_provider=mail)
        await init_services(application)
        await application.state.db.create_all()
        application.state.redis = FakeRedis()
        async with AsyncClient(transport=ASGITransport(app=application), base_url="http://test") as ac:
            yield ac
        application.state.redis = None
        await close_services(application)

    async def test_limit_headers_and_429(self, limited_client):
        client = limited_client
        limit = 5
        for _ in range(limit):
            response = await client.get("/api/v1/categories")
            assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Limit"] == str(limit)

        blocked = await client.get("/api/v1/categories")
        assert blocked.status_code == 429
        assert blocked.json()["reason"] == "rate_limited"
        assert blocked.headers["Retry-After"] == "3600"

    async def test_probes_are_exempt(self, limited_client):
        for _ in range(10):
            assert (await limited_client.get("/health")).status_code == 200

    async def test_redis_failure_lets_requests_through(self, app, client):
        app.state.redis = FakeRedis(fail=True)
        try:
            response = await client.get("/api/v1/categories")
        finally:
            app.state.redis = None
        assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers
