"""Tests for health, readiness and version endpoints."""


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_ready_without_redis(client):
    response = await client.get("/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready", "checks": {"database": "ok"}}


async def test_ready_reports_broken_redis(app, client):
    class DownRedis:
        async def ping(self):
            raise ConnectionRefusedError("redis is down")

    app.state.redis = DownRedis()
    try:
        data = (await client.get("/ready")).json()
    finally:
        app.state.redis = None
    assert data["status"] == "degraded"
    assert data["checks"]["database"] == "ok"
    assert data["checks"]["redis"].startswith("error:")


async def test_version(client, settings):
    response = await client.get("/version")
    assert response.json() == {"version": settings.app_version, "environment": settings.environment}
