"""Middleware tests: request ID, rate limiting fallback, CORS and error handling."""

import pytest
from httpx import ASGITransport, AsyncClient


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert len(response.headers["x-request-id"]) == 36  # UUID format


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    """Custom request ID is echoed back in response."""
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_rate_limit_skipped_without_redis(client: AsyncClient) -> None:
    """With Redis down the limiter lets requests through without headers."""
    for _ in range(5):
        response = await client.get("/api/v1/gamification/levels")
        assert response.status_code == 200
    assert "x-ratelimit-limit" not in response.headers


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    """CORS preflight returns access-control-allow-origin for configured origin."""
    response = await client.options(
        "/health",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


@pytest.mark.asyncio
async def test_404_returns_json(client: AsyncClient) -> None:
    """Unknown paths return 404 with JSON body."""
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.headers["content-type"] == "application/json"
    assert response.json()["detail"] == "Not Found"


@pytest.mark.asyncio
async def test_validation_error_format(client: AsyncClient, auth_headers, make_user) -> None:
    """Query validation failures use the shared error envelope."""
    user_id = await make_user("pager")
    response = await client.get(
        "/api/v1/gamification/points-history?page=0",
        headers=auth_headers(user_id),
    )
    assert response.status_code == 422
    data = response.json()
    assert data["detail"] == "Validation error"
    assert data["errors"]


@pytest.mark.asyncio
async def test_cors_exposes_request_and_rate_limit_headers(client: AsyncClient) -> None:
    """Browsers may read the request id and rate-limit headers."""
    response = await client.get("/health", headers={"Origin": "http://localhost:5173"})
    exposed = response.headers["access-control-expose-headers"]
    assert "X-Request-Id" in exposed
    assert "X-RateLimit-Remaining" in exposed


@pytest.mark.asyncio
async def test_request_id_header_is_configurable(database, monkeypatch) -> None:
    """A deployment can use its own correlation header name."""
    from skillpath.config import get_settings
    from skillpath.main import create_app

    monkeypatch.setenv("SKILLPATH_REQUEST_ID_HEADER", "X-Correlation-Id")
    get_settings.cache_clear()

    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.get("/health", headers={"X-Correlation-Id": "corr-42"})

    assert response.headers["x-correlation-id"] == "corr-42"
    assert "x-request-id" not in response.headers
