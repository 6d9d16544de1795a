"""Tests for health check and metrics endpoints."""

from unittest.mock import MagicMock, patch

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    """Test basic health check endpoint."""
    response = await client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["version"] == "0.1.0"
    assert "timestamp" in data
    assert data["uptime_seconds"] >= 0


@pytest.mark.asyncio
async def test_ready_check_healthy(client: AsyncClient) -> None:
    """Test readiness when Redis answers and results are writable."""
    with patch("api.routers.health.Redis") as redis_cls:
        redis_cls.from_url.return_value = MagicMock()
        response = await client.get("/api/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["mode"] == "local"
    assert data["checks"]["redis"]["status"] == "healthy"
    assert data["checks"]["results_dir"]["status"] == "healthy"


@pytest.mark.asyncio
async def test_ready_check_redis_down(client: AsyncClient) -> None:
    """Test readiness degrades when Redis is unreachable."""
    with patch("api.routers.health.Redis") as redis_cls:
        redis_cls.from_url.return_value.ping.side_effect = ConnectionError("refused")
        response = await client.get("/api/ready")

    data = response.json()
    assert data["status"] == "degraded"
    assert data["checks"]["redis"]["status"] == "unhealthy"
    assert "refused" in data["checks"]["redis"]["error"]


@pytest.mark.asyncio
async def test_root_endpoint(client: AsyncClient) -> None:
    """Test API root endpoint."""
    response = await client.get("/api/")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "AI Visibility Tester API"
    assert data["env"] == "test"


@pytest.mark.asyncio
async def test_metrics_endpoint(client: AsyncClient) -> None:
    """Test Prometheus scrape endpoint."""
    await client.get("/v1/reports")

    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "visibility_http_requests_total" in response.text


@pytest.mark.asyncio
async def test_v1_root(client: AsyncClient) -> None:
    """Test V1 root endpoint."""
    response = await client.get("/v1/")
    assert response.status_code == 200
    assert response.json() == {"version": "1", "status": "active"}


@pytest.mark.asyncio
async def test_request_id_header(client: AsyncClient) -> None:
    """Test every response carries a request id."""
    response = await client.get("/api/health")
    assert "X-Request-ID" in response.headers
