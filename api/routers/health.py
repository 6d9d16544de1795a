"""Health check and metrics endpoints."""

import time
from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Response
from pydantic import BaseModel, Field
from redis import Redis

from api.config import get_settings
from api.metrics import get_metrics, get_metrics_content_type

router = APIRouter(tags=["Health"])
metrics_router = APIRouter(tags=["Health"])
logger = structlog.get_logger()

# Track server start time for uptime calculation
_server_start_time = time.time()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Health status: healthy, degraded, unhealthy")
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    version: str = Field(..., description="API version")
    uptime_seconds: int = Field(..., description="Server uptime in seconds")


class DependencyCheck(BaseModel):
    """Individual dependency check result."""

    status: str = Field(..., description="Status: healthy, unhealthy")
    latency_ms: float | None = Field(None, description="Check latency in milliseconds")
    error: str | None = Field(None, description="Error message if unhealthy")


class ReadyResponse(BaseModel):
    """Readiness check response with dependency status."""

    status: str = Field(..., description="Overall status")
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    version: str = Field(..., description="API version")
    uptime_seconds: int = Field(..., description="Server uptime in seconds")
    mode: str = Field(..., description="Test run execution mode: local or remote")
    checks: dict[str, DependencyCheck] = Field(..., description="Individual dependency checks")


class ApiInfoResponse(BaseModel):
    """API information response."""

    name: str
    version: str
    env: str
    docs: str | None


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns healthy if the API is running. Does not check dependencies.
    Use /ready for full dependency checks.
    """
    uptime = int(time.time() - _server_start_time)
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC).isoformat(),
        version="0.1.0",
        uptime_seconds=uptime,
    )


def _check_results_dir() -> DependencyCheck:
    settings = get_settings()
    start = time.perf_counter()
    try:
        settings.results_dir.mkdir(parents=True, exist_ok=True)
        marker = settings.results_dir / ".ready_check"
        marker.write_text("ok", encoding="utf-8")
        marker.unlink()
    except OSError as e:
        logger.warning("results_dir_check_failed", path=str(settings.results_dir), error=str(e))
        return DependencyCheck(status="unhealthy", latency_ms=None, error=str(e))
    latency_ms = (time.perf_counter() - start) * 1000
    return DependencyCheck(status="healthy", latency_ms=round(latency_ms, 2), error=None)


@router.get("/ready", response_model=ReadyResponse)
async def readiness_check() -> ReadyResponse:
    """
    Readiness check with dependency verification.

    Checks:
    - Redis connectivity and latency (job queue)
    - Results directory is writable (artifact store)
    """
    settings = get_settings()
    checks: dict[str, DependencyCheck] = {}
    overall_status = "healthy"
    uptime = int(time.time() - _server_start_time)

    # Check Redis
    try:
        start = time.perf_counter()
        redis = Redis.from_url(str(settings.redis_url), socket_timeout=2)
        redis.ping()
        redis.close()
        latency_ms = (time.perf_counter() - start) * 1000
        checks["redis"] = DependencyCheck(
            status="healthy",
            latency_ms=round(latency_ms, 2),
            error=None,
        )
    except Exception as e:
        logger.warning("redis_health_check_failed", error=str(e))
        checks["redis"] = DependencyCheck(
            status="unhealthy",
            latency_ms=None,
            error=str(e),
        )
        overall_status = "unhealthy"

    checks["results_dir"] = _check_results_dir()
    if checks["results_dir"].status == "unhealthy":
        overall_status = "unhealthy"

    # Determine if degraded (one dependency unhealthy but not all)
    unhealthy_count = sum(1 for c in checks.values() if c.status == "unhealthy")
    if 0 < unhealthy_count < len(checks):
        overall_status = "degraded"

    return ReadyResponse(
        status=overall_status,
        timestamp=datetime.now(UTC).isoformat(),
        version="0.1.0",
        uptime_seconds=uptime,
        mode="remote" if settings.remote_mode else "local",
        checks=checks,
    )


@router.get("/", response_model=ApiInfoResponse)
async def root() -> ApiInfoResponse:
    """Root endpoint with API information."""
    settings = get_settings()
    return ApiInfoResponse(
        name="AI Visibility Tester API",
        version="0.1.0",
        env=settings.env,
        docs="/docs" if settings.debug else None,
    )


@metrics_router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())
