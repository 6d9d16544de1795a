"""Prometheus metrics for monitoring and observability."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware

# Request metrics
REQUEST_COUNT = Counter(
    "visibility_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "visibility_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

REQUEST_IN_PROGRESS = Gauge(
    "visibility_http_requests_in_progress",
    "HTTP requests currently being processed",
    ["method", "endpoint"],
)

# Error metrics
ERROR_COUNT = Counter(
    "visibility_errors_total",
    "Total application errors",
    ["error_type", "endpoint"],
)

# Test run metrics
TEST_RUNS_TOTAL = Counter(
    "visibility_test_runs_total",
    "Total test runs by execution mode and outcome",
    ["mode", "outcome"],
)

TEST_RUNS_IN_PROGRESS = Gauge(
    "visibility_test_runs_in_progress",
    "Local test run pipelines currently executing",
)

REMOTE_POLLS_TOTAL = Counter(
    "visibility_remote_polls_total",
    "Remote backend status polls",
    ["outcome"],
)

PHASE_FAILURES_TOTAL = Counter(
    "visibility_phase_failures_total",
    "Per-provider pipeline phase failures",
    ["phase", "provider"],
)

REPORTS_DELETED_TOTAL = Counter(
    "visibility_reports_deleted_total",
    "Reports deleted from the artifact store",
)

# Job metrics
JOB_PROCESSING_TIME = Histogram(
    "visibility_job_processing_seconds",
    "Job processing time in seconds",
    ["job_type"],
    buckets=[1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1800.0, 3600.0],
)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    metrics: bytes = generate_latest()
    return metrics


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    content_type: str = CONTENT_TYPE_LATEST
    return content_type


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect request metrics."""

    # Paths to exclude from metrics
    EXCLUDE_PATHS = {"/metrics", "/api/health", "/api/ready", "/favicon.ico"}

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        # Skip metrics for excluded paths
        if request.url.path in self.EXCLUDE_PATHS:
            return await call_next(request)  # type: ignore[return-value]

        method = request.method
        # Normalize endpoint path (remove IDs)
        endpoint = self._normalize_path(request.url.path)

        # Track in-progress requests
        REQUEST_IN_PROGRESS.labels(method=method, endpoint=endpoint).inc()

        start_time = time.perf_counter()

        try:
            response = await call_next(request)  # type: ignore[return-value]
            status_code = str(response.status_code)

            # Record metrics
            REQUEST_COUNT.labels(
                method=method,
                endpoint=endpoint,
                status_code=status_code,
            ).inc()

            duration = time.perf_counter() - start_time
            REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(duration)

            return response

        except Exception as e:
            # Record error
            ERROR_COUNT.labels(
                error_type=type(e).__name__,
                endpoint=endpoint,
            ).inc()
            raise

        finally:
            REQUEST_IN_PROGRESS.labels(method=method, endpoint=endpoint).dec()

    def _normalize_path(self, path: str) -> str:
        """Normalize path by replacing UUIDs and IDs with placeholders."""
        import re

        # Replace UUIDs
        path = re.sub(
            r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
            "{id}",
            path,
            flags=re.IGNORECASE,
        )
        # Replace report ids ({business}_{ISO timestamp}) and deep-dive ids
        path = re.sub(r"/[^/]+_\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(/|$)", r"/{id}\1", path)
        path = re.sub(r"/DD-\d+(/|$)", r"/{id}\1", path)
        # Replace numeric IDs
        path = re.sub(r"/\d+(/|$)", r"/{id}\1", path)
        return path


# Helper functions for recording business metrics


def record_test_run(mode: str, outcome: str) -> None:
    """Record a test run outcome (``mode`` is local or remote)."""
    TEST_RUNS_TOTAL.labels(mode=mode, outcome=outcome).inc()


def record_pipeline_started() -> None:
    """Record a local pipeline starting."""
    TEST_RUNS_IN_PROGRESS.inc()


def record_pipeline_finished() -> None:
    """Record a local pipeline finishing."""
    TEST_RUNS_IN_PROGRESS.dec()


def record_remote_poll(outcome: str) -> None:
    """Record one remote status poll."""
    REMOTE_POLLS_TOTAL.labels(outcome=outcome).inc()


def record_phase_failure(phase: str, provider: str) -> None:
    """Record a provider phase failure."""
    PHASE_FAILURES_TOTAL.labels(phase=phase, provider=provider).inc()


def record_report_deleted() -> None:
    """Record a report deletion."""
    REPORTS_DELETED_TOTAL.inc()


def record_job_duration(job_type: str, duration: float) -> None:
    """Record job processing duration."""
    JOB_PROCESSING_TIME.labels(job_type=job_type).observe(duration)
