"""Tests for metrics module."""

from unittest.mock import MagicMock

import pytest

from api.metrics import (
    PHASE_FAILURES_TOTAL,
    REMOTE_POLLS_TOTAL,
    REPORTS_DELETED_TOTAL,
    TEST_RUNS_IN_PROGRESS,
    TEST_RUNS_TOTAL,
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
    record_job_duration,
    record_phase_failure,
    record_pipeline_finished,
    record_pipeline_started,
    record_remote_poll,
    record_report_deleted,
    record_test_run,
)


class TestMetricsOutput:
    """Tests for metrics output generation."""

    def test_get_metrics_returns_bytes(self):
        output = get_metrics()
        assert isinstance(output, bytes)

    def test_get_metrics_content_type(self):
        content_type = get_metrics_content_type()
        assert "text/plain" in content_type or "openmetrics" in content_type

    def test_get_metrics_contains_custom_metrics(self):
        output = get_metrics().decode("utf-8")
        assert "visibility_http_requests_total" in output
        assert "visibility_http_request_duration_seconds" in output
        assert "visibility_test_runs_total" in output


class TestMetricsMiddleware:
    """Tests for metrics middleware."""

    @pytest.fixture
    def middleware(self):
        app = MagicMock()
        return MetricsMiddleware(app)

    def test_normalize_path_uuid(self, middleware):
        path = "/api/test/status/550e8400-e29b-41d4-a716-446655440000"
        assert middleware._normalize_path(path) == "/api/test/status/{id}"

    def test_normalize_path_report_id(self, middleware):
        path = "/v1/reports/Acme_Inc_2025-10-04T10:52:22/html"
        assert middleware._normalize_path(path) == "/v1/reports/{id}/html"

    def test_normalize_path_deep_dive_id(self, middleware):
        path = "/v1/deep-dive/DD-1759575142000"
        assert middleware._normalize_path(path) == "/v1/deep-dive/{id}"

    def test_normalize_path_numeric_id(self, middleware):
        path = "/v1/reports/12345"
        assert middleware._normalize_path(path) == "/v1/reports/{id}"

    def test_normalize_path_no_id(self, middleware):
        assert middleware._normalize_path("/v1/reports") == "/v1/reports"

    def test_exclude_paths(self, middleware):
        assert "/metrics" in middleware.EXCLUDE_PATHS
        assert "/api/health" in middleware.EXCLUDE_PATHS
        assert "/api/ready" in middleware.EXCLUDE_PATHS


class TestRecordFunctions:
    """Tests for business metric helpers."""

    def test_record_test_run(self):
        counter = TEST_RUNS_TOTAL.labels(mode="remote", outcome="completed")
        before = counter._value.get()

        record_test_run("remote", "completed")

        assert counter._value.get() == before + 1

    def test_pipeline_in_progress_gauge(self):
        before = TEST_RUNS_IN_PROGRESS._value.get()

        record_pipeline_started()
        assert TEST_RUNS_IN_PROGRESS._value.get() == before + 1

        record_pipeline_finished()
        assert TEST_RUNS_IN_PROGRESS._value.get() == before

    def test_record_remote_poll(self):
        counter = REMOTE_POLLS_TOTAL.labels(outcome="transient_failure")
        before = counter._value.get()

        record_remote_poll("transient_failure")

        assert counter._value.get() == before + 1

    def test_record_phase_failure(self):
        counter = PHASE_FAILURES_TOTAL.labels(phase="collect", provider="gemini")
        before = counter._value.get()

        record_phase_failure("collect", "gemini")

        assert counter._value.get() == before + 1

    def test_record_report_deleted(self):
        before = REPORTS_DELETED_TOTAL._value.get()

        record_report_deleted()

        assert REPORTS_DELETED_TOTAL._value.get() == before + 1

    def test_record_job_duration(self):
        # Should not raise
        record_job_duration("test_pipeline", 12.5)
