"""Custom exceptions and error handling."""

from typing import Any

from fastapi import status

from worker.orchestration.models import TIMEOUT_MESSAGE


class VisibilityError(Exception):
    """Base exception for the visibility dashboard API."""

    def __init__(
        self,
        message: str,
        code: str = "error",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class NotFoundError(VisibilityError):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str | None = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(
            message=message,
            code="not_found",
            status_code=status.HTTP_404_NOT_FOUND,
        )


class ValidationError(VisibilityError):
    """Validation error."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            code="validation_error",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


class ConflictError(VisibilityError):
    """Resource conflict."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            code="conflict",
            status_code=status.HTTP_409_CONFLICT,
        )


class ExternalServiceError(VisibilityError):
    """Remote backend unreachable or returned a malformed response."""

    def __init__(self, service: str, message: str, hint: str | None = None):
        details: dict[str, Any] = {"service": service}
        if hint:
            details["hint"] = hint
        super().__init__(
            message=f"{service}: {message}",
            code="external_service_error",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details=details,
        )


class TestRunFailedError(VisibilityError):
    """The backend reported the test run as failed."""

    __test__ = False

    def __init__(self, message: str, job_id: str | None = None):
        super().__init__(
            message=message,
            code="test_run_failed",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"job_id": job_id} if job_id else {},
        )


class RunTimeoutError(VisibilityError):
    """Polling gave up before the backend finished."""

    def __init__(self, job_id: str | None = None):
        super().__init__(
            message=TIMEOUT_MESSAGE,
            code="test_run_timeout",
            status_code=status.HTTP_408_REQUEST_TIMEOUT,
            details={"job_id": job_id} if job_id else {},
        )
