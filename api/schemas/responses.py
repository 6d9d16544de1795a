"""Response envelopes shared by every /v1 endpoint.

Successes are ``{"data": ..., "meta": ...}``; failures are
``{"error": {"code", "message", "field"?, "details"?}}`` as written by the
exception handlers in ``api.main``.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorDetail(BaseModel):
    """Body of an error envelope."""

    code: str = Field(..., description="Machine-readable error code, e.g. not_found")
    message: str = Field(..., description="Message safe to show in the dashboard")
    field: str | None = Field(None, description="Request field that failed validation")
    details: dict[str, Any] | None = Field(None, description="Error-specific context")


class ErrorResponse(BaseModel):
    """Error envelope."""

    error: ErrorDetail


class SuccessResponse(BaseModel, Generic[T]):
    """Single-object envelope."""

    data: T
    meta: dict[str, Any] | None = None


class ListMeta(BaseModel):
    """Collection size; lists are never paginated."""

    total: int


class ListResponse(BaseModel, Generic[T]):
    """Collection envelope."""

    data: list[T]
    meta: ListMeta

    @classmethod
    def of(cls, items: list[T]) -> "ListResponse[T]":
        return cls(data=items, meta=ListMeta(total=len(items)))
