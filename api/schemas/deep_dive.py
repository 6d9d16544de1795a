"""Deep-dive analysis request schemas."""

from enum import StrEnum

from pydantic import Field

from api.schemas.test_run import CamelModel


class DeepDiveStatus(StrEnum):
    """Deep-dive request lifecycle."""

    PENDING = "pending"
    COMPLETED = "completed"


class DeepDiveCreate(CamelModel):
    """Schema for submitting a deep-dive request."""

    business_name: str = Field(..., min_length=1, max_length=255)
    business_url: str = Field(..., min_length=1, max_length=2048)
    ai_engines: list[str] = Field(..., min_length=1)
    query_count: int = Field(..., gt=0)
    query_types: list[str] = Field(..., min_length=1)
    notes: str | None = None


class DeepDiveResults(CamelModel):
    """Analyst findings recorded on completion."""

    competitors_mentioned: str = ""
    your_mentions: str = ""
    extracted_queries: str = ""
    recommendations: str = ""


class DeepDiveUpdate(DeepDiveResults):
    """Admin update completing a request."""

    id: str = Field(..., min_length=1)


class DeepDiveRequest(DeepDiveCreate):
    """A stored deep-dive request."""

    id: str
    status: DeepDiveStatus = DeepDiveStatus.PENDING
    competitors_mentioned: str | None = None
    your_mentions: str | None = None
    extracted_queries: str | None = None
    recommendations: str | None = None
    created_at: str
    completed_at: str | None = None
