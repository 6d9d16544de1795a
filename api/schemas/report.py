"""Report schemas."""

from pydantic import Field

from api.schemas.test_run import CamelModel


class CompetitorRead(CamelModel):
    """A competitor and its mention count."""

    name: str
    count: int


class ProviderReportRead(CamelModel):
    """Per-provider metrics within a test run."""

    provider: str
    html_report_path: str
    queries: int
    business_mentions: int
    competitors_found: int
    visibility_score: int
    top_competitors: list[CompetitorRead] | None = None


class ReportRead(CamelModel):
    """A test run report reconstructed from its artifacts."""

    id: str
    timestamp: str
    business_name: str
    providers: list[str]
    total_queries: int
    business_mentions: int
    visibility_score: int
    competitors_found: int
    top_competitors: list[CompetitorRead] = Field(default_factory=list)
    provider_reports: list[ProviderReportRead] = Field(default_factory=list)
    run_id: str | None = None
    status: str
    has_analysis: bool


class ReportDeleted(CamelModel):
    """Result of deleting a report's artifacts."""

    success: bool = True
    files_deleted: int
    files: list[str]
