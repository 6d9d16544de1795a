"""Report data models: per-provider reports and the aggregated test run."""

from dataclasses import dataclass, field

from worker.artifacts.models import ProviderId


@dataclass(frozen=True)
class CompetitorCount:
    """A competitor and how often it was mentioned."""

    name: str
    count: int

    def to_dict(self) -> dict:
        return {"name": self.name, "count": self.count}


@dataclass
class ProviderReport:
    """Metrics for one provider within one test run."""

    provider: ProviderId
    queries: int
    business_mentions: int
    competitors_found: int
    visibility_score: int  # 0-100
    html_report_path: str
    top_competitors: list[CompetitorCount] | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "provider": self.provider.value,
            "html_report_path": self.html_report_path,
            "queries": self.queries,
            "business_mentions": self.business_mentions,
            "competitors_found": self.competitors_found,
            "visibility_score": self.visibility_score,
            "top_competitors": (
                [c.to_dict() for c in self.top_competitors]
                if self.top_competitors is not None
                else None
            ),
        }


@dataclass
class TestRunReport:
    """Cross-provider view of one logical test run.

    Derived on every read from the run's artifacts; never persisted.
    """

    __test__ = False  # Not a pytest test class

    id: str
    timestamp: str  # ISO 8601
    business_name: str
    providers: list[ProviderId] = field(default_factory=list)
    total_queries: int = 0
    business_mentions: int = 0
    visibility_score: int = 0
    competitors: list[CompetitorCount] = field(default_factory=list)
    provider_reports: list[ProviderReport] = field(default_factory=list)
    run_id: str | None = None
    status: str = "completed"

    @property
    def competitors_found(self) -> int:
        return len(self.competitors)

    @property
    def has_analysis(self) -> bool:
        return bool(self.provider_reports)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "business_name": self.business_name,
            "providers": [p.value for p in self.providers],
            "total_queries": self.total_queries,
            "business_mentions": self.business_mentions,
            "visibility_score": self.visibility_score,
            "competitors_found": self.competitors_found,
            "top_competitors": [c.to_dict() for c in self.competitors],
            "provider_reports": [r.to_dict() for r in self.provider_reports],
            "run_id": self.run_id,
            "status": self.status,
            "has_analysis": self.has_analysis,
        }
