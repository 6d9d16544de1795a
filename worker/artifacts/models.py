"""Data models for pipeline artifacts."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class ProviderId(StrEnum):
    """AI chat providers the tester can query."""

    OPENAI = "openai"
    CLAUDE = "claude"
    GEMINI = "gemini"
    COPILOT = "copilot"
    PERPLEXITY = "perplexity"


class ArtifactKind(StrEnum):
    """Kind of file produced by a pipeline phase."""

    QUERIES = "queries"
    RESPONSES = "responses"
    ANALYSIS = "analysis"
    HTML_REPORT = "html_report"


@dataclass(frozen=True)
class Artifact:
    """A file written by one phase of a test run."""

    business_dir: str
    filename: str
    kind: ArtifactKind
    timestamp: str  # YYYYMMDD_HHMMSS
    path: str  # Store locator
    provider: ProviderId | None = None  # None for shared artifacts (custom queries)
    run_id: str | None = None

    @property
    def minute(self) -> str:
        """Timestamp truncated to minute precision (YYYYMMDD_HHMM)."""
        return self.timestamp[:13]

    @property
    def extension(self) -> str:
        return self.filename.rsplit(".", 1)[-1].lower() if "." in self.filename else ""

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "business_dir": self.business_dir,
            "filename": self.filename,
            "kind": self.kind.value,
            "timestamp": self.timestamp,
            "path": self.path,
            "provider": self.provider.value if self.provider else None,
            "run_id": self.run_id,
        }


@dataclass
class RunMetadata:
    """Run-scoped record written once at the start of a local pipeline."""

    test_run_id: str
    providers: list[str]
    timestamp: datetime
    query_types: list[str] = field(default_factory=list)
    consumer_queries: int = 0
    business_queries: int = 0
    business_dir: str | None = None  # Absent in records written by older dashboards

    def to_dict(self) -> dict:
        """Convert to the on-disk JSON shape."""
        data = {
            "test_run_id": self.test_run_id,
            "providers": list(self.providers),
            "timestamp": self.timestamp.isoformat(timespec="seconds"),
            "total_providers": len(self.providers),
            "query_types": list(self.query_types),
            "consumer_queries": self.consumer_queries,
            "business_queries": self.business_queries,
        }
        if self.business_dir:
            data["business_dir"] = self.business_dir
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "RunMetadata":
        """Parse the on-disk JSON shape.

        Timezone-aware timestamps are converted to naive local time so they
        compare with the naive timestamps embedded in artifact filenames.
        """
        timestamp = datetime.fromisoformat(str(data["timestamp"]).replace("Z", "+00:00"))
        if timestamp.tzinfo is not None:
            timestamp = timestamp.astimezone().replace(tzinfo=None)

        return cls(
            test_run_id=str(data["test_run_id"]),
            providers=[str(p) for p in data.get("providers", [])],
            timestamp=timestamp,
            query_types=[str(q) for q in data.get("query_types", [])],
            consumer_queries=int(data.get("consumer_queries", 0) or 0),
            business_queries=int(data.get("business_queries", 0) or 0),
            business_dir=data.get("business_dir"),
        )
