"""Data models for test run orchestration."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from worker.artifacts.models import ProviderId


class TestRunValidationError(ValueError):
    """A test run request was rejected before any job was created."""

    __test__ = False


class BackendError(Exception):
    """The remote backend could not be reached or misbehaved."""

    def __init__(self, message: str, hint: str | None = None, status_code: int | None = None):
        self.message = message
        self.hint = hint or "Check that BACKEND_URL is set correctly and the backend is running"
        self.status_code = status_code
        super().__init__(message)


class MalformedJobResponse(BackendError):
    """The backend answered with a payload that does not match the job contract."""


class PhaseError(Exception):
    """A pipeline phase failed for one provider."""

    def __init__(self, phase: str, provider: str, message: str):
        self.phase = phase
        self.provider = provider
        self.message = message
        super().__init__(f"{phase} failed for {provider}: {message}")


class InvalidJobTransition(ValueError):
    """A job status update would move backwards or leave a terminal state."""


class QueryType(StrEnum):
    """Kinds of query a test run can ask."""

    CONSUMER = "consumer"
    BUSINESS = "business"


class JobState(StrEnum):
    """Lifecycle of a test run job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


_STATE_RANK = {
    JobState.PENDING: 0,
    JobState.RUNNING: 1,
    JobState.COMPLETED: 2,
    JobState.FAILED: 2,
}


@dataclass(frozen=True)
class CustomQueries:
    """User-supplied queries, reused verbatim by every provider."""

    consumer: tuple[str, ...] = ()
    business: tuple[str, ...] = ()

    @property
    def total(self) -> int:
        return len(self.consumer) + len(self.business)

    def rows(self) -> list[dict[str, str]]:
        """Rows for the shared query file (``Query,Query_Type``)."""
        rows = [{"Query": q, "Query_Type": QueryType.CONSUMER.value} for q in self.consumer]
        rows.extend({"Query": q, "Query_Type": QueryType.BUSINESS.value} for q in self.business)
        return rows

    def to_dict(self) -> dict[str, list[str]]:
        return {"consumer": list(self.consumer), "business": list(self.business)}


@dataclass(frozen=True)
class TestRunRequest:
    """An immutable, validated request to run a test across providers."""

    __test__ = False

    providers: tuple[ProviderId, ...]
    query_types: tuple[QueryType, ...]
    consumer_queries: int = 0
    business_queries: int = 0
    custom_queries: CustomQueries | None = None

    @classmethod
    def create(
        cls,
        providers: list[str],
        query_types: list[str],
        consumer_queries: int = 0,
        business_queries: int = 0,
        custom_queries: dict[str, list[str]] | None = None,
    ) -> "TestRunRequest":
        """
        Validate raw input and build a request.

        Duplicate providers and query types are collapsed, keeping order.

        Raises:
            TestRunValidationError: With a human-readable reason.
        """
        if not providers:
            raise TestRunValidationError("At least one provider must be selected")

        provider_ids: list[ProviderId] = []
        for name in providers:
            try:
                provider = ProviderId(str(name).lower())
            except ValueError as e:
                raise TestRunValidationError(f"Unknown provider: {name}") from e
            if provider not in provider_ids:
                provider_ids.append(provider)

        if not query_types:
            raise TestRunValidationError("At least one query type must be selected")

        types: list[QueryType] = []
        for name in query_types:
            try:
                query_type = QueryType(str(name).lower())
            except ValueError as e:
                raise TestRunValidationError(f"Unknown query type: {name}") from e
            if query_type not in types:
                types.append(query_type)

        if consumer_queries < 0 or business_queries < 0:
            raise TestRunValidationError("Query counts cannot be negative")

        custom = None
        if custom_queries is not None:
            consumer = [str(q) for q in custom_queries.get("consumer") or []]
            business = [str(q) for q in custom_queries.get("business") or []]

            if len(consumer) != consumer_queries:
                raise TestRunValidationError(
                    f"Expected {consumer_queries} consumer queries, got {len(consumer)}"
                )
            if len(business) != business_queries:
                raise TestRunValidationError(
                    f"Expected {business_queries} business queries, got {len(business)}"
                )
            if any(not q.strip() for q in consumer + business):
                raise TestRunValidationError("Custom queries cannot be empty")

            custom = CustomQueries(consumer=tuple(consumer), business=tuple(business))

        return cls(
            providers=tuple(provider_ids),
            query_types=tuple(types),
            consumer_queries=consumer_queries,
            business_queries=business_queries,
            custom_queries=custom,
        )

    @property
    def total_queries(self) -> int:
        if self.custom_queries is not None:
            return self.custom_queries.total
        return self.consumer_queries + self.business_queries

    def to_payload(self) -> dict[str, Any]:
        """Job submission payload for a remote backend."""
        payload: dict[str, Any] = {
            "providers": [p.value for p in self.providers],
            "query_types": [q.value for q in self.query_types],
            "consumer_queries": self.consumer_queries,
            "business_queries": self.business_queries,
        }
        if self.custom_queries is not None:
            payload["custom_queries"] = self.custom_queries.to_dict()
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TestRunRequest":
        """Rebuild a request from its submission payload."""
        return cls.create(
            providers=list(payload.get("providers") or []),
            query_types=list(payload.get("query_types") or []),
            consumer_queries=int(payload.get("consumer_queries") or 0),
            business_queries=int(payload.get("business_queries") or 0),
            custom_queries=payload.get("custom_queries"),
        )


@dataclass
class ProviderResult:
    """Outcome of one provider's pipeline."""

    provider: ProviderId
    success: bool
    total_queries: int = 0
    queries_path: str | None = None
    responses_path: str | None = None
    report_path: str | None = None
    error: str | None = None
    collect_error: str | None = None
    report_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data: dict[str, Any] = {
            "provider": self.provider.value,
            "success": self.success,
            "total_queries": self.total_queries,
            "queries_path": self.queries_path,
            "responses_path": self.responses_path,
            "report_path": self.report_path,
        }
        for key in ("error", "collect_error", "report_error"):
            value = getattr(self, key)
            if value:
                data[key] = value
        return data


@dataclass
class PipelineResult:
    """Result of a local multi-phase run."""

    run_id: str
    results: list[ProviderResult] = field(default_factory=list)
    report_paths: list[str] = field(default_factory=list)
    metadata_path: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def success(self) -> bool:
        # Per-provider failures are recorded, never fatal to the run
        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "run_id": self.run_id,
            "results": [r.to_dict() for r in self.results],
            "report_paths": list(self.report_paths),
            "metadata_path": self.metadata_path,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class Job:
    """Status of a test run job, as exchanged with a job store or backend."""

    id: str
    status: JobState = JobState.PENDING
    progress: int = 0
    message: str = ""
    results: list[dict[str, Any]] | None = None
    error: str | None = None

    def transition(
        self,
        status: JobState,
        progress: int | None = None,
        message: str | None = None,
    ) -> None:
        """
        Move to a new status.

        Raises:
            InvalidJobTransition: If the job is terminal or the move goes backwards.
        """
        if self.status.is_terminal and status != self.status:
            raise InvalidJobTransition(f"Job {self.id} is already {self.status.value}")
        if _STATE_RANK[status] < _STATE_RANK[self.status]:
            raise InvalidJobTransition(
                f"Job {self.id} cannot move from {self.status.value} to {status.value}"
            )

        self.status = status
        if progress is not None:
            self.progress = max(0, min(100, progress))
        if message is not None:
            self.message = message

    @classmethod
    def from_payload(cls, job_id: str, payload: Any) -> "Job":
        """
        Parse a job status payload.

        Raises:
            MalformedJobResponse: If the payload does not match the contract.
        """
        if not isinstance(payload, dict):
            raise MalformedJobResponse(f"Job status for {job_id} is not an object")

        try:
            status = JobState(payload.get("status"))
        except ValueError as e:
            raise MalformedJobResponse(
                f"Unknown job status for {job_id}: {payload.get('status')!r}"
            ) from e

        results = payload.get("results")
        if results is not None and not isinstance(results, list):
            raise MalformedJobResponse(f"Job results for {job_id} are not a list")

        try:
            progress = int(payload.get("progress") or 0)
        except (TypeError, ValueError) as e:
            raise MalformedJobResponse(f"Invalid progress for {job_id}") from e

        return cls(
            id=job_id,
            status=status,
            progress=max(0, min(100, progress)),
            message=str(payload.get("message") or ""),
            results=results,
            error=payload.get("error"),
        )

    def to_payload(self) -> dict[str, Any]:
        """Job status payload."""
        payload: dict[str, Any] = {
            "status": self.status.value,
            "progress": self.progress,
            "message": self.message,
        }
        if self.results is not None:
            payload["results"] = self.results
        if self.error:
            payload["error"] = self.error
        return payload


class RemoteRunState(StrEnum):
    """Terminal states of a remotely polled run."""

    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


TIMEOUT_MESSAGE = "Test run timed out. Check backend logs."


@dataclass
class RemoteRunOutcome:
    """How a remote run ended."""

    job_id: str
    state: RemoteRunState
    attempts: int
    results: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None

    @property
    def message(self) -> str:
        if self.state == RemoteRunState.COMPLETED:
            return "Test run completed successfully"
        if self.state == RemoteRunState.TIMED_OUT:
            return TIMEOUT_MESSAGE
        return self.error or "Test run failed"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "job_id": self.job_id,
            "state": self.state.value,
            "attempts": self.attempts,
            "results": self.results,
            "error": self.error,
            "message": self.message,
        }


# (progress percent, message)
ProgressCallback = Callable[[int, str], None]


@dataclass
class RunContext:
    """Per-run values shared by every provider pipeline."""

    run_id: str
    business_dir: str
    file_timestamp: str  # YYYYMMDD_HHMMSS at run start
    request: TestRunRequest
