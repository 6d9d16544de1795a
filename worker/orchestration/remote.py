"""Remote-backend mode: submit one job and poll it to a terminal state."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog

from api.metrics import record_remote_poll
from worker.orchestration.models import (
    BackendError,
    InvalidJobTransition,
    Job,
    JobState,
    MalformedJobResponse,
    ProgressCallback,
    RemoteRunOutcome,
    RemoteRunState,
    TestRunRequest,
)

logger = structlog.get_logger(__name__)

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_MAX_ATTEMPTS = 60
DEFAULT_MAX_CONSECUTIVE_FAILURES = 3


class TransientPollError(BackendError):
    """A poll failed in a way worth retrying (network error or 5xx)."""


class RemoteBackendClient:
    """HTTP client for the remote test-run backend."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize client.

        Args:
            base_url: Backend root URL
            timeout: Per-request timeout in seconds
            transport: Optional transport (tests use ``httpx.MockTransport``)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def submit_job(self, request: TestRunRequest) -> str:
        """
        Submit a test run.

        Returns:
            Backend job id

        Raises:
            BackendError: If the backend is unreachable or rejects the job.
            MalformedJobResponse: If the response has no job id.
        """
        try:
            async with self._client() as client:
                response = await client.post("/api/test/run", json=request.to_payload())
        except httpx.HTTPError as e:
            raise BackendError(f"Failed to reach backend: {e}") from e

        if response.is_error:
            raise BackendError(
                f"Backend request failed: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedJobResponse("Backend returned invalid JSON for job submission") from e

        job_id = data.get("job_id") if isinstance(data, dict) else None
        if not job_id:
            raise MalformedJobResponse("Backend response did not include a job_id")

        logger.info("remote_job_submitted", job_id=job_id, providers=data.get("providers"))
        return str(job_id)

    async def poll_job(self, job_id: str) -> Job:
        """
        Fetch a job's status.

        Raises:
            TransientPollError: On network errors and 5xx responses.
            BackendError: On 4xx responses.
            MalformedJobResponse: If the payload breaks the job contract.
        """
        try:
            async with self._client() as client:
                response = await client.get(f"/api/test/status/{job_id}")
        except httpx.HTTPError as e:
            raise TransientPollError(f"Failed to get test status: {e}") from e

        if response.status_code >= 500:
            raise TransientPollError(
                f"Failed to get test status: {response.status_code}",
                status_code=response.status_code,
            )
        if response.is_error:
            raise BackendError(
                f"Failed to get test status: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

        try:
            payload: Any = response.json()
        except ValueError as e:
            raise MalformedJobResponse(f"Backend returned invalid JSON for job {job_id}") from e

        return Job.from_payload(job_id, payload)


class RemoteJobOrchestrator:
    """Drives one remote job from submission to a terminal state.

    Submitted -> Polling -> {Completed, Failed, TimedOut}. Each attempt waits
    the poll interval, then polls once. Transient failures count towards the
    attempt cap and abort the run once ``max_consecutive_failures`` occur in a
    row; any successful poll resets that streak.
    A poll reporting a status earlier than one already seen is rejected as
    a malformed response.
    """

    def __init__(
        self,
        client: RemoteBackendClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        max_consecutive_failures: int = DEFAULT_MAX_CONSECUTIVE_FAILURES,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        progress_callback: ProgressCallback | None = None,
    ):
        self.client = client
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.max_consecutive_failures = max_consecutive_failures
        self._sleep = sleep
        self.progress_callback = progress_callback

    async def run(self, request: TestRunRequest) -> RemoteRunOutcome:
        """
        Submit a request and poll until it finishes or the cap is reached.

        Raises:
            BackendError: Backend unreachable, 4xx, or too many consecutive
                transient failures.
            MalformedJobResponse: Backend payload breaks the job contract.
        """
        job_id = await self.client.submit_job(request)
        return await self.wait(job_id)

    async def wait(self, job_id: str) -> RemoteRunOutcome:
        """Poll an already submitted job."""
        consecutive_failures = 0
        tracked = Job(id=job_id)

        for attempt in range(1, self.max_attempts + 1):
            await self._sleep(self.poll_interval)

            try:
                job = await self.client.poll_job(job_id)
            except TransientPollError as e:
                consecutive_failures += 1
                record_remote_poll("transient_failure")
                logger.warning(
                    "remote_poll_failed",
                    job_id=job_id,
                    attempt=attempt,
                    consecutive_failures=consecutive_failures,
                    error=e.message,
                )
                if consecutive_failures >= self.max_consecutive_failures:
                    raise BackendError(
                        f"{e.message} ({consecutive_failures} consecutive failures)",
                        status_code=e.status_code,
                    ) from e
                continue
            except BackendError:
                record_remote_poll("error")
                raise

            consecutive_failures = 0
            try:
                tracked.transition(job.status, job.progress, job.message)
            except InvalidJobTransition as e:
                record_remote_poll("error")
                raise MalformedJobResponse(str(e)) from e
            record_remote_poll(job.status.value)
            logger.debug(
                "remote_poll",
                job_id=job_id,
                attempt=attempt,
                status=job.status.value,
                progress=job.progress,
                message=job.message,
            )
            if self.progress_callback:
                self.progress_callback(job.progress, job.message)

            if job.status == JobState.COMPLETED:
                logger.info("remote_job_completed", job_id=job_id, attempts=attempt)
                return RemoteRunOutcome(
                    job_id=job_id,
                    state=RemoteRunState.COMPLETED,
                    attempts=attempt,
                    results=job.results or [],
                )

            if job.status == JobState.FAILED:
                logger.warning("remote_job_failed", job_id=job_id, error=job.error)
                return RemoteRunOutcome(
                    job_id=job_id,
                    state=RemoteRunState.FAILED,
                    attempts=attempt,
                    error=job.error or "Test run failed",
                )

        logger.warning("remote_job_timed_out", job_id=job_id, attempts=self.max_attempts)
        return RemoteRunOutcome(
            job_id=job_id,
            state=RemoteRunState.TIMED_OUT,
            attempts=self.max_attempts,
        )
