"""Tests for remote-backend orchestration."""

import json

import httpx
import pytest

from worker.orchestration.models import (
    BackendError,
    MalformedJobResponse,
    RemoteRunState,
    TestRunRequest,
)
from worker.orchestration.remote import (
    RemoteBackendClient,
    RemoteJobOrchestrator,
    TransientPollError,
)

BACKEND = "http://backend.test"


class FakeBackend:
    """Scripted backend: one submit response, then a queue of poll responses.

    Responses are ``(status_code, kwargs)`` pairs; the last poll response
    repeats once the queue is exhausted.
    """

    def __init__(
        self,
        polls: list[tuple[int, dict]] | None = None,
        submit: tuple[int, dict] | None = None,
    ):
        self.submit = submit or (200, {"json": {"job_id": "job-1"}})
        self.polls = list(polls or [])
        self.poll_count = 0
        self.submitted: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and request.url.path == "/api/test/run":
            self.submitted.append(json.loads(request.content))
            code, kwargs = self.submit
            return httpx.Response(code, **kwargs)
        if request.url.path.startswith("/api/test/status/"):
            self.poll_count += 1
            code, kwargs = self.polls.pop(0) if len(self.polls) > 1 else self.polls[0]
            return httpx.Response(code, **kwargs)
        return httpx.Response(404)


def status(state: str, **extra) -> tuple[int, dict]:
    return 200, {"json": {"status": state, "progress": 0, "message": "", **extra}}


def error(code: int, text: str = "") -> tuple[int, dict]:
    return code, {"text": text}


@pytest.fixture
def request_():
    return TestRunRequest.create(
        providers=["openai", "claude"],
        query_types=["consumer"],
        consumer_queries=5,
    )


@pytest.fixture
def sleeps():
    return []


def make_orchestrator(backend: FakeBackend, sleeps: list[float], **kwargs) -> RemoteJobOrchestrator:
    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    client = RemoteBackendClient(BACKEND, transport=httpx.MockTransport(backend))
    return RemoteJobOrchestrator(client, sleep=fake_sleep, **kwargs)


class TestRemoteBackendClient:
    """Tests for RemoteBackendClient."""

    @pytest.mark.asyncio
    async def test_submit_posts_payload(self, request_):
        backend = FakeBackend()
        client = RemoteBackendClient(BACKEND, transport=httpx.MockTransport(backend))

        job_id = await client.submit_job(request_)

        assert job_id == "job-1"
        assert backend.submitted[0]["providers"] == ["openai", "claude"]
        assert backend.submitted[0]["consumer_queries"] == 5

    @pytest.mark.asyncio
    async def test_submit_rejected(self, request_):
        backend = FakeBackend(submit=error(400, "bad providers"))
        client = RemoteBackendClient(BACKEND, transport=httpx.MockTransport(backend))

        with pytest.raises(BackendError) as exc_info:
            await client.submit_job(request_)

        assert exc_info.value.status_code == 400
        assert "bad providers" in exc_info.value.message
        assert "BACKEND_URL" in exc_info.value.hint

    @pytest.mark.asyncio
    async def test_submit_without_job_id(self, request_):
        backend = FakeBackend(submit=(200, {"json": {"ok": True}}))
        client = RemoteBackendClient(BACKEND, transport=httpx.MockTransport(backend))

        with pytest.raises(MalformedJobResponse):
            await client.submit_job(request_)

    @pytest.mark.asyncio
    async def test_submit_unreachable(self, request_):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = RemoteBackendClient(BACKEND, transport=httpx.MockTransport(refuse))

        with pytest.raises(BackendError, match="Failed to reach backend"):
            await client.submit_job(request_)

    @pytest.mark.asyncio
    async def test_poll_server_error_is_transient(self):
        backend = FakeBackend(polls=[error(503)])
        client = RemoteBackendClient(BACKEND, transport=httpx.MockTransport(backend))

        with pytest.raises(TransientPollError):
            await client.poll_job("job-1")

    @pytest.mark.asyncio
    async def test_poll_client_error_is_fatal(self):
        backend = FakeBackend(polls=[error(404, "no such job")])
        client = RemoteBackendClient(BACKEND, transport=httpx.MockTransport(backend))

        with pytest.raises(BackendError) as exc_info:
            await client.poll_job("job-1")

        assert not isinstance(exc_info.value, TransientPollError)

    @pytest.mark.asyncio
    async def test_poll_invalid_json(self):
        backend = FakeBackend(polls=[(200, {"text": "<html>"})])
        client = RemoteBackendClient(BACKEND, transport=httpx.MockTransport(backend))

        with pytest.raises(MalformedJobResponse):
            await client.poll_job("job-1")


class TestRemoteJobOrchestrator:
    """Tests for the submit-and-poll loop."""

    @pytest.mark.asyncio
    async def test_completed(self, request_, sleeps):
        results = [{"provider": "openai", "success": True}]
        backend = FakeBackend(polls=[status("running"), status("completed", results=results)])
        progress = []
        orchestrator = make_orchestrator(
            backend, sleeps, progress_callback=lambda p, m: progress.append(p)
        )

        outcome = await orchestrator.run(request_)

        assert outcome.state == RemoteRunState.COMPLETED
        assert outcome.results == results
        assert outcome.attempts == 2
        assert len(progress) == 2

    @pytest.mark.asyncio
    async def test_sleeps_before_each_poll(self, request_, sleeps):
        backend = FakeBackend(polls=[status("running"), status("completed")])
        orchestrator = make_orchestrator(backend, sleeps, poll_interval=5.0)

        await orchestrator.run(request_)

        assert sleeps == [5.0, 5.0]
        assert backend.poll_count == 2

    @pytest.mark.asyncio
    async def test_failed(self, request_, sleeps):
        backend = FakeBackend(polls=[status("failed", error="API key invalid")])

        outcome = await make_orchestrator(backend, sleeps).run(request_)

        assert outcome.state == RemoteRunState.FAILED
        assert outcome.message == "API key invalid"

    @pytest.mark.asyncio
    async def test_times_out_after_max_attempts(self, request_, sleeps):
        backend = FakeBackend(polls=[status("running")])

        outcome = await make_orchestrator(backend, sleeps).run(request_)

        assert outcome.state == RemoteRunState.TIMED_OUT
        assert outcome.message == "Test run timed out. Check backend logs."
        assert backend.poll_count == 60
        assert len(sleeps) == 60

    @pytest.mark.asyncio
    async def test_aborts_after_consecutive_transient_failures(self, request_, sleeps):
        backend = FakeBackend(polls=[error(502)])

        with pytest.raises(BackendError, match="3 consecutive failures") as exc_info:
            await make_orchestrator(backend, sleeps).run(request_)

        assert not isinstance(exc_info.value, TransientPollError)
        assert backend.poll_count == 3

    @pytest.mark.asyncio
    async def test_success_resets_failure_streak(self, request_, sleeps):
        backend = FakeBackend(
            polls=[
                error(500),
                error(500),
                status("running"),
                error(500),
                error(500),
                status("completed"),
            ]
        )

        outcome = await make_orchestrator(backend, sleeps).run(request_)

        assert outcome.state == RemoteRunState.COMPLETED
        assert outcome.attempts == 6

    @pytest.mark.asyncio
    async def test_transient_failures_count_towards_cap(self, request_, sleeps):
        backend = FakeBackend(polls=[error(500), status("running")])
        orchestrator = make_orchestrator(backend, sleeps, max_attempts=4)

        outcome = await orchestrator.run(request_)

        assert outcome.state == RemoteRunState.TIMED_OUT
        assert backend.poll_count == 4

    @pytest.mark.asyncio
    async def test_client_error_aborts_immediately(self, request_, sleeps):
        backend = FakeBackend(polls=[error(404)])

        with pytest.raises(BackendError):
            await make_orchestrator(backend, sleeps).run(request_)

        assert backend.poll_count == 1

    @pytest.mark.asyncio
    async def test_malformed_status_aborts(self, request_, sleeps):
        backend = FakeBackend(polls=[(200, {"json": {"status": "exploded"}})])

        with pytest.raises(MalformedJobResponse):
            await make_orchestrator(backend, sleeps).run(request_)

    @pytest.mark.asyncio
    async def test_status_moving_backwards_aborts(self, request_, sleeps):
        backend = FakeBackend(polls=[status("pending"), status("running"), status("pending")])

        with pytest.raises(MalformedJobResponse, match="cannot move from running to pending"):
            await make_orchestrator(backend, sleeps).run(request_)

        assert backend.poll_count == 3

    @pytest.mark.asyncio
    async def test_repeated_status_is_accepted(self, request_, sleeps):
        backend = FakeBackend(
            polls=[status("running", progress=10), status("running", progress=40), status("completed")]
        )

        outcome = await make_orchestrator(backend, sleeps).run(request_)

        assert outcome.state == RemoteRunState.COMPLETED
        assert outcome.attempts == 3
