"""Pytest configuration and fixtures."""

import os
import tempfile
from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment before any app code runs
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="visibility-tests-"))
os.environ["ENV"] = "test"
os.environ["REDIS_URL"] = "redis://localhost:6379/0"
os.environ["RESULTS_DIR"] = str(_TEST_ROOT / "results")
os.environ["DATA_DIR"] = str(_TEST_ROOT / "data")
os.environ["BACKEND_URL"] = ""
os.environ["PHASE_WORKER"] = "mock"
os.environ.pop("SENTRY_DSN", None)


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    """Use test env values, not stale or .env values."""
    from api.config import get_settings

    get_settings.cache_clear()


@pytest.fixture
def results_dir(tmp_path: Path) -> Path:
    path = tmp_path / "results"
    path.mkdir()
    return path


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def store(results_dir: Path):
    """File artifact store rooted in a temporary results directory."""
    from worker.artifacts.storage import FileArtifactStore

    return FileArtifactStore(results_dir)


@pytest.fixture
def write_artifact(results_dir: Path) -> Callable[[str, str, str], Path]:
    """Write a raw file into a business directory."""

    def _write(business_dir: str, filename: str, content: str = "") -> Path:
        directory = results_dir / business_dir
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / filename
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def fake_queue() -> MagicMock:
    """Stand-in for the RQ job queue; records enqueues without Redis."""
    from worker.queue import JobQueue

    queue = MagicMock(spec=JobQueue)

    def _enqueue(func: Any, *args: Any, job_id: str | None = None, **kwargs: Any) -> MagicMock:
        job = MagicMock()
        job.id = job_id or "job-1"
        return job

    queue.enqueue.side_effect = _enqueue
    queue.get_job_info.return_value = None
    return queue


@pytest.fixture
def app(store, data_dir: Path, fake_queue: MagicMock):
    """Application with storage and the job queue bound to test fixtures."""
    from api.deps import get_artifact_store, get_deep_dive_service, get_profile_service
    from api.main import app as fastapi_app
    from api.services import DeepDiveService, JobService, ProfileService, get_job_service

    fastapi_app.dependency_overrides[get_artifact_store] = lambda: store
    fastapi_app.dependency_overrides[get_profile_service] = lambda: ProfileService(data_dir)
    fastapi_app.dependency_overrides[get_deep_dive_service] = lambda: DeepDiveService(data_dir)
    fastapi_app.dependency_overrides[get_job_service] = lambda: JobService(queue=fake_queue)

    yield fastapi_app

    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def two_provider_run(write_artifact: Callable[[str, str, str], Path]) -> None:
    """Claude and OpenAI reports of run 42, written a few minutes apart."""
    from tests.fixtures import make_report_html, make_responses_csv

    write_artifact(
        "Acme",
        "claude_report_testrun_42_20251004_105222.html",
        make_report_html("Claude", 10, 4, "40.0", [("Contoso", 7), ("Globex", 1)]),
    )
    write_artifact(
        "Acme",
        "openai_report_testrun_42_20251004_105530.html",
        make_report_html("OpenAI", 10, 6, "60.0", [("Contoso", 3), ("Fabrikam", 2)]),
    )
    write_artifact(
        "Acme",
        "claude_responses_testrun_42_20251004_105222.csv",
        make_responses_csv(["Contoso is popular.", "Try Globex."]),
    )
    write_artifact(
        "Acme",
        "openai_responses_testrun_42_20251004_105530.csv",
        make_responses_csv(["Fabrikam, or Contoso."]),
    )
    write_artifact("Acme", "claude_queries_Acme_20251004_105222.txt", "query 1\nquery 2\n")
