"""Tests for job queue functionality."""

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

from rq.exceptions import NoSuchJobError

from worker.orchestration.models import JobState
from worker.queue import JobInfo, JobQueue, JobStatus, QueuePriority


def make_info(status: JobStatus, **kwargs) -> JobInfo:
    defaults = {
        "id": "testrun-1",
        "created_at": datetime.now(UTC),
        "started_at": None,
        "ended_at": None,
        "result": None,
        "error": None,
        "meta": {},
    }
    defaults.update(kwargs)
    return JobInfo(status=status, **defaults)


class TestJobStatus:
    """Tests for JobStatus enum."""

    def test_job_status_from_string(self) -> None:
        """Test creating status from string."""
        assert JobStatus("queued") == JobStatus.QUEUED

    def test_job_state_mapping(self) -> None:
        """Test RQ statuses map onto the job lifecycle."""
        assert JobStatus.QUEUED.job_state == JobState.PENDING
        assert JobStatus.SCHEDULED.job_state == JobState.PENDING
        assert JobStatus.STARTED.job_state == JobState.RUNNING
        assert JobStatus.FINISHED.job_state == JobState.COMPLETED
        assert JobStatus.FAILED.job_state == JobState.FAILED
        assert JobStatus.CANCELED.job_state == JobState.FAILED

    def test_every_status_mapped(self) -> None:
        """Test no RQ status is left without a lifecycle state."""
        for status in JobStatus:
            assert isinstance(status.job_state, JobState)


class TestQueuePriority:
    """Tests for QueuePriority enum."""

    def test_queue_priority_values(self) -> None:
        """Test all priority values exist."""
        assert QueuePriority.HIGH.value == "high"
        assert QueuePriority.DEFAULT.value == "default"
        assert QueuePriority.LOW.value == "low"


class TestJobInfo:
    """Tests for JobInfo dataclass."""

    def test_job_info_to_dict(self) -> None:
        """Test converting JobInfo to dict."""
        info = make_info(JobStatus.FINISHED, result={"success": True})

        result = info.to_dict()

        assert result["id"] == "testrun-1"
        assert result["status"] == "finished"
        assert result["result"] == {"success": True}
        assert result["started_at"] is None

    def test_queued_status_payload(self) -> None:
        """Test a queued job reports its default message."""
        payload = make_info(JobStatus.QUEUED).to_status_payload()

        assert payload == {"status": "pending", "progress": 0, "message": "Test run queued"}

    def test_running_progress_from_meta(self) -> None:
        """Test progress and message come from job meta."""
        info = make_info(
            JobStatus.STARTED,
            meta={"progress": 52, "message": "claude: collect finished"},
        )

        payload = info.to_status_payload()

        assert payload["status"] == "running"
        assert payload["progress"] == 52
        assert payload["message"] == "claude: collect finished"

    def test_finished_includes_results(self) -> None:
        """Test completed jobs expose per-provider results."""
        results = [{"provider": "openai", "success": True}]
        info = make_info(
            JobStatus.FINISHED,
            result={"success": True, "results": results},
            meta={"progress": 95},
        )

        payload = info.to_status_payload()

        assert payload["status"] == "completed"
        assert payload["progress"] == 100
        assert payload["results"] == results

    def test_failed_includes_error(self) -> None:
        """Test failed jobs expose the error."""
        info = make_info(JobStatus.FAILED, error="RuntimeError: boom")

        payload = info.to_status_payload()

        assert payload["status"] == "failed"
        assert payload["error"] == "RuntimeError: boom"
        assert "results" not in payload


class TestJobQueue:
    """Tests for JobQueue against a mocked RQ."""

    def test_get_job_info_missing(self) -> None:
        """Test unknown job ids return None."""
        queue = JobQueue()

        with patch("worker.queue.Job.fetch", side_effect=NoSuchJobError):
            assert queue.get_job_info("nope") is None

    def test_get_job_info_failed(self) -> None:
        """Test the last traceback line becomes the error."""
        job = MagicMock()
        job.id = "testrun-1"
        job.get_status.return_value = "failed"
        job.exc_info = "Traceback (most recent call last):\n  ...\nValueError: bad payload\n"
        job.meta = {"run_id": "1"}

        with patch("worker.queue.Job.fetch", return_value=job):
            info = JobQueue().get_job_info("testrun-1")

        assert info.status == JobStatus.FAILED
        assert info.error == "ValueError: bad payload"
        assert info.result is None
        assert info.meta == {"run_id": "1"}

    def test_get_job_info_finished(self) -> None:
        """Test finished jobs carry their return value."""
        job = MagicMock()
        job.id = "testrun-1"
        job.get_status.return_value = "finished"
        job.return_value.return_value = {"success": True, "results": []}
        job.meta = {}

        with patch("worker.queue.Job.fetch", return_value=job):
            info = JobQueue().get_job_info("testrun-1")

        assert info.result == {"success": True, "results": []}
        assert info.error is None

    def test_enqueue_uses_priority_queue(self) -> None:
        """Test jobs go to the queue for their priority."""
        queue = JobQueue()
        high = MagicMock()
        queue._queues[QueuePriority.HIGH] = high

        queue.enqueue(print, "x", priority=QueuePriority.HIGH, job_id="testrun-9", meta={"a": 1})

        high.enqueue.assert_called_once()
        kwargs = high.enqueue.call_args.kwargs
        assert kwargs["job_id"] == "testrun-9"
        assert kwargs["meta"] == {"a": 1}
