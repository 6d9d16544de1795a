"""Job service for managing background jobs from the API."""

from rq import Callback

from api.config import get_settings
from worker.artifacts.naming import new_run_id
from worker.orchestration.models import TestRunRequest
from worker.queue import JobInfo, JobQueue, QueuePriority, job_queue
from worker.tasks import run_test_pipeline_sync
from worker.tasks.callbacks import on_job_failure, on_job_success


class JobService:
    """Service for managing background jobs."""

    def __init__(self, queue: JobQueue | None = None):
        self._queue = queue or job_queue

    def enqueue_test_run(
        self,
        request: TestRunRequest,
        business_name: str,
        priority: QueuePriority = QueuePriority.DEFAULT,
    ) -> tuple[str, str]:
        """
        Enqueue a local test run pipeline job.

        Args:
            request: Validated test run request
            business_name: Business the run is for
            priority: Queue priority

        Returns:
            ``(job_id, run_id)``
        """
        settings = get_settings()
        run_id = new_run_id()

        job = self._queue.enqueue(
            run_test_pipeline_sync,
            request.to_payload(),
            run_id,
            business_name,
            priority=priority,
            job_id=f"testrun-{run_id}",
            job_timeout=settings.pipeline_job_timeout,
            meta={
                "run_id": run_id,
                "business_name": business_name,
                "providers": [p.value for p in request.providers],
                "progress": 0,
                "message": "Test run queued",
            },
            on_success=Callback(on_job_success),
            on_failure=Callback(on_job_failure),
        )

        return job.id, run_id  # type: ignore[no-any-return]

    def get_job_status(self, job_id: str) -> JobInfo | None:
        """Get status of a job by ID."""
        return self._queue.get_job_info(job_id)


def get_job_service() -> JobService:
    """Job service bound to the shared queue."""
    return JobService()
