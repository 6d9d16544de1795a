"""RQ job callbacks for test run jobs."""

import logging

from rq.job import Job

from api.sentry import capture_exception, set_tag


def on_job_success(job: Job, _connection: object, result: object, *_args: object) -> None:
    """Called when a job succeeds."""
    logging.info(
        f"Job completed: {job.id}",
        extra={"job_id": job.id, "run_id": job.meta.get("run_id"), "result": str(result)[:100]},
    )


def on_job_failure(
    job: Job,
    _connection: object,
    _exc_type: type,
    exc_value: Exception,
    _traceback: object,
) -> None:
    """Called when a job fails."""
    logging.error(
        f"Job failed: {job.id} - {exc_value}",
        extra={"job_id": job.id, "run_id": job.meta.get("run_id"), "error": str(exc_value)},
    )
    set_tag("job_id", job.id)
    capture_exception(exc_value)
