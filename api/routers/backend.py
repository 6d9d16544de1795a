"""Test-run backend contract: the endpoints a dashboard in remote mode polls."""

from fastapi import APIRouter, status

from api.deps import TestRunServiceDep
from api.schemas.test_run import JobStatusPayload, JobSubmitted, TestRunCreate

router = APIRouter(prefix="/test", tags=["Backend"])


@router.post(
    "/run",
    response_model=JobSubmitted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit a test run job",
)
async def submit_job(body: TestRunCreate, service: TestRunServiceDep) -> JobSubmitted:
    """
    Queue the local pipeline for a job submission payload.

    Returns the job id immediately; poll ``/api/test/status/{job_id}``.
    """
    request = service.validate(body)
    accepted = service.start_local(request)
    return JobSubmitted(job_id=accepted.job_id, run_id=accepted.run_id)


@router.get(
    "/status/{job_id}",
    response_model=JobStatusPayload,
    response_model_exclude_none=True,
    summary="Get job status",
)
async def job_status(job_id: str, service: TestRunServiceDep) -> JobStatusPayload:
    """Status, progress and, once completed, per-provider results."""
    return service.status(job_id)
