"""Business logic services package."""

from api.services.deep_dive_service import DeepDiveService
from api.services.job_service import JobService, get_job_service
from api.services.profile_service import ProfileService
from api.services.report_service import Download, DownloadFormat, ReportService
from api.services.test_run_service import TestRunService

__all__ = [
    "DeepDiveService",
    "Download",
    "DownloadFormat",
    "JobService",
    "ProfileService",
    "ReportService",
    "TestRunService",
    "get_job_service",
]
