"""FastAPI dependencies for dependency injection."""

from datetime import timedelta
from typing import Annotated

from fastapi import Depends

from api.config import Settings, get_settings
from api.services import (
    DeepDiveService,
    JobService,
    ProfileService,
    ReportService,
    TestRunService,
    get_job_service,
)
from worker.artifacts.storage import ArtifactStore, FileArtifactStore
from worker.reports.builder import ReportBuilder

__all__ = [
    "SettingsDep",
    "ArtifactStoreDep",
    "ReportServiceDep",
    "ProfileServiceDep",
    "DeepDiveServiceDep",
    "JobServiceDep",
    "TestRunServiceDep",
]


# Settings dependency
SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_artifact_store(settings: SettingsDep) -> ArtifactStore:
    """Artifact store rooted at the results directory."""
    return FileArtifactStore(settings.results_dir)


ArtifactStoreDep = Annotated[ArtifactStore, Depends(get_artifact_store)]


def get_report_service(store: ArtifactStoreDep, settings: SettingsDep) -> ReportService:
    """Report service over the artifact store."""
    tolerance = timedelta(seconds=settings.run_match_tolerance_seconds)
    return ReportService(ReportBuilder(store, tolerance=tolerance))


ReportServiceDep = Annotated[ReportService, Depends(get_report_service)]


def get_profile_service(settings: SettingsDep) -> ProfileService:
    """Business profile service."""
    return ProfileService(settings.data_dir)


ProfileServiceDep = Annotated[ProfileService, Depends(get_profile_service)]


def get_deep_dive_service(settings: SettingsDep) -> DeepDiveService:
    """Deep-dive request service."""
    return DeepDiveService(settings.data_dir)


DeepDiveServiceDep = Annotated[DeepDiveService, Depends(get_deep_dive_service)]


JobServiceDep = Annotated[JobService, Depends(get_job_service)]


def get_test_run_service(
    settings: SettingsDep,
    jobs: JobServiceDep,
    profiles: ProfileServiceDep,
) -> TestRunService:
    """Test run service for the configured execution mode."""
    return TestRunService(settings, jobs, profiles)


TestRunServiceDep = Annotated[TestRunService, Depends(get_test_run_service)]
