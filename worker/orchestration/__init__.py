"""Test run orchestration: remote job polling and the local phase pipeline.

Use explicit imports:
    from worker.orchestration.models import TestRunRequest, Job, JobState
    from worker.orchestration.remote import RemoteBackendClient, RemoteJobOrchestrator
    from worker.orchestration.phases import MockPhaseWorker, ScriptPhaseWorker
    from worker.orchestration.pipeline import LocalPipelineOrchestrator
"""

__all__ = [
    # Models
    "TestRunRequest",
    "CustomQueries",
    "Job",
    "JobState",
    "ProviderResult",
    "PipelineResult",
    "RemoteRunOutcome",
    # Remote mode
    "RemoteBackendClient",
    "RemoteJobOrchestrator",
    # Local mode
    "PhaseWorker",
    "ScriptPhaseWorker",
    "MockPhaseWorker",
    "LocalPipelineOrchestrator",
]
