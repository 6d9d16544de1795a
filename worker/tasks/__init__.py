"""Background task definitions."""

from worker.tasks.test_run import run_test_pipeline, run_test_pipeline_sync

__all__ = [
    "run_test_pipeline",
    "run_test_pipeline_sync",
]
