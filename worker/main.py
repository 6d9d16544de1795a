"""RQ worker entrypoint for local test run pipelines."""

import logging
import os
import platform
import sys

from rq import SimpleWorker, Worker

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from api.config import get_settings  # noqa: E402
from api.logging import setup_logging  # noqa: E402
from api.sentry import init_sentry  # noqa: E402
from worker.redis import QUEUES_BY_PRIORITY, get_redis_connection_bytes  # noqa: E402


def run_worker() -> None:
    """Start an RQ worker draining the pipeline queues."""
    settings = get_settings()
    setup_logging()
    init_sentry()

    # Phase workers write straight into business directories under here
    settings.results_dir.mkdir(parents=True, exist_ok=True)

    logging.info(
        "Starting pipeline worker",
        extra={
            "env": settings.env,
            "queues": list(QUEUES_BY_PRIORITY),
            "phase_worker": settings.phase_worker,
            "tester_dir": str(settings.tester_dir),
            "results_dir": str(settings.results_dir),
        },
    )

    # Use SimpleWorker on Windows (no os.fork() support)
    WorkerClass = SimpleWorker if platform.system() == "Windows" else Worker

    worker = WorkerClass(
        list(QUEUES_BY_PRIORITY),
        connection=get_redis_connection_bytes(),
        name=f"visibility-worker-{os.getpid()}",
    )

    worker.work(
        with_scheduler=True,
        logging_level=settings.log_level,
    )


if __name__ == "__main__":
    run_worker()
