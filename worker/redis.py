"""Redis connection and queue names for the test run pipeline jobs."""

from functools import lru_cache

from redis import ConnectionPool, Redis

from api.config import get_settings

QUEUE_HIGH = "visibility-high"
QUEUE_DEFAULT = "visibility-default"
QUEUE_LOW = "visibility-low"

# Order a worker drains them in
QUEUES_BY_PRIORITY = (QUEUE_HIGH, QUEUE_DEFAULT, QUEUE_LOW)

# Finished pipeline results stay readable by status polls for 7 days
JOB_RESULT_TTL = 60 * 60 * 24 * 7


@lru_cache
def _get_redis_pool_bytes() -> ConnectionPool:
    """Cached pool without decode_responses; RQ stores pickled job data."""
    settings = get_settings()
    return ConnectionPool.from_url(
        str(settings.redis_url),
        decode_responses=False,
        max_connections=10,
    )


def get_redis_connection_bytes() -> Redis:
    """Redis connection for RQ queues and job lookups."""
    return Redis(connection_pool=_get_redis_pool_bytes())
