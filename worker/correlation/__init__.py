"""Correlation of artifacts into logical test runs."""

from worker.correlation.index import DEFAULT_RUN_TOLERANCE, ArtifactIndex
from worker.correlation.resolver import (
    CorrelationMiss,
    CorrelationResolver,
    MatchStrategy,
    ResolvedRun,
    RunGroup,
)

__all__ = [
    "DEFAULT_RUN_TOLERANCE",
    "ArtifactIndex",
    "CorrelationMiss",
    "CorrelationResolver",
    "MatchStrategy",
    "ResolvedRun",
    "RunGroup",
]
