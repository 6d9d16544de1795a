"""Indexed lookup of artifacts and run metadata.

Built once per request from a store listing, then queried by key instead of
rescanning directories for every lookup.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from worker.artifacts.models import Artifact, RunMetadata
from worker.artifacts.storage import ArtifactStore

DEFAULT_RUN_TOLERANCE = timedelta(minutes=5)


@dataclass
class ArtifactIndex:
    """Key-value views over every artifact in a store."""

    by_run: dict[tuple[str, str], list[Artifact]] = field(default_factory=dict)
    by_minute: dict[tuple[str, str], list[Artifact]] = field(default_factory=dict)
    by_timestamp: dict[tuple[str, str], list[Artifact]] = field(default_factory=dict)
    by_business: dict[str, list[Artifact]] = field(default_factory=dict)
    metadata: list[RunMetadata] = field(default_factory=list)

    @classmethod
    def build(cls, store: ArtifactStore) -> "ArtifactIndex":
        """Index every artifact and metadata record in the store."""
        return cls.from_records(store.list_artifacts(), store.list_run_metadata())

    @classmethod
    def from_records(
        cls,
        artifacts: list[Artifact],
        metadata: list[RunMetadata],
    ) -> "ArtifactIndex":
        by_run: dict[tuple[str, str], list[Artifact]] = defaultdict(list)
        by_minute: dict[tuple[str, str], list[Artifact]] = defaultdict(list)
        by_timestamp: dict[tuple[str, str], list[Artifact]] = defaultdict(list)
        by_business: dict[str, list[Artifact]] = defaultdict(list)

        for artifact in sorted(artifacts, key=lambda a: (a.timestamp, a.filename)):
            key = artifact.business_dir
            by_business[key].append(artifact)
            by_minute[(key, artifact.minute)].append(artifact)
            by_timestamp[(key, artifact.timestamp)].append(artifact)
            if artifact.run_id:
                by_run[(key, artifact.run_id)].append(artifact)

        return cls(
            by_run=dict(by_run),
            by_minute=dict(by_minute),
            by_timestamp=dict(by_timestamp),
            by_business=dict(by_business),
            metadata=sorted(metadata, key=lambda m: m.timestamp),
        )

    def find_run_id(
        self,
        target: datetime,
        business_dir: str | None = None,
        tolerance: timedelta = DEFAULT_RUN_TOLERANCE,
    ) -> str | None:
        """
        Find the run whose metadata timestamp is within tolerance of target.

        Records naming a different business are skipped; records without a
        business name match any business. The closest record wins.
        """
        best: tuple[timedelta, str] | None = None

        for record in self.metadata:
            if business_dir and record.business_dir and record.business_dir != business_dir:
                continue
            delta = abs(record.timestamp - target)
            if delta >= tolerance:
                continue
            if best is None or delta < best[0]:
                best = (delta, record.test_run_id)

        return best[1] if best else None

    def run_artifacts(self, business_dir: str, run_id: str) -> list[Artifact]:
        return list(self.by_run.get((business_dir, run_id), []))

    def minute_artifacts(self, business_dir: str, minute: str) -> list[Artifact]:
        return list(self.by_minute.get((business_dir, minute), []))

    def exact_artifacts(self, business_dir: str, file_ts: str) -> list[Artifact]:
        return list(self.by_timestamp.get((business_dir, file_ts), []))

    def business_artifacts(self, business_dir: str) -> list[Artifact]:
        return list(self.by_business.get(business_dir, []))

    @property
    def business_dirs(self) -> list[str]:
        return sorted(self.by_business)
