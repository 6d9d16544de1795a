"""Correlate artifacts into logical test runs.

Lookup order for a report id ``{businessDir}_{ISO timestamp}``:

1. An artifact stamped with exactly the report timestamp carries a run id.
   Listing ids are built from such artifacts, so this always wins.
2. Run metadata within the tolerance window names a run id that has
   artifacts in the business directory.
3. Legacy fallback: artifacts whose timestamp falls in the same minute.
   Two unrelated runs for one business started in the same minute are
   merged by this fallback.

Deletion is stricter and only matches the exact timestamp.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import StrEnum

import structlog

from worker.artifacts.models import Artifact, ArtifactKind
from worker.artifacts.naming import (
    build_report_id,
    minute_key,
    parse_file_timestamp,
    parse_report_id,
)
from worker.correlation.index import DEFAULT_RUN_TOLERANCE, ArtifactIndex

logger = structlog.get_logger(__name__)


class CorrelationMiss(LookupError):
    """No artifacts belong to the requested report."""

    def __init__(self, report_id: str, reason: str = "no matching artifacts"):
        self.report_id = report_id
        self.reason = reason
        super().__init__(f"Report '{report_id}' not found: {reason}")


class MatchStrategy(StrEnum):
    """How a report's artifacts were located."""

    RUN_METADATA = "run_metadata"
    RUN_ID = "run_id"
    MINUTE = "minute"


@dataclass
class ResolvedRun:
    """Artifacts belonging to one report."""

    report_id: str
    business_dir: str
    timestamp: str  # YYYYMMDD_HHMMSS of the report id
    strategy: MatchStrategy
    run_id: str | None = None
    artifacts: list[Artifact] = field(default_factory=list)

    def of_kind(self, kind: ArtifactKind, provider: str | None = None) -> list[Artifact]:
        """Artifacts of one kind, optionally for one provider."""
        return [
            a
            for a in self.artifacts
            if a.kind == kind and (provider is None or (a.provider and a.provider.value == provider))
        ]


@dataclass
class RunGroup:
    """HTML reports that make up one entry of the report listing."""

    business_dir: str
    timestamp: str  # Earliest member timestamp
    run_id: str | None
    artifacts: list[Artifact] = field(default_factory=list)

    @property
    def report_id(self) -> str:
        return build_report_id(self.business_dir, self.timestamp)


class CorrelationResolver:
    """Finds every artifact that belongs to the same logical run."""

    def __init__(
        self,
        index: ArtifactIndex,
        tolerance: timedelta = DEFAULT_RUN_TOLERANCE,
    ):
        self.index = index
        self.tolerance = tolerance

    def _parse(self, report_id: str) -> tuple[str, str]:
        try:
            business_dir, file_ts = parse_report_id(report_id)
            parse_file_timestamp(file_ts)
        except ValueError as e:
            raise CorrelationMiss(report_id, str(e)) from e
        return business_dir, file_ts

    def resolve(self, report_id: str) -> ResolvedRun:
        """
        Locate the artifact set for a report id.

        Raises:
            CorrelationMiss: If no strategy finds any artifact.
        """
        business_dir, file_ts = self._parse(report_id)
        target = parse_file_timestamp(file_ts)

        for artifact in self.index.exact_artifacts(business_dir, file_ts):
            if artifact.run_id:
                artifacts = self.index.run_artifacts(business_dir, artifact.run_id)
                return self._resolved(
                    report_id, business_dir, file_ts, MatchStrategy.RUN_ID, artifact.run_id, artifacts
                )

        run_id = self.index.find_run_id(target, business_dir, self.tolerance)
        if run_id:
            artifacts = self.index.run_artifacts(business_dir, run_id)
            if artifacts:
                return self._resolved(
                    report_id, business_dir, file_ts, MatchStrategy.RUN_METADATA, run_id, artifacts
                )
            logger.debug(
                "run_metadata_without_artifacts",
                report_id=report_id,
                run_id=run_id,
            )

        artifacts = self.index.minute_artifacts(business_dir, minute_key(file_ts))
        if artifacts:
            return self._resolved(
                report_id, business_dir, file_ts, MatchStrategy.MINUTE, None, artifacts
            )

        raise CorrelationMiss(report_id)

    def _resolved(
        self,
        report_id: str,
        business_dir: str,
        file_ts: str,
        strategy: MatchStrategy,
        run_id: str | None,
        artifacts: list[Artifact],
    ) -> ResolvedRun:
        logger.debug(
            "report_resolved",
            report_id=report_id,
            strategy=strategy.value,
            run_id=run_id,
            artifacts=len(artifacts),
        )
        return ResolvedRun(
            report_id=report_id,
            business_dir=business_dir,
            timestamp=file_ts,
            strategy=strategy,
            run_id=run_id,
            artifacts=artifacts,
        )

    def group_runs(self) -> list[RunGroup]:
        """
        Group HTML reports into listing entries, most recent first.

        Reports carrying a run id group by ``(business, run id)``; legacy
        reports group by ``(business, minute)``.
        """
        groups: dict[tuple[str, str, str], RunGroup] = {}

        for business_dir in self.index.business_dirs:
            for artifact in self.index.business_artifacts(business_dir):
                if artifact.kind != ArtifactKind.HTML_REPORT or artifact.provider is None:
                    continue

                if artifact.run_id:
                    key = (business_dir, "run", artifact.run_id)
                else:
                    key = (business_dir, "minute", artifact.minute)

                group = groups.get(key)
                if group is None:
                    group = RunGroup(
                        business_dir=business_dir,
                        timestamp=artifact.timestamp,
                        run_id=artifact.run_id,
                    )
                    groups[key] = group
                group.artifacts.append(artifact)
                group.timestamp = min(group.timestamp, artifact.timestamp)

        return sorted(groups.values(), key=lambda g: g.timestamp, reverse=True)

    def deletion_targets(self, report_id: str) -> list[Artifact]:
        """Artifacts whose embedded timestamp equals the report's exactly."""
        business_dir, file_ts = self._parse(report_id)
        return self.index.exact_artifacts(business_dir, file_ts)
