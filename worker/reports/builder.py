"""Reconstruct test run reports from stored artifacts.

Reports are never persisted; every read rebuilds them from the artifact
store through the correlation index.
"""

from dataclasses import dataclass
from datetime import timedelta

import structlog

from worker.artifacts.models import Artifact, ArtifactKind
from worker.artifacts.naming import display_business_name, minute_key, to_iso_timestamp
from worker.artifacts.parser import extract_summary_metrics, parse_delimited_table
from worker.artifacts.storage import ArtifactStore
from worker.correlation.index import DEFAULT_RUN_TOLERANCE, ArtifactIndex
from worker.correlation.resolver import CorrelationMiss, CorrelationResolver, ResolvedRun
from worker.reports.aggregator import aggregate
from worker.reports.models import ProviderReport, TestRunReport

logger = structlog.get_logger(__name__)

ANALYZED_COLUMN = "Competitors_Mentioned"


@dataclass
class ResponseTable:
    """Parsed response rows for one provider."""

    provider: str
    filename: str
    content: str
    rows: list[dict[str, str]]


class ReportBuilder:
    """Builds TestRunReports and serves the artifacts behind them."""

    def __init__(
        self,
        store: ArtifactStore,
        tolerance: timedelta = DEFAULT_RUN_TOLERANCE,
    ):
        self.store = store
        self.tolerance = tolerance

    def _resolver(self) -> CorrelationResolver:
        return CorrelationResolver(ArtifactIndex.build(self.store), self.tolerance)

    def _read(self, artifact: Artifact) -> str | None:
        try:
            return self.store.read_artifact(artifact.path)
        except (OSError, ValueError) as e:
            logger.warning("artifact_unreadable", path=artifact.path, error=str(e))
            return None

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    def provider_report(self, artifact: Artifact) -> ProviderReport | None:
        """Build a ProviderReport from one HTML report artifact."""
        if artifact.kind != ArtifactKind.HTML_REPORT or artifact.provider is None:
            return None

        content = self._read(artifact)
        if content is None:
            return None

        metrics = extract_summary_metrics(content)
        if metrics.is_partial:
            logger.debug(
                "html_summary_partial",
                path=artifact.path,
                missing=metrics.missing,
            )

        return ProviderReport(
            provider=artifact.provider,
            queries=metrics.total_queries,
            business_mentions=metrics.business_mentions,
            competitors_found=metrics.competitors_found,
            visibility_score=metrics.visibility_score,
            html_report_path=artifact.path,
            top_competitors=metrics.top_competitors,
        )

    def _provider_reports(self, artifacts: list[Artifact]) -> list[ProviderReport]:
        reports = []
        for artifact in artifacts:
            report = self.provider_report(artifact)
            if report is not None:
                reports.append(report)
        return reports

    def list_reports(self) -> list[TestRunReport]:
        """All test run reports, most recent first."""
        resolver = self._resolver()
        reports: list[TestRunReport] = []

        for group in resolver.group_runs():
            provider_reports = self._provider_reports(group.artifacts)
            if not provider_reports:
                continue
            reports.append(
                aggregate(
                    report_id=group.report_id,
                    timestamp=to_iso_timestamp(group.timestamp),
                    business_name=display_business_name(group.business_dir),
                    provider_reports=provider_reports,
                    run_id=group.run_id,
                )
            )

        logger.info("reports_listed", count=len(reports))
        return reports

    def get_report(self, report_id: str) -> TestRunReport:
        """
        Build the report for one report id.

        Raises:
            CorrelationMiss: If no artifacts or no readable HTML report match.
        """
        resolved = self._resolver().resolve(report_id)
        provider_reports = self._provider_reports(resolved.of_kind(ArtifactKind.HTML_REPORT))
        if not provider_reports:
            raise CorrelationMiss(report_id, "no HTML reports for this run")

        return aggregate(
            report_id=report_id,
            timestamp=to_iso_timestamp(resolved.timestamp),
            business_name=display_business_name(resolved.business_dir),
            provider_reports=provider_reports,
            run_id=resolved.run_id,
        )

    def resolve(self, report_id: str) -> ResolvedRun:
        return self._resolver().resolve(report_id)

    # -------------------------------------------------------------------------
    # Artifact access
    # -------------------------------------------------------------------------

    def html_report(self, report_id: str, provider: str | None = None) -> str:
        """
        HTML content of a report.

        Without a provider, the report stamped exactly with the report
        timestamp is preferred, then the first report of the run.

        Raises:
            CorrelationMiss: If no HTML report matches.
        """
        resolved = self.resolve(report_id)
        candidates = resolved.of_kind(ArtifactKind.HTML_REPORT, provider)
        exact = [a for a in candidates if a.timestamp == resolved.timestamp]

        for artifact in exact + candidates:
            content = self._read(artifact)
            if content is not None:
                return content

        raise CorrelationMiss(report_id, "HTML report not found")

    def _response_artifacts(self, resolved: ResolvedRun, provider: str | None) -> list[Artifact]:
        return [
            a
            for a in resolved.of_kind(ArtifactKind.RESPONSES, provider)
            if a.extension == "csv"
        ]

    def _analysis_rows(self, resolved: ResolvedRun, responses: Artifact) -> list[dict[str, str]] | None:
        """Rows of the analysis CSV paired with a responses CSV, if it is analyzed."""
        wanted = responses.filename.replace("responses", "analysis", 1)
        for artifact in resolved.of_kind(ArtifactKind.ANALYSIS):
            if artifact.filename != wanted:
                continue
            content = self._read(artifact)
            rows = parse_delimited_table(content or "")
            if rows and ANALYZED_COLUMN in rows[0]:
                return rows
        return None

    def responses(self, report_id: str, provider: str | None = None) -> list[dict[str, str]]:
        """
        Response rows for a report, preferring the analyzed CSV.

        Raises:
            CorrelationMiss: If no responses CSV matches.
        """
        resolved = self.resolve(report_id)

        for artifact in self._response_artifacts(resolved, provider):
            content = self._read(artifact)
            if content is None:
                continue
            analyzed = self._analysis_rows(resolved, artifact)
            if analyzed is not None:
                return analyzed
            return parse_delimited_table(content)

        raise CorrelationMiss(report_id, "responses not found")

    def response_tables(self, report_id: str) -> list[ResponseTable]:
        """
        Every responses CSV of a run, one per provider.

        Raises:
            CorrelationMiss: If the run has no responses CSV.
        """
        resolved = self.resolve(report_id)
        tables: list[ResponseTable] = []
        seen: set[str] = set()

        for artifact in self._response_artifacts(resolved, None):
            provider = artifact.provider.value if artifact.provider else "unknown"
            if provider in seen:
                continue
            content = self._read(artifact)
            if content is None:
                continue
            seen.add(provider)
            tables.append(
                ResponseTable(
                    provider=provider,
                    filename=artifact.filename,
                    content=content,
                    rows=parse_delimited_table(content),
                )
            )

        if not tables:
            raise CorrelationMiss(report_id, "no response data found")
        return tables

    def queries_file(self, report_id: str) -> tuple[str, str]:
        """
        ``(filename, content)`` of the provider query file for a report.

        Raises:
            CorrelationMiss: If the run has no query file.
        """
        index = ArtifactIndex.build(self.store)
        resolved = CorrelationResolver(index, self.tolerance).resolve(report_id)

        # Provider query files are tagged with the business name, not the run id
        pool: dict[str, Artifact] = {}
        for artifact in (
            index.exact_artifacts(resolved.business_dir, resolved.timestamp)
            + resolved.artifacts
            + index.minute_artifacts(resolved.business_dir, minute_key(resolved.timestamp))
        ):
            if artifact.kind == ArtifactKind.QUERIES:
                pool.setdefault(artifact.path, artifact)

        candidates = [a for a in pool.values() if a.provider is not None] or list(pool.values())

        for artifact in candidates:
            content = self._read(artifact)
            if content is not None:
                return artifact.filename, content

        raise CorrelationMiss(report_id, "query file not found")

    def delete_report(self, report_id: str) -> list[str]:
        """
        Delete every artifact stamped with the report's exact timestamp.

        Artifacts of other runs in the same minute are left alone.

        Raises:
            CorrelationMiss: If nothing was deleted.
        """
        deleted: list[str] = []
        for artifact in self._resolver().deletion_targets(report_id):
            if self.store.delete_artifact(artifact.path):
                deleted.append(artifact.filename)

        if not deleted:
            raise CorrelationMiss(report_id)

        logger.info("report_deleted", report_id=report_id, files=len(deleted))
        return deleted

