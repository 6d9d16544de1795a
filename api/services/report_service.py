"""Report service: listing, artifact access and deletion."""

from dataclasses import dataclass
from enum import StrEnum

import orjson
import structlog

from api.exceptions import NotFoundError
from api.metrics import record_report_deleted
from worker.artifacts.parser import render_delimited_table
from worker.correlation.resolver import CorrelationMiss
from worker.reports.builder import ReportBuilder
from worker.reports.models import TestRunReport

logger = structlog.get_logger(__name__)

COMBINED_RESPONSE_HEADERS = ["Provider", "Query ID", "Query Text", "Response Text"]


class DownloadFormat(StrEnum):
    """Bulk response download formats."""

    CSV = "csv"
    JSON = "json"


@dataclass
class Download:
    """A file ready to be sent as an attachment."""

    content: str | bytes
    media_type: str
    filename: str


class ReportService:
    """Serves reports reconstructed from the artifact store.

    Correlation misses surface as ``NotFoundError``.
    """

    def __init__(self, builder: ReportBuilder):
        self.builder = builder

    def list_reports(self) -> list[TestRunReport]:
        """All reports, most recent first."""
        return self.builder.list_reports()

    def get_report(self, report_id: str) -> TestRunReport:
        try:
            return self.builder.get_report(report_id)
        except CorrelationMiss as e:
            raise NotFoundError("Report", report_id) from e

    def html(self, report_id: str, provider: str | None = None) -> str:
        try:
            return self.builder.html_report(report_id, provider)
        except CorrelationMiss as e:
            raise NotFoundError("HTML report", report_id) from e

    def responses(self, report_id: str, provider: str | None = None) -> list[dict[str, str]]:
        try:
            return self.builder.responses(report_id, provider)
        except CorrelationMiss as e:
            raise NotFoundError("Responses", report_id) from e

    def download_responses(
        self,
        report_id: str,
        fmt: DownloadFormat = DownloadFormat.CSV,
    ) -> Download:
        """
        Every provider's responses for a run as one attachment.

        CSV passes a single provider's file through unchanged and merges
        several under a ``Provider`` column. JSON is ``[{provider, data}]``.
        """
        try:
            tables = self.builder.response_tables(report_id)
        except CorrelationMiss as e:
            raise NotFoundError("Response data", report_id) from e

        if fmt == DownloadFormat.JSON:
            payload = [{"provider": t.provider, "data": t.rows} for t in tables]
            return Download(
                content=orjson.dumps(payload, option=orjson.OPT_INDENT_2),
                media_type="application/json",
                filename=f"ai-responses-{report_id}.json",
            )

        if len(tables) == 1:
            return Download(
                content=tables[0].content,
                media_type="text/csv",
                filename=tables[0].filename,
            )

        rows = [{**row, "Provider": t.provider} for t in tables for row in t.rows]
        return Download(
            content=render_delimited_table(COMBINED_RESPONSE_HEADERS, rows),
            media_type="text/csv",
            filename=f"ai-responses-combined-{report_id}.csv",
        )

    def download_queries(self, report_id: str) -> Download:
        try:
            filename, content = self.builder.queries_file(report_id)
        except CorrelationMiss as e:
            raise NotFoundError("Report", report_id) from e
        return Download(content=content, media_type="text/plain", filename=filename)

    def delete(self, report_id: str) -> list[str]:
        """
        Delete the artifacts stamped with the report's exact timestamp.

        Raises:
            NotFoundError: If nothing was deleted.
        """
        try:
            deleted = self.builder.delete_report(report_id)
        except CorrelationMiss as e:
            raise NotFoundError("Report", report_id) from e

        record_report_deleted()
        return deleted
