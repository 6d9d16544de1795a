"""Report endpoints."""

from fastapi import APIRouter, Query, Response
from fastapi.responses import HTMLResponse

from api.deps import ReportServiceDep
from api.schemas.report import ReportDeleted, ReportRead
from api.schemas.responses import ListResponse, SuccessResponse
from api.services import Download, DownloadFormat

router = APIRouter(prefix="/reports", tags=["Reports"])


def _attachment(download: Download) -> Response:
    return Response(
        content=download.content,
        media_type=download.media_type,
        headers={"Content-Disposition": f'attachment; filename="{download.filename}"'},
    )


@router.get("", response_model=ListResponse[ReportRead], summary="List reports")
async def list_reports(reports: ReportServiceDep) -> ListResponse[ReportRead]:
    """
    Every test run that produced at least one HTML report, most recent first.

    Reports are rebuilt from the stored artifacts on each request.
    """
    items = [ReportRead.model_validate(r.to_dict()) for r in reports.list_reports()]
    return ListResponse[ReportRead].of(items)


@router.get("/{report_id}", response_model=SuccessResponse[ReportRead], summary="Get a report")
async def get_report(report_id: str, reports: ReportServiceDep) -> SuccessResponse[ReportRead]:
    """Aggregated metrics for one test run."""
    return SuccessResponse(data=ReportRead.model_validate(reports.get_report(report_id).to_dict()))


@router.get("/{report_id}/html", response_class=HTMLResponse, summary="View HTML report")
async def report_html(
    report_id: str,
    reports: ReportServiceDep,
    provider: str | None = Query(None, description="Provider whose report to show"),
) -> HTMLResponse:
    """The generated HTML report, optionally for one provider."""
    return HTMLResponse(content=reports.html(report_id, provider))


@router.get(
    "/{report_id}/responses",
    response_model=ListResponse[dict[str, str]],
    summary="Get response rows",
)
async def report_responses(
    report_id: str,
    reports: ReportServiceDep,
    provider: str | None = Query(None, description="Provider whose responses to show"),
) -> ListResponse[dict[str, str]]:
    """Response rows, with competitor analysis columns when available."""
    rows = reports.responses(report_id, provider)
    return ListResponse[dict[str, str]].of(rows)


@router.get("/{report_id}/download-responses", summary="Download all responses")
async def download_responses(
    report_id: str,
    reports: ReportServiceDep,
    format: DownloadFormat = Query(DownloadFormat.CSV, description="csv or json"),  # noqa: A002
) -> Response:
    """Every provider's responses for the run as one CSV or JSON file."""
    return _attachment(reports.download_responses(report_id, format))


@router.get("/{report_id}/download", summary="Download query file")
async def download_queries(report_id: str, reports: ReportServiceDep) -> Response:
    """The query file the run was generated from."""
    return _attachment(reports.download_queries(report_id))


@router.delete("/{report_id}", response_model=SuccessResponse[ReportDeleted], summary="Delete a report")
async def delete_report(report_id: str, reports: ReportServiceDep) -> SuccessResponse[ReportDeleted]:
    """
    Delete the run's artifacts.

    Only files stamped with the report's exact timestamp are removed.
    """
    files = reports.delete(report_id)
    return SuccessResponse(data=ReportDeleted(files_deleted=len(files), files=files))
