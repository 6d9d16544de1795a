"""Fold per-provider reports into one cross-provider test run report.

Combination rules:
- Queries and business mentions are summed.
- Visibility score is the unweighted mean of provider scores, rounded half-up.
- Competitor counts take the maximum across providers, not the sum.
"""

import math

import structlog

from worker.artifacts.models import ProviderId
from worker.reports.models import CompetitorCount, ProviderReport, TestRunReport

logger = structlog.get_logger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives.

    ``round()`` uses banker's rounding (``round(33.5) == 34`` but
    ``round(32.5) == 32``), which would make the mean depend on parity.
    """
    return int(math.floor(value + 0.5))


def merge_competitors(
    competitor_lists: list[list[CompetitorCount] | None],
) -> list[CompetitorCount]:
    """
    Merge competitor lists keeping the highest count seen for each name.

    Sorted by count descending; ties keep first-appearance order.
    """
    best: dict[str, int] = {}

    for competitors in competitor_lists:
        for competitor in competitors or []:
            current = best.get(competitor.name)
            if current is None or competitor.count > current:
                best[competitor.name] = competitor.count

    merged = [CompetitorCount(name=name, count=count) for name, count in best.items()]
    # sorted() is stable, so equal counts stay in insertion order
    return sorted(merged, key=lambda c: c.count, reverse=True)


def dedupe_provider_reports(reports: list[ProviderReport]) -> list[ProviderReport]:
    """Keep the first report per provider; later duplicates are ignored."""
    seen: set[ProviderId] = set()
    unique: list[ProviderReport] = []

    for report in reports:
        if report.provider in seen:
            logger.debug(
                "duplicate_provider_report_ignored",
                provider=report.provider.value,
                path=report.html_report_path,
            )
            continue
        seen.add(report.provider)
        unique.append(report)

    return unique


def mean_visibility_score(scores: list[int]) -> int:
    """Unweighted mean of provider scores, rounded half-up; 0 when empty."""
    if not scores:
        return 0
    return round_half_up(sum(scores) / len(scores))


def aggregate(
    report_id: str,
    timestamp: str,
    business_name: str,
    provider_reports: list[ProviderReport],
    run_id: str | None = None,
) -> TestRunReport:
    """
    Build a TestRunReport from per-provider reports.

    Args:
        report_id: ``{businessDir}_{ISO timestamp}``
        timestamp: ISO 8601 timestamp of the run
        business_name: Display name of the business
        provider_reports: Reports for the run, possibly with duplicates
        run_id: Correlated run id, if known

    Returns:
        Aggregated report
    """
    reports = dedupe_provider_reports(provider_reports)

    return TestRunReport(
        id=report_id,
        timestamp=timestamp,
        business_name=business_name,
        providers=[r.provider for r in reports],
        total_queries=sum(r.queries for r in reports),
        business_mentions=sum(r.business_mentions for r in reports),
        visibility_score=mean_visibility_score([r.visibility_score for r in reports]),
        competitors=merge_competitors([r.top_competitors for r in reports]),
        provider_reports=reports,
        run_id=run_id,
    )
