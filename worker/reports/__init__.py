"""Test run report reconstruction and aggregation.

Use explicit imports:
    from worker.reports.models import TestRunReport, ProviderReport
    from worker.reports.aggregator import aggregate, merge_competitors
    from worker.reports.builder import ReportBuilder
"""

__all__ = [
    # Models
    "CompetitorCount",
    "ProviderReport",
    "TestRunReport",
    # Aggregation
    "aggregate",
    "merge_competitors",
    "round_half_up",
    # Builder
    "ReportBuilder",
]
