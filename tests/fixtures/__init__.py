"""Test fixtures: sample artifacts in the layouts the tester writes."""

from tests.fixtures.artifacts import (
    RUN_STARTED,
    FixedClock,
    make_report_html,
    make_responses_csv,
)

__all__ = [
    "RUN_STARTED",
    "FixedClock",
    "make_report_html",
    "make_responses_csv",
]
