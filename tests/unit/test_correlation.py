"""Tests for correlating artifacts into test runs."""

from datetime import datetime, timedelta

import pytest

from worker.artifacts.models import RunMetadata
from worker.artifacts.naming import parse_artifact
from worker.correlation.index import ArtifactIndex
from worker.correlation.resolver import CorrelationMiss, CorrelationResolver, MatchStrategy


def index_of(business_dir: str, filenames: list[str], metadata: list[RunMetadata] | None = None):
    artifacts = [parse_artifact(business_dir, name) for name in filenames]
    return ArtifactIndex.from_records([a for a in artifacts if a], metadata or [])


def metadata(run_id: str, moment: datetime, business_dir: str | None = "Acme") -> RunMetadata:
    return RunMetadata(
        test_run_id=run_id,
        providers=["openai", "claude"],
        timestamp=moment,
        business_dir=business_dir,
    )


class TestArtifactIndex:
    """Tests for ArtifactIndex lookups."""

    def test_find_run_id_within_tolerance(self):
        index = index_of("Acme", [], [metadata("1", datetime(2025, 10, 4, 10, 50, 0))])

        assert index.find_run_id(datetime(2025, 10, 4, 10, 52, 22), "Acme") == "1"

    def test_find_run_id_outside_tolerance(self):
        index = index_of("Acme", [], [metadata("1", datetime(2025, 10, 4, 10, 40, 0))])

        assert index.find_run_id(datetime(2025, 10, 4, 10, 52, 22), "Acme") is None

    def test_tolerance_is_exclusive(self):
        index = index_of("Acme", [], [metadata("1", datetime(2025, 10, 4, 10, 47, 22))])

        assert index.find_run_id(datetime(2025, 10, 4, 10, 52, 22), "Acme") is None
        assert (
            index.find_run_id(
                datetime(2025, 10, 4, 10, 52, 21), "Acme", tolerance=timedelta(minutes=5)
            )
            == "1"
        )

    def test_closest_record_wins(self):
        index = index_of(
            "Acme",
            [],
            [
                metadata("far", datetime(2025, 10, 4, 10, 49, 0)),
                metadata("near", datetime(2025, 10, 4, 10, 52, 0)),
            ],
        )

        assert index.find_run_id(datetime(2025, 10, 4, 10, 52, 22), "Acme") == "near"

    def test_other_business_skipped(self):
        index = index_of("Acme", [], [metadata("1", datetime(2025, 10, 4, 10, 52, 0), "Globex")])

        assert index.find_run_id(datetime(2025, 10, 4, 10, 52, 22), "Acme") is None

    def test_record_without_business_matches_any(self):
        index = index_of("Acme", [], [metadata("1", datetime(2025, 10, 4, 10, 52, 0), None)])

        assert index.find_run_id(datetime(2025, 10, 4, 10, 52, 22), "Acme") == "1"

    def test_keyed_views(self):
        index = index_of(
            "Acme",
            [
                "claude_responses_testrun_1_20251004_105222.csv",
                "claude_report_testrun_1_20251004_105230.html",
                "openai_report_Acme_20251004_105259.html",
            ],
        )

        assert len(index.run_artifacts("Acme", "1")) == 2
        assert len(index.minute_artifacts("Acme", "20251004_1052")) == 3
        assert len(index.exact_artifacts("Acme", "20251004_105222")) == 1
        assert index.business_dirs == ["Acme"]


class TestResolve:
    """Tests for CorrelationResolver.resolve."""

    def test_metadata_match(self):
        index = index_of(
            "Acme",
            [
                "openai_report_testrun_1_20251004_105301.html",
                "claude_report_testrun_1_20251004_105415.html",
            ],
            [metadata("1", datetime(2025, 10, 4, 10, 52, 50))],
        )

        resolved = CorrelationResolver(index).resolve("Acme_2025-10-04T10:52:50")

        assert resolved.strategy == MatchStrategy.RUN_METADATA
        assert resolved.run_id == "1"
        assert len(resolved.artifacts) == 2

    def test_exact_artifact_run_id_beats_closer_metadata(self):
        index = index_of(
            "Acme",
            [
                "openai_report_testrun_1000_20251004_100600.html",
                "claude_report_testrun_2000_20251004_100900.html",
            ],
            [
                metadata("1000", datetime(2025, 10, 4, 10, 0, 0)),
                metadata("2000", datetime(2025, 10, 4, 10, 5, 30)),
            ],
        )

        resolved = CorrelationResolver(index).resolve("Acme_2025-10-04T10:06:00")

        assert resolved.strategy == MatchStrategy.RUN_ID
        assert resolved.run_id == "1000"
        assert [a.filename for a in resolved.artifacts] == [
            "openai_report_testrun_1000_20251004_100600.html"
        ]

    def test_run_id_beats_minute_grouping(self):
        index = index_of(
            "Acme",
            [
                "openai_report_testrun_1_20251004_105222.html",
                "claude_report_testrun_1_20251004_105509.html",
                "gemini_report_testrun_2_20251004_105240.html",
            ],
        )

        resolved = CorrelationResolver(index).resolve("Acme_2025-10-04T10:52:22")

        assert resolved.strategy == MatchStrategy.RUN_ID
        assert resolved.run_id == "1"
        assert sorted(a.filename for a in resolved.artifacts) == [
            "claude_report_testrun_1_20251004_105509.html",
            "openai_report_testrun_1_20251004_105222.html",
        ]

    def test_metadata_without_artifacts_falls_through(self):
        index = index_of(
            "Acme",
            ["openai_report_testrun_9_20251004_105222.html"],
            [metadata("1", datetime(2025, 10, 4, 10, 52, 0))],
        )

        resolved = CorrelationResolver(index).resolve("Acme_2025-10-04T10:52:22")

        assert resolved.strategy == MatchStrategy.RUN_ID
        assert resolved.run_id == "9"

    def test_minute_fallback(self):
        index = index_of(
            "Acme",
            [
                "openai_report_Acme_20251004_105222.html",
                "claude_report_Acme_20251004_105259.html",
                "gemini_report_Acme_20251004_105301.html",
            ],
        )

        resolved = CorrelationResolver(index).resolve("Acme_2025-10-04T10:52:22")

        assert resolved.strategy == MatchStrategy.MINUTE
        assert resolved.run_id is None
        assert len(resolved.artifacts) == 2

    def test_scoped_to_business(self):
        index = index_of("Globex", ["openai_report_Globex_20251004_105222.html"])

        with pytest.raises(CorrelationMiss):
            CorrelationResolver(index).resolve("Acme_2025-10-04T10:52:22")

    def test_no_match(self):
        with pytest.raises(CorrelationMiss):
            CorrelationResolver(index_of("Acme", [])).resolve("Acme_2025-10-04T10:52:22")

    def test_malformed_report_id(self):
        with pytest.raises(CorrelationMiss):
            CorrelationResolver(index_of("Acme", [])).resolve("not-a-report")

    def test_impossible_date(self):
        with pytest.raises(CorrelationMiss):
            CorrelationResolver(index_of("Acme", [])).resolve("Acme_2025-13-45T10:52:22")


class TestGroupRuns:
    """Tests for CorrelationResolver.group_runs."""

    def test_groups_by_run_then_minute(self):
        index = index_of(
            "Acme",
            [
                "openai_report_testrun_1_20251004_105222.html",
                "claude_report_testrun_1_20251004_105509.html",
                "openai_report_Acme_20251005_090010.html",
                "claude_report_Acme_20251005_090045.html",
                "claude_responses_testrun_1_20251004_105200.csv",
            ],
        )

        groups = CorrelationResolver(index).group_runs()

        assert [g.report_id for g in groups] == [
            "Acme_2025-10-05T09:00:10",
            "Acme_2025-10-04T10:52:22",
        ]
        assert groups[0].run_id is None
        assert len(groups[0].artifacts) == 2
        assert groups[1].run_id == "1"
        assert len(groups[1].artifacts) == 2


class TestDeletionTargets:
    """Tests for CorrelationResolver.deletion_targets."""

    def test_exact_timestamp_only(self):
        index = index_of(
            "Acme",
            [
                "openai_report_testrun_1_20251004_105222.html",
                "openai_responses_testrun_1_20251004_105222.csv",
                "claude_report_testrun_1_20251004_105300.html",
                "gemini_report_Acme_20251004_105222.html",
            ],
        )

        targets = CorrelationResolver(index).deletion_targets("Acme_2025-10-04T10:52:22")

        assert sorted(a.filename for a in targets) == [
            "gemini_report_Acme_20251004_105222.html",
            "openai_report_testrun_1_20251004_105222.html",
            "openai_responses_testrun_1_20251004_105222.csv",
        ]

    def test_malformed_id(self):
        with pytest.raises(CorrelationMiss):
            CorrelationResolver(index_of("Acme", [])).deletion_targets("garbage")
