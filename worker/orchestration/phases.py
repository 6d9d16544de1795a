"""Phase workers: generate queries, collect responses, generate a report.

A phase worker performs one phase for one provider and returns the locator
of the artifact it produced, or None if the phase produced nothing.
Failures raise PhaseError.
"""

import asyncio
import os
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import structlog
from dotenv import dotenv_values

from worker.artifacts.models import ProviderId
from worker.artifacts.naming import (
    artifact_filename,
    extract_timestamp,
    format_file_timestamp,
    run_tag,
    sanitize_business_name,
)
from worker.artifacts.parser import parse_delimited_table, render_delimited_table
from worker.artifacts.storage import FileArtifactStore
from worker.orchestration.models import PhaseError, RunContext

logger = structlog.get_logger(__name__)


class Phase:
    GENERATE = "generate"
    COLLECT = "collect"
    REPORT = "report"


class PhaseWorker(ABC):
    """Runs pipeline phases for one provider at a time."""

    name: str = "base"

    @abstractmethod
    async def generate_queries(self, ctx: RunContext, provider: ProviderId) -> str | None:
        """Produce a query file for a provider."""
        ...

    @abstractmethod
    async def collect_responses(
        self, ctx: RunContext, provider: ProviderId, queries_path: str
    ) -> str | None:
        """Ask the provider every query and save the responses tagged with the run id."""
        ...

    @abstractmethod
    async def generate_report(
        self, ctx: RunContext, provider: ProviderId, responses_path: str
    ) -> str | None:
        """Analyze collected responses and write the HTML report."""
        ...


# =============================================================================
# External tester scripts
# =============================================================================


def extract_output_path(output: str, marker: str) -> str | None:
    """
    Find the path printed after ``marker`` in script output.

    The marker match is case-insensitive; a trailing period is dropped.
    """
    needle = marker.lower()
    for line in output.splitlines():
        index = line.lower().find(needle)
        if index >= 0:
            path = line[index + len(marker) :].strip()
            return path[:-1] if path.endswith(".") else path
    return None


class ScriptPhaseWorker(PhaseWorker):
    """Runs the AI visibility tester scripts as subprocesses.

    Each provider has ``scripts/{provider}_script.py`` handling the generate
    and collect actions; ``scripts/4_generate_report.py`` builds reports.
    The tester's ``.env`` is merged over the current environment.
    """

    name = "script"

    def __init__(
        self,
        store: FileArtifactStore,
        tester_dir: Path | str,
        python: str = "python",
        config_file: str = "config.yaml",
    ):
        self.store = store
        self.tester_dir = Path(tester_dir)
        self.python = python
        self.config_path = self.tester_dir / config_file
        self.scripts_dir = self.tester_dir / "scripts"

    def _environment(self) -> dict[str, str]:
        env = dict(os.environ)
        env_file = self.tester_dir / ".env"
        if env_file.is_file():
            env.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
        return env

    async def _run(self, phase: str, provider: ProviderId, args: list[str]) -> str:
        """Run a script and return its stdout."""
        logger.debug("phase_script_started", phase=phase, provider=provider.value, args=args)
        try:
            process = await asyncio.create_subprocess_exec(
                self.python,
                *args,
                cwd=str(self.tester_dir),
                env=self._environment(),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise PhaseError(phase, provider.value, f"Failed to start Python process: {e}") from e

        stdout, stderr = await process.communicate()
        output = stdout.decode("utf-8", errors="replace")

        if process.returncode != 0:
            error_output = stderr.decode("utf-8", errors="replace").strip()
            raise PhaseError(
                phase,
                provider.value,
                f"Script failed with code {process.returncode}: {error_output}",
            )

        return output

    def _script(self, provider: ProviderId) -> str:
        return str(self.scripts_dir / f"{provider.value}_script.py")

    def _absolute(self, locator: str) -> str:
        if Path(locator).is_absolute():
            return locator
        return str(self.store.path_for(locator))

    def _locator(self, path: str | None) -> str | None:
        if not path:
            return None
        # Scripts print paths relative to their own working directory
        printed = Path(path)
        if not printed.is_absolute():
            printed = self.tester_dir / printed
        return self.store.to_locator(printed)

    async def generate_queries(self, ctx: RunContext, provider: ProviderId) -> str | None:
        output = await self._run(
            Phase.GENERATE,
            provider,
            [self._script(provider), "--config", str(self.config_path), "--action", "generate"],
        )
        return self._locator(extract_output_path(output, "Saved to:"))

    async def collect_responses(
        self, ctx: RunContext, provider: ProviderId, queries_path: str
    ) -> str | None:
        output = await self._run(
            Phase.COLLECT,
            provider,
            [
                self._script(provider),
                "--config",
                str(self.config_path),
                "--action",
                "collect",
                "--queries",
                self._absolute(queries_path),
                "--test-run-id",
                ctx.run_id,
            ],
        )
        return self._locator(extract_output_path(output, "saved to:"))

    async def generate_report(
        self, ctx: RunContext, provider: ProviderId, responses_path: str
    ) -> str | None:
        output = await self._run(
            Phase.REPORT,
            provider,
            [
                str(self.scripts_dir / "4_generate_report.py"),
                "--analysis",
                self._absolute(responses_path),
                "--config",
                str(self.config_path),
                "--test-run-id",
                ctx.run_id,
            ],
        )
        return self._locator(extract_output_path(output, "report saved to:"))


# =============================================================================
# Mock worker
# =============================================================================

MOCK_COMPETITORS = ["Northwind Traders", "Contoso", "Fabrikam", "Globex"]

RESPONSE_HEADERS = ["Query ID", "Query Text", "Response Text"]
ANALYSIS_HEADERS = RESPONSE_HEADERS + ["Business_Mentioned", "Competitors_Mentioned"]


class MockPhaseWorker(PhaseWorker):
    """Deterministic phase worker that writes realistic artifacts to a store.

    Used for development without provider API keys and in tests.
    ``failures`` holds ``(phase, provider)`` pairs that should fail.
    """

    name = "mock"

    def __init__(
        self,
        store: FileArtifactStore,
        business_name: str = "Acme Inc",
        failures: set[tuple[str, str]] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.business_name = business_name
        self.failures = failures or set()
        self.clock = clock

    def _check(self, phase: str, provider: ProviderId) -> None:
        if (phase, provider.value) in self.failures:
            raise PhaseError(phase, provider.value, "Injected failure")

    def _write(self, ctx: RunContext, filename: str, content: str) -> str:
        return self.store.write_artifact(self.store.locator(ctx.business_dir, filename), content)

    def _queries(self, ctx: RunContext) -> list[tuple[str, str]]:
        consumer = [
            (f"Who is the best {self.business_name.lower()} alternative near me? #{i + 1}", "consumer")
            for i in range(ctx.request.consumer_queries)
        ]
        business = [
            (f"Which suppliers do businesses recommend for this service? #{i + 1}", "business")
            for i in range(ctx.request.business_queries)
        ]
        return consumer + business

    async def generate_queries(self, ctx: RunContext, provider: ProviderId) -> str | None:
        self._check(Phase.GENERATE, provider)
        lines = [text for text, _ in self._queries(ctx)]
        filename = artifact_filename(
            provider,
            "queries",
            sanitize_business_name(self.business_name),
            format_file_timestamp(self.clock()),
            "txt",
        )
        return self._write(ctx, filename, "\n".join(lines) + "\n")

    def _read_queries(self, queries_path: str) -> list[str]:
        content = self.store.read_artifact(queries_path)
        if queries_path.endswith(".csv"):
            return [row.get("Query", "") for row in parse_delimited_table(content)]
        return [line for line in content.splitlines() if line.strip()]

    async def collect_responses(
        self, ctx: RunContext, provider: ProviderId, queries_path: str
    ) -> str | None:
        self._check(Phase.COLLECT, provider)
        offset = list(ProviderId).index(provider)

        rows = []
        for i, query in enumerate(self._read_queries(queries_path)):
            mentioned = [MOCK_COMPETITORS[(i + offset) % len(MOCK_COMPETITORS)]]
            if i % 3 == 0 and mentioned[0] != MOCK_COMPETITORS[0]:
                mentioned.append(MOCK_COMPETITORS[0])
            parts = [f"Popular options include {', '.join(mentioned)}."]
            if (i + offset) % 2 == 0:
                parts.append(f"{self.business_name} is also well reviewed.")
            rows.append(
                {
                    "Query ID": str(i + 1),
                    "Query Text": query,
                    "Response Text": " ".join(parts),
                }
            )

        filename = artifact_filename(
            provider, "responses", run_tag(ctx.run_id), format_file_timestamp(self.clock()), "csv"
        )
        return self._write(ctx, filename, render_delimited_table(RESPONSE_HEADERS, rows))

    async def generate_report(
        self, ctx: RunContext, provider: ProviderId, responses_path: str
    ) -> str | None:
        self._check(Phase.REPORT, provider)
        rows = parse_delimited_table(self.store.read_artifact(responses_path))

        counts: dict[str, int] = {}
        mentions = 0
        analyzed = []
        for row in rows:
            text = row.get("Response Text", "")
            found = [name for name in MOCK_COMPETITORS if name in text]
            for name in found:
                counts[name] = counts.get(name, 0) + 1
            business_found = self.business_name in text
            mentions += int(business_found)
            analyzed.append(
                {
                    **row,
                    "Business_Mentioned": "Yes" if business_found else "No",
                    "Competitors_Mentioned": "; ".join(found),
                }
            )

        report_ts = format_file_timestamp(self.clock())
        # The analysis file is paired with its responses file by name
        analysis_ts = extract_timestamp(Path(responses_path).name) or report_ts
        tag = run_tag(ctx.run_id)
        self._write(
            ctx,
            artifact_filename(provider, "analysis", tag, analysis_ts, "csv"),
            render_delimited_table(ANALYSIS_HEADERS, analyzed),
        )

        html = render_report_html(provider, self.business_name, len(rows), mentions, counts)
        return self._write(ctx, artifact_filename(provider, "report", tag, report_ts, "html"), html)


def render_report_html(
    provider: ProviderId,
    business_name: str,
    total_queries: int,
    mentions: int,
    competitor_counts: dict[str, int],
) -> str:
    """Minimal HTML report in the layout the tester's report script produces."""
    percentage = (mentions / total_queries * 100) if total_queries else 0.0
    ranked = sorted(competitor_counts.items(), key=lambda item: item[1], reverse=True)
    table_rows = "\n".join(
        f'<tr><td class="rank">{rank}</td><td>{name}</td><td>{count}</td></tr>'
        for rank, (name, count) in enumerate(ranked, start=1)
    )
    return f"""<!DOCTYPE html>
<html>
<head><title>{business_name} AI Visibility Report</title></head>
<body>
<h1>{business_name}</h1>
<h3>{provider.value.capitalize()} AI Engine</h3>
<p><strong>Total Queries:</strong> {total_queries}</p>
<p><strong>Business Found:</strong> {mentions} times ({percentage:.1f}%)</p>
<table>
<tr><th>Rank</th><th>Competitor</th><th>Mentions</th></tr>
{table_rows}
</table>
</body>
</html>
"""


def build_phase_worker(
    kind: str,
    store: FileArtifactStore,
    tester_dir: Path | str,
    python: str = "python",
    business_name: str = "Acme Inc",
) -> PhaseWorker:
    """
    Create the configured phase worker.

    Raises:
        ValueError: For an unknown worker kind.
    """
    if kind == ScriptPhaseWorker.name:
        return ScriptPhaseWorker(store, tester_dir, python=python)
    if kind == MockPhaseWorker.name:
        return MockPhaseWorker(store, business_name=business_name)
    raise ValueError(f"Unknown phase worker: {kind}")
