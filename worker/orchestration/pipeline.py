"""Local multi-phase pipeline: generate -> collect -> report per provider."""

import asyncio
from collections.abc import Callable
from datetime import datetime

import structlog

from api.metrics import record_phase_failure
from worker.artifacts.models import ProviderId, RunMetadata
from worker.artifacts.naming import (
    custom_queries_filename,
    format_file_timestamp,
    new_run_id,
    sanitize_business_name,
)
from worker.artifacts.parser import render_delimited_table
from worker.artifacts.storage import ArtifactStore
from worker.orchestration.models import (
    CustomQueries,
    PipelineResult,
    ProgressCallback,
    ProviderResult,
    RunContext,
    TestRunRequest,
)
from worker.orchestration.phases import Phase, PhaseWorker

logger = structlog.get_logger(__name__)

DEFAULT_MAX_CONCURRENCY = 5
CUSTOM_QUERY_HEADERS = ["Query", "Query_Type"]


class LocalPipelineOrchestrator:
    """Runs one independent pipeline per provider.

    Within a provider, Collect needs Generate's query file and Report needs
    Collect's responses file. Providers run concurrently up to
    ``max_concurrency`` and share nothing but the run context; running them
    one at a time gives the same artifacts.

    A failed phase is recorded on that provider's result and skips its later
    phases. It never affects other providers or fails the run.
    """

    def __init__(
        self,
        store: ArtifactStore,
        worker: PhaseWorker,
        business_name: str,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        progress_callback: ProgressCallback | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.worker = worker
        self.business_name = business_name
        self.business_dir = sanitize_business_name(business_name)
        self.max_concurrency = max(1, max_concurrency)
        self.progress_callback = progress_callback
        self.clock = clock

        self._steps_done = 0
        self._steps_total = 1

    def _report_progress(self, progress: int, message: str) -> None:
        if self.progress_callback:
            self.progress_callback(progress, message)

    def _step_done(self, provider: ProviderId, phase: str) -> None:
        self._steps_done += 1
        progress = 10 + int(85 * self._steps_done / self._steps_total)
        self._report_progress(progress, f"{provider.value}: {phase} finished")

    async def run(self, request: TestRunRequest, run_id: str | None = None) -> PipelineResult:
        """
        Run every provider's pipeline for a request.

        The run metadata record is written before any phase starts.

        Args:
            request: Validated test run request
            run_id: Run id to use; generated when omitted

        Returns:
            PipelineResult with one ProviderResult per requested provider
        """
        run_id = run_id or new_run_id()
        started = self.clock()
        ctx = RunContext(
            run_id=run_id,
            business_dir=self.business_dir,
            file_timestamp=format_file_timestamp(started),
            request=request,
        )

        metadata_path = self.store.write_run_metadata(
            RunMetadata(
                test_run_id=run_id,
                providers=[p.value for p in request.providers],
                timestamp=started,
                query_types=[q.value for q in request.query_types],
                consumer_queries=request.consumer_queries,
                business_queries=request.business_queries,
                business_dir=self.business_dir,
            )
        )
        logger.info(
            "pipeline_started",
            run_id=run_id,
            providers=[p.value for p in request.providers],
            custom_queries=request.custom_queries is not None,
        )
        self._report_progress(5, "Run metadata written")

        shared_queries = None
        if request.custom_queries is not None:
            shared_queries = self._write_custom_queries(ctx, request.custom_queries)
            self._report_progress(10, "Custom queries saved")

        self._steps_done = 0
        phases_per_provider = 2 if shared_queries else 3
        self._steps_total = max(1, phases_per_provider * len(request.providers))

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(provider: ProviderId) -> ProviderResult:
            async with semaphore:
                return await self._run_provider(ctx, provider, shared_queries)

        results = await asyncio.gather(*(bounded(p) for p in request.providers))

        result = PipelineResult(
            run_id=run_id,
            results=list(results),
            report_paths=[r.report_path for r in results if r.report_path],
            metadata_path=metadata_path,
            timestamp=started,
        )
        logger.info(
            "pipeline_finished",
            run_id=run_id,
            succeeded=sum(1 for r in results if r.success),
            failed=sum(1 for r in results if not r.success),
            reports=len(result.report_paths),
        )
        self._report_progress(100, "Test run complete")
        return result

    def _write_custom_queries(self, ctx: RunContext, queries: CustomQueries) -> str:
        """Write the one query file every provider of the run reuses."""
        filename = custom_queries_filename(ctx.run_id, ctx.file_timestamp)
        locator = self.store.write_artifact(
            self.store.locator(ctx.business_dir, filename),
            render_delimited_table(CUSTOM_QUERY_HEADERS, queries.rows()),
        )
        logger.info("custom_queries_saved", run_id=ctx.run_id, path=locator)
        return locator

    def _failed(self, ctx: RunContext, provider: ProviderId, phase: str, error: Exception) -> str:
        record_phase_failure(phase, provider.value)
        logger.warning(
            "pipeline_phase_failed",
            run_id=ctx.run_id,
            provider=provider.value,
            phase=phase,
            error=str(error),
        )
        return str(error)

    async def _run_provider(
        self,
        ctx: RunContext,
        provider: ProviderId,
        shared_queries: str | None,
    ) -> ProviderResult:
        result = ProviderResult(
            provider=provider,
            success=False,
            total_queries=ctx.request.total_queries,
        )

        # Phase 1: Generate
        if shared_queries is not None:
            result.queries_path = shared_queries
        else:
            try:
                result.queries_path = await self.worker.generate_queries(ctx, provider)
            except Exception as e:
                result.error = self._failed(ctx, provider, Phase.GENERATE, e)
                return result
            self._step_done(provider, Phase.GENERATE)

            if not result.queries_path:
                result.error = "Query generation produced no query file"
                record_phase_failure(Phase.GENERATE, provider.value)
                return result

        # Phase 2: Collect
        try:
            result.responses_path = await self.worker.collect_responses(
                ctx, provider, result.queries_path
            )
        except Exception as e:
            result.collect_error = self._failed(ctx, provider, Phase.COLLECT, e)
            return result
        self._step_done(provider, Phase.COLLECT)

        if not result.responses_path:
            result.collect_error = "Response collection produced no responses file"
            record_phase_failure(Phase.COLLECT, provider.value)
            return result

        # Phase 3: Report
        try:
            result.report_path = await self.worker.generate_report(
                ctx, provider, result.responses_path
            )
        except Exception as e:
            result.report_error = self._failed(ctx, provider, Phase.REPORT, e)
            return result
        self._step_done(provider, Phase.REPORT)

        if not result.report_path:
            result.report_error = "Report generation produced no report"
            record_phase_failure(Phase.REPORT, provider.value)
            return result

        result.success = True
        logger.info(
            "provider_pipeline_completed",
            run_id=ctx.run_id,
            provider=provider.value,
            report=result.report_path,
        )
        return result
