"""Bulk blog analysis: skip, resolve, analyze with retries, persist, report."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, Sequence

from rich.console import Console

from blog_analysis.analysis.client import AnalysisClient, HttpAnalysisClient
from blog_analysis.analysis.transform import transform_blog_result
from blog_analysis.batch.cost import CostAggregator
from blog_analysis.batch.progress import (
    LegacyCallback,
    LoggingSink,
    ProgressReporter,
    ProgressSink,
    callback_sink,
)
from blog_analysis.batch.retry import EMPTY_BLOG_MESSAGE, has_blog_content, run_with_retry
from blog_analysis.batch.scheduler import run_batches
from blog_analysis.batch.skip import should_skip
from blog_analysis.config import Config
from blog_analysis.models import AggregateOutcome, AttemptResult, Target
from blog_analysis.resolve.discovery import WebsiteDiscovery, build_discovery
from blog_analysis.resolve.resolver import FieldMapping, UrlResolver, default_strategies
from blog_analysis.store.targets import SqliteTargetStore, TargetStore

logger = logging.getLogger(__name__)
console = Console(force_terminal=True)

NO_WEBSITE_MESSAGE = "No website found (discovery failed)"


class BulkBlogAnalyzer:
    """Analyzes many targets in fixed-size concurrent batches."""

    def __init__(
        self,
        config: Config,
        store: TargetStore,
        analysis_client: AnalysisClient,
        discovery: WebsiteDiscovery | None = None,
        resolver: UrlResolver | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        verbose: bool = True,
    ):
        self.config = config
        self.store = store
        self.analysis_client = analysis_client
        self.resolver = resolver or UrlResolver(
            default_strategies(FieldMapping.from_config(config)),
            discovery if discovery is not None else build_discovery(config),
            store,
        )
        self._sleep = sleep
        self.verbose = verbose

    async def bulk_process(
        self,
        targets: Sequence[Target],
        on_progress: ProgressSink | Iterable[ProgressSink] | None = None,
        skip_days: int | None = None,
    ) -> AggregateOutcome:
        """Process every target to exactly one terminal status.

        Per-target failures end up in the returned results; only bad input
        (non-Target items, duplicate ids, invalid batch size) raises.
        """
        _check_targets(targets)
        if self.config.batch_size < 1:
            raise ValueError(f"batch size must be >= 1, got {self.config.batch_size}")
        if skip_days is None:
            skip_days = self.config.skip_days

        reporter = ProgressReporter(LoggingSink(level=logging.DEBUG))
        for sink in _as_sinks(on_progress):
            reporter.add_sink(sink)
        results: dict[str, AttemptResult] = {}
        cost = CostAggregator()

        # Recently analyzed targets never reach a batch
        now = datetime.now(timezone.utc)
        to_process: list[Target] = []
        for target in targets:
            if should_skip(target, skip_days, now):
                freq = target.last_analysis_frequency or 0
                results[target.id] = AttemptResult(
                    success=True, skipped=True, payload=target.blog_analysis,
                )
                reporter.emit(target.id, "skipped", f"Already analyzed ({freq} posts/mo)")
                continue
            to_process.append(target)

        if self.verbose:
            console.print(
                f"\nAnalyzing {len(to_process)} companies "
                f"({len(targets) - len(to_process)} analyzed in the last {skip_days} days)...\n"
            )

        def start_batch(batch: list[Target]) -> None:
            for t in batch:
                reporter.pending(t.id)

        async def work(target: Target) -> None:
            result = await self._process_target_safe(target, reporter)
            results[target.id] = result
            cost.add(result)
            if result.success:
                freq = result.payload.monthly_frequency if result.payload else 0
                reporter.emit(target.id, "success", f"{freq} posts/mo", result.cost_info)
            else:
                reporter.emit(target.id, "error", result.error)

        sizes = await run_batches(
            to_process,
            self.config.batch_size,
            work,
            on_batch_start=start_batch,
            inter_batch_delay=self.config.inter_batch_delay,
            sleep=self._sleep,
        )

        outcome = AggregateOutcome(
            results=results, total_cost=cost.total_cost, total_tokens=cost.total_tokens,
        )
        logger.info(
            "Bulk analysis done: %d batches, %d analyzed, %d skipped, %d failed, $%.4f",
            len(sizes), outcome.succeeded, outcome.skipped, outcome.failed, outcome.total_cost,
        )
        if self.verbose:
            console.print(
                f"  [green]{outcome.succeeded} analyzed[/green] / "
                f"[dim]{outcome.skipped} skipped[/dim] / "
                f"[red]{outcome.failed} failed[/red] — total cost ${outcome.total_cost:.4f}"
            )
        return outcome

    async def _process_target_safe(self, target: Target, reporter: ProgressReporter) -> AttemptResult:
        """Process a single target; any exception becomes an error result."""
        try:
            return await self._process_target(target, reporter)
        except Exception as e:
            logger.error("Blog analysis error for %s: %s", target.name, e)
            return AttemptResult.failure(str(e) or type(e).__name__)

    async def _process_target(self, target: Target, reporter: ProgressReporter) -> AttemptResult:
        # Step 1: resolve the URL, discovering it by name if nothing is mapped
        url = self.resolver.resolve_fast(target)
        if not url:
            reporter.running(target.id, "Discovering website...")
            url = await self.resolver.resolve_or_discover(target)
        if not url:
            logger.info("%s: no website found", target.name)
            return AttemptResult.failure(NO_WEBSITE_MESSAGE)

        # Step 2: analyze with retries; an empty response counts as a failure
        reporter.running(target.id, "Analyzing blog...")
        try:
            raw = await run_with_retry(
                lambda: self.analysis_client.analyze(target.name, url),
                attempts=self.config.retry_attempts,
                initial_delay=self.config.retry_delay,
                validate=has_blog_content,
                empty_message=EMPTY_BLOG_MESSAGE,
                sleep=self._sleep,
                label=target.name,
            )
        except Exception as e:
            logger.warning("%s: analysis failed after %d attempts: %s",
                           target.name, self.config.retry_attempts + 1, e)
            return AttemptResult.failure(str(e) or "Failed to analyze blog")

        # Step 3: persist; a failed write fails the target
        analysis = transform_blog_result(raw, url)
        try:
            await self.store.update(target.id, {"blog_analysis": analysis.model_dump(mode="json")})
        except Exception as e:
            logger.error("%s: could not save analysis: %s", target.name, e)
            return AttemptResult.failure(f"Failed to save analysis: {e}")

        return AttemptResult(success=True, payload=analysis, cost_info=analysis.cost_info)


def _check_targets(targets: Sequence[Target]) -> None:
    seen: set[str] = set()
    for t in targets:
        if not isinstance(t, Target):
            raise TypeError(f"Expected Target, got {type(t).__name__}")
        if t.id in seen:
            raise ValueError(f"Duplicate target id: {t.id}")
        seen.add(t.id)


def _as_sinks(on_progress: ProgressSink | Iterable[ProgressSink] | None) -> list[ProgressSink]:
    if on_progress is None:
        return []
    if callable(on_progress):
        return [on_progress]
    return list(on_progress)


async def bulk_process(
    targets: Sequence[Target],
    on_progress: LegacyCallback | None = None,
    skip_days: int | None = None,
    config: Config | None = None,
) -> AggregateOutcome:
    """Run a bulk analysis with collaborators built from ``config``.

    ``on_progress`` is called as ``(target_id, status, message, cost_info)``.
    """
    from blog_analysis.config import load_config

    config = config or load_config()
    store = SqliteTargetStore(config.db_path)
    try:
        analyzer = BulkBlogAnalyzer(config, store, HttpAnalysisClient.from_config(config))
        sinks = [callback_sink(on_progress)] if on_progress else []
        return await analyzer.bulk_process(targets, sinks, skip_days)
    finally:
        store.close()
