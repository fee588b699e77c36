"""CLI entry point for bulk blog analysis."""

from __future__ import annotations

import asyncio
import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from blog_analysis.analysis.client import HttpAnalysisClient
from blog_analysis.config import Config, load_config
from blog_analysis.models import AggregateOutcome, ProgressEvent, Target
from blog_analysis.pipeline import BulkBlogAnalyzer
from blog_analysis.resolve.resolver import FieldMapping, default_strategies
from blog_analysis.store.targets import SqliteTargetStore

console = Console(force_terminal=True)

_STATUS_STYLE = {
    "success": "green",
    "error": "red",
    "skipped": "dim",
    "running": "cyan",
    "pending": "dim",
}


class RichProgressSink:
    """Advances a rich progress bar on terminal events and prints outcomes."""

    def __init__(self, progress: Progress, names: dict[str, str], total: int):
        self.progress = progress
        self.names = names
        self.task = progress.add_task("Analyzing blogs", total=total)

    def __call__(self, event: ProgressEvent) -> None:
        name = self.names.get(event.target_id, event.target_id)
        if event.status == "running":
            self.progress.update(self.task, description=f"{name}: {event.message}")
            return
        if not event.is_terminal:
            return
        style = _STATUS_STYLE[event.status]
        self.progress.console.print(
            f"  [{style}]{event.status:<8}[/{style}] {name}"
            + (f" — {event.message}" if event.message else "")
        )
        self.progress.advance(self.task)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, show_time=False)],
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose debug logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Bulk blog analysis for company lists."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@main.command("import-targets")
@click.argument("input_file", type=click.Path(exists=True))
def import_targets(input_file: str) -> None:
    """Load companies from a CSV/Excel file into the target store."""
    from blog_analysis.input.reader import read_targets

    config = load_config(require_endpoint=False)
    try:
        targets = read_targets(input_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Input error: {e}[/red]")
        sys.exit(1)

    store = SqliteTargetStore(config.db_path)
    try:
        saved = store.save_many(targets)
        console.print(f"Imported {saved} companies into {config.db_path} ({store.count()} total)")
    finally:
        store.close()


@main.command("targets")
def list_targets() -> None:
    """List stored companies, their resolvable URL and last analysis."""
    config = load_config(require_endpoint=False)
    store = SqliteTargetStore(config.db_path)
    try:
        targets = store.list_all()
    finally:
        store.close()

    strategies = default_strategies(FieldMapping.from_config(config))
    table = Table(title=f"{len(targets)} companies")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("URL")
    table.add_column("Last analyzed")
    table.add_column("Posts/mo", justify="right")
    for t in targets:
        url = next((u for u in (s(t) for s in strategies) if u), None)
        analyzed = t.last_analysis_timestamp
        table.add_row(
            t.id,
            t.name,
            url or "[yellow]none[/yellow]",
            analyzed.strftime("%Y-%m-%d") if analyzed else "-",
            str(t.last_analysis_frequency) if t.last_analysis_frequency is not None else "-",
        )
    console.print(table)


@main.command("analyze")
@click.option("--target", "target_ids", multiple=True, help="Analyze only this target id (repeatable)")
@click.option("--skip-days", default=None, type=int, help="Skip companies analyzed within N days (0 = never skip)")
@click.option("--batch-size", default=None, type=int, help="Companies analyzed concurrently (default: 5)")
@click.option("--max-companies", default=None, type=int, help="Limit number of companies to process")
@click.pass_context
def analyze(
    ctx: click.Context,
    target_ids: tuple[str, ...],
    skip_days: int | None,
    batch_size: int | None,
    max_companies: int | None,
) -> None:
    """Analyze the blogs of stored companies."""
    config = load_config()
    if batch_size is not None:
        config.batch_size = batch_size

    store = SqliteTargetStore(config.db_path)
    try:
        targets = store.load_many(list(target_ids)) if target_ids else store.list_all()
        if not targets:
            console.print("[red]No matching companies in the store. Run import-targets first.[/red]")
            sys.exit(1)
        if max_companies:
            targets = targets[:max_companies]

        outcome = asyncio.run(_run(config, store, targets, skip_days, ctx.obj["verbose"]))
    finally:
        store.close()

    _print_summary(outcome, {t.id: t.name for t in targets})


async def _run(
    config: Config,
    store: SqliteTargetStore,
    targets: list[Target],
    skip_days: int | None,
    verbose: bool,
) -> AggregateOutcome:
    analyzer = BulkBlogAnalyzer(config, store, HttpAnalysisClient.from_config(config), verbose=verbose)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
    ) as progress:
        sink = RichProgressSink(progress, {t.id: t.name for t in targets}, len(targets))
        return await analyzer.bulk_process(targets, on_progress=sink, skip_days=skip_days)


def _print_summary(outcome: AggregateOutcome, names: dict[str, str]) -> None:
    console.print()
    console.print(f"  Analyzed: [green]{outcome.succeeded}[/green]")
    console.print(f"  Skipped (recent): {outcome.skipped}")
    console.print(f"  Total cost: ${outcome.total_cost:.4f} ({outcome.total_tokens:,} tokens)")
    if outcome.failed:
        console.print(f"  [red]Errors: {outcome.failed}[/red]")
        for target_id, result in outcome.results.items():
            if not result.success:
                console.print(f"    [red]- {names.get(target_id, target_id)}: {result.error}[/red]")
    console.print()


@main.command("serve")
@click.option("--host", default=None, help="Bind address (default: WEB_HOST or 0.0.0.0)")
@click.option("--port", default=None, type=int, help="Port (default: WEB_PORT or 8000)")
def serve(host: str | None, port: int | None) -> None:
    """Run the HTTP API with live progress streaming."""
    import uvicorn

    config = load_config()
    uvicorn.run(
        "blog_analysis.web.app:app",
        host=host or config.web_host,
        port=port or config.web_port,
    )


if __name__ == "__main__":
    main()
