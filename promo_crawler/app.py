"""Typer CLI entrypoint for promo-crawler."""

from __future__ import annotations

import json
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, ScheduleConfig, ScheduleType
from .engine import unwrap_deals
from .errors import FetchError, PersistenceError
from .logging_conf import configure_logging, log_files, tail_log
from .models import Promotion, RunSummary, ScrapeJob
from .orchestrator import Orchestrator, build_orchestrator
from .scheduler import APSchedulerAdapter

app = typer.Typer(
    help="promo-crawler: collect airline-miles promotions from a travel blog",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    scheduler: APSchedulerAdapter
    orchestrator: Orchestrator


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    orchestrator = build_orchestrator(repository)
    return AppState(
        repository=repository,
        scheduler=APSchedulerAdapter(),
        orchestrator=orchestrator,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _format_schedule(schedule: ScheduleConfig) -> str:
    if schedule.type is ScheduleType.CRON:
        return f"cron ({schedule.value})"
    return f"interval ({schedule.value})"


def _render_summary_table(summary: RunSummary) -> Table:
    table = Table(title=f"Run #{summary.job_id if summary.job_id is not None else '-'}", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_row("Pages scraped", str(summary.pages_scraped))
    table.add_row("Articles found", str(summary.articles_found))
    table.add_row("Promotions parsed", str(summary.promotions_parsed))
    table.add_row("Promotions inserted", str(summary.promotions_found))
    table.add_row("Duplicates skipped", str(summary.duplicates_skipped))
    table.add_row("Errors", str(summary.errors_count))
    return table


def _render_counts_table(title: str, counts: dict[str, int]) -> Table:
    table = Table(title=title, box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")
    for key, value in counts.items():
        table.add_row(key.replace("_", " ").capitalize(), str(value))
    return table


def _render_jobs_table(jobs: Iterable[ScrapeJob]) -> Table:
    table = Table(title="Recent scrape jobs", box=box.SIMPLE_HEAD)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Status", style="magenta")
    table.add_column("Started (UTC)", style="dim")
    table.add_column("Pages", justify="right")
    table.add_column("Found", justify="right", style="green")
    table.add_column("Errors", justify="right", style="red")
    for job in jobs:
        table.add_row(
            str(job.id),
            job.status.value,
            job.started_at.strftime("%Y-%m-%d %H:%M"),
            str(job.pages_scraped),
            str(job.promotions_found),
            str(len(job.errors)),
        )
    return table


def _render_promotions_table(promotions: Iterable[Promotion]) -> Table:
    table = Table(title="Stored promotions", box=box.SIMPLE_HEAD)
    table.add_column("Program", style="cyan")
    table.add_column("Route", style="yellow", overflow="fold")
    table.add_column("Quantity", justify="right", style="green")
    table.add_column("Title", overflow="fold")
    table.add_column("Active", justify="center")
    for promotion in promotions:
        route = f"{promotion.origin} → {promotion.destination}" if promotion.origin else promotion.destination
        quantity = f"{promotion.quantity:,}"
        if promotion.quantity_kind.value != "miles":
            quantity += " *"
        table.add_row(promotion.program, route, quantity, promotion.title, "yes" if promotion.active else "no")
    return table


def _load_deals(source: str) -> list[dict[str, Any]]:
    text = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    try:
        return unwrap_deals(json.loads(text))
    except ValueError as exc:
        # json.JSONDecodeError is a ValueError too
        raise typer.BadParameter(str(exc)) from exc


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging.", is_flag=True)
) -> None:
    ctx.obj = build_state(verbose)


@app.command("run", help="Run the pipeline once: listing → articles → store → retention.")
def run(
    ctx: typer.Context,
    max_articles: Optional[int] = typer.Option(None, "--max-articles", min=1, help="Cap on article links to process."),
    enrich: Optional[bool] = typer.Option(
        None, "--enrich/--no-enrich", help="Fetch article bodies (defaults to config).", show_default=False
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    try:
        summary = state.orchestrator.run(max_articles=max_articles, enrich=enrich)
    finally:
        state.orchestrator.close()
    if as_json:
        typer.echo(json.dumps(summary.to_dict(), ensure_ascii=False))
    else:
        console.print(_render_summary_table(summary))
        if summary.error:
            console.print(f"Run failed: {summary.error}", style="red")
    if not summary.success:
        raise typer.Exit(code=1)


@app.command("sweep", help="Apply the retention rules without scraping.")
def sweep(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    result = state.orchestrator.sweep()
    console.print(
        _render_counts_table("Retention sweep", {"deactivated": result.deactivated, "deleted": result.deleted})
    )


@app.command("clean", help="Delete junk destinations, then apply the retention rules.")
def clean(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    console.print(_render_counts_table("Cleanup", state.orchestrator.clean()))


@app.command("import", help="Import pre-scraped deals from a JSON file, '-' (stdin) or an http(s) feed URL.")
def import_deals(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="Path to a JSON file, '-' for stdin, or a feed URL to pull."),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    try:
        if source.startswith(("http://", "https://")):
            report = state.orchestrator.import_from_url(source)
        else:
            report = state.orchestrator.import_deals(_load_deals(source))
    except FetchError as exc:
        console.print(f"Deal feed unavailable: {exc.reason}", style="red")
        raise typer.Exit(code=1) from exc
    except PersistenceError as exc:
        console.print(f"Import failed: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    finally:
        state.orchestrator.close()
    if as_json:
        typer.echo(json.dumps(report))
        return
    console.print(_render_counts_table("Deal import", report))


@app.command("jobs", help="Show recent scrape jobs.")
def jobs(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", min=1, help="Number of jobs to show."),
) -> None:
    state = _get_state(ctx)
    recent = state.orchestrator.recent_jobs(limit)
    if not recent:
        console.print("No scrape jobs recorded yet.", style="dim")
        return
    console.print(_render_jobs_table(recent))


@app.command("promotions", help="Show stored promotions, newest first.")
def promotions(
    ctx: typer.Context,
    limit: int = typer.Option(50, "--limit", min=1, help="Number of promotions to show."),
    include_inactive: bool = typer.Option(False, "--all", help="Include expired promotions.", is_flag=True),
    as_json: bool = typer.Option(False, "--json", help="Print as JSON.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    stored = state.orchestrator.recent_promotions(active_only=not include_inactive, limit=limit)
    if as_json:
        typer.echo(json.dumps([promotion.to_dict() for promotion in stored], ensure_ascii=False))
        return
    if not stored:
        console.print("No promotions stored.", style="dim")
        return
    console.print(_render_promotions_table(stored))
    if any(promotion.quantity_kind.value != "miles" for promotion in stored):
        console.print("* quantity derived from a bonus percentage", style="dim")


@app.command("schedule", help="Run the pipeline on the configured cron/interval until interrupted.")
def schedule(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the schedule and exit.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    config = state.repository.load()
    state.scheduler.schedule_run(config.schedule, state.orchestrator.run)
    console.print(f"Schedule: {_format_schedule(config.schedule)}", style="cyan")
    if dry_run:
        for job in state.scheduler.list_jobs():
            console.print(f"{job['id']}: {job['trigger']}", style="dim", markup=False)
        return
    state.scheduler.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("Stopping scheduler.", style="yellow")
    finally:
        state.scheduler.shutdown()
        state.orchestrator.close()


@app.command("logs", help="Show the most recent log lines.")
def logs(
    name: str = typer.Argument("crawler", help="Log to show: crawler or error."),
    tail: int = typer.Option(100, "--tail", min=1, help="Show the last N lines."),
) -> None:
    files = log_files()
    if name not in files:
        console.print(f"Unknown log `{name}`; choose from {', '.join(sorted(files))}.", style="red")
        raise typer.Exit(code=1)
    lines = tail_log(files[name], tail)
    if not lines:
        console.print("No log lines yet.", style="dim")
        return
    console.print(f"{name}.log · last {len(lines)} lines", style="cyan")
    console.print("".join(lines), markup=False, highlight=False)


__all__ = ["AppState", "app", "build_state"]
