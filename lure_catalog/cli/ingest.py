"""
Ingestion CLI Commands
======================

CLI commands for running the ingestion pipeline, the gap check and the
background worker.
"""

from __future__ import annotations

import asyncio
from typing import Optional
from urllib.parse import urlparse

import typer
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from lure_catalog.core.enums import EntryOutcome, WorkflowStatus
from lure_catalog.core.errors import ConfigError
from lure_catalog.ingestion.adapters import get_adapter_info, list_adapters, lookup
from lure_catalog.ingestion.registry import SourceRegistry, get_default_registry

console = Console()
ingest_app = typer.Typer(help="Ingestion pipeline commands")
sources_app = typer.Typer(help="Source management commands")
jobs_app = typer.Typer(help="Job management commands")

ingest_app.add_typer(sources_app, name="sources")
ingest_app.add_typer(jobs_app, name="jobs")


def _registry() -> SourceRegistry:
    try:
        return get_default_registry()
    except FileNotFoundError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _save_enabled(registry: SourceRegistry, name: str) -> None:
    try:
        registry.save_enabled(name)
    except (ConfigError, OSError) as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _check_source(registry: SourceRegistry, source: str | None) -> None:
    """Exit with an error if ``source`` is neither configured nor an adapter."""
    if source is None or registry.get_source(source) is not None or lookup(source) is not None:
        return
    rprint(f"[red]Error:[/red] Source '{source}' not found")
    rprint("\nAvailable sources:")
    for s in registry.list_sources():
        status = "[green]enabled[/green]" if s.enabled else "[yellow]disabled[/yellow]"
        rprint(f"  • {s.name} ({status})")
    raise typer.Exit(1)


def _init_db() -> None:
    from lure_catalog.db.engine import init_db

    init_db()


@ingest_app.command("run")
def run_pipeline(
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Only process this source"),
    limit: int = typer.Option(0, "--limit", "-l", help="Maximum entries to process (0 = all)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Scrape without writing catalog or workflow"),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-c", help="Worker pool size"),
    no_images: bool = typer.Option(False, "--no-images", help="Skip color image rehosting"),
    enqueue: bool = typer.Option(False, "--enqueue", help="Queue the run for the background worker"),
) -> None:
    """
    Process pending workflow entries.

    Examples:
        lure-catalog ingest run --limit 5
        lure-catalog ingest run --source megabass --dry-run
        lure-catalog ingest run --enqueue
    """
    registry = _registry()
    _check_source(registry, source)

    if enqueue:
        from lure_catalog.ingestion.jobs import enqueue_pipeline

        rprint("\n[dim]Enqueueing job for async processing...[/dim]")
        try:
            job_id = asyncio.run(enqueue_pipeline(source, limit))
        except Exception as e:
            rprint(f"\n[red]Error:[/red] Failed to enqueue job: {e}")
            rprint("\nMake sure Redis is running")
            raise typer.Exit(1)
        rprint("\n[green]Job enqueued successfully![/green]")
        rprint(f"Job ID: [bold]{job_id}[/bold]")
        rprint("\nCheck status with:")
        rprint(f"  lure-catalog ingest jobs status {job_id}")
        return

    from lure_catalog.ingestion.jobs import build_pipeline

    rprint("\n[bold]Pipeline run[/bold]")
    rprint(f"  Mode: {'DRY RUN (no writes)' if dry_run else 'LIVE'}")
    if source:
        rprint(f"  Source: {source}")
    if limit:
        rprint(f"  Limit: {limit}")

    try:
        _init_db()
        pipeline = build_pipeline(images=not no_images, max_concurrency=concurrency, dry_run=dry_run)
        result = asyncio.run(pipeline.run(source_id=source, limit=limit))
    except (ConfigError, SQLAlchemyError) as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    _display_pipeline_result(result.to_dict())


@ingest_app.command("gaps")
def check_gaps(
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Only check this source"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report without changing the workflow queue"),
    repair: bool = typer.Option(
        True, "--repair/--no-repair", help="Reset done entries whose catalog rows are missing"
    ),
    enqueue: bool = typer.Option(False, "--enqueue", help="Queue the check for the background worker"),
) -> None:
    """
    Find new products and done entries with missing catalog rows.

    Examples:
        lure-catalog ingest gaps --dry-run
        lure-catalog ingest gaps --source boreas --no-repair
        lure-catalog ingest gaps --enqueue
    """
    from lure_catalog.ingestion.jobs import build_gap_detector, enqueue_gap_check

    registry = _registry()
    if source and registry.get_source(source) is None:
        rprint(f"[red]Error:[/red] Source '{source}' not found in sources.yaml")
        raise typer.Exit(1)

    if enqueue:
        try:
            job_id = asyncio.run(enqueue_gap_check(source, dry_run))
        except Exception as e:
            rprint(f"\n[red]Error:[/red] Failed to enqueue job: {e}")
            rprint("\nMake sure Redis is running")
            raise typer.Exit(1)
        rprint(f"[green]Gap check enqueued[/green] Job ID: [bold]{job_id}[/bold]")
        return

    try:
        _init_db()
        report = asyncio.run(build_gap_detector().run(source_id=source, dry_run=dry_run, repair=repair))
    except (ConfigError, SQLAlchemyError) as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title="Gap Check" + (" (dry run)" if dry_run else ""))
    table.add_column("Source", style="bold")
    table.add_column("On site", justify="right")
    table.add_column("New", justify="right")
    table.add_column("Excluded", justify="right")
    table.add_column("Enqueued", justify="right")
    table.add_column("Missing rows", justify="right")
    table.add_column("Reset", justify="right")
    table.add_column("Stuck", justify="right")
    table.add_column("Errors", justify="right")

    for s in report.sources:
        if not s.ok:
            table.add_row(s.source_id, "-", "-", "-", "-", "-", "-", "-", f"[red]{escape(s.error or '')}[/red]")
            continue
        table.add_row(
            s.source_id,
            str(s.listed),
            str(len(s.new_products)),
            str(len(s.excluded)),
            str(s.enqueued),
            str(len(s.missing_rows)),
            str(s.reset),
            str(len(s.stuck)),
            str(len(s.errored)),
        )
    console.print(table)

    for s in report.sources:
        for product in s.new_products:
            rprint(f"  [green]new[/green] {escape(f'[{s.source_id}] {product.name}: {product.url}')}")
        for entry in s.missing_rows:
            rprint(f"  [yellow]missing[/yellow] {escape(f'[{s.source_id}] {entry.name}: {entry.url}')}")

    if report.failed_sources:
        rprint(f"\n[red]Failed sources:[/red] {', '.join(report.failed_sources)}")


@ingest_app.command("enqueue")
def enqueue_url(
    url: str = typer.Argument(..., help="Product page URL"),
    source: Optional[str] = typer.Option(
        None, "--source", "-s", help="Source the URL belongs to (default: matched by domain)"
    ),
    name: str = typer.Option("", "--name", "-n", help="Product name"),
) -> None:
    """
    Add a product URL to the workflow queue as pending.

    Examples:
        lure-catalog ingest enqueue https://www.megabass.co.jp/site/products/vision_110/
        lure-catalog ingest enqueue https://34net.jp/products/worm/medusa/ -s thirtyfour
    """
    from lure_catalog.db.engine import get_session_factory
    from lure_catalog.ingestion.workflow import SqlWorkflowStore

    registry = _registry()
    if source is None:
        matched = registry.get_source_by_domain(urlparse(url.strip()).hostname or "")
        if matched is None:
            rprint(f"[red]Error:[/red] No source configured for {escape(url)}; pass --source")
            raise typer.Exit(1)
        source = matched.name
    _check_source(registry, source)

    try:
        _init_db()
        entry = SqlWorkflowStore(get_session_factory()).enqueue(url.strip(), source, name=name)
    except SQLAlchemyError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if entry is None:
        rprint(f"[yellow]Already queued:[/yellow] {url}")
        return
    rprint(f"[green]Queued[/green] {url} ({WorkflowStatus.PENDING.label})")


@ingest_app.command("status")
def queue_status(
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Only count this source"),
) -> None:
    """
    Show workflow queue counts by status.

    Examples:
        lure-catalog ingest status
    """
    from lure_catalog.db.engine import get_session_factory
    from lure_catalog.ingestion.workflow import SqlWorkflowStore

    try:
        _init_db()
        counts = SqlWorkflowStore(get_session_factory()).counts(source)
    except SQLAlchemyError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title="Workflow Queue")
    table.add_column("Status", style="bold")
    table.add_column("Label")
    table.add_column("Entries", justify="right")
    for status in WorkflowStatus:
        table.add_row(status.value, status.label, str(counts[status]))
    console.print(table)


@ingest_app.command("worker")
def start_worker(
    burst: bool = typer.Option(False, "--burst", help="Run in burst mode (exit when queue empty)"),
) -> None:
    """
    Start the background worker.

    The worker processes queued pipeline runs and gap checks from Redis.

    Examples:
        lure-catalog ingest worker
        lure-catalog ingest worker --burst
    """
    from arq import run_worker

    from lure_catalog.ingestion.jobs import WorkerSettings

    rprint("[bold]Starting ingestion worker...[/bold]")
    rprint("Press Ctrl+C to stop\n")

    try:
        run_worker(WorkerSettings, burst=burst)
    except Exception as e:
        rprint(f"[red]Error:[/red] Worker failed: {e}")
        rprint("\nMake sure Redis is running")
        raise typer.Exit(1)


# Sources subcommands


@sources_app.command("list")
def list_sources(
    all_sources: bool = typer.Option(False, "--all", "-a", help="Show all sources including disabled"),
) -> None:
    """
    List configured sources.

    Examples:
        lure-catalog ingest sources list
        lure-catalog ingest sources list --all
    """
    registry = _registry()
    sources = registry.list_sources() if all_sources else registry.list_enabled_sources()

    if not sources:
        rprint("[yellow]No sources configured[/yellow]")
        rprint("\nAdd sources to config/sources.yaml")
        return

    table = Table(title="Sources")
    table.add_column("Name", style="bold")
    table.add_column("Manufacturer")
    table.add_column("Domain")
    table.add_column("Adapter")
    table.add_column("Status")
    table.add_column("Delay")

    for source in sources:
        status = "[green]enabled[/green]" if source.enabled else "[yellow]disabled[/yellow]"
        delay = f"{source.politeness.min_delay:.1f}s"
        table.add_row(source.name, source.display_name, source.domain, source.adapter, status, delay)

    console.print(table)


@sources_app.command("show")
def show_source(
    name: str = typer.Argument(..., help="Source name"),
) -> None:
    """
    Show detailed information about a source.

    Examples:
        lure-catalog ingest sources show megabass
    """
    registry = _registry()
    source = registry.get_source(name)

    if source is None:
        rprint(f"[red]Error:[/red] Source '{name}' not found")
        raise typer.Exit(1)

    status = "[green]enabled[/green]" if source.enabled else "[yellow]disabled[/yellow]"

    rprint(f"\n[bold]Source: {source.name}[/bold]")
    rprint(f"  Manufacturer: {source.display_name}")
    rprint(f"  Status: {status}")
    rprint(f"  Domain: {source.domain}")
    rprint(f"  Adapter: {source.adapter}")
    if source.description:
        rprint(f"  Description: {source.description}")
    if source.requires_headed_browser:
        rprint("  Browser: headed")

    rprint("\n[bold]Politeness:[/bold]")
    rprint(f"  Minimum delay: {source.politeness.min_delay_ms}ms")
    rprint(f"  Max concurrency: {source.politeness.max_concurrency}")

    if source.listing_urls:
        rprint("\n[bold]Listing URLs:[/bold]")
        for url in source.listing_urls:
            rprint(f"  • {url}")

    if source.excluded_name_keywords:
        rprint("\n[bold]Excluded Name Keywords:[/bold]")
        for keyword in source.excluded_name_keywords:
            rprint(f"  • {keyword}")

    if source.excluded_url_slugs:
        rprint("\n[bold]Excluded URL Slugs:[/bold]")
        for slug in source.excluded_url_slugs:
            rprint(f"  • {slug}")

    adapter_info = get_adapter_info(source.adapter)
    if adapter_info:
        rprint("\n[bold]Adapter Info:[/bold]")
        rprint(f"  Name: {adapter_info['name']}")
        rprint(f"  Version: {adapter_info['version']}")
        rprint(f"  Class: {adapter_info['class']}")
    else:
        rprint(f"\n[red]No adapter registered for '{source.adapter}'[/red]")


@sources_app.command("enable")
def enable_source(
    name: str = typer.Argument(..., help="Source name"),
) -> None:
    """Enable a source and save the flag to the sources file."""
    registry = _registry()

    if not registry.enable_source(name):
        rprint(f"[red]Error:[/red] Source '{name}' not found")
        raise typer.Exit(1)
    _save_enabled(registry, name)
    rprint(f"[green]Source '{name}' enabled[/green] (saved to {registry.config_path})")


@sources_app.command("disable")
def disable_source(
    name: str = typer.Argument(..., help="Source name"),
) -> None:
    """Disable a source and save the flag to the sources file."""
    registry = _registry()

    if not registry.disable_source(name):
        rprint(f"[red]Error:[/red] Source '{name}' not found")
        raise typer.Exit(1)
    _save_enabled(registry, name)
    rprint(f"[yellow]Source '{name}' disabled[/yellow] (saved to {registry.config_path})")


@sources_app.command("adapters")
def list_source_adapters() -> None:
    """
    List available adapters.

    Examples:
        lure-catalog ingest sources adapters
    """
    adapters = list_adapters()

    if not adapters:
        rprint("[yellow]No adapters registered[/yellow]")
        return

    table = Table(title="Available Adapters")
    table.add_column("Name", style="bold")
    table.add_column("Version")
    table.add_column("Class")
    table.add_column("Manufacturer")
    table.add_column("Browser")

    for adapter_name in adapters:
        info = get_adapter_info(adapter_name)
        if info:
            table.add_row(info["name"], info["version"], info["class"], info["manufacturer"], info["browser"])

    console.print(table)


# Jobs subcommands


@jobs_app.command("status")
def job_status(
    job_id: str = typer.Argument(..., help="Job ID to check"),
) -> None:
    """
    Check the status of a background job.

    Examples:
        lure-catalog ingest jobs status abc123
    """
    from lure_catalog.ingestion.jobs import get_job_status

    try:
        result = asyncio.run(get_job_status(job_id))
    except Exception as e:
        rprint(f"[red]Error:[/red] Failed to get job status: {e}")
        rprint("\nMake sure Redis is running")
        raise typer.Exit(1)

    if result is None:
        rprint(f"[yellow]Job '{job_id}' not found[/yellow]")
        raise typer.Exit(1)

    rprint(f"\n[bold]Job: {job_id}[/bold]")
    rprint(f"  Function: {result.get('function') or 'unknown'}")
    rprint(f"  Status: {result.get('status', 'unknown')}")

    job_result = result.get("result")
    if isinstance(job_result, dict) and "results" in job_result:
        _display_pipeline_result(job_result)
    elif job_result:
        rprint(f"  Result: {job_result}")


def _display_pipeline_result(result: dict) -> None:
    """Display a pipeline summary followed by one line per entry."""
    rprint("\n[bold]Summary:[/bold]")
    if result.get("dry_run"):
        rprint("  [yellow]DRY RUN: nothing was written[/yellow]")
    rprint(f"  Pending: {result.get('pending_total', 0)}")
    rprint(f"  Processed: {result.get('processed', 0)}")
    rprint(f"  Done: [green]{result.get('done', 0)}[/green]")
    rprint(f"  Error: [red]{result.get('error', 0)}[/red]")
    if result.get("skipped"):
        rprint(f"  Skipped: {result['skipped']}")
    rprint(f"  Rows written: {result.get('rows_written', 0)}")
    rprint(f"  Colors processed: {result.get('colors_processed', 0)}")
    rprint(f"  Elapsed: {result.get('elapsed_seconds', 0):.1f}s")
    if result.get("deployed"):
        rprint("  Deploy: [green]triggered[/green]")

    entries = result.get("results", [])
    if entries:
        rprint("")
    for entry in entries:
        outcome = entry.get("outcome")
        if outcome == EntryOutcome.SUCCESS.value:
            tag = "[green][OK][/green]"
        elif outcome == EntryOutcome.ERROR.value:
            tag = "[red][FAIL][/red]"
        else:
            tag = "[yellow][SKIP][/yellow]"
        label = entry.get("name") or entry.get("url")
        rprint(f"  {tag} {escape(str(label))}: {escape(entry.get('message', ''))}")
