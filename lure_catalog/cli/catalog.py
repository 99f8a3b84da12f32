"""
Catalog CLI Commands
====================

Read-side commands: series list, single series view and coverage check.
"""

from __future__ import annotations

from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from lure_catalog.core.errors import LureCatalogError
from lure_catalog.core.schema import ValueRange

console = Console()
catalog_app = typer.Typer(help="Catalog read commands")


def _format_range(value: ValueRange | None, unit: str = "") -> str:
    if value is None:
        return "-"
    if value.min == value.max:
        return f"{value.min:g}{unit}"
    return f"{value.min:g}-{value.max:g}{unit}"


@catalog_app.command("series")
def list_series(
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Only this manufacturer slug"),
    limit: int = typer.Option(20, "--limit", "-l", help="Maximum series to show (0 = all)"),
) -> None:
    """
    Show catalog rows grouped into series, newest first.

    Examples:
        lure-catalog catalog series --source megabass
        lure-catalog catalog series --limit 0
    """
    from lure_catalog.db.engine import get_session, init_db
    from lure_catalog.services.series import SeriesService

    try:
        init_db()
        with get_session() as session:
            series = SeriesService(session).list_series(source)
    except SQLAlchemyError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if not series:
        rprint("[yellow]No catalog rows found[/yellow]")
        return

    shown = series[:limit] if limit > 0 else series

    table = Table(title=f"Series ({len(shown)} of {len(series)})")
    table.add_column("Name", style="bold")
    table.add_column("Manufacturer")
    table.add_column("Type")
    table.add_column("Colors", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Weight", justify="right")
    table.add_column("Length", justify="right")
    table.add_column("Target")

    for item in shown:
        table.add_row(
            escape(item.name),
            escape(item.manufacturer),
            escape(item.category),
            str(item.color_count),
            _format_range(item.price_range, "円"),
            _format_range(item.weight_range, "g"),
            _format_range(item.length_range, "mm"),
            escape(", ".join(item.target_species)),
        )

    console.print(table)


@catalog_app.command("show")
def show_series(
    slug: str = typer.Argument(..., help="Product slug"),
    source: Optional[str] = typer.Option(None, "--source", "-s", help="Manufacturer slug owning the product"),
) -> None:
    """
    Show one series with its color/weight variants.

    Examples:
        lure-catalog catalog show karashi_80
        lure-catalog catalog show product-55 --source souls
    """
    from lure_catalog.db.engine import get_session, init_db
    from lure_catalog.services.series import SeriesService

    try:
        init_db()
        with get_session() as session:
            series = SeriesService(session).get_series(slug, source)
    except (LureCatalogError, SQLAlchemyError) as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if series is None:
        rprint(f"[yellow]Series '{escape(slug)}' not found[/yellow]")
        raise typer.Exit(1)

    rprint(f"\n[bold]{escape(series.name)}[/bold] ({escape(series.manufacturer)})")
    rprint(f"  Type: {escape(series.category) or '-'}")
    rprint(f"  Price: {_format_range(series.price_range, '円')}")
    rprint(f"  Weight: {_format_range(series.weight_range, 'g')}")
    rprint(f"  Length: {_format_range(series.length_range, 'mm')}")
    rprint(f"  Target: {escape(', '.join(series.target_species)) or '-'}")

    table = Table(title=f"Variants ({series.color_count})")
    table.add_column("Color")
    table.add_column("Weight", justify="right")
    table.add_column("Price", justify="right")
    for variant in series.color_variants:
        table.add_row(
            escape(variant.color_name) or "-",
            f"{variant.weight_g:g}g" if variant.weight_g else "-",
            f"{variant.price}円" if variant.price else "-",
        )
    console.print(table)


@catalog_app.command("coverage")
def coverage() -> None:
    """
    Compare catalog manufacturers with adapters and configured sources.

    Exits with status 1 when a manufacturer has rows but no adapter, or an
    adapter has no configured source.

    Examples:
        lure-catalog catalog coverage
    """
    from lure_catalog.db.engine import get_session, init_db
    from lure_catalog.ingestion.registry import get_default_registry
    from lure_catalog.services.coverage import CoverageService

    try:
        registry = get_default_registry()
        init_db()
        with get_session() as session:
            report = CoverageService(session, registry).check()
    except (FileNotFoundError, SQLAlchemyError) as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title="Catalog Coverage")
    table.add_column("Manufacturer", style="bold")
    table.add_column("Rows", justify="right")
    table.add_column("Adapter")

    for slug in sorted(report.catalog_slugs):
        adapter = report.source_adapters.get(slug, slug)
        covered = adapter in report.adapter_names
        status = f"[green]{adapter}[/green]" if covered else "[red]missing[/red]"
        table.add_row(slug, str(report.row_counts.get(slug, 0)), status)

    console.print(table)

    if report.catalog_without_adapter:
        rprint(f"\n[red]Catalog rows without adapter:[/red] {', '.join(report.catalog_without_adapter)}")
    if report.adapters_without_source:
        rprint(f"\n[yellow]Adapters without source:[/yellow] {', '.join(report.adapters_without_source)}")

    if report.has_gaps:
        raise typer.Exit(1)

    rprint("\n[green]All manufacturers covered[/green]")
