"""Lure Catalog CLI using Typer."""

import logging
import os
from pathlib import Path

import typer
from dotenv import load_dotenv

# Load .env file from current directory or project root
_env_paths = [
    Path.cwd() / ".env",
    Path(__file__).parent.parent.parent / ".env",
]
for _env_path in _env_paths:
    if _env_path.exists():
        load_dotenv(_env_path)
        break

from lure_catalog.cli.catalog import catalog_app  # noqa: E402
from lure_catalog.cli.ingest import ingest_app  # noqa: E402

__version__ = "0.1.0"

app = typer.Typer(
    name="lure-catalog",
    help="Lure Catalog - Japanese fishing lure catalog built from manufacturer sites",
    add_completion=False,
)
app.add_typer(ingest_app, name="ingest")
app.add_typer(catalog_app, name="catalog")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.command()
def init_db() -> None:
    """Initialize the database (create tables)."""
    from lure_catalog.db.engine import init_db as db_init

    typer.echo("Initializing database...")
    db_init()
    typer.echo("Database initialized successfully!")


@app.command()
def version() -> None:
    """Show the Lure Catalog version."""
    typer.echo(f"Lure Catalog v{__version__}")


@app.command()
def check_config() -> None:
    """Check the current configuration status."""
    from lure_catalog.core.config import Settings
    from lure_catalog.core.errors import ConfigError
    from lure_catalog.db.engine import get_database_url
    from lure_catalog.ingestion.registry import get_default_registry

    typer.echo("Lure Catalog Configuration")
    typer.echo("=" * 40)

    # Check .env file
    env_found = False
    for _env_path in _env_paths:
        if _env_path.exists():
            typer.echo(f"  .env file: {_env_path}")
            env_found = True
            break
    if not env_found:
        typer.echo("  .env file: Not found")

    # Check database
    typer.echo(f"  Database: {get_database_url()}")

    # Check sources
    try:
        registry = get_default_registry()
    except FileNotFoundError as e:
        typer.echo(f"  Sources: {e}")
        raise typer.Exit(1)
    if registry.config_path is None:
        typer.echo("  Sources: Not configured (set SOURCES_CONFIG_PATH or add config/sources.yaml)")
    else:
        enabled = len(registry.list_enabled_sources())
        typer.echo(f"  Sources: {registry.config_path} ({enabled} enabled)")

    try:
        settings = Settings.from_env()
    except ConfigError as e:
        typer.echo(f"  Settings: {e}")
        raise typer.Exit(1)
    typer.echo(f"  Image storage: {settings.image_storage_path}")
    typer.echo(f"  Image URL: {settings.image_public_url}")
    typer.echo(f"  Deploy hook: {'configured' if settings.deploy_hook_url else 'Not configured'}")
    typer.echo(f"  Redis: {os.environ.get('REDIS_HOST', 'localhost')}:{os.environ.get('REDIS_PORT', '6379')}")


if __name__ == "__main__":
    app()
