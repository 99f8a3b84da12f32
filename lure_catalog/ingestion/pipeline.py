"""
Ingestion Pipeline Module
=========================

Pulls pending workflow entries, runs the matching adapter, upserts the
resulting rows into the catalog and advances each entry's status.

Per entry:
    pending -> in_progress (claim) -> done   (rows upserted)
                                   -> error  (note = truncated message)

One failing page never aborts the batch. Entries run in a bounded worker
pool; each source additionally has its own concurrency cap and minimum
delay between requests. Cancelling a run releases any claimed but
unfinished entry back to pending.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from lure_catalog.core.enums import EntryOutcome
from lure_catalog.core.errors import LureCatalogError
from lure_catalog.core.schema import RawRecord, WorkflowEntry
from lure_catalog.db.repositories import CatalogRepository
from lure_catalog.ingestion.adapters import get_adapter, list_adapters
from lure_catalog.ingestion.adapters.base import BaseAdapter
from lure_catalog.ingestion.crawler import DEFAULT_USER_AGENT, BrowserFetcher, PageFetcher, PolitenessGate
from lure_catalog.ingestion.deploy import trigger_deploy
from lure_catalog.ingestion.images import ImageUploader
from lure_catalog.ingestion.registry import PolitenessConfig, SourceRegistry
from lure_catalog.ingestion.workflow import WorkflowStore

logger = logging.getLogger(__name__)

NO_URL_NOTE = "No URL found in record"


def success_note(colors: int, weights: int, rows: int) -> str:
    """Workflow note written when an entry completes."""
    return f"{colors}色 x {weights}ウェイト = {rows}行挿入"


@dataclass
class EntryResult:
    """Outcome of processing one workflow entry."""

    entry_id: str
    url: str
    name: str
    outcome: EntryOutcome
    message: str = ""
    colors_processed: int = 0
    rows_created: int = 0
    rows_updated: int = 0
    records: list[RawRecord] = field(default_factory=list)

    @property
    def rows_written(self) -> int:
        return self.rows_created + self.rows_updated

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "url": self.url,
            "name": self.name,
            "outcome": self.outcome.value,
            "message": self.message,
            "colors_processed": self.colors_processed,
            "rows_created": self.rows_created,
            "rows_updated": self.rows_updated,
        }


@dataclass
class PipelineResult:
    """Summary of one pipeline run."""

    dry_run: bool = False
    pending_total: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    results: list[EntryResult] = field(default_factory=list)
    deployed: bool = False

    def _count(self, outcome: EntryOutcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    @property
    def processed(self) -> int:
        return self._count(EntryOutcome.SUCCESS) + self._count(EntryOutcome.ERROR)

    @property
    def done_count(self) -> int:
        return self._count(EntryOutcome.SUCCESS)

    @property
    def error_count(self) -> int:
        return self._count(EntryOutcome.ERROR)

    @property
    def skipped_count(self) -> int:
        return self._count(EntryOutcome.SKIPPED)

    @property
    def rows_written(self) -> int:
        return sum(r.rows_written for r in self.results)

    @property
    def colors_processed(self) -> int:
        return sum(r.colors_processed for r in self.results)

    @property
    def elapsed_seconds(self) -> float:
        end = self.completed_at or datetime.now(UTC)
        return (end - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "dry_run": self.dry_run,
            "pending_total": self.pending_total,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "processed": self.processed,
            "done": self.done_count,
            "error": self.error_count,
            "skipped": self.skipped_count,
            "rows_written": self.rows_written,
            "colors_processed": self.colors_processed,
            "elapsed_seconds": round(self.elapsed_seconds, 1),
            "deployed": self.deployed,
            "results": [r.to_dict() for r in self.results],
        }


class IngestionPipeline:
    """
    Workflow-driven ingestion.

    The workflow store and the catalog session factory are injected, so a
    run can target a real database or in-memory fakes.
    """

    def __init__(
        self,
        workflow: WorkflowStore,
        session_factory: sessionmaker[Session] | None,
        registry: SourceRegistry,
        fetcher: PageFetcher | None = None,
        browser: BrowserFetcher | None = None,
        image_uploader: ImageUploader | None = None,
        deploy_hook_url: str | None = None,
        max_concurrency: int | None = None,
        dry_run: bool = False,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            workflow: Workflow store to pull entries from
            session_factory: Catalog database sessions (may be None for dry runs)
            registry: Source configurations
            fetcher: Shared HTTP fetcher (built from the global config if omitted)
            browser: Shared renderer for browser-backed adapters
            image_uploader: Rehosts color images when given
            deploy_hook_url: Deploy hook to call after a run with successes
            max_concurrency: Worker pool size (global config default)
            dry_run: Extract pages but write neither catalog nor workflow
        """
        if session_factory is None and not dry_run:
            raise ValueError("session_factory is required unless dry_run is set")

        global_config = registry.global_config
        self.workflow = workflow
        self.session_factory = session_factory
        self.registry = registry
        self.fetcher = fetcher or PageFetcher(
            user_agent=global_config.user_agent or DEFAULT_USER_AGENT,
            accept_language=global_config.accept_language,
            timeout=global_config.request_timeout,
            max_retries=global_config.max_retries,
        )
        self.browser = browser
        self.image_uploader = image_uploader
        self.deploy_hook_url = deploy_hook_url
        self.max_concurrency = max(1, max_concurrency or global_config.max_concurrency)
        self.dry_run = dry_run

        self._adapters: dict[str, BaseAdapter | None] = {}
        self._source_limits: dict[str, asyncio.Semaphore] = {}
        self._gates: dict[str, PolitenessGate] = {}

    # ------------------------------------------------------------------
    # Source resolution
    # ------------------------------------------------------------------

    def _politeness(self, source_id: str) -> PolitenessConfig:
        source = self.registry.get_source(source_id)
        if source is not None:
            return source.politeness
        return self.registry.global_config.default_politeness

    def _adapter_for(self, source_id: str) -> BaseAdapter | None:
        if source_id not in self._adapters:
            source = self.registry.get_source(source_id)
            if source is not None:
                adapter = get_adapter(source.adapter, source.adapter_config(), self.fetcher, self.browser)
            else:
                adapter = get_adapter(source_id, None, self.fetcher, self.browser)
            self._adapters[source_id] = adapter
        return self._adapters[source_id]

    def _source_limit(self, source_id: str) -> asyncio.Semaphore:
        if source_id not in self._source_limits:
            self._source_limits[source_id] = asyncio.Semaphore(self._politeness(source_id).max_concurrency)
        return self._source_limits[source_id]

    def _gate(self, source_id: str) -> PolitenessGate:
        if source_id not in self._gates:
            self._gates[source_id] = PolitenessGate(self._politeness(source_id).min_delay)
        return self._gates[source_id]

    # ------------------------------------------------------------------
    # Catalog writes
    # ------------------------------------------------------------------

    def _write_records(self, records: list[RawRecord]) -> tuple[int, int]:
        """
        Upsert one entry's rows in a single transaction.

        A concurrent writer inserting the same key first surfaces as an
        IntegrityError; the batch is retried once as updates.
        """
        if self.session_factory is None:
            raise RuntimeError("Catalog writes need a session factory")
        for attempt in range(2):
            with self.session_factory() as session:
                try:
                    created, updated = CatalogRepository(session).upsert_many(records)
                    session.commit()
                    return created, updated
                except IntegrityError:
                    session.rollback()
                    if attempt:
                        raise
                    logger.warning("Concurrent write on the same rows, retrying")
        return 0, 0

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def _fail(self, entry: WorkflowEntry, message: str) -> EntryResult:
        if not self.dry_run:
            self.workflow.fail(entry, message)
        return EntryResult(entry.id, entry.url, entry.name, EntryOutcome.ERROR, message)

    async def process_entry(self, entry: WorkflowEntry) -> EntryResult:
        """
        Claim, extract and store one entry.

        Adapter failures are recorded on the entry and returned as an
        ERROR result; they are never raised.
        """
        if not self.dry_run and not self.workflow.claim(entry):
            logger.info(f"Skipping {entry.url}: claimed by another run")
            return EntryResult(entry.id, entry.url, entry.name, EntryOutcome.SKIPPED, "Already claimed")

        try:
            return await self._process_claimed(entry)
        except asyncio.CancelledError:
            if not self.dry_run:
                self.workflow.release(entry)
                logger.warning(f"Released {entry.url} back to pending")
            raise

    async def _process_claimed(self, entry: WorkflowEntry) -> EntryResult:
        url = entry.url.strip()
        if not url:
            return self._fail(entry, NO_URL_NOTE)

        adapter = self._adapter_for(entry.source_id)
        if adapter is None:
            supported = ", ".join(list_adapters())
            return self._fail(
                entry, f'No adapter registered for source "{entry.source_id}". Supported: {supported}'
            )

        try:
            async with self._source_limit(entry.source_id):
                await self._gate(entry.source_id).wait()
                product = await adapter.scrape(url)

            logger.info(
                f"Scraped: {product.name}, {len(product.colors)} colors, "
                f"{len(product.weights)} weights, price: {product.price}"
            )

            if self.image_uploader is not None and not self.dry_run:
                product, _ = await self.image_uploader.rehost(product)

            records = product.to_records()
            result = EntryResult(
                entry.id,
                url,
                product.name,
                EntryOutcome.SUCCESS,
                colors_processed=len(product.colors),
                records=records,
            )

            if self.dry_run:
                result.message = f"{len(records)} rows (dry run)"
                return result

            result.rows_created, result.rows_updated = self._write_records(records)
            note = success_note(len(product.colors), len(product.weights) or 1, result.rows_written)
            self.workflow.complete(entry, note)
            result.message = note
            return result

        except LureCatalogError as e:
            logger.error(f"Failed to process {entry.name or url}: {e}")
            return self._fail(entry, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error processing {url}")
            return self._fail(entry, f"{e.__class__.__name__}: {e}")

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def run(self, source_id: str | None = None, limit: int = 0) -> PipelineResult:
        """
        Process pending entries.

        Args:
            source_id: Restrict to one source
            limit: Maximum entries to process (0 = all)

        Returns:
            PipelineResult with one EntryResult per entry, in queue order
        """
        result = PipelineResult(dry_run=self.dry_run)
        started = time.monotonic()

        pending = self.workflow.list_pending(source_id)
        result.pending_total = len(pending)
        entries = pending[:limit] if limit > 0 else pending

        if not entries:
            logger.info("No pending entries found")
            result.completed_at = datetime.now(UTC)
            return result

        logger.info(
            f"Processing {len(entries)} of {len(pending)} pending entries"
            + (f" (--limit {limit})" if limit > 0 else "")
        )

        pool = asyncio.Semaphore(self.max_concurrency)

        async def worker(entry: WorkflowEntry) -> EntryResult:
            async with pool:
                return await self.process_entry(entry)

        result.results = list(await asyncio.gather(*(worker(entry) for entry in entries)))
        result.completed_at = datetime.now(UTC)

        if result.done_count and self.deploy_hook_url and not self.dry_run:
            result.deployed = await trigger_deploy(self.deploy_hook_url)

        logger.info(
            f"Pipeline finished in {time.monotonic() - started:.1f}s: "
            f"{result.done_count} done, {result.error_count} error, {result.rows_written} rows"
        )
        return result

