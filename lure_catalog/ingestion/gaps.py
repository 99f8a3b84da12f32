"""
Gap Detector Module
===================

Reconciles each source's live listing and the workflow queue against the
catalog:

1. New-product detection: listed URLs missing from the workflow queue are
   enqueued as pending (after the source's exclusion rules).
2. Data-loss detection: done entries with no catalog rows are reset to
   pending so the pipeline re-ingests them.

A failure while checking one source is recorded on that source's report
and never stops the other sources.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from lure_catalog.core.enums import WorkflowStatus
from lure_catalog.core.schema import WorkflowEntry
from lure_catalog.db.repositories import CatalogRepository
from lure_catalog.ingestion.adapters import get_adapter
from lure_catalog.ingestion.adapters.base import BaseAdapter, DiscoveredProduct
from lure_catalog.ingestion.crawler import BrowserFetcher, PageFetcher
from lure_catalog.ingestion.registry import SourceConfig, SourceRegistry
from lure_catalog.ingestion.workflow import WorkflowStore

logger = logging.getLogger(__name__)

WRITE_DELAY = 0.2
WRITE_BATCH_SIZE = 10
RESET_BATCH_SIZE = 10
RESET_PAUSE = 0.25


def normalize_url(url: str) -> str:
    """
    Canonical form of a product URL for comparison.

    Trims whitespace, forces the ``www`` host for BlueBlue and strips one
    trailing slash.
    """
    normalized = url.strip()
    normalized = normalized.replace("https://bluebluefishing.com", "https://www.bluebluefishing.com")
    if normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized


def discovery_note(today: date) -> str:
    """Note written on entries enqueued by discovery."""
    return f"自動検出 ({today.isoformat()})"


@dataclass
class SourceGapReport:
    """Gap check outcome for one source."""

    source_id: str
    listed: int = 0
    new_products: list[DiscoveredProduct] = field(default_factory=list)
    excluded: list[DiscoveredProduct] = field(default_factory=list)
    enqueued: int = 0
    missing_rows: list[WorkflowEntry] = field(default_factory=list)
    reset: int = 0
    stuck: list[WorkflowEntry] = field(default_factory=list)
    errored: list[WorkflowEntry] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def has_gaps(self) -> bool:
        return bool(self.new_products or self.missing_rows)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "listed": self.listed,
            "new": [p.url for p in self.new_products],
            "excluded": [p.url for p in self.excluded],
            "enqueued": self.enqueued,
            "missing_rows": [e.url for e in self.missing_rows],
            "reset": self.reset,
            "stuck": [e.url for e in self.stuck],
            "errored": [e.url for e in self.errored],
            "error": self.error,
        }


@dataclass
class GapReport:
    """Gap check outcome across sources."""

    dry_run: bool = False
    sources: list[SourceGapReport] = field(default_factory=list)

    @property
    def new_count(self) -> int:
        return sum(len(s.new_products) for s in self.sources)

    @property
    def enqueued(self) -> int:
        return sum(s.enqueued for s in self.sources)

    @property
    def missing_count(self) -> int:
        return sum(len(s.missing_rows) for s in self.sources)

    @property
    def reset(self) -> int:
        return sum(s.reset for s in self.sources)

    @property
    def failed_sources(self) -> list[str]:
        return [s.source_id for s in self.sources if not s.ok]

    def to_dict(self) -> dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "new": self.new_count,
            "enqueued": self.enqueued,
            "missing_rows": self.missing_count,
            "reset": self.reset,
            "failed_sources": self.failed_sources,
            "sources": [s.to_dict() for s in self.sources],
        }


class GapDetector:
    """
    Per-source reconciliation of listing, workflow queue and catalog.

    The workflow store and catalog sessions are injected; the registry
    decides which sources are checked and how their listings are read.
    """

    def __init__(
        self,
        workflow: WorkflowStore,
        session_factory: sessionmaker[Session],
        registry: SourceRegistry,
        fetcher: PageFetcher | None = None,
        browser: BrowserFetcher | None = None,
        write_delay: float = WRITE_DELAY,
        write_batch_size: int = WRITE_BATCH_SIZE,
        reset_batch_size: int = RESET_BATCH_SIZE,
        reset_pause: float = RESET_PAUSE,
        today: date | None = None,
    ) -> None:
        self.workflow = workflow
        self.session_factory = session_factory
        self.registry = registry
        self.fetcher = fetcher
        self.browser = browser
        self.write_delay = write_delay
        self.write_batch_size = max(1, write_batch_size)
        self.reset_batch_size = max(1, reset_batch_size)
        self.reset_pause = reset_pause
        self.today = today

    def _adapter_for(self, source: SourceConfig) -> BaseAdapter | None:
        return get_adapter(source.adapter, source.adapter_config(), self.fetcher, self.browser)

    # ------------------------------------------------------------------
    # New products
    # ------------------------------------------------------------------

    async def detect_new_products(
        self, source: SourceConfig, adapter: BaseAdapter
    ) -> tuple[int, list[DiscoveredProduct], list[DiscoveredProduct]]:
        """
        Compare the live listing against the workflow queue.

        Returns:
            (distinct listed URLs, new products, excluded products)

        Raises:
            FetchError: If the listing cannot be fetched
        """
        known = {normalize_url(url) for url in self.workflow.known_urls()}

        listed: dict[str, DiscoveredProduct] = {}
        for product in await adapter.discover():
            url = normalize_url(product.url)
            if url and url not in listed:
                listed[url] = DiscoveredProduct(url=url, name=product.name)

        new_products = []
        excluded = []
        for url, product in listed.items():
            if url in known:
                continue
            if source.is_excluded(url, product.name):
                logger.info(f"  Skipping (excluded): {product.name or url}")
                excluded.append(product)
                continue
            new_products.append(product)

        logger.info(
            f"[{source.name}] {len(listed)} on site, {len(new_products)} new, {len(excluded)} excluded"
        )
        return len(listed), new_products, excluded

    async def enqueue_new(self, source_id: str, products: list[DiscoveredProduct]) -> int:
        """Enqueue discovered products as pending, pacing the writes."""
        note = discovery_note(self.today or date.today())
        enqueued = 0
        for start in range(0, len(products), self.write_batch_size):
            for product in products[start : start + self.write_batch_size]:
                entry = self.workflow.enqueue(product.url, source_id, name=product.name, note=note)
                if entry is None:
                    logger.debug(f"Already queued: {product.url}")
                    continue
                enqueued += 1
                logger.info(f"  Registered: [{source_id}] {product.name or product.url}")
                if self.write_delay:
                    await asyncio.sleep(self.write_delay)
        return enqueued

    # ------------------------------------------------------------------
    # Data loss
    # ------------------------------------------------------------------

    def detect_data_loss(self, source_id: str) -> list[WorkflowEntry]:
        """Done entries of a source whose URL has no catalog rows."""
        with self.session_factory() as session:
            urls = CatalogRepository(session).source_urls_with_rows(source_id)
        with_rows = {normalize_url(url) for url in urls}

        return [
            entry
            for entry in self.workflow.list_entries(source_id, WorkflowStatus.DONE)
            if normalize_url(entry.url) not in with_rows
        ]

    async def repair(self, entries: list[WorkflowEntry]) -> int:
        """Reset entries back to pending in paced batches, clearing the note."""
        reset = 0
        for start in range(0, len(entries), self.reset_batch_size):
            batch = entries[start : start + self.reset_batch_size]
            reset += self.workflow.reset(batch, note="")
            if start + self.reset_batch_size < len(entries) and self.reset_pause:
                await asyncio.sleep(self.reset_pause)
        return reset

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def check_source(self, source_id: str, dry_run: bool = False, repair: bool = True) -> SourceGapReport:
        """
        Run both checks for one source.

        Args:
            source_id: Source name from sources.yaml
            dry_run: Report without touching the workflow queue
            repair: Reset done entries whose rows are missing

        Returns:
            SourceGapReport; ``error`` is set if the check failed
        """
        report = SourceGapReport(source_id=source_id)
        logger.info(f"--- {source_id} ---")

        try:
            source = self.registry.get_source(source_id)
            if source is None:
                report.error = f"Unknown source: {source_id}"
                return report

            adapter = self._adapter_for(source)
            if adapter is None:
                report.error = f'No adapter registered for source "{source_id}"'
                return report

            report.listed, report.new_products, report.excluded = await self.detect_new_products(source, adapter)
            if report.new_products and not dry_run:
                report.enqueued = await self.enqueue_new(source_id, report.new_products)

            report.missing_rows = self.detect_data_loss(source_id)
            report.stuck = self.workflow.list_entries(source_id, WorkflowStatus.IN_PROGRESS)
            report.errored = self.workflow.list_entries(source_id, WorkflowStatus.ERROR)

            if report.missing_rows:
                logger.warning(f"[{source_id}] {len(report.missing_rows)} done entries have no catalog rows")
                if repair and not dry_run:
                    report.reset = await self.repair(report.missing_rows)
            if report.stuck:
                logger.warning(f"[{source_id}] {len(report.stuck)} entries stuck in progress")
        except Exception as e:
            logger.exception(f"Gap check failed for {source_id}")
            report.error = f"{e.__class__.__name__}: {e}"

        return report

    async def run(self, source_id: str | None = None, dry_run: bool = False, repair: bool = True) -> GapReport:
        """
        Check one source, or every enabled source.

        Args:
            source_id: Restrict to one source
            dry_run: Report without touching the workflow queue
            repair: Reset done entries whose rows are missing

        Returns:
            GapReport with one SourceGapReport per source checked
        """
        report = GapReport(dry_run=dry_run)
        if source_id:
            source_ids = [source_id]
        else:
            source_ids = [s.name for s in self.registry.list_enabled_sources()]

        logger.info(f"Gap check for {len(source_ids)} sources" + (" (dry run)" if dry_run else ""))
        for name in source_ids:
            report.sources.append(await self.check_source(name, dry_run=dry_run, repair=repair))

        logger.info(
            f"Gap check finished: {report.new_count} new, {report.enqueued} enqueued, "
            f"{report.missing_count} missing rows, {report.reset} reset"
        )
        return report
