"""Tests for the workflow-driven ingestion pipeline."""

import asyncio
import tempfile
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from lure_catalog.core.enums import EntryOutcome, WorkflowStatus
from lure_catalog.db.models import Base
from lure_catalog.db.repositories import CatalogRepository
from lure_catalog.ingestion.adapters import ADAPTER_REGISTRY
from lure_catalog.ingestion.adapters.sample import SAMPLE_LURES, SampleAdapter
from lure_catalog.ingestion.pipeline import NO_URL_NOTE, IngestionPipeline, success_note
from lure_catalog.ingestion.registry import PolitenessConfig, SourceConfig, SourceRegistry
from lure_catalog.ingestion.workflow import InMemoryWorkflowStore, SqlWorkflowStore
from lure_catalog.services.series import SeriesService

SAMPLE_URL = "https://sample.lure-catalog.local/products"


@pytest.fixture
def session_factory():
    """Session factory on a temporary SQLite database."""
    with tempfile.TemporaryDirectory() as tmpdir:
        engine = create_engine(f"sqlite:///{Path(tmpdir) / 'test.db'}", echo=False)
        Base.metadata.create_all(engine)
        yield sessionmaker(bind=engine)
        engine.dispose()


@pytest.fixture
def workflow(session_factory) -> SqlWorkflowStore:
    return SqlWorkflowStore(session_factory)


def make_registry(**custom_config) -> SourceRegistry:
    registry = SourceRegistry()
    registry.add_source(
        SourceConfig(
            name="sample",
            domain="sample.lure-catalog.local",
            adapter="sample",
            display_name="Sample Tackle",
            politeness=PolitenessConfig(min_delay_ms=0, max_concurrency=4),
            custom_config=custom_config,
        )
    )
    return registry


def lure(name: str, colors: int = 1) -> dict:
    return {
        "name": name,
        "price": 1100,
        "weights": [7.0],
        "colors": [
            {"name": f"Color {i}", "image": f"https://sample.lure-catalog.local/img/{i}.jpg"}
            for i in range(colors)
        ],
    }


class TestSuccessNote:
    """Tests for the completion note."""

    def test_format(self) -> None:
        assert success_note(3, 2, 6) == "3色 x 2ウェイト = 6行挿入"


class TestIngestionPipeline:
    """Tests for IngestionPipeline against a SQLite catalog."""

    def test_requires_session_factory_unless_dry_run(self) -> None:
        with pytest.raises(ValueError):
            IngestionPipeline(InMemoryWorkflowStore(), None, make_registry())

    @pytest.mark.asyncio
    async def test_alpha_product_end_to_end(self, session_factory, workflow) -> None:
        workflow.enqueue(f"{SAMPLE_URL}/0", "sample", name="Alpha Minnow 90")
        pipeline = IngestionPipeline(workflow, session_factory, make_registry())

        result = await pipeline.run()

        assert result.done_count == 1
        assert result.error_count == 0
        assert result.rows_written == 4

        [entry] = workflow.list_entries()
        assert entry.status == WorkflowStatus.DONE
        assert entry.note == "2色 x 2ウェイト = 4行挿入"

        with session_factory() as session:
            assert CatalogRepository(session).count() == 4
            [series] = SeriesService(session).list_series()

        assert series.name == "Alpha Minnow 90"
        assert series.manufacturer == "Sample Tackle"
        assert series.color_count == 4
        assert series.price_range.as_tuple() == (1650, 1760)
        assert series.weight_range is not None
        assert series.weight_range.as_tuple() == (10.0, 14.0)
        assert series.target_species == ["シーバス"]

    @pytest.mark.asyncio
    async def test_partial_failure_does_not_abort_batch(self, session_factory, workflow) -> None:
        lures = [lure("One"), lure("Two"), lure(""), lure("Four"), lure("Five")]
        for i in range(5):
            workflow.enqueue(f"{SAMPLE_URL}/{i}", "sample")
        pipeline = IngestionPipeline(workflow, session_factory, make_registry(sample_lures=lures))

        result = await pipeline.run()

        assert result.done_count == 4
        assert result.error_count == 1
        assert len(result.results) == 5
        assert [r.outcome for r in result.results].index(EntryOutcome.ERROR) == 2

        entries = {e.url: e for e in workflow.list_entries()}
        failed = entries[f"{SAMPLE_URL}/2"]
        assert failed.status == WorkflowStatus.ERROR
        assert "name" in failed.note
        for i in (0, 1, 3, 4):
            entry = entries[f"{SAMPLE_URL}/{i}"]
            assert entry.status == WorkflowStatus.DONE
            assert entry.note == "1色 x 1ウェイト = 1行挿入"

        with session_factory() as session:
            assert CatalogRepository(session).count() == 4

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, session_factory, workflow) -> None:
        for i in range(len(SAMPLE_LURES)):
            workflow.enqueue(f"{SAMPLE_URL}/{i}", "sample")
        registry = make_registry()

        await IngestionPipeline(workflow, session_factory, registry).run()
        with session_factory() as session:
            first_count = CatalogRepository(session).count()

        workflow.reset(workflow.list_entries(status=WorkflowStatus.DONE))
        second = await IngestionPipeline(workflow, session_factory, registry).run()

        with session_factory() as session:
            assert CatalogRepository(session).count() == first_count
        # 4 + 3 + 1 + 3
        assert first_count == 11
        assert second.done_count == 4
        assert all(r.rows_created == 0 for r in second.results)
        alpha = next(e for e in workflow.list_entries() if e.url == f"{SAMPLE_URL}/0")
        assert alpha.note == "2色 x 2ウェイト = 4行挿入"

    @pytest.mark.asyncio
    async def test_limit(self, session_factory, workflow) -> None:
        for i in range(len(SAMPLE_LURES)):
            workflow.enqueue(f"{SAMPLE_URL}/{i}", "sample")
        pipeline = IngestionPipeline(workflow, session_factory, make_registry())

        result = await pipeline.run(limit=2)

        assert result.pending_total == 4
        assert len(result.results) == 2
        assert len(workflow.list_pending()) == 2

    @pytest.mark.asyncio
    async def test_source_filter(self, session_factory, workflow) -> None:
        workflow.enqueue(f"{SAMPLE_URL}/0", "sample")
        workflow.enqueue("https://www.megabass.co.jp/site/products/vision_110/", "megabass")
        pipeline = IngestionPipeline(workflow, session_factory, make_registry())

        result = await pipeline.run(source_id="sample")

        assert len(result.results) == 1
        assert workflow.list_pending() and workflow.list_pending()[0].source_id == "megabass"

    @pytest.mark.asyncio
    async def test_empty_url_is_recorded(self, session_factory, workflow) -> None:
        workflow.enqueue("   ", "sample")
        pipeline = IngestionPipeline(workflow, session_factory, make_registry())

        result = await pipeline.run()

        assert result.error_count == 1
        [entry] = workflow.list_entries()
        assert entry.status == WorkflowStatus.ERROR
        assert entry.note == NO_URL_NOTE

    @pytest.mark.asyncio
    async def test_unknown_source_is_recorded(self, session_factory, workflow) -> None:
        workflow.enqueue("https://unknown.example.jp/products/1", "unknown")
        pipeline = IngestionPipeline(workflow, session_factory, make_registry())

        await pipeline.run()

        [entry] = workflow.list_entries()
        assert entry.status == WorkflowStatus.ERROR
        assert entry.note.startswith('No adapter registered for source "unknown"')
        assert "megabass" in entry.note

    @pytest.mark.asyncio
    async def test_fetch_failure_is_recorded(self, session_factory, workflow) -> None:
        workflow.enqueue(f"{SAMPLE_URL}/99", "sample")
        pipeline = IngestionPipeline(workflow, session_factory, make_registry())

        result = await pipeline.run()

        assert result.error_count == 1
        [entry] = workflow.list_entries()
        assert entry.note == "Sample product not found"

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self) -> None:
        workflow = InMemoryWorkflowStore()
        workflow.enqueue(f"{SAMPLE_URL}/0", "sample")
        pipeline = IngestionPipeline(workflow, None, make_registry(), dry_run=True)

        result = await pipeline.run()

        assert result.dry_run
        assert result.done_count == 1
        assert len(result.results[0].records) == 4
        assert result.results[0].message == "4 rows (dry run)"
        assert len(workflow.list_pending()) == 1

    @pytest.mark.asyncio
    async def test_claimed_entry_is_skipped(self, session_factory, workflow) -> None:
        workflow.enqueue(f"{SAMPLE_URL}/0", "sample")
        entry = workflow.list_pending()[0]
        stale = entry.model_copy()
        workflow.claim(entry)
        pipeline = IngestionPipeline(workflow, session_factory, make_registry())

        result = await pipeline.process_entry(stale)

        assert result.outcome == EntryOutcome.SKIPPED

    @pytest.mark.asyncio
    async def test_cancellation_releases_claim(self, session_factory, monkeypatch: pytest.MonkeyPatch) -> None:
        started = asyncio.Event()

        class SlowAdapter(SampleAdapter):
            ADAPTER_NAME = "slow"

            async def fetch_page(self, url: str) -> str:
                started.set()
                await asyncio.sleep(30)
                return await super().fetch_page(url)

        monkeypatch.setitem(ADAPTER_REGISTRY, "slow", SlowAdapter)
        workflow = InMemoryWorkflowStore()
        workflow.enqueue(f"{SAMPLE_URL}/0", "slow")
        pipeline = IngestionPipeline(workflow, session_factory, SourceRegistry())

        task = asyncio.create_task(pipeline.run())
        await asyncio.wait_for(started.wait(), timeout=5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        [entry] = workflow.list_entries()
        assert entry.status == WorkflowStatus.PENDING
