"""
Lure Catalog Ingestion Framework
================================

This package turns manufacturer product pages into catalog rows.

Pipeline Stages:
1. Discovery - Adapters list product URLs; the gap detector enqueues new ones
2. Fetch - PageFetcher / BrowserFetcher with per-source politeness
3. Parse - Adapters extract name, spec, colors and images from HTML/JSON
4. Expand - One row per color x weight, keyed for idempotent upserts
5. Persist - Catalog upsert and workflow status update
6. Publish - Optional image rehosting and deploy hook

Heavier modules (adapters, pipeline, gaps, jobs) are imported from their
own modules.
"""

from lure_catalog.ingestion.crawler import (
    BrowserFetcher,
    PageFetcher,
    PolitenessGate,
    TokenBucket,
)
from lure_catalog.ingestion.registry import (
    GlobalConfig,
    PolitenessConfig,
    SourceConfig,
    SourceRegistry,
    get_default_registry,
    reset_default_registry,
)
from lure_catalog.ingestion.workflow import (
    InMemoryWorkflowStore,
    SqlWorkflowStore,
    WorkflowStore,
)

__all__ = [
    # Registry
    "SourceRegistry",
    "SourceConfig",
    "PolitenessConfig",
    "GlobalConfig",
    "get_default_registry",
    "reset_default_registry",
    # Crawler
    "PageFetcher",
    "BrowserFetcher",
    "PolitenessGate",
    "TokenBucket",
    # Workflow
    "WorkflowStore",
    "SqlWorkflowStore",
    "InMemoryWorkflowStore",
]
