"""Coverage check between the catalog, the adapter registry and sources.yaml."""

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from lure_catalog.db.repositories import CatalogRepository
from lure_catalog.ingestion.adapters import list_adapters
from lure_catalog.ingestion.registry import SourceRegistry

logger = logging.getLogger(__name__)


@dataclass
class CoverageReport:
    """Which manufacturers are covered by adapters and configured sources."""

    catalog_slugs: set[str] = field(default_factory=set)
    adapter_names: set[str] = field(default_factory=set)
    source_adapters: dict[str, str] = field(default_factory=dict)
    row_counts: dict[str, int] = field(default_factory=dict)
    ignored_adapters: set[str] = field(default_factory=set)

    @property
    def catalog_without_adapter(self) -> list[str]:
        """Manufacturers with catalog rows but no adapter to refresh them."""
        return sorted(
            slug
            for slug in self.catalog_slugs
            if slug not in self.adapter_names and self.source_adapters.get(slug) not in self.adapter_names
        )

    @property
    def adapters_without_source(self) -> list[str]:
        """Adapters no configured source points at."""
        return sorted(self.adapter_names - set(self.source_adapters.values()) - self.ignored_adapters)

    @property
    def has_gaps(self) -> bool:
        return bool(self.catalog_without_adapter or self.adapters_without_source)

    def to_dict(self) -> dict[str, Any]:
        return {
            "catalog_slugs": sorted(self.catalog_slugs),
            "adapters": sorted(self.adapter_names),
            "source_adapters": dict(sorted(self.source_adapters.items())),
            "catalog_without_adapter": self.catalog_without_adapter,
            "adapters_without_source": self.adapters_without_source,
            "row_counts": dict(sorted(self.row_counts.items())),
        }


class CoverageService:
    """Compare catalog manufacturers against adapters and sources."""

    def __init__(self, session: Session, registry: SourceRegistry, ignore_adapters: set[str] | None = None):
        """
        Initialize the coverage service.

        Args:
            session: SQLAlchemy session
            registry: Loaded source configuration
            ignore_adapters: Adapter names never expected in sources.yaml
        """
        self.session = session
        self.registry = registry
        self.ignore_adapters = ignore_adapters if ignore_adapters is not None else {"sample"}

    def check(self) -> CoverageReport:
        repo = CatalogRepository(self.session)
        slugs = repo.manufacturer_slugs()

        report = CoverageReport(
            catalog_slugs=slugs,
            adapter_names=set(list_adapters()),
            source_adapters={s.name: s.adapter for s in self.registry.list_sources()},
            row_counts={slug: repo.count(slug) for slug in slugs},
            ignored_adapters=set(self.ignore_adapters),
        )

        for slug in report.catalog_without_adapter:
            logger.warning(f"Catalog has rows for {slug} but no adapter")
        for name in report.adapters_without_source:
            logger.warning(f"Adapter {name} has no source in sources.yaml")
        return report
