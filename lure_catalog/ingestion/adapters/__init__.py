"""
Adapter Registry Module
=======================

Central registry for source-specific adapters.
Provides factory functions for creating adapters by name. The mapping is
static: adding a source means adding one entry here and one block in
sources.yaml.
"""

from __future__ import annotations

from typing import Any, Type

from lure_catalog.ingestion.adapters.base import BaseAdapter, DiscoveredProduct
from lure_catalog.ingestion.adapters.boreas import BoreasAdapter
from lure_catalog.ingestion.adapters.megabass import MegabassAdapter
from lure_catalog.ingestion.adapters.sample import SampleAdapter
from lure_catalog.ingestion.adapters.signal import SignalAdapter
from lure_catalog.ingestion.adapters.souls import SoulsAdapter
from lure_catalog.ingestion.adapters.thirtyfour import ThirtyfourAdapter
from lure_catalog.ingestion.adapters.tict import TictAdapter
from lure_catalog.ingestion.adapters.viva import VivaAdapter
from lure_catalog.ingestion.crawler import BrowserFetcher, PageFetcher


# Registry mapping adapter names to their classes
ADAPTER_REGISTRY: dict[str, Type[BaseAdapter]] = {
    "boreas": BoreasAdapter,
    "megabass": MegabassAdapter,
    "sample": SampleAdapter,
    "signal": SignalAdapter,
    "souls": SoulsAdapter,
    "thirtyfour": ThirtyfourAdapter,
    "tict": TictAdapter,
    "viva": VivaAdapter,
}


def lookup(source_id: str) -> Type[BaseAdapter] | None:
    """
    Resolve a source identifier to its adapter class.

    Args:
        source_id: Adapter name (normally the manufacturer slug)

    Returns:
        Adapter class, or None if no adapter handles the source
    """
    return ADAPTER_REGISTRY.get(source_id)


def get_adapter(
    adapter_type: str,
    config: dict[str, Any] | None = None,
    fetcher: PageFetcher | None = None,
    browser: BrowserFetcher | None = None,
) -> BaseAdapter | None:
    """
    Get an adapter instance by type name.

    Args:
        adapter_type: Name of the adapter (e.g., "megabass")
        config: Optional adapter configuration from sources.yaml
        fetcher: Shared HTTP fetcher
        browser: Shared browser renderer

    Returns:
        Adapter instance, or None if type not found
    """
    adapter_class = lookup(adapter_type)
    if adapter_class is None:
        return None
    return adapter_class(config, fetcher=fetcher, browser=browser)


def list_adapters() -> list[str]:
    """
    List all registered adapter names.

    Returns:
        List of adapter type names
    """
    return list(ADAPTER_REGISTRY.keys())


def get_adapter_info(adapter_type: str) -> dict[str, str] | None:
    """
    Get information about an adapter type.

    Args:
        adapter_type: Name of the adapter

    Returns:
        Dict with adapter info, or None if not found
    """
    adapter_class = lookup(adapter_type)
    if adapter_class is None:
        return None

    return {
        "name": adapter_class.ADAPTER_NAME,
        "version": adapter_class.ADAPTER_VERSION,
        "class": adapter_class.__name__,
        "manufacturer": adapter_class.MANUFACTURER,
        "site": adapter_class.SITE_BASE,
        "browser": "yes" if adapter_class.REQUIRES_BROWSER else "no",
    }


__all__ = [
    # Registry functions
    "lookup",
    "get_adapter",
    "list_adapters",
    "get_adapter_info",
    "ADAPTER_REGISTRY",
    # Base classes
    "BaseAdapter",
    "DiscoveredProduct",
    # Concrete adapters
    "BoreasAdapter",
    "MegabassAdapter",
    "SampleAdapter",
    "SignalAdapter",
    "SoulsAdapter",
    "ThirtyfourAdapter",
    "TictAdapter",
    "VivaAdapter",
]
