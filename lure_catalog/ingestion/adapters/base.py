"""
Adapter Base Module
===================

Defines the abstract base class for source-specific adapters.
Adapters are responsible for:
1. Discovering product URLs from a source's listing pages
2. Extracting structured lure data from one product page
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from lure_catalog.core.errors import ParseError
from lure_catalog.core.schema import RawRecord, ScrapedProduct
from lure_catalog.ingestion.adapters.parsing import absolutize, node_text
from lure_catalog.ingestion.crawler import BrowserFetcher, PageFetcher

logger = logging.getLogger(__name__)


@dataclass
class DiscoveredProduct:
    """A product link found on a listing page."""

    url: str
    name: str = ""


def make_soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


class BaseAdapter(ABC):
    """
    Abstract base class for source-specific adapters.

    Subclasses must implement:
    - parse: Locate name, price/spec, colors and main image in page HTML

    Subclasses usually override the class attributes below; ``discover``
    and ``parse_listing`` work for any source whose listing pages link
    products with plain anchors.
    """

    # Adapter identification (override in subclasses)
    ADAPTER_NAME: str = "base"
    ADAPTER_VERSION: str = "1.0.0"

    MANUFACTURER: str = ""
    SOURCE_SLUG: str = ""
    SITE_BASE: str = ""
    LISTING_URLS: tuple[str, ...] = ()
    PRODUCT_LINK_PATTERN: str | None = None
    ENCODING: str | None = None
    REQUIRES_BROWSER: bool = False

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        fetcher: PageFetcher | None = None,
        browser: BrowserFetcher | None = None,
    ) -> None:
        """
        Initialize the adapter.

        Args:
            config: Adapter settings from sources.yaml (see SourceConfig.adapter_config)
            fetcher: HTTP fetcher, shared across adapters by the pipeline
            browser: Renderer for adapters that need a browser
        """
        self.config = config or {}
        self.fetcher = fetcher or PageFetcher()
        self.browser = browser

    @property
    def manufacturer(self) -> str:
        return self.config.get("manufacturer") or self.MANUFACTURER

    @property
    def manufacturer_slug(self) -> str:
        return self.config.get("manufacturer_slug") or self.SOURCE_SLUG

    @property
    def listing_urls(self) -> list[str]:
        return list(self.config.get("listing_urls") or self.LISTING_URLS)

    def owns_url(self, url: str) -> bool:
        """Check that a URL is on this adapter's site."""
        host = (urlparse(url).hostname or "").removeprefix("www.")
        site = (urlparse(self.SITE_BASE).hostname or "").removeprefix("www.")
        return bool(host) and (not site or host == site or host.endswith(f".{site}"))

    async def fetch_page(self, url: str) -> str:
        """Fetch raw page HTML, rendering it in a browser when required."""
        if self.REQUIRES_BROWSER:
            browser = self.browser or BrowserFetcher(headed=bool(self.config.get("headed")))
            return await browser.render(url)
        return await self.fetcher.fetch_text(url, encoding=self.ENCODING)

    @abstractmethod
    def parse(self, html: str, url: str) -> ScrapedProduct:
        """
        Extract product data from page content.

        Args:
            html: Page HTML (or JSON text for API-backed sources)
            url: URL the content was fetched from

        Returns:
            ScrapedProduct with everything that could be located

        Raises:
            ParseError: If the product name cannot be located
        """
        pass

    def build_product(self, url: str, **fields: Any) -> ScrapedProduct:
        """ScrapedProduct carrying this adapter's manufacturer identity."""
        fields.setdefault("manufacturer", self.manufacturer)
        fields.setdefault("manufacturer_slug", self.manufacturer_slug)
        return ScrapedProduct(source_url=url, **fields)

    async def scrape(self, url: str) -> ScrapedProduct:
        """
        Fetch and parse one product page.

        Raises:
            FetchError: On network or HTTP failure
            ParseError: If the URL is foreign or the name/image is missing
        """
        if not self.owns_url(url):
            raise ParseError(url, "url", f"{url} does not belong to source '{self.manufacturer_slug}'")

        html = await self.fetch_page(url)
        product = self.parse(html, url)
        if not product.main_image and not any(c.image_url for c in product.colors):
            raise ParseError(url, "image")

        logger.debug(
            f"Parsed {product.name} ({len(product.colors)} colors, {len(product.weights)} weights) from {url}"
        )
        return product

    async def extract(self, url: str) -> list[RawRecord]:
        """Scrape one page and expand it into catalog rows."""
        product = await self.scrape(url)
        return product.to_records()

    def parse_listing(self, html: str, base_url: str) -> list[DiscoveredProduct]:
        """Collect product links from a listing page, in page order."""
        if not self.PRODUCT_LINK_PATTERN:
            return []
        pattern = re.compile(self.PRODUCT_LINK_PATTERN)
        soup = make_soup(html)

        found: dict[str, DiscoveredProduct] = {}
        for link in soup.find_all("a", href=True):
            url = absolutize(link["href"], base_url).split("#")[0]
            if not pattern.search(url):
                continue
            name = node_text(link)
            if not name:
                img = link.find("img")
                name = (img.get("alt") or "").strip() if img else ""
            if url not in found:
                found[url] = DiscoveredProduct(url=url, name=name)
            elif name and not found[url].name:
                found[url].name = name
        return list(found.values())

    async def discover(self) -> list[DiscoveredProduct]:
        """
        Find every product URL currently listed by the source.

        Raises:
            FetchError: If a listing page cannot be fetched
        """
        found: dict[str, DiscoveredProduct] = {}
        for listing_url in self.listing_urls:
            html = await self.fetch_page(listing_url)
            for product in self.parse_listing(html, listing_url):
                found.setdefault(product.url, product)
        logger.info(f"Discovered {len(found)} product URLs for {self.manufacturer_slug}")
        return list(found.values())

