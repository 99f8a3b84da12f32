"""
Sample Adapter Module
=====================

Mock adapter for pipeline validation without network access.
Provides synthetic lure pages for testing the full ingestion flow.
"""

from __future__ import annotations

import json
from typing import Any

from lure_catalog.core.errors import FetchError, ParseError
from lure_catalog.core.schema import ColorSwatch, ScrapedProduct
from lure_catalog.ingestion.adapters.base import BaseAdapter, DiscoveredProduct
from lure_catalog.ingestion.adapters.parsing import slugify
from lure_catalog.ingestion.crawler import BrowserFetcher, PageFetcher

# Sample lure data covering various page shapes
SAMPLE_LURES: list[dict[str, Any]] = [
    {
        "name": "Alpha Minnow 90",
        "name_kana": "アルファミノー90",
        "category": "ミノー",
        "target_fish": ["シーバス"],
        "price": 1650,
        "weight_prices": {10.0: 1650, 14.0: 1760},
        "weights": [10.0, 14.0],
        "length_mm": 90.0,
        "colors": [
            {"name": "イワシ", "image": "https://sample.lure-catalog.local/img/alpha-90-01.jpg"},
            {"name": "チャートバック", "image": "https://sample.lure-catalog.local/img/alpha-90-02.jpg"},
        ],
        "description": "Shallow-running minnow for river mouths.",
    },
    {
        "name": "Beta Vib 70",
        "name_kana": "ベータバイブ70",
        "category": "バイブレーション",
        "target_fish": ["シーバス", "ブラックバス"],
        "price": 1430,
        "weights": [18.0],
        "length_mm": 70.0,
        "colors": [
            {"name": "レッドヘッド", "image": "https://sample.lure-catalog.local/img/beta-70-01.jpg"},
            {"name": "ゴールド", "image": "https://sample.lure-catalog.local/img/beta-70-02.jpg"},
            {"name": "マットチャート", "image": "https://sample.lure-catalog.local/img/beta-70-03.jpg"},
        ],
        "description": "Tight-wobbling vibration for deep water.",
    },
    {
        "name": "Gamma Shad 3in",
        "category": "ワーム",
        "target_fish": ["ブラックバス"],
        "price": 880,
        "weights": [],
        "length_mm": 76.0,
        "colors": [
            {"name": "グリーンパンプキン", "image": "https://sample.lure-catalog.local/img/gamma-3-01.jpg"},
        ],
        "description": "",
    },
    {
        "name": "Delta Spoon",
        "category": "スプーン",
        "target_fish": ["トラウト"],
        "price": 0,
        "weights": [1.6, 2.2, 3.0],
        "length_mm": None,
        "colors": [],
        "main_image": "https://sample.lure-catalog.local/img/delta.jpg",
        "description": "Area trout spoon. Price on request.",
    },
]


class SampleAdapter(BaseAdapter):
    """
    Sample adapter that serves built-in lure pages.

    Useful for:
    - Testing the full ingestion pipeline without network access
    - Exercising the series aggregation on known data
    - Demonstrating the system to users
    """

    ADAPTER_NAME = "sample"
    ADAPTER_VERSION = "1.0.0"

    MANUFACTURER = "Sample Tackle"
    SOURCE_SLUG = "sample"
    SITE_BASE = "https://sample.lure-catalog.local"
    BASE_URL = "https://sample.lure-catalog.local/products"

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        fetcher: PageFetcher | None = None,
        browser: BrowserFetcher | None = None,
    ) -> None:
        super().__init__(config, fetcher, browser)
        self._lures = SAMPLE_LURES.copy()

        # Allow custom sample data via config
        if config and "sample_lures" in config:
            self._lures = config["sample_lures"]

    def _index(self, url: str) -> int:
        try:
            index = int(url.rstrip("/").split("/")[-1])
        except ValueError:
            raise ParseError(url, "url", f"Not a sample product URL: {url}") from None
        if not 0 <= index < len(self._lures):
            raise FetchError(url, "Sample product not found", status_code=404)
        return index

    async def fetch_page(self, url: str) -> str:
        """Return the sample product as JSON; no network access."""
        index = self._index(url)
        return json.dumps({"index": index, "lure": self._lures[index]}, ensure_ascii=False)

    def parse(self, html: str, url: str) -> ScrapedProduct:
        try:
            lure = json.loads(html)["lure"]
        except (ValueError, KeyError) as e:
            raise ParseError(url, "lure", f"Invalid sample page at {url}: {e}") from e

        if not lure.get("name"):
            raise ParseError(url, "name")

        colors = [ColorSwatch(name=c["name"], image_url=c.get("image", "")) for c in lure.get("colors", [])]
        # JSON turns float keys into strings
        weight_prices = {float(k): int(v) for k, v in (lure.get("weight_prices") or {}).items()}

        return self.build_product(
            url,
            name=lure["name"],
            name_kana=lure.get("name_kana", ""),
            slug=lure.get("slug") or slugify(lure["name"]),
            category=lure.get("category", "ルアー"),
            target_species=list(lure.get("target_fish", [])),
            description=lure.get("description", ""),
            price=int(lure.get("price") or 0),
            weight_prices=weight_prices,
            colors=colors,
            weights=[float(w) for w in lure.get("weights", [])],
            length_mm=lure.get("length_mm"),
            main_image=lure.get("main_image") or (colors[0].image_url if colors else ""),
        )

    async def discover(self) -> list[DiscoveredProduct]:
        """
        Return URLs for all sample lures.

        Each lure gets a URL like: https://sample.lure-catalog.local/products/0
        """
        return [
            DiscoveredProduct(url=f"{self.BASE_URL}/{i}", name=lure.get("name", ""))
            for i, lure in enumerate(self._lures)
        ]
