"""
BOREAS Adapter
==============

BOREAS sells through a Shopify store, so product data comes from the
storefront JSON API instead of HTML: ``{product_url}.json`` for one
product and ``/products.json?limit=250&page=N`` for discovery. Variants
map to colors; the store also carries apparel and terminal tackle that
discovery filters out.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from lure_catalog.core.errors import ParseError
from lure_catalog.core.pagination import aiter_numbered_pages
from lure_catalog.core.schema import ColorSwatch, ScrapedProduct
from lure_catalog.ingestion.adapters.base import BaseAdapter, DiscoveredProduct
from lure_catalog.ingestion.adapters.parsing import (
    clamp_length,
    clamp_price,
    clamp_weight,
    inches_to_mm,
    oz_to_grams,
    strip_html,
    truncate,
)

logger = logging.getLogger(__name__)

SHOP_BASE = "https://flashpointonlineshop.com"
PAGE_SIZE = 250
PAGE_DELAY = 0.5

VENDOR = "BOREAS"
EXCLUDED_HANDLES = {"anostsinker", "anostsinkertg", "anostsinkerftb", "anosttube"}
EXCLUDED_TYPES = ("cap", "hat", "t-shirt", "tee", "apparel", "sticker", "wear", "sinker")
EXCLUDED_TAGS = ("sinker", "tube", "cap", "sticker", "wear", "shirt")
EXCLUDED_TITLE_WORDS = ("キャップ", "tシャツ", "ステッカー", "sinker", "シンカー", "tube", "チューブ", "デニム")

TARGET_FISH = ["ブラックバス"]
DESCRIPTION_LIMIT = 1000

TITLE_PREFIX_RE = re.compile(r"^BOREAS\s*/\s*", re.IGNORECASE)
TITLE_INCHES_RE = re.compile(r"(\d+(?:\.\d+)?)[\"”＂]")
GRAMS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*g(?:\s|$|[,)])", re.IGNORECASE)
OZ_FRACTION_RE = re.compile(r"(\d+)/(\d+)\s*oz", re.IGNORECASE)
OZ_DECIMAL_RE = re.compile(r"(\d+(?:\.\d+)?)\s*oz", re.IGNORECASE)
COLOR_NUMBER_RE = re.compile(r"^#\d+\s*")


def detect_type(product_type: str, title: str) -> str:
    text = f"{product_type} {title}".lower()
    if any(word in text for word in ("soft bait", "worm", "straight", "slider", "devil")):
        return "ワーム"
    if "chatter" in text:
        return "チャターベイト"
    if "jig" in text:
        return "ラバージグ"
    if "flacker" in text or "blade" in text:
        return "ブレードベイト"
    return "ルアー"


def length_from_title(title: str) -> float | None:
    """``ANOSTRAIGHT 7"`` -> 178 mm."""
    match = TITLE_INCHES_RE.search(title)
    if not match:
        return None
    return clamp_length(float(round(inches_to_mm(float(match.group(1))))))


def weight_from_text(text: str) -> float | None:
    """Grams, then ``3/8oz``, then ``0.5oz``; None when absent or implausible."""
    weight: float | None = None
    if match := GRAMS_RE.search(text):
        weight = float(match.group(1))
    elif match := OZ_FRACTION_RE.search(text):
        numerator, denominator = int(match.group(1)), int(match.group(2))
        if denominator:
            weight = oz_to_grams(numerator / denominator)
    elif match := OZ_DECIMAL_RE.search(text):
        weight = oz_to_grams(float(match.group(1)))
    return clamp_weight(weight)


def clean_color_name(raw: str) -> str:
    """``#1グリーンパンプキン`` -> ``グリーンパンプキン``."""
    cleaned = COLOR_NUMBER_RE.sub("", raw).strip()
    return cleaned or raw.lstrip("#").strip()


def _tags(product: dict[str, Any]) -> list[str]:
    tags = product.get("tags") or []
    if isinstance(tags, str):
        tags = tags.split(",")
    return [t.strip().lower() for t in tags if t.strip()]


def is_lure(product: dict[str, Any]) -> bool:
    """Vendor, handle, product type, tag and title filters."""
    if (product.get("vendor") or "").upper() != VENDOR:
        return False
    if (product.get("handle") or "").lower() in EXCLUDED_HANDLES:
        return False
    product_type = (product.get("product_type") or "").lower()
    if any(word in product_type for word in EXCLUDED_TYPES):
        return False
    if any(word in tag for tag in _tags(product) for word in EXCLUDED_TAGS):
        return False
    title = (product.get("title") or "").lower()
    return not any(word in title for word in EXCLUDED_TITLE_WORDS)


def variant_colors(product: dict[str, Any]) -> list[ColorSwatch]:
    """One swatch per distinct variant color, with the variant's image."""
    images = product.get("images") or []
    image_by_id = {image.get("id"): image.get("src", "") for image in images}

    seen: set[str] = set()
    colors: list[ColorSwatch] = []
    for variant in product.get("variants") or []:
        raw = variant.get("option1") or variant.get("title") or "Default"
        if raw == "Default Title":
            continue
        name = clean_color_name(raw)
        if name in seen:
            continue
        seen.add(name)
        colors.append(ColorSwatch(name=name, image_url=image_by_id.get(variant.get("image_id"), "")))

    # No variant images: assign the gallery after the hero shot in order
    if colors and not any(c.image_url for c in colors) and len(images) > 1:
        for color, image in zip(colors, images[1:]):
            color.image_url = image.get("src", "")
    return colors


class BoreasAdapter(BaseAdapter):
    """Adapter for BOREAS products on the Flashpoint Shopify store."""

    ADAPTER_NAME = "boreas"
    ADAPTER_VERSION = "1.0.0"

    MANUFACTURER = "BOREAS"
    SOURCE_SLUG = "boreas"
    SITE_BASE = SHOP_BASE

    async def fetch_page(self, url: str) -> str:
        """Fetch the product's JSON representation."""
        return await self.fetcher.fetch_text(f"{url.split('?')[0].rstrip('/')}.json")

    def parse(self, html: str, url: str) -> ScrapedProduct:
        try:
            data = json.loads(html)
        except ValueError as e:
            raise ParseError(url, "product", f"Invalid product JSON at {url}: {e}") from e
        product = data.get("product", data) if isinstance(data, dict) else {}

        name = TITLE_PREFIX_RE.sub("", product.get("title") or "").strip()
        if not name:
            raise ParseError(url, "name")

        category = detect_type(product.get("product_type") or "", name)
        body = product.get("body_html") or ""
        weight = weight_from_text(name) or weight_from_text(body)

        variants = product.get("variants") or []
        try:
            price = clamp_price(round(float(variants[0].get("price") or 0))) if variants else 0
        except (TypeError, ValueError):
            price = 0

        images = product.get("images") or []
        main_image = images[0].get("src", "") if images else ""

        return self.build_product(
            url,
            name=name,
            slug=product.get("handle") or url.rstrip("/").rsplit("/", 1)[-1],
            category=category,
            target_species=list(TARGET_FISH),
            description=truncate(strip_html(body), DESCRIPTION_LIMIT),
            price=price,
            colors=variant_colors(product),
            weights=[weight] if weight else [],
            length_mm=length_from_title(name),
            main_image=main_image,
        )

    async def discover(self) -> list[DiscoveredProduct]:
        """Page through the store's product API and keep BOREAS lures."""

        async def fetch_page(page_number: int, limit: int) -> list[dict[str, Any]]:
            data = await self.fetcher.fetch_json(f"{SHOP_BASE}/products.json?limit={limit}&page={page_number}")
            return data.get("products") or []

        found: list[DiscoveredProduct] = []
        total = 0
        async for page in aiter_numbered_pages(fetch_page, PAGE_SIZE, delay=PAGE_DELAY):
            total += len(page)
            for product in page:
                if is_lure(product):
                    name = TITLE_PREFIX_RE.sub("", product.get("title") or "").strip()
                    found.append(DiscoveredProduct(url=f"{SHOP_BASE}/products/{product['handle']}", name=name))
        logger.info(f"BOREAS: {len(found)} lures out of {total} store products")
        return found
