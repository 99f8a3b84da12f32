"""
SIGNAL Adapter
==============

signal-lure.com serves sparse static pages: the product name is often
only in an image alt, and colors are usually one combined chart image.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from lure_catalog.core.errors import ParseError
from lure_catalog.core.schema import ColorSwatch, ScrapedProduct
from lure_catalog.ingestion.adapters.base import BaseAdapter, make_soup
from lure_catalog.ingestion.adapters.html import (
    alt_text_colors,
    figure_colors,
    first_heading,
    first_image,
    first_paragraph,
    img_src,
    meta_description,
    page_text,
    spec_table_texts,
    title_name,
)
from lure_catalog.ingestion.adapters.parsing import (
    absolutize,
    classify,
    derive_target_fish,
    meta_content,
    parse_length,
    parse_price,
    parse_weights,
    slug_from_url,
    slugify,
)

TYPE_KEYWORDS = [
    (r"ミノー|minnow", "ミノー"),
    (r"バイブレーション|vibration", "バイブレーション"),
    (r"シンキングペンシル|シンペン|sinking\s*pencil", "シンキングペンシル"),
    (r"ペンシル|pencil", "ペンシルベイト"),
    (r"ポッパー|popper", "ポッパー"),
    (r"クランク|crank", "クランクベイト"),
    (r"スイムベイト|swim\s*bait|swimmer", "スイムベイト"),
    (r"バズベイト|buzz", "バズベイト"),
    (r"クローラー|crawler", "クローラーベイト"),
    (r"ビッグベイト|big\s*bait", "ビッグベイト"),
    (r"ワーム|worm|soft", "ワーム"),
    (r"メタルジグ|metal\s*jig|ジグ", "メタルジグ"),
    (r"スプーン|spoon", "スプーン"),
    (r"プラグ|plug", "プラグ"),
]
DEFAULT_TYPE = "ルアー"

TARGET_FISH_KEYWORDS = [
    (r"シーバス|スズキ", "シーバス"),
    (r"ブラックバス|バス釣り|bass", "ブラックバス"),
    (r"ナマズ|鯰|catfish", "ナマズ"),
    (r"ヒラメ|マゴチ|フラット", "ヒラメ"),
    (r"青物|ショアジギ", "青物"),
    (r"トラウト|trout", "トラウト"),
]
DEFAULT_TARGET_FISH = ["シーバス"]

COLOR_CHART_NAME = "カラーチャート"
SITE_NAME_RE = re.compile(r"SIGNAL|シグナル|公式")


def lure_image_alt(soup: BeautifulSoup) -> str:
    """Alt text of the first image whose src points at a lure picture."""
    for img in soup.find_all("img"):
        alt = (img.get("alt") or "").strip()
        if alt and "lure" in img_src(img).lower():
            return alt
    return ""


class SignalAdapter(BaseAdapter):
    """Adapter for signal-lure.com product pages."""

    ADAPTER_NAME = "signal"
    ADAPTER_VERSION = "1.0.0"

    MANUFACTURER = "SIGNAL"
    SOURCE_SLUG = "signal"
    SITE_BASE = "http://www.signal-lure.com"
    LISTING_URLS = ("http://www.signal-lure.com/product.html",)
    PRODUCT_LINK_PATTERN = r"^https?://(?:www\.)?signal-lure\.com/(?:products?/)?[a-z0-9_-]+\.html$"

    def parse(self, html: str, url: str) -> ScrapedProduct:
        soup = make_soup(html)

        name = first_heading(soup) or title_name(soup, brand_pattern="SIGNAL")
        if not name or SITE_NAME_RE.search(name):
            name = lure_image_alt(soup) or name
        if not name:
            raise ParseError(url, "name")

        slug = slug_from_url(url) or slugify(name)

        main_image = (
            first_image(soup, r"(?:lure|product)[^\"']*\.(?:jpe?g|png|webp|gif)")
            or meta_content(soup, "og:image")
            or first_image(soup)
        )
        main_image = absolutize(main_image, url)

        description = meta_description(soup) or first_paragraph(soup, r"copyright|©|menu|nav")

        body = page_text(soup)
        price = parse_price(body)
        weights = parse_weights(body)
        length = parse_length(body)
        for table_text in spec_table_texts(soup):
            weights = weights or parse_weights(table_text)
            length = length if length is not None else parse_length(table_text)
            price = price or parse_price(table_text)

        colors = self._locate_colors(soup, url)

        return self.build_product(
            url,
            name=name,
            slug=slug,
            category=classify(f"{name} {description}", TYPE_KEYWORDS, DEFAULT_TYPE),
            target_species=derive_target_fish(f"{name} {description}", TARGET_FISH_KEYWORDS, DEFAULT_TARGET_FISH),
            description=description,
            price=price,
            colors=colors,
            weights=sorted(set(weights)),
            length_mm=length,
            main_image=main_image,
        )

    def _locate_colors(self, soup: BeautifulSoup, url: str) -> list[ColorSwatch]:
        colors: list[ColorSwatch] = []
        seen: set[str] = set()

        chart = first_image(soup, r"color")
        if chart:
            colors.append(ColorSwatch(name=COLOR_CHART_NAME, image_url=absolutize(chart, url)))
            seen.add(COLOR_CHART_NAME)

        colors.extend(figure_colors(soup, url, seen))
        if len(colors) <= 1:
            colors.extend(alt_text_colors(soup, url, seen, skip_pattern=r"^$", src_pattern=r"color|カラー"))
        return colors
