"""
SOULS Adapter
=============

souls.jp is a WordPress site. Product pages carry specs as inline text
(``14g, 90mm``) or in a small table, and colors as figure/figcaption
pairs or captioned slider images.
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
    meta_description,
    page_text,
    spec_table_texts,
    title_name,
)
from lure_catalog.ingestion.adapters.parsing import (
    absolutize,
    clamp_length,
    clamp_weights,
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
    (r"スプーン|spoon", "スプーン"),
    (r"メタルジグ|metal\s*jig|ジグ", "メタルジグ"),
    (r"バイブレーション|vibration", "バイブレーション"),
    (r"クランク|crank", "クランクベイト"),
    (r"ジョイント|joint", "ジョイントルアー"),
    (r"トップウォーター|topwater", "トップウォーター"),
    (r"プラグ|plug", "プラグ"),
    (r"ワーム|worm", "ワーム"),
]
DEFAULT_TYPE = "トラウトルアー"

TARGET_FISH_KEYWORDS = [
    (r"トラウト|trout|マス|鱒", "トラウト"),
    (r"サクラマス|桜鱒", "サクラマス"),
    (r"イワナ|岩魚", "イワナ"),
    (r"ヤマメ|山女", "ヤマメ"),
    (r"サーモン|鮭|サケ", "サーモン"),
    (r"シーバス|スズキ", "シーバス"),
    (r"青物", "青物"),
]
DEFAULT_TARGET_FISH = ["トラウト"]

# "14g, 90mm"
INLINE_SPEC_RE = re.compile(r"(\d+(?:\.\d+)?)\s*g[,、]\s*(\d+)\s*mm")

# Category pages that are not products themselves
CATEGORY_SLUGS = {"trout-lure"}


class SoulsAdapter(BaseAdapter):
    """Adapter for souls.jp product pages."""

    ADAPTER_NAME = "souls"
    ADAPTER_VERSION = "1.0.0"

    MANUFACTURER = "SOULS"
    SOURCE_SLUG = "souls"
    SITE_BASE = "https://souls.jp"
    LISTING_URLS = ("https://souls.jp/products/trout-lure/",)
    PRODUCT_LINK_PATTERN = r"^https?://(?:www\.)?souls\.jp/products/(?!trout-lure/?$)[^?#]+$"

    def parse(self, html: str, url: str) -> ScrapedProduct:
        soup = make_soup(html)

        name = first_heading(soup) or title_name(soup, brand_pattern="SOULS")
        if not name:
            raise ParseError(url, "name")

        slug = slug_from_url(url)
        if not slug or slug in CATEGORY_SLUGS:
            slug = slugify(name)

        main_image = (
            meta_content(soup, "og:image")
            or first_image(soup, r"product|slider|gallery|wp-content/uploads")
            or first_image(soup)
        )
        main_image = absolutize(main_image, url)

        description = meta_description(soup) or first_paragraph(
            soup, r"spec|スペック|カラー|color|価格|price|copyright"
        )

        body = page_text(soup)
        price = parse_price(body)
        weights = parse_weights(body)
        length = parse_length(body)

        for table_text in spec_table_texts(soup):
            weights = weights or parse_weights(table_text)
            length = length if length is not None else parse_length(table_text)
            price = price or parse_price(table_text)

        if not weights:
            match = INLINE_SPEC_RE.search(body)
            if match:
                weights = clamp_weights([float(match.group(1))])
                if length is None:
                    length = clamp_length(float(match.group(2)))

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
        seen: set[str] = set()
        colors = figure_colors(soup, url, seen)
        if not colors:
            colors = alt_text_colors(soup, url, seen)
        return colors
