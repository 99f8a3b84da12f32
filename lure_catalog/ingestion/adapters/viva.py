"""
VIVA Adapter
============

vivanet.co.jp writes specs inline as ``58mm / 12g / ¥1,700（税別）`` (or
weight first) and lists colors as ``<li><a><img><div>#code<br>name</div></a></li>``.
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
    clamp_length,
    clamp_weight,
    classify,
    collapse_whitespace,
    derive_target_fish,
    meta_content,
    normalize_fullwidth,
    parse_length,
    parse_price,
    parse_weights,
    slug_from_url,
    slugify,
)

TYPE_KEYWORDS = [
    (r"クローラー|crawler", "クローラーベイト"),
    (r"ポッパー|popper", "ポッパー"),
    (r"バイブレーション|vibration|バイブ|vib", "バイブレーション"),
    (r"メタルバイブ|metal\s*vib", "メタルバイブ"),
    (r"ミノー|minnow", "ミノー"),
    (r"シャッド|shad", "シャッド"),
    (r"クランク|crank", "クランクベイト"),
    (r"スピナーベイト|spinner\s*bait|スピン", "スピナーベイト"),
    (r"バズベイト|buzz", "バズベイト"),
    (r"ビッグベイト|big\s*bait", "ビッグベイト"),
    (r"ワーム|worm|ネイル|サターン", "ワーム"),
    (r"スプーン|spoon", "スプーン"),
    (r"メタルジグ|metal\s*jig", "メタルジグ"),
    (r"トップウォーター|topwater|マウス|mouse", "トップウォーター"),
    (r"プラグ|plug", "プラグ"),
    (r"ブレード|blade", "ブレードベイト"),
]
DEFAULT_TYPE = "ルアー"

TARGET_FISH_KEYWORDS = [
    (r"ブラックバス|バス|bass", "ブラックバス"),
    (r"ナマズ|鯰|catfish", "ナマズ"),
    (r"トラウト|trout|マス", "トラウト"),
    (r"シーバス|スズキ", "シーバス"),
    (r"メバル|アジ|ライトゲーム", "メバル"),
]
DEFAULT_TARGET_FISH = ["ブラックバス"]

# "58mm / 12g / ¥1,700" and "12g / 58mm / ¥1,700"
LENGTH_FIRST_RE = re.compile(r"(\d+(?:\.\d+)?)\s*mm\s*/\s*(\d+(?:\.\d+)?)\s*g\s*/\s*[¥￥]\s*(\d[\d,]*)")
WEIGHT_FIRST_RE = re.compile(r"(\d+(?:\.\d+)?)\s*g\s*/\s*(\d+(?:\.\d+)?)\s*mm\s*/\s*[¥￥]\s*(\d[\d,]*)")

COLOR_CODE_RE = re.compile(r"^\s*#?\d+[A-Z]?\s*", re.IGNORECASE)


def parse_inline_spec(text: str) -> tuple[float | None, float | None, int] | None:
    """
    Read VIVA's one-line spec. Implausible numbers come back as None (or 0
    for the price).

    Returns:
        (length_mm, weight_g, price) or None
    """
    text = normalize_fullwidth(text)
    if match := LENGTH_FIRST_RE.search(text):
        length, weight, price = match.groups()
    elif match := WEIGHT_FIRST_RE.search(text):
        weight, length, price = match.groups()
    else:
        return None
    return clamp_length(float(round(float(length)))), clamp_weight(float(weight)), parse_price(f"¥{price}")


def list_colors(soup: BeautifulSoup, base_url: str, seen: set[str]) -> list[ColorSwatch]:
    """Swatches from ``<li><a><img><div>#11E<br>キンクロ</div></a></li>``."""
    colors = []
    for li in soup.find_all("li"):
        link = li.find("a")
        if link is None:
            continue
        img = link.find("img")
        label = link.find("div")
        if img is None or label is None or not img_src(img):
            continue
        raw = collapse_whitespace(label.get_text(" ", strip=True))
        key = COLOR_CODE_RE.sub("", raw).strip() or raw
        if not key or key in seen:
            continue
        seen.add(key)
        colors.append(ColorSwatch(name=raw, image_url=absolutize(img_src(img), base_url)))
    return colors


class VivaAdapter(BaseAdapter):
    """Adapter for vivanet.co.jp product pages."""

    ADAPTER_NAME = "viva"
    ADAPTER_VERSION = "1.0.0"

    MANUFACTURER = "VIVA"
    SOURCE_SLUG = "viva"
    SITE_BASE = "https://vivanet.co.jp"
    LISTING_URLS = ("https://vivanet.co.jp/viva/",)
    PRODUCT_LINK_PATTERN = r"^https?://(?:www\.)?vivanet\.co\.jp/viva/[^/?#]+/?$"

    def parse(self, html: str, url: str) -> ScrapedProduct:
        soup = make_soup(html)

        name = first_heading(soup, ("h1", "h2", "h3")) or title_name(soup, brand_pattern="Viva")
        if not name:
            raise ParseError(url, "name")

        slug = slug_from_url(url) or slugify(name)

        main_image = (
            meta_content(soup, "og:image")
            or first_image(soup, r"product|main|hero|wp-content/uploads")
            or first_image(soup)
        )
        main_image = absolutize(main_image, url)

        description = meta_description(soup) or first_paragraph(
            soup, r"spec|スペック|カラー|copyright|TOPページ"
        )

        body = page_text(soup)
        price = 0
        weights: list[float] = []
        length: float | None = None

        inline = parse_inline_spec(body)
        if inline:
            length, weight, price = inline
            weights = [weight] if weight is not None else []

        weights = weights or parse_weights(body)
        length = length if length is not None else parse_length(body)
        price = price or parse_price(body)

        for table_text in spec_table_texts(soup):
            weights = weights or parse_weights(table_text)
            length = length if length is not None else parse_length(table_text)
            price = price or parse_price(table_text)

        seen: set[str] = set()
        colors = list_colors(soup, url, seen)
        if not colors:
            colors = figure_colors(soup, url, seen)
        if not colors:
            colors = alt_text_colors(soup, url, seen, skip_pattern=r"logo|banner|icon")

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
