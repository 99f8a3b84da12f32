"""
TICT Adapter
============

tict-net.com is hand-written static HTML in Shift_JIS. The spec table
keeps name, size/weight and price in rowspan cells; colors are a
lightbox gallery with names in ``li.name``.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from lure_catalog.core.errors import ParseError
from lure_catalog.core.schema import ColorSwatch, ScrapedProduct
from lure_catalog.ingestion.adapters.base import BaseAdapter, make_soup
from lure_catalog.ingestion.adapters.html import img_src
from lure_catalog.ingestion.adapters.parsing import (
    absolutize,
    clamp_length,
    clamp_price,
    clamp_weights,
    classify,
    inches_to_mm,
    node_text,
    normalize_fullwidth,
    slug_from_url,
)

NAME_TYPE_MAP = [
    (r"bros|ブロス", "ミノー"),
    (r"flopper|フロッパー", "ミノー"),
    (r"plapan|プラパン", "バイブレーション"),
    (r"cooljig|クールジグ", "メタルジグ"),
    (r"spinbow|スピンボウイ", "スピンテール"),
    (r"big[\s-]*hip|ビッグヒップ", "ミノー"),
    (r"ブリリアント|brilliant|briliant", "ワーム"),
    (r"アジボッコ|ajibokko", "ワーム"),
    (r"メデューサ|medusa", "ワーム"),
    (r"オクトパス|octpus", "ワーム"),
    (r"ボムシャッド|bombshad", "ワーム"),
    (r"メタボ|metabo", "ワーム"),
    (r"ギョピン|gyopin", "ワーム"),
    (r"ピーカーブー|peekaboo", "ワーム"),
    (r"フィジット|fisit|fisitnude", "ワーム"),
    (r"イカシテル|ikashiteru", "ワーム"),
    (r"プランクトン|plankton", "ワーム"),
    (r"g-ball|ジーボール", "ワーム"),
    (r"gg-claw|クロー", "ワーム"),
    (r"paddle.*claw|パドル", "ワーム"),
]
# TICT is primarily a soft-bait maker
DEFAULT_TYPE = "ワーム"
TARGET_FISH = ["アジ", "メバル"]

# "FLOPPER Bros 55 - ブロス -"
KANA_SUFFIX_RE = re.compile(r"\s*[-–—]\s*([぀-ヿ][^\s\-–—]*)\s*[-–—]\s*$")
TRAILING_DASHES_RE = re.compile(r"\s*[-–—]\s*[^-–—]*\s*[-–—]\s*$")
PRICE_RE = re.compile(r"[￥¥]\s*(\d[\d,]*)")
MM_RE = re.compile(r"(\d+(?:\.\d+)?)\s*mm", re.IGNORECASE)
GRAMS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*g(?![a-zA-Z0-9])", re.IGNORECASE)
INCH_RE = re.compile(r"(\d+(?:\.\d+)?)\s*インチ")
BARE_NUMBER_RE = re.compile(r"\b(\d{2,3})\b")


def split_name(raw: str) -> tuple[str, str]:
    """
    Split ``"FLOPPER Bros 55 - ブロス -"`` into name and kana.

    Returns:
        (name, name_kana)
    """
    kana_match = KANA_SUFFIX_RE.search(raw)
    kana = kana_match.group(1).strip() if kana_match else ""
    name = TRAILING_DASHES_RE.sub("", raw).strip()
    return name, kana


def read_spec_cells(soup: BeautifulSoup) -> tuple[int, float | None, list[float]]:
    """
    Price, length and weights from the rowspan cells of the first table.

    Returns:
        (price, length_mm, weights)
    """
    price = 0
    length: float | None = None
    weights: list[float] = []

    table = soup.find("table")
    if table is None:
        return price, length, weights

    for cell in table.find_all("td", attrs={"rowspan": True}):
        text = normalize_fullwidth(node_text(cell))
        if match := PRICE_RE.search(text):
            price = clamp_price(int(match.group(1).replace(",", ""))) or price
        if length is None and (match := MM_RE.search(text)):
            length = clamp_length(float(round(float(match.group(1)))))
        if match := GRAMS_RE.search(text):
            weights.append(float(match.group(1)))
    return price, length, clamp_weights(weights)


def length_from_name(name: str) -> float | None:
    """``1.2インチ`` in the name, else a bare 20-300 number (``Bros 55``)."""
    if match := INCH_RE.search(name):
        return clamp_length(float(round(inches_to_mm(float(match.group(1))))))
    if match := BARE_NUMBER_RE.search(name):
        number = int(match.group(1))
        if 20 <= number <= 300:
            return float(number)
    return None


def gallery_colors(soup: BeautifulSoup, base_url: str) -> list[ColorSwatch]:
    """Lightbox links paired by position with ``li.name`` labels."""
    section = soup.find(class_=re.compile(r"^worm_color\d*$"))
    if section is None:
        return []

    images = [
        absolutize(link["href"], base_url)
        for link in section.find_all("a", href=True)
        if link.has_attr("data-lightbox")
    ]
    if not images:
        images = [absolutize(img_src(img), base_url) for img in section.find_all("img") if img_src(img)]
    names = [node_text(li) for li in section.find_all("li", class_="name")]

    colors = []
    for index in range(max(len(images), len(names))):
        name = names[index] if index < len(names) else ""
        colors.append(
            ColorSwatch(
                name=name or f"カラー{index + 1:02d}",
                image_url=images[index] if index < len(images) else "",
            )
        )
    return colors


class TictAdapter(BaseAdapter):
    """Adapter for tict-net.com product pages (Shift_JIS)."""

    ADAPTER_NAME = "tict"
    ADAPTER_VERSION = "1.0.0"

    MANUFACTURER = "TICT"
    SOURCE_SLUG = "tict"
    SITE_BASE = "https://tict-net.com"
    LISTING_URLS = ("https://tict-net.com/product/",)
    PRODUCT_LINK_PATTERN = r"^https?://(?:www\.)?tict-net\.com/product/[^/?#]+\.html$"
    ENCODING = "shift_jis"

    def parse(self, html: str, url: str) -> ScrapedProduct:
        soup = make_soup(html)

        raw_name = node_text(soup.find(class_="product_mane"))
        name, name_kana = split_name(raw_name)
        if not name:
            raise ParseError(url, "name")

        main = soup.find(id="MainPhoto")
        main_src = img_src(main) if main is not None else ""
        if not main_src:
            big = soup.find("img", attrs={"width": "700"})
            main_src = img_src(big) if big is not None else ""
        main_image = absolutize(main_src, url)

        price, length, weights = read_spec_cells(soup)
        if length is None:
            length = length_from_name(name)

        return self.build_product(
            url,
            name=name,
            name_kana=name_kana,
            slug=slug_from_url(url),
            category=classify(name, NAME_TYPE_MAP, DEFAULT_TYPE),
            target_species=list(TARGET_FISH),
            price=price,
            colors=gallery_colors(soup, url),
            weights=weights,
            length_mm=length,
            main_image=main_image,
        )
