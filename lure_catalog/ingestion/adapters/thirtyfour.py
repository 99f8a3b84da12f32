"""
34 (THIRTY FOUR) Adapter
========================

34net.jp is WordPress with a custom theme. Specs live in
``table.product_tbl`` th/td pairs (length in inches), colors in
``li.cosGrid_Inner4`` tiles.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from lure_catalog.core.errors import ParseError
from lure_catalog.core.schema import ColorSwatch, ScrapedProduct
from lure_catalog.ingestion.adapters.base import BaseAdapter, make_soup
from lure_catalog.ingestion.adapters.html import first_image, img_src
from lure_catalog.ingestion.adapters.parsing import (
    absolutize,
    clamp_length,
    clamp_price,
    clamp_weights,
    inches_to_mm,
    node_text,
    normalize_fullwidth,
    slug_from_url,
)

DEFAULT_TYPE = "ワーム"
TARGET_FISH = ["アジ", "メバル"]

# "MEDUSA - アジング ライトゲーム フィッシング｜THIRTY34FOUR（サーティフォー）"
TITLE_SUFFIX_RE = re.compile(r"\s*[-–—]\s*(?:アジング|THIRTY).*$", re.IGNORECASE)
INCH_SUFFIX_RE = re.compile(r"\s*\d+\.?\d*\s*in\.?$", re.IGNORECASE)
KATAKANA_RE = re.compile(r"[゠-ヿ]")
LATIN_START_RE = re.compile(r"^[A-Za-z]")
JAN_RE = re.compile(r"JAN|^\d{10,}")
IMAGE_FILE_RE = re.compile(r"\.(?:jpe?g|png|webp)", re.IGNORECASE)


def resolve_names(title: str, heading: str) -> tuple[str, str]:
    """
    Pick the Latin name and the kana reading from ``<title>`` and the h3.

    Returns:
        (name, name_kana)
    """
    name = TITLE_SUFFIX_RE.sub("", title).strip()
    heading = INCH_SUFFIX_RE.sub("", heading).strip()
    if not heading or heading == name:
        return name, ""
    if KATAKANA_RE.search(name) and LATIN_START_RE.match(heading):
        return heading, name
    if LATIN_START_RE.match(name) and KATAKANA_RE.search(heading):
        return name, heading
    return name, ""


def spec_rows(soup: BeautifulSoup) -> dict[str, str]:
    """``table.product_tbl`` as a label -> value mapping."""
    table = soup.find("table", class_="product_tbl")
    rows: dict[str, str] = {}
    if table is None:
        return rows
    for tr in table.find_all("tr"):
        th, td = tr.find("th"), tr.find("td")
        label, value = node_text(th), node_text(td)
        if label and value:
            rows[label] = value
    return rows


def length_from_spec(value: str) -> float | None:
    value = normalize_fullwidth(value)
    if match := re.search(r"(\d+(?:\.\d+)?)\s*in", value, re.IGNORECASE):
        return clamp_length(float(round(inches_to_mm(float(match.group(1))))))
    if match := re.search(r"(\d+(?:\.\d+)?)\s*mm", value, re.IGNORECASE):
        return clamp_length(float(round(float(match.group(1)))))
    return None


def weights_from_spec(value: str) -> list[float]:
    grams = re.findall(r"(\d+(?:\.\d+)?)\s*g", normalize_fullwidth(value), re.IGNORECASE)
    return clamp_weights(float(g) for g in grams)


def price_from_spec(value: str) -> int:
    value = normalize_fullwidth(value)
    match = re.search(r"(\d[\d,]*)\s*円\s*[（(]?\s*税込", value) or re.search(r"(\d[\d,]*)\s*円", value)
    return clamp_price(int(match.group(1).replace(",", ""))) if match else 0


def tile_colors(soup: BeautifulSoup, base_url: str) -> list[ColorSwatch]:
    colors: list[ColorSwatch] = []
    for tile in soup.find_all("li", class_="cosGrid_Inner4"):
        image = ""
        for link in tile.find_all("a", href=True):
            if IMAGE_FILE_RE.search(link["href"]):
                image = link["href"]
                break
        if not image:
            for img in tile.find_all("img"):
                if IMAGE_FILE_RE.search(img_src(img)):
                    image = img_src(img)
                    break

        name = ""
        for strong in tile.find_all("strong"):
            text = node_text(strong)
            if text and not JAN_RE.search(text):
                name = text
                break

        colors.append(
            ColorSwatch(
                name=name or f"カラー{len(colors) + 1:02d}",
                image_url=absolutize(image, base_url) if image else "",
            )
        )
    return colors


class ThirtyfourAdapter(BaseAdapter):
    """Adapter for 34net.jp worm pages."""

    ADAPTER_NAME = "thirtyfour"
    ADAPTER_VERSION = "1.0.0"

    MANUFACTURER = "34"
    SOURCE_SLUG = "thirtyfour"
    SITE_BASE = "https://34net.jp"
    LISTING_URLS = ("https://34net.jp/products/worm/",)
    PRODUCT_LINK_PATTERN = r"^https?://(?:www\.)?34net\.jp/products/worm/[^/?#]+/?$"

    def parse(self, html: str, url: str) -> ScrapedProduct:
        soup = make_soup(html)

        heading = node_text(soup.find("h3", class_=re.compile(r"^modProductsContent-Title")))
        name, name_kana = resolve_names(node_text(soup.find("title")), heading)
        if not name:
            raise ParseError(url, "name")

        spec = spec_rows(soup)
        length = length_from_spec(spec.get("全長", ""))
        weights = weights_from_spec(spec.get("重量") or spec.get("重さ") or "")
        price = price_from_spec(spec.get("販売価格") or spec.get("価格") or "")

        main_image = absolutize(first_image(soup, r"34net\.jp/wp-content/uploads/.*\.(?:jpe?g|png|webp)"), url)

        return self.build_product(
            url,
            name=name,
            name_kana=name_kana,
            slug=slug_from_url(url),
            category=DEFAULT_TYPE,
            target_species=list(TARGET_FISH),
            price=price,
            colors=tile_colors(soup, url),
            weights=weights,
            length_mm=length,
            main_image=main_image,
        )
