"""BeautifulSoup locators reused by the static-HTML adapters."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Comment, Tag

from lure_catalog.core.schema import ColorSwatch
from lure_catalog.ingestion.adapters.parsing import (
    absolutize,
    collapse_whitespace,
    meta_content,
    node_text,
    truncate,
)

IMAGE_EXT_RE = re.compile(r"\.(?:jpe?g|png|webp|gif)(?:\?|$)", re.IGNORECASE)
SPEC_TABLE_RE = re.compile(r"重量|ウエイト|weight|全長|length|価格|price|円", re.IGNORECASE)
TITLE_SUFFIX_RE = re.compile(r"\s*[|｜–—].*$")

DESCRIPTION_LIMIT = 500
HIDDEN_TAGS = {"script", "style", "noscript", "title", "head"}


def page_text(soup: BeautifulSoup) -> str:
    """Visible text of a page, skipping scripts, styles and comments."""
    parts = [
        str(text)
        for text in soup.find_all(string=True)
        if not isinstance(text, Comment) and text.parent.name not in HIDDEN_TAGS
    ]
    return collapse_whitespace(" ".join(parts))


def first_heading(soup: BeautifulSoup, levels: tuple[str, ...] = ("h1", "h2")) -> str:
    for level in levels:
        text = node_text(soup.find(level))
        if text:
            return text
    return ""


def title_name(soup: BeautifulSoup, brand_pattern: str | None = None) -> str:
    """``<title>`` (then og:title) with the site suffix removed."""
    title = node_text(soup.find("title"))
    name = TITLE_SUFFIX_RE.sub("", title)
    if brand_pattern:
        name = re.sub(rf"\s*{brand_pattern}.*$", "", name, flags=re.IGNORECASE)
    name = name.strip()
    if not name:
        name = TITLE_SUFFIX_RE.sub("", meta_content(soup, "og:title")).strip()
    return name


def img_src(img: Tag) -> str:
    src = img.get("src") or img.get("data-src") or ""
    return src.strip() if isinstance(src, str) else ""


def first_image(soup: BeautifulSoup | Tag, src_pattern: str | None = None) -> str:
    """src of the first ``<img>`` whose src matches, or any image file when no pattern."""
    regex = re.compile(src_pattern, re.IGNORECASE) if src_pattern else IMAGE_EXT_RE
    for img in soup.find_all("img"):
        src = img_src(img)
        if src and regex.search(src):
            return src
    return ""


def meta_description(soup: BeautifulSoup, min_length: int = 20) -> str:
    content = meta_content(soup, "description")
    if len(content) > min_length:
        return truncate(collapse_whitespace(content), DESCRIPTION_LIMIT)
    return ""


def first_paragraph(soup: BeautifulSoup, skip_pattern: str, min_length: int = 30) -> str:
    """First ``<p>`` longer than ``min_length`` whose opening does not match ``skip_pattern``."""
    skip = re.compile(skip_pattern, re.IGNORECASE)
    for p in soup.find_all("p"):
        text = node_text(p)
        if len(text) > min_length and not skip.search(text[:30]):
            return truncate(text, DESCRIPTION_LIMIT)
    return ""


def spec_table_texts(soup: BeautifulSoup) -> list[str]:
    """Text of every table that looks like a spec table."""
    texts = []
    for table in soup.find_all("table"):
        text = node_text(table)
        if SPEC_TABLE_RE.search(text):
            texts.append(text)
    return texts


def figure_colors(soup: BeautifulSoup, base_url: str, seen: set[str]) -> list[ColorSwatch]:
    """``<figure><img><figcaption>`` swatches."""
    colors = []
    for figure in soup.find_all("figure"):
        img = figure.find("img")
        caption = node_text(figure.find("figcaption"))
        if img is None or not caption or caption in seen:
            continue
        src = img_src(img)
        if not src:
            continue
        seen.add(caption)
        colors.append(ColorSwatch(name=caption, image_url=absolutize(src, base_url)))
    return colors


def alt_text_colors(
    soup: BeautifulSoup,
    base_url: str,
    seen: set[str],
    skip_pattern: str = r"logo|banner|icon|arrow|slider",
    src_pattern: str | None = None,
) -> list[ColorSwatch]:
    """Swatches from image alt text, skipping site chrome."""
    skip = re.compile(skip_pattern, re.IGNORECASE)
    src_re = re.compile(src_pattern, re.IGNORECASE) if src_pattern else IMAGE_EXT_RE
    colors = []
    for img in soup.find_all("img"):
        alt = (img.get("alt") or img.get("title") or "").strip()
        src = img_src(img)
        if not alt or not src or not src_re.search(src):
            continue
        if not 1 < len(alt) < 50 or alt in seen or skip.search(alt):
            continue
        seen.add(alt)
        colors.append(ColorSwatch(name=alt, image_url=absolutize(src, base_url)))
    return colors
