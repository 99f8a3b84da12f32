"""
Parsing Helpers
===============

Small pure functions shared by the source adapters: unit conversion,
price/weight/length extraction from Japanese product copy, slug derivation
and keyword classification. Adapters keep their own markup heuristics and
only call into this module for normalization.
"""

from __future__ import annotations

import html
import re
from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal
from urllib.parse import quote, urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from lure_catalog.core.errors import ValidationError

# Plausible ranges (exclusive bounds)
WEIGHT_RANGE_G = (0.0, 10000.0)
LENGTH_RANGE_MM = (0.0, 5000.0)
PRICE_RANGE_YEN = (0, 1_000_000)

GRAMS_PER_OZ = 28.3495
MM_PER_INCH = 25.4
TAX_RATE = Decimal("1.1")

_FULLWIDTH = str.maketrans(
    "０１２３４５６７８９．，／ｇＧｍＭ　",
    "0123456789.,/gGmM ",
)

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")

_TAX_IN_RE = re.compile(r"(\d[\d,]*)\s*円?\s*[（(]?\s*税込|税込[^\d]{0,6}(\d[\d,]*)")
_TAX_EX_RE = re.compile(
    r"(\d[\d,]*)\s*円?\s*[（(]?\s*(?:税別|税抜|\+税|＋税)|(?:税別|税抜|本体価格)[^\d]{0,6}(\d[\d,]*)"
)
_YEN_SIGN_RE = re.compile(r"[¥￥]\s*(\d[\d,]*)")
_YEN_SUFFIX_RE = re.compile(r"(\d[\d,]*)\s*円")

_GRAMS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*g(?![a-zA-Z])")
_MM_RE = re.compile(r"(\d+(?:\.\d+)?)\s*mm", re.IGNORECASE)
_CM_RE = re.compile(r"(\d+(?:\.\d+)?)\s*cm", re.IGNORECASE)

# "1.1/4oz" is written for 1 + 1/4 oz
_OZ_MIXED_RE = re.compile(r"(\d+)\.(\d+)/(\d+)\s*oz", re.IGNORECASE)
_OZ_FRACTION_RE = re.compile(r"(\d+)/(\d+)\s*oz", re.IGNORECASE)
_OZ_DECIMAL_RE = re.compile(r"(\d+(?:\.\d+)?)\s*oz", re.IGNORECASE)

_ASCII_NAME_RE = re.compile(r"^[a-zA-Z0-9\s\-_.]+$")


# ============================================================================
# Text
# ============================================================================


def normalize_fullwidth(text: str) -> str:
    """Map full-width digits and unit letters to ASCII."""
    return text.translate(_FULLWIDTH)


def collapse_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def strip_html(text: str | None) -> str:
    """Remove tags and entities, collapsing whitespace."""
    if not text:
        return ""
    if "<" not in text and "&" not in text:
        return collapse_whitespace(text)
    return collapse_whitespace(html.unescape(_TAG_RE.sub(" ", text)))


def truncate(text: str, limit: int) -> str:
    if limit <= 0:
        return ""
    return text if len(text) <= limit else text[:limit]


def node_text(node: Tag | None) -> str:
    """Visible text of a BeautifulSoup node, whitespace-collapsed."""
    if node is None:
        return ""
    return collapse_whitespace(node.get_text(" ", strip=True))


def meta_content(soup: BeautifulSoup, key: str) -> str:
    """Content of ``<meta property=key>`` or ``<meta name=key>``."""
    tag = soup.find("meta", attrs={"property": key}) or soup.find("meta", attrs={"name": key})
    if tag is None:
        return ""
    content = tag.get("content") or ""
    return content.strip() if isinstance(content, str) else ""


def absolutize(url: str, base: str) -> str:
    """Resolve ``url`` against ``base``; protocol-relative URLs get https."""
    url = (url or "").strip()
    if not url:
        return ""
    if url.startswith("//"):
        return f"https:{url}"
    return urljoin(base, url)


# ============================================================================
# Ranges
# ============================================================================


def plausible(field: str, value: float, bounds: tuple[float, float]) -> float:
    """
    Check a normalized value against exclusive bounds.

    Raises:
        ValidationError: If the value falls outside the range.
    """
    low, high = bounds
    if not low < value < high:
        raise ValidationError(field, value)
    return value


def clamp_length(value: float | None) -> float | None:
    """Length in mm, or None when missing or implausible."""
    if value is None:
        return None
    try:
        return plausible("length_mm", value, LENGTH_RANGE_MM)
    except ValidationError:
        return None


def clamp_weight(value: float | None) -> float | None:
    """Weight in grams, or None when missing or implausible."""
    if value is None:
        return None
    try:
        return plausible("weight_g", value, WEIGHT_RANGE_G)
    except ValidationError:
        return None


def clamp_weights(values: Iterable[float]) -> list[float]:
    """Plausible weights only, first-seen order, no duplicates."""
    kept: list[float] = []
    for value in values:
        weight = clamp_weight(value)
        if weight is not None and weight not in kept:
            kept.append(weight)
    return kept


def clamp_price(value: int) -> int:
    """Yen price, or 0 when implausible."""
    try:
        return int(plausible("price", value, PRICE_RANGE_YEN))
    except ValidationError:
        return 0


# ============================================================================
# Price
# ============================================================================


def _amount(match: re.Match[str]) -> int:
    raw = next(group for group in match.groups() if group)
    return int(raw.replace(",", ""))


def apply_tax(amount: int) -> int:
    """Tax-excluded price to tax-included, rounded half up."""
    return int((Decimal(amount) * TAX_RATE).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_price(text: str | None) -> int:
    """
    Extract a tax-included yen price from product copy.

    Order: an amount marked 税込 is used as-is; one marked 税別/税抜 is
    multiplied by 1.1; otherwise the first ¥/￥ amount, then the first 円
    amount. Returns 0 when nothing plausible is found.
    """
    if not text:
        return 0
    text = normalize_fullwidth(text)

    price = 0
    if match := _TAX_IN_RE.search(text):
        price = _amount(match)
    elif match := _TAX_EX_RE.search(text):
        price = apply_tax(_amount(match))
    elif match := _YEN_SIGN_RE.search(text):
        price = _amount(match)
    elif match := _YEN_SUFFIX_RE.search(text):
        price = _amount(match)

    return clamp_price(price)


# ============================================================================
# Weight / Length
# ============================================================================


def parse_weights(text: str | None) -> list[float]:
    """All gram weights in ``text``, rounded to 0.1 g, deduplicated and sorted."""
    if not text:
        return []
    grams = (round(float(m.group(1)), 1) for m in _GRAMS_RE.finditer(normalize_fullwidth(text)))
    return sorted(clamp_weights(grams))


def parse_length(text: str | None) -> float | None:
    """First length in ``text`` as millimetres (mm, or cm x 10)."""
    if not text:
        return None
    text = normalize_fullwidth(text)
    length: float | None = None
    if match := _MM_RE.search(text):
        length = float(match.group(1))
    elif match := _CM_RE.search(text):
        length = float(match.group(1)) * 10
    if length is None:
        return None
    return clamp_length(round(length, 1))


def inches_to_mm(inches: float) -> float:
    return round(inches * MM_PER_INCH, 1)


def oz_to_grams(oz: float) -> float:
    return round(oz * GRAMS_PER_OZ, 1)


def parse_oz(text: str | None) -> float | None:
    """
    Ounces written as ``1.1/4oz`` (1 + 1/4), ``3/8oz`` or ``0.5oz``.

    Returns:
        The weight in ounces, or None
    """
    if not text:
        return None
    text = normalize_fullwidth(text)
    if match := _OZ_MIXED_RE.search(text):
        whole, numerator, denominator = (int(g) for g in match.groups())
        if denominator:
            return whole + numerator / denominator
    if match := _OZ_FRACTION_RE.search(text):
        numerator, denominator = (int(g) for g in match.groups())
        if denominator:
            return numerator / denominator
    if match := _OZ_DECIMAL_RE.search(text):
        return float(match.group(1))
    return None


# ============================================================================
# Slugs
# ============================================================================


def slug_from_url(url: str) -> str:
    """
    Deterministic slug from the last path segment of a product URL.

    ``/products/Blue-Runner_90.html`` becomes ``blue-runner-90``.
    """
    segments = [s for s in urlparse(url).path.split("/") if s]
    if not segments:
        return ""
    last = re.sub(r"\.html?$", "", segments[-1], flags=re.IGNORECASE).lower()
    return re.sub(r"[^a-z0-9-]+", "-", last).strip("-")


def slugify(name: str, max_length: int = 80) -> str:
    """
    Slug from a product name.

    ASCII names become lowercase and hyphenated; anything else is
    percent-encoded so that Japanese names still map to a stable slug.
    Encoded slugs are cut at whole characters, never inside an escape.
    """
    name = name.strip()
    if _ASCII_NAME_RE.match(name):
        slug = re.sub(r"[\s_.]+", "-", name.lower())
        slug = re.sub(r"-+", "-", slug).strip("-")
        return slug[:max_length]

    slug = ""
    for char in name:
        encoded = quote(char, safe="")
        if len(slug) + len(encoded) > max_length:
            break
        slug += encoded
    return slug


# ============================================================================
# Classification
# ============================================================================


KeywordTable = Sequence[tuple[str, str]]


def classify(text: str, table: KeywordTable, default: str) -> str:
    """First category whose pattern matches ``text`` (case-insensitive)."""
    for pattern, category in table:
        if re.search(pattern, text, re.IGNORECASE):
            return category
    return default


def derive_target_fish(text: str, table: KeywordTable, default: Sequence[str] = ()) -> list[str]:
    """Every species whose pattern matches ``text``, in table order."""
    found: list[str] = []
    for pattern, species in table:
        if species not in found and re.search(pattern, text, re.IGNORECASE):
            found.append(species)
    return found or list(default)
