"""
Megabass Adapter
================

megabass.co.jp builds its product pages client-side, so pages are
rendered with Playwright and the resulting DOM is read with
BeautifulSoup. Every product lives under ``/site/products/{slug}/``;
the SPEC block is a table (several data rows for multi-weight products)
or, on older pages, alternating label/value blocks. Prices are listed
tax-excluded.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from lure_catalog.core.errors import ParseError
from lure_catalog.core.schema import ColorSwatch, ScrapedProduct
from lure_catalog.ingestion.adapters.base import BaseAdapter, DiscoveredProduct, make_soup
from lure_catalog.ingestion.adapters.html import img_src
from lure_catalog.ingestion.adapters.parsing import (
    absolutize,
    apply_tax,
    clamp_length,
    clamp_price,
    clamp_weights,
    classify,
    collapse_whitespace,
    node_text,
    normalize_fullwidth,
    oz_to_grams,
    parse_oz,
    truncate,
)

logger = logging.getLogger(__name__)

MEGABASS_BASE_URL = "https://www.megabass.co.jp"

# Order matters: the generic JIG entry must come after JIG HEAD
TYPE_KEYWORDS = [
    (r"メタルジグ|METAL JIG", "メタルジグ"),
    (r"ポッパー|POPPER", "ポッパー"),
    (r"ペンシル|PENCIL", "ペンシルベイト"),
    (r"シンキングペンシル|SINKING PENCIL", "シンキングペンシル"),
    (r"ミノー|MINNOW", "ミノー"),
    (r"バイブレーション|VIBRATION", "バイブレーション"),
    (r"クランク|CRANK", "クランクベイト"),
    (r"スピナーベイト|SPINNER ?BAIT|WIRE ?BAIT", "スピナーベイト"),
    (r"バズベイト|BUZZ ?BAIT", "バズベイト"),
    (r"スイムベイト|SWIM ?BAIT", "スイムベイト"),
    (r"ジョイント|JOINT", "ジョイントベイト"),
    (r"トップウォーター|TOPWATER", "トップウォーター"),
    (r"プロップ|PROP", "プロップベイト"),
    (r"シャッド|SHAD", "シャッド"),
    (r"スプーン|SPOON", "スプーン"),
    (r"ジグヘッド|JIG ?HEAD", "ジグヘッド"),
    (r"ブレード|BLADE|SPIN ?TAIL", "ブレードベイト"),
    (r"ワーム|SOFT ?BAIT", "ワーム"),
    (r"ジグ|JIG", "メタルジグ"),
]
DEFAULT_TYPE = "ルアー"

TYPE_FISH_MAP: dict[str, list[str]] = {
    "エギ": ["イカ"],
    "スッテ": ["イカ"],
    "タイラバ": ["マダイ"],
    "テンヤ": ["マダイ"],
    "シーバスルアー": ["シーバス"],
    "ロックフィッシュ": ["ロックフィッシュ"],
    "ショアジギング": ["青物"],
    "ジギング": ["青物"],
    "サーフルアー": ["ヒラメ・マゴチ"],
    "トラウトルアー": ["トラウト"],
    "ラバージグ": ["バス"],
    "バズベイト": ["バス"],
    "フロッグ": ["バス"],
}

# Megabass names are mostly romaji; katakana readings are kept by hand
NAME_KANA_MAP: dict[str, str] = {
    "DOG-X": "ドッグエックス",
    "DOGMAX": "ドッグマックス",
    "POPX": "ポップエックス",
    "BABY POPX": "ベビーポップエックス",
    "GIANT DOG-X": "ジャイアントドッグエックス",
    "MEGADOG": "メガドッグ",
    "POPPING DUCK": "ポッピングダック",
    "KARASHI": "カラシ",
    "ANTHRAX": "アンスラックス",
    "DYING FISH": "ダイイングフィッシュ",
    "SIGLETT": "シグレット",
    "I-WING": "アイウィング",
    "WATER MONITOR": "ウォーターモニター",
    "X-80": "エックスハチマル",
    "X-70": "エックスナナマル",
    "X-55": "エックスゴーゴー",
    "X-80SW": "エックスハチマルSW",
    "X-120": "エックスイチニーマル",
    "X-140": "エックスイチヨンマル",
    "VISION": "ビジョン",
    "ONETEN": "ワンテン",
    "ITO SHINER": "イトウシャイナー",
    "ZONK": "ゾンク",
    "KANATA": "カナタ",
    "CUTTER": "カッター",
    "GENMA": "ゲンマ",
    "MARGELINA": "マージェリナ",
    "VATISSA": "バティッサ",
    "KIRINJI": "キリンジ",
    "HADARA": "ハダラ",
    "DEEP-X": "ディープエックス",
    "SR-X": "エスアールエックス",
    "MR-X": "エムアールエックス",
    "GRIFFON": "グリフォン",
    "CYCLONE": "サイクロン",
    "SUPER-Z": "スーパーゼット",
    "NOISY CAT": "ノイジーキャット",
    "BAIT-X": "ベイトエックス",
    "ORBIT": "オービット",
    "FX": "エフエックス",
    "VIBRATION-X": "バイブレーションエックス",
    "SLASH BEAT": "スラッシュビート",
    "VATALION": "ヴァタリオン",
    "I-JACK": "アイジャック",
    "I-LOUD": "アイラウド",
    "I-SLIDE": "アイスライド",
    "MAKIPPA": "マキッパ",
    "METAL-X": "メタルエックス",
    "MAGDRAFT": "マグドラフト",
    "DARK SLEEPER": "ダークスリーパー",
    "SPARK SHAD": "スパークシャッド",
    "SWING HOT": "スウィングホット",
    "KONOSIRUS": "コノシラス",
    "TOUGH BOMB": "タフボム",
    "HAZEDONG": "ハゼドン",
    "BOTTLE SHRIMP": "ボトルシュリンプ",
    "ROCKY FRY": "ロッキーフライ",
}

SPEC_LABELS = ("length", "weight", "lure", "type", "hook", "price")
LISTING_SKIP_WORDS = ("lure_parts", "soft_bait", "softbait")
DESCRIPTION_LIMIT = 500
MAX_LISTING_NAME = 100

GRAMS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*g", re.IGNORECASE)
RANGE_RE = re.compile(r"(\d+)[～~\-](\d+)")
YEN_RE = re.compile(r"(\d+)円")
NUMBER_RE = re.compile(r"(\d+)")
MM_RE = re.compile(r"(\d+(?:\.\d+)?)\s*mm", re.IGNORECASE)
WEIGHT_PRICE_RE = re.compile(r"(\d+)g\s*:\s*[￥¥]")
LIST_PRICE_RE = re.compile(r"(メーカー希望小売価格[^\n]*\d+[^\n]*円)")
IMAGE_FILE_RE = re.compile(r"\.(?:jpe?g|png|webp)", re.IGNORECASE)
SLUG_RE = re.compile(r"^[a-zA-Z0-9_-]+$")


# ============================================================================
# Field parsers
# ============================================================================


def parse_weight_text(text: str) -> list[float]:
    """
    Weights from a SPEC cell.

    ``"3g, 5g, 7g"`` lists every gram value; otherwise ounces
    (``1.1/4oz.``, ``7/16oz.``, ``1.5oz.``) and finally a single ``11g``.
    Implausible values are dropped.
    """
    text = normalize_fullwidth(text)
    grams = [round(float(m), 1) for m in GRAMS_RE.findall(text)]
    if len(grams) > 1:
        return sorted(clamp_weights(grams))

    oz = parse_oz(text)
    if oz:
        return clamp_weights([oz_to_grams(oz)])
    return clamp_weights(grams)


def parse_megabass_price(text: str) -> int:
    """
    Tax-excluded list price to tax-included yen.

    ``1,800 円`` -> 1980; a range ``700～860 円`` uses its minimum.
    """
    if not text:
        return 0
    cleaned = re.sub(r"[,\s]", "", normalize_fullwidth(text))
    if match := RANGE_RE.search(cleaned):
        return clamp_price(apply_tax(int(match.group(1))))
    if match := YEN_RE.search(cleaned):
        return clamp_price(apply_tax(int(match.group(1))))
    if match := NUMBER_RE.search(cleaned):
        amount = int(match.group(1))
        if 100 < amount < 100000:
            return apply_tax(amount)
    return 0


def parse_spec_length(text: str) -> float | None:
    match = MM_RE.search(normalize_fullwidth(text or ""))
    if not match:
        return None
    return clamp_length(float(match.group(1)))


def slug_from_product_url(url: str) -> str:
    """``/site/products/karashi_80/`` -> ``karashi_80``."""
    segments = [s for s in urlparse(url).path.split("/") if s]
    if "products" in segments:
        index = segments.index("products")
        if index + 1 < len(segments):
            return segments[index + 1].lower()
    if segments and SLUG_RE.match(segments[-1]):
        return segments[-1].lower()
    return ""


def name_kana(name: str) -> str:
    """Exact lookup, then longest-prefix lookup keeping the suffix."""
    upper = name.upper().strip()
    if upper in NAME_KANA_MAP:
        return NAME_KANA_MAP[upper]
    for key in sorted(NAME_KANA_MAP, key=len, reverse=True):
        if upper.startswith(key):
            suffix = name.strip()[len(key):].strip()
            return f"{NAME_KANA_MAP[key]} {suffix}" if suffix else NAME_KANA_MAP[key]
    return name


# ============================================================================
# Page sections
# ============================================================================


def section_after_heading(soup: BeautifulSoup, title: str) -> Tag | None:
    """Parent element of the h2/h3 whose text is ``title``."""
    for heading in soup.find_all(["h2", "h3"]):
        if node_text(heading).upper() == title:
            return heading.parent
    return None


def _lines(node: Tag) -> list[str]:
    return [line.strip() for line in node.get_text("\n").split("\n") if line.strip()]


def read_spec(soup: BeautifulSoup) -> tuple[dict[str, str], str]:
    """
    SPEC values keyed by label, plus the raw SPEC section text.

    Multi-row tables join every ``Lure`` cell into one comma-separated
    value so that each weight is kept.
    """
    section = section_after_heading(soup, "SPEC")
    if section is None:
        return {}, ""

    spec: dict[str, str] = {}
    table = section.find("table")
    rows = table.find_all("tr") if table is not None else []
    if len(rows) >= 2:
        headers = [node_text(cell) for cell in rows[0].find_all(["th", "td"])]
        values = [node_text(cell) for cell in rows[1].find_all("td")]
        for header, value in zip(headers, values):
            if header and value:
                spec[header] = value

        lowered = [h.lower() for h in headers]
        if len(rows) > 2 and "lure" in lowered:
            lure_index = lowered.index("lure")
            price_index = lowered.index("price") if "price" in lowered else -1
            weights, prices = [], []
            for row in rows[1:]:
                cells = [node_text(cell) for cell in row.find_all("td")]
                if lure_index < len(cells) and cells[lure_index]:
                    weights.append(cells[lure_index])
                if 0 <= price_index < len(cells) and cells[price_index]:
                    prices.append(cells[price_index])
            if weights:
                spec["Lure"] = ", ".join(weights)
            if prices and "Price" not in spec:
                spec["Price"] = prices[0]

    text = section.get_text("\n")
    if len(spec) <= 1:
        lines = [line for line in _lines(section) if line != "SPEC"]
        index = 0
        while index < len(lines) - 1:
            label, value = lines[index], lines[index + 1]
            if label.lower() in SPEC_LABELS and value.lower() not in SPEC_LABELS:
                spec[label] = value
                index += 2
                continue
            index += 1
        if "Price" not in spec and (match := LIST_PRICE_RE.search(text)):
            spec["Price"] = match.group(1)

    return spec, text


def spec_weights(spec: dict[str, str], spec_text: str) -> list[float]:
    weight_text = spec.get("Lure") or spec.get("Weight") or ""
    if not weight_text:
        # "3g : ¥700 5g : ¥710 ..." on multi-weight products without a Lure column
        grams = WEIGHT_PRICE_RE.findall(" ".join(spec.values())) or WEIGHT_PRICE_RE.findall(spec_text)
        if len(grams) > 1:
            weight_text = ", ".join(f"{g}g" for g in grams)
    return parse_weight_text(weight_text)


def variation_colors(soup: BeautifulSoup, base_url: str) -> list[ColorSwatch]:
    """``COLOR VARIATION`` list items linking to full-size images."""
    section = section_after_heading(soup, "COLOR VARIATION")
    if section is None:
        return []
    colors = []
    for item in section.select("ul > li, ol > li"):
        link = item.find("a")
        if link is None:
            continue
        href = link.get("href") or ""
        if not IMAGE_FILE_RE.search(href):
            continue
        name = node_text(link)
        if name:
            colors.append(ColorSwatch(name=name, image_url=absolutize(href, base_url)))
    return colors


def main_description(soup: BeautifulSoup, fallback: str) -> str:
    main = soup.find("main") or soup
    paragraphs = [
        node_text(node)
        for node in main.select("p, div.entry-content, .product_desc")
    ]
    kept = [p for p in paragraphs if len(p) > 20 and "SPEC" not in p and "COLOR" not in p]
    return truncate("\n".join(kept), DESCRIPTION_LIMIT) or fallback


def banner_image(soup: BeautifulSoup, base_url: str) -> str:
    main = soup.find("main")
    if main is None:
        return ""
    img = main.select_one('[class*="banner"] img') or main.select_one("header img")
    if img is None:
        first = main.find(["div", "section"], recursive=False)
        img = first.find("img") if first is not None else None
    return absolutize(img_src(img), base_url) if img is not None else ""


class MegabassAdapter(BaseAdapter):
    """Adapter for megabass.co.jp (browser-rendered)."""

    ADAPTER_NAME = "megabass"
    ADAPTER_VERSION = "1.0.0"

    MANUFACTURER = "Megabass"
    SOURCE_SLUG = "megabass"
    SITE_BASE = MEGABASS_BASE_URL
    LISTING_URLS = (
        f"{MEGABASS_BASE_URL}/site/freshwater/bass_lure/",
        f"{MEGABASS_BASE_URL}/site/saltwater/sw_lure/",
    )
    PRODUCT_LINK_PATTERN = r"/site/products/"
    REQUIRES_BROWSER = True

    def parse(self, html: str, url: str) -> ScrapedProduct:
        soup = make_soup(html)

        heading = soup.select_one("main h1") or soup.find("h1")
        name = node_text(heading)
        if not name:
            raise ParseError(url, "name")

        slug = slug_from_product_url(url)
        if not slug:
            raise ParseError(url, "slug", f"Could not derive slug from URL: {url}")

        title = node_text(soup.find("title"))
        breadcrumb = node_text(soup.select_one("main nav"))

        spec, spec_text = read_spec(soup)
        logger.debug(f"Megabass SPEC for {url}: {spec}")

        description = main_description(soup, title)
        colors = variation_colors(soup, url)
        main_image = banner_image(soup, url) or (colors[0].image_url if colors else "")

        category = classify(
            f"{title} {description} {breadcrumb} {spec.get('Type', '')}", TYPE_KEYWORDS, DEFAULT_TYPE
        )

        return self.build_product(
            url,
            name=name,
            name_kana=name_kana(name),
            slug=slug,
            category=category,
            target_species=list(TYPE_FISH_MAP.get(category, [])),
            description=description,
            price=parse_megabass_price(spec.get("Price", "")),
            colors=colors,
            weights=spec_weights(spec, spec_text),
            length_mm=parse_spec_length(spec.get("Length", "")),
            main_image=main_image,
        )

    def parse_listing(self, html: str, base_url: str) -> list[DiscoveredProduct]:
        soup = make_soup(html)
        found: dict[str, DiscoveredProduct] = {}
        for link in soup.find_all("a", href=True):
            href = link["href"]
            if self.PRODUCT_LINK_PATTERN not in href:
                continue
            if any(word in href.lower() for word in LISTING_SKIP_WORDS):
                continue
            url = absolutize(href, base_url).split("#")[0]
            if url in found:
                continue

            name = ""
            text = link.get_text("\n").strip()
            if text:
                name = text.split("\n")[0].strip()
            else:
                img = link.find("img")
                name = (img.get("alt") or "").strip() if img is not None else ""
            name = collapse_whitespace(name)[:MAX_LISTING_NAME]
            if not name:
                match = re.search(r"/products/([^/]+)", href)
                name = match.group(1).replace("_", " ").upper() if match else ""

            found[url] = DiscoveredProduct(url=url, name=name)
        return list(found.values())
