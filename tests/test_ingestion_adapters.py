"""Tests for source adapters."""

import json

import httpx
import pytest

from lure_catalog.core.errors import ParseError
from lure_catalog.ingestion.adapters import (
    ADAPTER_REGISTRY,
    get_adapter,
    get_adapter_info,
    list_adapters,
    lookup,
)
from lure_catalog.ingestion.adapters.base import make_soup
from lure_catalog.ingestion.adapters.boreas import BoreasAdapter, clean_color_name, is_lure, weight_from_text
from lure_catalog.ingestion.adapters.megabass import (
    MegabassAdapter,
    name_kana,
    parse_megabass_price,
    parse_spec_length,
    parse_weight_text,
    slug_from_product_url,
)
from lure_catalog.ingestion.adapters.sample import SampleAdapter
from lure_catalog.ingestion.adapters.signal import COLOR_CHART_NAME, SignalAdapter
from lure_catalog.ingestion.adapters.souls import SoulsAdapter
from lure_catalog.ingestion.adapters.thirtyfour import ThirtyfourAdapter, resolve_names
from lure_catalog.ingestion.adapters.tict import TictAdapter, length_from_name, read_spec_cells, split_name
from lure_catalog.ingestion.adapters.viva import VivaAdapter, parse_inline_spec
from lure_catalog.ingestion.crawler import BrowserFetcher, PageFetcher


def fetcher_for(pages: dict[str, str | bytes]) -> PageFetcher:
    """PageFetcher answering from a URL -> body mapping."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = pages.get(str(request.url))
        if body is None:
            return httpx.Response(404)
        if isinstance(body, bytes):
            return httpx.Response(200, content=body)
        return httpx.Response(200, text=body)

    return PageFetcher(transport=httpx.MockTransport(handler), backoff=0)


class TestAdapterRegistry:
    """Tests for the adapter registry."""

    def test_list_adapters(self) -> None:
        assert set(list_adapters()) == {
            "boreas",
            "megabass",
            "sample",
            "signal",
            "souls",
            "thirtyfour",
            "tict",
            "viva",
        }

    def test_lookup(self) -> None:
        assert lookup("megabass") is MegabassAdapter
        assert lookup("daiwa") is None

    def test_get_adapter_with_config(self) -> None:
        adapter = get_adapter("souls", {"manufacturer": "Souls Custom", "manufacturer_slug": "souls2"})
        assert isinstance(adapter, SoulsAdapter)
        assert adapter.manufacturer == "Souls Custom"
        assert adapter.manufacturer_slug == "souls2"

    def test_get_adapter_unknown(self) -> None:
        assert get_adapter("daiwa") is None

    def test_adapter_info(self) -> None:
        info = get_adapter_info("megabass")
        assert info is not None
        assert info["browser"] == "yes"
        assert info["site"] == "https://www.megabass.co.jp"
        assert get_adapter_info("daiwa") is None

    def test_names_match_registry_keys(self) -> None:
        for name, adapter_class in ADAPTER_REGISTRY.items():
            assert adapter_class.ADAPTER_NAME == name

    def test_owns_url(self) -> None:
        adapter = SoulsAdapter()
        assert adapter.owns_url("https://souls.jp/products/a/")
        assert adapter.owns_url("https://www.souls.jp/products/a/")
        assert not adapter.owns_url("https://example.com/products/a/")


# ============================================================================
# SOULS
# ============================================================================

SOULS_PAGE = """
<html><head>
<title>TS Minnow 50S | SOULS</title>
<meta property="og:image" content="/wp-content/uploads/main.jpg">
<meta name="description" content="渓流トラウト向けのヘビーシンキングミノー。流れの中でもしっかり泳ぐ。">
</head><body>
<h1>TS Minnow 50S</h1>
<table>
<tr><th>重量</th><td>5g</td></tr>
<tr><th>全長</th><td>50mm</td></tr>
<tr><th>価格</th><td>1,500円（税別）</td></tr>
</table>
<figure><img src="/wp-content/uploads/c01.jpg"><figcaption>ヤマメ</figcaption></figure>
<figure><img src="/wp-content/uploads/c02.jpg"><figcaption>チャート</figcaption></figure>
</body></html>
"""

SOULS_LISTING = """
<html><body>
<a href="/products/ts-minnow-50s/">TS Minnow 50S</a>
<a href="https://souls.jp/products/trout-lure/">Trout Lure</a>
<a href="/products/ts-minnow-50s/#colors"><img src="/a.jpg" alt="TS Minnow 50S"></a>
<a href="/products/blue-spoon/"><img src="/b.jpg" alt="Blue Spoon"></a>
<a href="/about/">About</a>
</body></html>
"""


class TestSoulsAdapter:
    """Tests for SoulsAdapter."""

    URL = "https://souls.jp/products/ts-minnow-50s/"

    def test_parse(self) -> None:
        product = SoulsAdapter().parse(SOULS_PAGE, self.URL)

        assert product.name == "TS Minnow 50S"
        assert product.slug == "ts-minnow-50s"
        assert product.manufacturer == "SOULS"
        assert product.category == "ミノー"
        assert product.target_species == ["トラウト"]
        assert product.price == 1650
        assert product.weights == [5.0]
        assert product.length_mm == 50.0
        assert product.main_image == "https://souls.jp/wp-content/uploads/main.jpg"
        assert [(c.name, c.image_url) for c in product.colors] == [
            ("ヤマメ", "https://souls.jp/wp-content/uploads/c01.jpg"),
            ("チャート", "https://souls.jp/wp-content/uploads/c02.jpg"),
        ]

    def test_parse_drops_implausible_inline_spec(self) -> None:
        page = (
            SOULS_PAGE.split("<table>")[0]
            + "<p>99999g、40000mm ¥9,999,999</p>"
            + SOULS_PAGE.split("</table>")[1]
        )

        product = SoulsAdapter().parse(page, self.URL)

        assert product.weights == []
        assert product.length_mm is None
        assert product.price == 0

    def test_missing_name(self) -> None:
        with pytest.raises(ParseError) as exc_info:
            SoulsAdapter().parse("<html><body><p>nothing</p></body></html>", self.URL)
        assert exc_info.value.field == "name"

    @pytest.mark.asyncio
    async def test_scrape_and_extract(self) -> None:
        adapter = SoulsAdapter(fetcher=fetcher_for({self.URL: SOULS_PAGE}))

        records = await adapter.extract(self.URL)

        assert len(records) == 2
        assert {r.color_name for r in records} == {"ヤマメ", "チャート"}
        assert all(r.manufacturer_slug == "souls" for r in records)

    @pytest.mark.asyncio
    async def test_scrape_rejects_foreign_url(self) -> None:
        with pytest.raises(ParseError):
            await SoulsAdapter().scrape("https://www.megabass.co.jp/site/products/x/")

    @pytest.mark.asyncio
    async def test_scrape_without_image_fails(self) -> None:
        page = "<html><body><h1>No Image Lure</h1></body></html>"
        adapter = SoulsAdapter(fetcher=fetcher_for({self.URL: page}))

        with pytest.raises(ParseError) as exc_info:
            await adapter.scrape(self.URL)
        assert exc_info.value.field == "image"

    def test_parse_listing(self) -> None:
        found = SoulsAdapter().parse_listing(SOULS_LISTING, "https://souls.jp/products/trout-lure/")

        assert [(p.url, p.name) for p in found] == [
            ("https://souls.jp/products/ts-minnow-50s/", "TS Minnow 50S"),
            ("https://souls.jp/products/blue-spoon/", "Blue Spoon"),
        ]

    @pytest.mark.asyncio
    async def test_discover(self) -> None:
        adapter = SoulsAdapter(fetcher=fetcher_for({"https://souls.jp/products/trout-lure/": SOULS_LISTING}))

        found = await adapter.discover()

        assert len(found) == 2


# ============================================================================
# VIVA
# ============================================================================

VIVA_PAGE = """
<html><head>
<title>Cool Shad 58 | Viva</title>
<meta name="description" content="ブラックバス用のシャッドプラグ。ただ巻きで使える。">
</head><body>
<h1>Cool Shad 58</h1>
<img src="/wp-content/uploads/main.jpg" alt="Cool Shad 58">
<p>58mm / 12g / ¥1,700（税別）</p>
<ul>
<li><a href="/">TOP</a></li>
<li><a href="#c1"><img src="/img/c11.jpg"><div>#11E<br>キンクロ</div></a></li>
<li><a href="#c2"><img src="/img/c02.jpg"><div>#02<br>チャート</div></a></li>
</ul>
</body></html>
"""


class TestVivaAdapter:
    """Tests for VivaAdapter."""

    URL = "https://vivanet.co.jp/viva/cool-shad-58/"

    def test_inline_spec_length_first(self) -> None:
        assert parse_inline_spec("58mm / 12g / ¥1,700") == (58.0, 12.0, 1700)

    def test_inline_spec_weight_first(self) -> None:
        assert parse_inline_spec("7g / 45.5mm / ￥1,500") == (46.0, 7.0, 1500)

    def test_inline_spec_missing(self) -> None:
        assert parse_inline_spec("no spec") is None

    def test_inline_spec_out_of_range(self) -> None:
        assert parse_inline_spec("99999mm / 12g / ¥1,700") == (None, 12.0, 1700)
        assert parse_inline_spec("58mm / 99999g / ¥9,999,999") == (58.0, None, 0)

    def test_parse_drops_implausible_values(self) -> None:
        page = VIVA_PAGE.replace("58mm / 12g / ¥1,700（税別）", "58mm / 99999g / ¥9,999,999")

        product = VivaAdapter().parse(page, self.URL)

        assert product.weights == []
        assert product.length_mm == 58.0
        assert product.price == 0

    def test_parse(self) -> None:
        product = VivaAdapter().parse(VIVA_PAGE, self.URL)

        assert product.name == "Cool Shad 58"
        assert product.slug == "cool-shad-58"
        assert product.category == "シャッド"
        assert product.target_species == ["ブラックバス"]
        assert product.price == 1700
        assert product.weights == [12.0]
        assert product.length_mm == 58.0
        assert product.main_image == "https://vivanet.co.jp/wp-content/uploads/main.jpg"
        assert [c.name for c in product.colors] == ["#11E キンクロ", "#02 チャート"]
        assert product.colors[0].image_url == "https://vivanet.co.jp/img/c11.jpg"


# ============================================================================
# SIGNAL
# ============================================================================

SIGNAL_PAGE = """
<html><head>
<title>SIGNAL 公式サイト</title>
<meta name="description" content="河口や干潟で使うシーバス向けのフローティングミノー。">
</head><body>
<h1>SIGNAL 公式サイト</h1>
<img src="/images/logo.png" alt="SIGNAL">
<img src="/images/lure/seaboss90.jpg" alt="Sea Boss 90">
<p>全長 90mm 重量 14g 価格 ¥1,980（税込）</p>
<img src="/images/color_chart.jpg">
<img src="/images/color/01.jpg" alt="レッドヘッド">
<img src="/images/color/02.jpg" alt="イワシ">
</body></html>
"""


class TestSignalAdapter:
    """Tests for SignalAdapter."""

    URL = "http://www.signal-lure.com/seaboss90.html"

    def test_parse(self) -> None:
        product = SignalAdapter().parse(SIGNAL_PAGE, self.URL)

        assert product.name == "Sea Boss 90"
        assert product.slug == "seaboss90"
        assert product.category == "ミノー"
        assert product.target_species == ["シーバス"]
        assert product.price == 1980
        assert product.weights == [14.0]
        assert product.length_mm == 90.0
        assert product.main_image == "http://www.signal-lure.com/images/lure/seaboss90.jpg"
        assert [c.name for c in product.colors] == [COLOR_CHART_NAME, "レッドヘッド", "イワシ"]
        assert product.colors[0].image_url == "http://www.signal-lure.com/images/color_chart.jpg"

    def test_parse_drops_implausible_values(self) -> None:
        page = SIGNAL_PAGE.replace("全長 90mm 重量 14g 価格 ¥1,980（税込）", "全長 90000mm 重量 99999g ¥9,999,999")

        product = SignalAdapter().parse(page, self.URL)

        assert product.weights == []
        assert product.length_mm is None
        assert product.price == 0


# ============================================================================
# TICT
# ============================================================================

TICT_PAGE = """
<html><head><meta charset="Shift_JIS"></head><body>
<div class="product_mane">FLOPPER Bros 55 - ブロス -</div>
<img id="MainPhoto" src="img/bros55_main.jpg">
<table>
<tr><td rowspan="2">55mm / 2.5g</td><td rowspan="2">￥1,100</td></tr>
</table>
<div class="worm_color">
<ul>
<li><a href="img/c01.jpg" data-lightbox="colors"><img src="img/c01s.jpg"></a></li>
<li class="name">クリア</li>
<li><a href="img/c02.jpg" data-lightbox="colors"><img src="img/c02s.jpg"></a></li>
<li class="name">グロー</li>
</ul>
</div>
</body></html>
"""


class TestTictAdapter:
    """Tests for TictAdapter."""

    URL = "https://tict-net.com/product/bros55.html"

    def test_split_name(self) -> None:
        assert split_name("FLOPPER Bros 55 - ブロス -") == ("FLOPPER Bros 55", "ブロス")
        assert split_name("COOLJIG") == ("COOLJIG", "")

    def test_length_from_name(self) -> None:
        assert length_from_name("アジボッコ 1.2インチ") == 30.0
        assert length_from_name("Bros 55") == 55.0
        assert length_from_name("Cool Jig 7g") is None

    def test_parse(self) -> None:
        product = TictAdapter().parse(TICT_PAGE, self.URL)

        assert product.name == "FLOPPER Bros 55"
        assert product.name_kana == "ブロス"
        assert product.slug == "bros55"
        assert product.category == "ミノー"
        assert product.target_species == ["アジ", "メバル"]
        assert product.price == 1100
        assert product.weights == [2.5]
        assert product.length_mm == 55.0
        assert product.main_image == "https://tict-net.com/product/img/bros55_main.jpg"
        assert [(c.name, c.image_url) for c in product.colors] == [
            ("クリア", "https://tict-net.com/product/img/c01.jpg"),
            ("グロー", "https://tict-net.com/product/img/c02.jpg"),
        ]

    def test_spec_cells_out_of_range(self) -> None:
        soup = make_soup(
            "<table><tr>"
            '<td rowspan="2">99999mm</td><td rowspan="2">123456g</td><td rowspan="2">￥9,999,999</td>'
            "</tr></table>"
        )

        assert read_spec_cells(soup) == (0, None, [])

    def test_parse_falls_back_to_name_length(self) -> None:
        page = TICT_PAGE.replace("55mm / 2.5g", "99999mm / 123456g").replace("￥1,100", "￥9,999,999")

        product = TictAdapter().parse(page, self.URL)

        assert product.length_mm == 55.0
        assert product.weights == []
        assert product.price == 0

    @pytest.mark.asyncio
    async def test_scrape_decodes_shift_jis(self) -> None:
        adapter = TictAdapter(fetcher=fetcher_for({self.URL: TICT_PAGE.encode("shift_jis")}))

        product = await adapter.scrape(self.URL)

        assert product.name_kana == "ブロス"
        assert [c.name for c in product.colors] == ["クリア", "グロー"]


# ============================================================================
# 34
# ============================================================================

THIRTYFOUR_PAGE = """
<html><head>
<title>MEDUSA - アジング ライトゲーム フィッシング｜THIRTY34FOUR（サーティフォー）</title>
</head><body>
<img src="https://34net.jp/wp-content/uploads/2023/medusa.jpg">
<h3 class="modProductsContent-Title">メデューサ 2.2in</h3>
<table class="product_tbl">
<tr><th>全長</th><td>2.2in</td></tr>
<tr><th>重量</th><td>0.6g</td></tr>
<tr><th>販売価格</th><td>660円（税込）</td></tr>
</table>
<ul>
<li class="cosGrid_Inner4">
<a href="https://34net.jp/wp-content/uploads/2023/c01.jpg"><img src="https://34net.jp/wp-content/uploads/2023/c01s.jpg"></a>
<strong>JAN:4571234567890</strong><strong>クリアラメ</strong>
</li>
<li class="cosGrid_Inner4">
<img src="/wp-content/uploads/2023/c02.png"><strong>4571234567891</strong>
</li>
</ul>
</body></html>
"""


class TestThirtyfourAdapter:
    """Tests for ThirtyfourAdapter."""

    URL = "https://34net.jp/products/worm/medusa/"

    def test_resolve_names(self) -> None:
        assert resolve_names("MEDUSA - アジング", "メデューサ 2.2in") == ("MEDUSA", "メデューサ")
        assert resolve_names("メデューサ - アジング", "MEDUSA") == ("MEDUSA", "メデューサ")
        assert resolve_names("MEDUSA - アジング", "") == ("MEDUSA", "")

    def test_parse(self) -> None:
        adapter = ThirtyfourAdapter({"manufacturer": "34", "manufacturer_slug": "thirtyfour"})
        product = adapter.parse(THIRTYFOUR_PAGE, self.URL)

        assert product.name == "MEDUSA"
        assert product.name_kana == "メデューサ"
        assert product.slug == "medusa"
        assert product.manufacturer == "34"
        assert product.category == "ワーム"
        assert product.price == 660
        assert product.weights == [0.6]
        assert product.length_mm == 56.0
        assert product.main_image == "https://34net.jp/wp-content/uploads/2023/medusa.jpg"
        assert [(c.name, c.image_url) for c in product.colors] == [
            ("クリアラメ", "https://34net.jp/wp-content/uploads/2023/c01.jpg"),
            ("カラー02", "https://34net.jp/wp-content/uploads/2023/c02.png"),
        ]

    def test_parse_drops_implausible_values(self) -> None:
        page = (
            THIRTYFOUR_PAGE.replace("<td>2.2in</td>", "<td>40000mm</td>")
            .replace("<td>0.6g</td>", "<td>99999g</td>")
            .replace("660円（税込）", "9,999,999円（税込）")
        )

        product = ThirtyfourAdapter().parse(page, self.URL)

        assert product.length_mm is None
        assert product.weights == []
        assert product.price == 0


# ============================================================================
# BOREAS
# ============================================================================

BOREAS_PRODUCT = {
    "product": {
        "title": 'BOREAS / ANOSTRAIGHT 7"',
        "handle": "anostraight7",
        "vendor": "BOREAS",
        "product_type": "Soft Bait",
        "body_html": "<p>ストレートワーム 3/8oz 相当</p>",
        "variants": [
            {"option1": "#1グリーンパンプキン", "price": "1320", "image_id": 11},
            {"option1": "#2ウォーターメロン", "price": "1320", "image_id": 12},
            {"option1": "#1グリーンパンプキン", "price": "1320", "image_id": 11},
        ],
        "images": [
            {"id": 10, "src": "https://cdn.shopify.com/main.jpg"},
            {"id": 11, "src": "https://cdn.shopify.com/gp.jpg"},
            {"id": 12, "src": "https://cdn.shopify.com/wm.jpg"},
        ],
    }
}


class TestBoreasAdapter:
    """Tests for BoreasAdapter."""

    URL = "https://flashpointonlineshop.com/products/anostraight7"

    def test_weight_from_text(self) -> None:
        assert weight_from_text("14g ") == 14.0
        assert weight_from_text("3/8oz") == 10.6
        assert weight_from_text("0.5oz") == 14.2
        assert weight_from_text("none") is None
        assert weight_from_text("X 99999g") is None

    def test_parse_drops_implausible_values(self) -> None:
        data = json.loads(json.dumps(BOREAS_PRODUCT))
        data["product"]["title"] = 'BOREAS / X 9999" 99999g'
        data["product"]["body_html"] = "<p>ストレートワーム</p>"
        for variant in data["product"]["variants"]:
            variant["price"] = "9999999"

        product = BoreasAdapter().parse(json.dumps(data), self.URL)

        assert product.weights == []
        assert product.length_mm is None
        assert product.price == 0

    def test_clean_color_name(self) -> None:
        assert clean_color_name("#1グリーンパンプキン") == "グリーンパンプキン"
        assert clean_color_name("Black") == "Black"

    def test_is_lure(self) -> None:
        assert is_lure({"vendor": "BOREAS", "handle": "anostraight7", "title": "ANOSTRAIGHT"})
        assert not is_lure({"vendor": "OTHER", "handle": "x", "title": "X"})
        assert not is_lure({"vendor": "BOREAS", "handle": "anostsinker", "title": "Sinker"})
        assert not is_lure({"vendor": "BOREAS", "handle": "cap", "product_type": "Cap", "title": "Logo"})
        assert not is_lure({"vendor": "BOREAS", "handle": "x", "tags": "Sticker, Goods", "title": "X"})
        assert not is_lure({"vendor": "BOREAS", "handle": "x", "title": "ロゴキャップ"})

    def test_parse(self) -> None:
        product = BoreasAdapter().parse(json.dumps(BOREAS_PRODUCT), self.URL)

        assert product.name == 'ANOSTRAIGHT 7"'
        assert product.slug == "anostraight7"
        assert product.category == "ワーム"
        assert product.target_species == ["ブラックバス"]
        assert product.price == 1320
        assert product.weights == [10.6]
        assert product.length_mm == 178.0
        assert product.description == "ストレートワーム 3/8oz 相当"
        assert product.main_image == "https://cdn.shopify.com/main.jpg"
        assert [(c.name, c.image_url) for c in product.colors] == [
            ("グリーンパンプキン", "https://cdn.shopify.com/gp.jpg"),
            ("ウォーターメロン", "https://cdn.shopify.com/wm.jpg"),
        ]

    def test_parse_invalid_json(self) -> None:
        with pytest.raises(ParseError):
            BoreasAdapter().parse("<html>", self.URL)

    @pytest.mark.asyncio
    async def test_scrape_reads_product_json(self) -> None:
        adapter = BoreasAdapter(fetcher=fetcher_for({f"{self.URL}.json": json.dumps(BOREAS_PRODUCT)}))

        product = await adapter.scrape(self.URL)

        assert product.name == 'ANOSTRAIGHT 7"'

    @pytest.mark.asyncio
    async def test_discover_filters_store_products(self) -> None:
        products = {
            "products": [
                {"title": "BOREAS / ANOSTRAIGHT 7\"", "handle": "anostraight7", "vendor": "BOREAS"},
                {"title": "BOREAS / Logo Cap", "handle": "logo-cap", "vendor": "BOREAS", "product_type": "Cap"},
                {"title": "Other Lure", "handle": "other", "vendor": "OTHER"},
            ]
        }
        listing_url = "https://flashpointonlineshop.com/products.json?limit=250&page=1"
        adapter = BoreasAdapter(fetcher=fetcher_for({listing_url: json.dumps(products)}))

        found = await adapter.discover()

        assert [(p.url, p.name) for p in found] == [(self.URL, 'ANOSTRAIGHT 7"')]


# ============================================================================
# Megabass
# ============================================================================

MEGABASS_PAGE = """
<html><head><title>KARASHI 80 | MINNOW | Megabass</title></head>
<body><main>
<nav>HOME &gt; SALTWATER &gt; MINNOW</nav>
<div class="product_banner"><img src="/site/wp-content/uploads/karashi_banner.jpg"></div>
<h1>KARASHI 80</h1>
<p>河川から港湾まで対応するシャローランナー。流れの中でも安定して泳ぐ。</p>
<section>
<h2>SPEC</h2>
<table>
<tr><th>Length</th><th>Weight</th><th>Lure</th><th>Price</th></tr>
<tr><td>80.0mm</td><td>-</td><td>9g</td><td>1,800 円</td></tr>
<tr><td>80.0mm</td><td>-</td><td>11g</td><td>1,900 円</td></tr>
</table>
</section>
<section>
<h2>COLOR VARIATION</h2>
<ul>
<li><a href="/img/c01.jpg">GG WAKASAGI</a></li>
<li><a href="/img/c02.jpg">ITO SHINER</a></li>
<li><a href="/site/">Back</a></li>
</ul>
</section>
</main></body></html>
"""

MEGABASS_OLD_SPEC_PAGE = """
<html><head><title>POPX | TOPWATER | Megabass</title></head>
<body><main>
<h1>POPX</h1>
<div>
<h3>SPEC</h3>
<div>Length</div><div>64mm</div>
<div>Weight</div><div>1/2oz.</div>
<div>Price</div><div>2,000円</div>
</div>
<div>
<h3>COLOR VARIATION</h3>
<ul><li><a href="https://www.megabass.co.jp/img/popx01.jpg">PM SETSUKI AYU</a></li></ul>
</div>
</main></body></html>
"""

MEGABASS_LISTING = """
<html><body>
<a href="/site/products/karashi_80/">KARASHI 80
MINNOW</a>
<a href="/site/products/karashi_80/#spec">KARASHI 80</a>
<a href="/site/products/soft_bait_hazedong/">HAZEDONG</a>
<a href="/site/products/vision_110/"><img src="/v.jpg" alt="VISION 110"></a>
<a href="/site/products/i_slide_185/"></a>
<a href="/site/freshwater/">Freshwater</a>
</body></html>
"""


class FakeBrowser(BrowserFetcher):
    """Browser stand-in returning canned DOM."""

    def __init__(self, pages: dict[str, str]) -> None:
        super().__init__()
        self.pages = pages

    async def render(self, url: str) -> str:
        return self.pages[url]


class TestMegabassAdapter:
    """Tests for MegabassAdapter."""

    URL = "https://www.megabass.co.jp/site/products/karashi_80/"

    def test_parse_weight_text(self) -> None:
        assert parse_weight_text("3g, 5g, 7g") == [3.0, 5.0, 7.0]
        assert parse_weight_text("1.1/4oz.") == [35.4]
        assert parse_weight_text("11g") == [11.0]
        assert parse_weight_text("-") == []

    def test_price(self) -> None:
        assert parse_megabass_price("1,800 円") == 1980
        assert parse_megabass_price("700～860 円") == 770
        assert parse_megabass_price("") == 0

    def test_out_of_range_values_dropped(self) -> None:
        assert parse_weight_text("99999g") == []
        assert parse_weight_text("3g, 99999g") == [3.0]
        assert parse_megabass_price("9,999,999 円") == 0
        assert parse_spec_length("40000mm") is None
        assert parse_spec_length("80mm") == 80.0

    def test_slug_from_product_url(self) -> None:
        assert slug_from_product_url(self.URL) == "karashi_80"
        assert slug_from_product_url("https://www.megabass.co.jp/") == ""

    def test_name_kana(self) -> None:
        assert name_kana("KARASHI") == "カラシ"
        assert name_kana("KARASHI 80") == "カラシ 80"
        assert name_kana("UNKNOWN LURE") == "UNKNOWN LURE"

    def test_parse_table_spec(self) -> None:
        product = MegabassAdapter().parse(MEGABASS_PAGE, self.URL)

        assert product.name == "KARASHI 80"
        assert product.name_kana == "カラシ 80"
        assert product.slug == "karashi_80"
        assert product.category == "ミノー"
        assert product.price == 1980
        assert product.weights == [9.0, 11.0]
        assert product.length_mm == 80.0
        assert product.main_image == "https://www.megabass.co.jp/site/wp-content/uploads/karashi_banner.jpg"
        assert product.description.startswith("河川から港湾まで")
        assert [(c.name, c.image_url) for c in product.colors] == [
            ("GG WAKASAGI", "https://www.megabass.co.jp/img/c01.jpg"),
            ("ITO SHINER", "https://www.megabass.co.jp/img/c02.jpg"),
        ]

    def test_parse_block_spec(self) -> None:
        url = "https://www.megabass.co.jp/site/products/popx/"
        product = MegabassAdapter().parse(MEGABASS_OLD_SPEC_PAGE, url)

        assert product.slug == "popx"
        assert product.name_kana == "ポップエックス"
        assert product.category == "トップウォーター"
        assert product.weights == [14.2]
        assert product.length_mm == 64.0
        assert product.price == 2200
        assert product.main_image == "https://www.megabass.co.jp/img/popx01.jpg"

    def test_parse_listing(self) -> None:
        found = MegabassAdapter().parse_listing(MEGABASS_LISTING, "https://www.megabass.co.jp/site/freshwater/")

        assert [(p.url, p.name) for p in found] == [
            ("https://www.megabass.co.jp/site/products/karashi_80/", "KARASHI 80"),
            ("https://www.megabass.co.jp/site/products/vision_110/", "VISION 110"),
            ("https://www.megabass.co.jp/site/products/i_slide_185/", "I SLIDE 185"),
        ]

    @pytest.mark.asyncio
    async def test_scrape_uses_browser(self) -> None:
        adapter = MegabassAdapter(browser=FakeBrowser({self.URL: MEGABASS_PAGE}))

        records = await adapter.extract(self.URL)

        # 2 colors x 2 weights
        assert len(records) == 4
        assert {r.price for r in records} == {1980}


# ============================================================================
# Sample
# ============================================================================


class TestSampleAdapter:
    """Tests for the offline sample adapter."""

    @pytest.mark.asyncio
    async def test_discover(self) -> None:
        found = await SampleAdapter().discover()

        assert [p.url for p in found] == [f"https://sample.lure-catalog.local/products/{i}" for i in range(4)]
        assert found[0].name == "Alpha Minnow 90"

    @pytest.mark.asyncio
    async def test_alpha_records(self) -> None:
        records = await SampleAdapter().extract("https://sample.lure-catalog.local/products/0")

        assert len(records) == 4
        assert sorted({r.price for r in records}) == [1650, 1760]
        assert {r.manufacturer_slug for r in records} == {"sample"}

    @pytest.mark.asyncio
    async def test_invalid_url(self) -> None:
        with pytest.raises(ParseError):
            await SampleAdapter().scrape("https://sample.lure-catalog.local/products/abc")
