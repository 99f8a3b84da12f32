"""Tests for canonical Pydantic models."""

import pytest
from pydantic import ValidationError

from lure_catalog.core.enums import WorkflowStatus
from lure_catalog.core.schema import ColorSwatch, RawRecord, ScrapedProduct, ValueRange, WorkflowEntry


def make_product(**overrides) -> ScrapedProduct:
    data = {
        "name": "Vision 110",
        "slug": "vision_110",
        "manufacturer": "Megabass",
        "manufacturer_slug": "megabass",
        "price": 2420,
        "source_url": "https://www.megabass.co.jp/site/products/vision_110/",
        "main_image": "https://cdn.example.jp/main.jpg",
    }
    data.update(overrides)
    return ScrapedProduct(**data)


class TestScrapedProduct:
    """Tests for ScrapedProduct validation and expansion."""

    def test_name_required(self) -> None:
        with pytest.raises(ValidationError):
            make_product(name="   ")

    def test_name_trimmed(self) -> None:
        assert make_product(name="  Vision 110 ").name == "Vision 110"

    def test_species_deduplicated(self) -> None:
        product = make_product(target_species=["シーバス", "ブラックバス", "シーバス"])
        assert product.target_species == ["シーバス", "ブラックバス"]

    def test_one_row_per_color_and_weight(self) -> None:
        product = make_product(
            colors=[
                ColorSwatch(name="GG Wakasagi", image_url="https://cdn.example.jp/1.jpg"),
                ColorSwatch(name="Ito Shiner", image_url="https://cdn.example.jp/2.jpg"),
            ],
            weights=[14.0, 10.5],
        )

        records = product.to_records()

        assert [(r.color_name, r.weight_g) for r in records] == [
            ("GG Wakasagi", 14.0),
            ("GG Wakasagi", 10.5),
            ("Ito Shiner", 14.0),
            ("Ito Shiner", 10.5),
        ]
        assert records[0].images == ["https://cdn.example.jp/main.jpg", "https://cdn.example.jp/1.jpg"]
        assert all(r.price == 2420 for r in records)
        assert records[0].name_kana == "Vision 110"

    def test_no_weights_gives_row_per_color(self) -> None:
        product = make_product(colors=[ColorSwatch(name="Red"), ColorSwatch(name="Blue")])

        records = product.to_records()

        assert [(r.color_name, r.weight_g) for r in records] == [("Red", None), ("Blue", None)]

    def test_no_colors_gives_empty_color_rows(self) -> None:
        records = make_product(weights=[3.0, 5.0]).to_records()

        assert [(r.color_name, r.weight_g) for r in records] == [("", 3.0), ("", 5.0)]
        assert records[0].images == ["https://cdn.example.jp/main.jpg"]

    def test_weight_prices(self) -> None:
        product = make_product(
            colors=[ColorSwatch(name="Red")],
            weights=[7.0, 10.0, 14.0],
            weight_prices={7.0: 880, 10.0: 990},
        )

        assert [r.price for r in product.to_records()] == [880, 990, 2420]

    def test_zero_price_is_none(self) -> None:
        [record] = make_product(price=0, colors=[ColorSwatch(name="Red")]).to_records()
        assert record.price is None


class TestRawRecord:
    """Tests for RawRecord."""

    def test_dedup_key(self) -> None:
        record = RawRecord(
            name="Vision 110",
            slug="vision_110",
            manufacturer="Megabass",
            manufacturer_slug="megabass",
            color_name="Red",
            weight_g=14.0,
            source_url="https://www.megabass.co.jp/site/products/vision_110/",
        )
        assert record.dedup_key == (
            "megabass",
            "https://www.megabass.co.jp/site/products/vision_110/",
            "Red",
            14.0,
        )

    def test_negative_price_dropped(self) -> None:
        record = RawRecord(
            name="X", slug="x", manufacturer="M", manufacturer_slug="m", price=-1, source_url="https://m.jp/x"
        )
        assert record.price is None


class TestWorkflowEntry:
    """Tests for WorkflowEntry defaults."""

    def test_defaults(self) -> None:
        entry = WorkflowEntry(url="https://m.jp/x", source_id="m")
        assert entry.status == WorkflowStatus.PENDING
        assert entry.note == ""
        assert entry.id
        assert entry.created_at.tzinfo is not None

    def test_ids_unique(self) -> None:
        first = WorkflowEntry(url="https://m.jp/x", source_id="m")
        second = WorkflowEntry(url="https://m.jp/y", source_id="m")
        assert first.id != second.id


class TestValueRange:
    """Tests for ValueRange."""

    def test_as_tuple(self) -> None:
        assert ValueRange(min=665, max=820).as_tuple() == (665, 820)
