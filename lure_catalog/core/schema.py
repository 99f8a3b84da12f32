"""Canonical Pydantic v2 models for the lure catalog.

These models define the shapes every other component reads or writes:
- ColorSwatch, ScrapedProduct (what an adapter reads off one product page)
- RawRecord (one catalog row per product x color x weight)
- WorkflowEntry (one queued source URL)
- ColorVariant, ValueRange, SeriesAggregate (read-time series view)
"""

from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from lure_catalog.core.enums import WorkflowStatus


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


DedupKey = tuple[str, str, str, float | None]


# ============================================================================
# Adapter Output
# ============================================================================


class ColorSwatch(BaseModel):
    """A single color variant as listed on a product page."""

    name: str
    image_url: str = ""
    description: str = ""


class ScrapedProduct(BaseModel):
    """
    Everything an adapter located on one product page.

    Colors and weights keep the page's presentation order. ``weight_prices``
    carries per-weight prices when a page prices each weight separately.
    """

    name: str
    name_kana: str = ""
    slug: str
    manufacturer: str
    manufacturer_slug: str
    category: str = "ルアー"
    target_species: list[str] = Field(default_factory=list)
    description: str = ""
    price: int = 0
    weight_prices: dict[float, int] = Field(default_factory=dict)
    colors: list[ColorSwatch] = Field(default_factory=list)
    weights: list[float] = Field(default_factory=list)
    length_mm: float | None = None
    main_image: str = ""
    source_url: str

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name cannot be empty")
        return v.strip()

    @field_validator("target_species")
    @classmethod
    def unique_species(cls, v: list[str]) -> list[str]:
        return _dedupe(v)

    def to_records(self) -> list["RawRecord"]:
        """
        Expand the page into one RawRecord per color x weight.

        A page without weights still yields one row per color, and a page
        without colors yields rows with an empty color name.
        """
        weights: list[float | None] = list(self.weights) or [None]
        colors = self.colors or [ColorSwatch(name="", image_url=self.main_image)]

        records = []
        for color in colors:
            images = _dedupe([self.main_image, color.image_url])
            for weight in weights:
                price = self.weight_prices.get(weight, self.price) if weight is not None else self.price
                records.append(
                    RawRecord(
                        name=self.name,
                        name_kana=self.name_kana or self.name,
                        slug=self.slug,
                        manufacturer=self.manufacturer,
                        manufacturer_slug=self.manufacturer_slug,
                        category=self.category,
                        target_species=list(self.target_species),
                        price=price or None,
                        length_mm=self.length_mm,
                        weight_g=weight,
                        color_name=color.name,
                        color_description=color.description,
                        images=images,
                        description=self.description,
                        source_url=self.source_url,
                    )
                )
        return records


# ============================================================================
# Catalog Rows
# ============================================================================


class RawRecord(BaseModel):
    """
    Canonical record for one color/weight variant of a product.

    ``dedup_key`` identifies the same observation across repeated scrapes;
    the catalog upserts on it.
    """

    name: str
    name_kana: str = ""
    slug: str
    manufacturer: str
    manufacturer_slug: str
    category: str = "ルアー"
    target_species: list[str] = Field(default_factory=list)
    price: int | None = None
    length_mm: float | None = None
    weight_g: float | None = None
    color_name: str = ""
    color_description: str = ""
    images: list[str] = Field(default_factory=list)
    description: str = ""
    source_url: str
    is_limited: bool = False
    is_discontinued: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("price")
    @classmethod
    def price_not_negative(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            return None
        return v

    @property
    def dedup_key(self) -> DedupKey:
        return (self.manufacturer_slug, self.source_url, self.color_name, self.weight_g)


# ============================================================================
# Workflow Queue
# ============================================================================


class WorkflowEntry(BaseModel):
    """One source URL tracked through the ingestion workflow."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    url: str
    source_id: str
    name: str = ""
    status: WorkflowStatus = WorkflowStatus.PENDING
    note: str = ""
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


# ============================================================================
# Series View
# ============================================================================


class ValueRange(BaseModel):
    """Inclusive min/max pair."""

    min: float
    max: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.min, self.max)


class ColorVariant(BaseModel):
    """A distinct (color, weight) combination within a series."""

    color_name: str
    color_description: str = ""
    weight_g: float | None = None
    length_mm: float | None = None
    price: int | None = None
    images: list[str] = Field(default_factory=list)
    is_limited: bool = False
    is_discontinued: bool = False


class SeriesAggregate(BaseModel):
    """All catalog rows sharing one product name, folded into a single item."""

    slug: str
    name: str
    manufacturer: str
    manufacturer_slug: str
    category: str = ""
    description: str = ""
    representative_image: str | None = None
    color_variants: list[ColorVariant] = Field(default_factory=list)
    price_range: ValueRange
    weight_range: ValueRange | None = None
    length_range: ValueRange | None = None
    target_species: list[str] = Field(default_factory=list)
    created_at: datetime | None = None

    @property
    def color_count(self) -> int:
        return len(self.color_variants)

    @property
    def colors(self) -> list[str]:
        """Distinct color names in first-seen order."""
        return _dedupe([v.color_name for v in self.color_variants])
