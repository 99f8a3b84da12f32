"""Series view over catalog rows.

Catalog rows are stored one per color x weight. Readers want one item per
product ("series") with its variants and derived ranges. The view is
recomputed from the catalog on every read and holds no state of its own.
"""

import logging
import re
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy.orm import Session

from lure_catalog.core.errors import LureCatalogError
from lure_catalog.core.schema import ColorVariant, RawRecord, SeriesAggregate, ValueRange
from lure_catalog.db.repositories import CatalogRepository

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")


def strip_tags(text: str) -> str:
    """Remove HTML tags from a color name."""
    return _TAG_RE.sub("", text).strip()


def _range(values: Iterable[float | None]) -> ValueRange | None:
    # Zero counts as "not stated", the same as a missing value
    present = [v for v in values if v]
    if not present:
        return None
    return ValueRange(min=min(present), max=max(present))


def _sort_key(series: SeriesAggregate) -> float:
    if series.created_at is None:
        return float("-inf")
    return series.created_at.timestamp()


def _earliest(values: Iterable[datetime | None]) -> datetime | None:
    present = [v for v in values if v is not None]
    return min(present) if present else None


def build_series(records: list[RawRecord]) -> SeriesAggregate:
    """
    Fold the rows of one product into a series.

    Args:
        records: Rows sharing one name, in catalog order

    Returns:
        SeriesAggregate whose variants are unique by (color_name, weight_g)
    """
    first = records[0]

    representative_image = next(
        (image for record in records for image in record.images if image),
        None,
    )

    variants: dict[tuple[str, float | None], ColorVariant] = {}
    for record in records:
        color_name = strip_tags(record.color_name)
        key = (color_name, record.weight_g)
        if key in variants:
            continue
        variants[key] = ColorVariant(
            color_name=color_name,
            color_description=record.color_description,
            weight_g=record.weight_g,
            length_mm=record.length_mm,
            price=record.price,
            images=list(record.images),
            is_limited=record.is_limited,
            is_discontinued=record.is_discontinued,
        )

    species: list[str] = []
    for record in records:
        for fish in record.target_species:
            if fish not in species:
                species.append(fish)

    price_range = _range(r.price for r in records) or ValueRange(min=0, max=0)

    return SeriesAggregate(
        slug=first.slug,
        name=first.name,
        manufacturer=first.manufacturer,
        manufacturer_slug=first.manufacturer_slug,
        category=first.category,
        description=first.description,
        representative_image=representative_image,
        color_variants=list(variants.values()),
        price_range=price_range,
        weight_range=_range(r.weight_g for r in records),
        length_range=_range(r.length_mm for r in records),
        target_species=species,
        created_at=_earliest(r.created_at for r in records),
    )


def group_into_series(records: Iterable[RawRecord]) -> list[SeriesAggregate]:
    """
    Group catalog rows into series by exact product name.

    Args:
        records: Catalog rows in any order; member order within a series
            follows this iteration order

    Returns:
        Series sorted newest first by earliest member creation time
    """
    groups: dict[str, list[RawRecord]] = {}
    for record in records:
        groups.setdefault(record.name, []).append(record)

    series = [build_series(members) for members in groups.values()]
    series.sort(key=_sort_key, reverse=True)
    return series


class SeriesService:
    """Read-side service returning series built from the catalog."""

    def __init__(self, session: Session):
        """
        Initialize the series service.

        Args:
            session: SQLAlchemy session
        """
        self.session = session
        self.repo = CatalogRepository(session)

    def _records(self, manufacturer_slug: str | None = None) -> list[RawRecord]:
        records = list(self.repo.iter_records(manufacturer_slug))
        records.sort(key=lambda r: (r.created_at is None, r.created_at))
        return records

    def list_series(self, manufacturer_slug: str | None = None) -> list[SeriesAggregate]:
        """
        Every series in the catalog, newest first.

        Args:
            manufacturer_slug: Restrict to one manufacturer
        """
        records = self._records(manufacturer_slug)
        series = group_into_series(records)
        logger.debug(f"Built {len(series)} series from {len(records)} rows")
        return series

    def get_series(self, slug: str, manufacturer_slug: str | None = None) -> SeriesAggregate | None:
        """
        Get the series for a product slug.

        Args:
            slug: Product slug
            manufacturer_slug: Manufacturer owning the slug; required when
                more than one manufacturer uses it

        Returns:
            The series, or None if the slug has no rows

        Raises:
            LureCatalogError: If the slug is shared and no manufacturer was given
        """
        records = self.repo.list_by_slug(slug, manufacturer_slug)
        if not records:
            return None
        owners = sorted({r.manufacturer_slug for r in records})
        if len(owners) > 1:
            raise LureCatalogError(
                f"Slug '{slug}' is used by {', '.join(owners)}; pass a manufacturer to choose one"
            )
        return group_into_series(records)[0]
