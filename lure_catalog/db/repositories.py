"""Repository classes for catalog and workflow database operations."""

import json
from collections.abc import Iterable, Iterator
from datetime import UTC, datetime

from sqlalchemy import distinct, func, select, update
from sqlalchemy.orm import Session

from lure_catalog.core.enums import WorkflowStatus
from lure_catalog.core.pagination import DEFAULT_PAGE_SIZE, iter_keyset_pages
from lure_catalog.core.schema import RawRecord, WorkflowEntry
from lure_catalog.db.models import LureDB, WorkflowEntryDB, weight_key


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


# ============================================================================
# Catalog
# ============================================================================


class CatalogRepository:
    """
    Repository for catalog rows.

    Writes are keyed upserts on the dedup key, so replaying the same
    records never changes the row count.
    """

    def __init__(self, session: Session):
        self.session = session

    def _find(self, record: RawRecord) -> LureDB | None:
        stmt = select(LureDB).where(
            LureDB.manufacturer_slug == record.manufacturer_slug,
            LureDB.source_url == record.source_url,
            LureDB.color_name == record.color_name,
            LureDB.weight_key == weight_key(record.weight_g),
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def upsert(self, record: RawRecord) -> bool:
        """
        Insert or update a row by its dedup key.

        Returns:
            True if a new row was created, False if an existing row was updated
        """
        db_item = self._find(record)
        created = db_item is None
        if db_item is None:
            db_item = LureDB(
                manufacturer_slug=record.manufacturer_slug,
                source_url=record.source_url,
                color_name=record.color_name,
                weight=record.weight_g,
                weight_key=weight_key(record.weight_g),
            )
            self.session.add(db_item)

        db_item.name = record.name
        db_item.name_kana = record.name_kana
        db_item.slug = record.slug
        db_item.manufacturer = record.manufacturer
        db_item.type = record.category
        db_item.price = record.price
        db_item.description = record.description
        db_item.images_json = json.dumps(record.images, ensure_ascii=False)
        db_item.target_fish_json = json.dumps(record.target_species, ensure_ascii=False)
        db_item.length = record.length_mm
        db_item.color_description = record.color_description
        db_item.is_limited = record.is_limited
        db_item.is_discontinued = record.is_discontinued
        self.session.flush()
        return created

    def upsert_many(self, records: Iterable[RawRecord]) -> tuple[int, int]:
        """
        Upsert a batch of records.

        Returns:
            (rows created, rows updated)
        """
        created = updated = 0
        for record in records:
            if self.upsert(record):
                created += 1
            else:
                updated += 1
        return created, updated

    def count(self, manufacturer_slug: str | None = None) -> int:
        """Get total count of rows, optionally for one source."""
        stmt = select(func.count()).select_from(LureDB)
        if manufacturer_slug:
            stmt = stmt.where(LureDB.manufacturer_slug == manufacturer_slug)
        return self.session.execute(stmt).scalar() or 0

    def fetch_after(
        self,
        after_id: str | None,
        limit: int,
        manufacturer_slug: str | None = None,
    ) -> list[tuple[str, RawRecord]]:
        """Read one keyset page of ``(id, record)`` pairs ordered by id."""
        stmt = select(LureDB).order_by(LureDB.id).limit(limit)
        if after_id is not None:
            stmt = stmt.where(LureDB.id > after_id)
        if manufacturer_slug:
            stmt = stmt.where(LureDB.manufacturer_slug == manufacturer_slug)
        return [(row.id, self._to_domain(row)) for row in self.session.execute(stmt).scalars().all()]

    def iter_records(
        self,
        manufacturer_slug: str | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Iterator[RawRecord]:
        """Stream every row using keyset pagination."""
        pages = iter_keyset_pages(
            lambda after, limit: self.fetch_after(after, limit, manufacturer_slug),
            key=lambda item: item[0],
            page_size=page_size,
        )
        for page in pages:
            for _, record in page:
                yield record

    def source_urls_with_rows(
        self,
        manufacturer_slug: str | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> set[str]:
        """Distinct source URLs that have at least one row."""

        def fetch(after: str | None, limit: int) -> list[str]:
            stmt = select(distinct(LureDB.source_url)).order_by(LureDB.source_url).limit(limit)
            if after is not None:
                stmt = stmt.where(LureDB.source_url > after)
            if manufacturer_slug:
                stmt = stmt.where(LureDB.manufacturer_slug == manufacturer_slug)
            return list(self.session.execute(stmt).scalars().all())

        urls: set[str] = set()
        for page in iter_keyset_pages(fetch, key=lambda url: url, page_size=page_size):
            urls.update(page)
        return urls

    def manufacturer_slugs(self) -> set[str]:
        stmt = select(distinct(LureDB.manufacturer_slug))
        return {slug for slug in self.session.execute(stmt).scalars().all() if slug}

    def list_by_slug(self, slug: str, manufacturer_slug: str | None = None) -> list[RawRecord]:
        """All rows of one product slug, oldest first, optionally for one manufacturer."""
        stmt = select(LureDB).where(LureDB.slug == slug).order_by(LureDB.created_at, LureDB.id)
        if manufacturer_slug:
            stmt = stmt.where(LureDB.manufacturer_slug == manufacturer_slug)
        return [self._to_domain(row) for row in self.session.execute(stmt).scalars().all()]

    def _to_domain(self, db_item: LureDB) -> RawRecord:
        """Convert database model to domain model."""
        return RawRecord(
            name=db_item.name,
            name_kana=db_item.name_kana or "",
            slug=db_item.slug,
            manufacturer=db_item.manufacturer,
            manufacturer_slug=db_item.manufacturer_slug,
            category=db_item.type or "",
            target_species=json.loads(db_item.target_fish_json or "[]"),
            price=db_item.price,
            length_mm=db_item.length,
            weight_g=db_item.weight,
            color_name=db_item.color_name or "",
            color_description=db_item.color_description or "",
            images=json.loads(db_item.images_json or "[]"),
            description=db_item.description or "",
            source_url=db_item.source_url,
            is_limited=bool(db_item.is_limited),
            is_discontinued=bool(db_item.is_discontinued),
            created_at=db_item.created_at,
            updated_at=db_item.updated_at,
        )


# ============================================================================
# Workflow
# ============================================================================


class WorkflowRepository:
    """Repository for workflow queue entries."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, entry: WorkflowEntry) -> WorkflowEntry:
        """Create a new entry."""
        db_item = WorkflowEntryDB(
            id=entry.id,
            url=entry.url,
            source_id=entry.source_id,
            name=entry.name,
            status=entry.status.value,
            note=entry.note,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )
        self.session.add(db_item)
        self.session.flush()
        return self._to_domain(db_item)

    def get_by_id(self, entry_id: str) -> WorkflowEntry | None:
        stmt = select(WorkflowEntryDB).where(WorkflowEntryDB.id == entry_id)
        db_item = self.session.execute(stmt).scalar_one_or_none()
        return self._to_domain(db_item) if db_item else None

    def get_by_url(self, url: str) -> WorkflowEntry | None:
        stmt = select(WorkflowEntryDB).where(WorkflowEntryDB.url == url)
        db_item = self.session.execute(stmt).scalar_one_or_none()
        return self._to_domain(db_item) if db_item else None

    def fetch_after(
        self,
        after_id: str | None,
        limit: int,
        source_id: str | None = None,
        status: WorkflowStatus | None = None,
    ) -> list[WorkflowEntry]:
        """Read one keyset page of entries ordered by id."""
        stmt = select(WorkflowEntryDB).order_by(WorkflowEntryDB.id).limit(limit)
        if after_id is not None:
            stmt = stmt.where(WorkflowEntryDB.id > after_id)
        if source_id:
            stmt = stmt.where(WorkflowEntryDB.source_id == source_id)
        if status is not None:
            stmt = stmt.where(WorkflowEntryDB.status == status.value)
        return [self._to_domain(row) for row in self.session.execute(stmt).scalars().all()]

    def list_all(
        self,
        source_id: str | None = None,
        status: WorkflowStatus | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> list[WorkflowEntry]:
        """All matching entries, oldest first."""
        entries: list[WorkflowEntry] = []
        pages = iter_keyset_pages(
            lambda after, limit: self.fetch_after(after, limit, source_id, status),
            key=lambda entry: entry.id,
            page_size=page_size,
        )
        for page in pages:
            entries.extend(page)
        entries.sort(key=lambda entry: (entry.created_at, entry.id))
        return entries

    def transition(
        self,
        entry_id: str,
        to_status: WorkflowStatus,
        from_statuses: Iterable[WorkflowStatus] | None = None,
        note: str | None = None,
    ) -> bool:
        """
        Move an entry to a new status in one conditional UPDATE.

        Args:
            entry_id: Entry to update
            to_status: Target status
            from_statuses: If given, the update applies only while the entry
                is in one of these statuses
            note: Replacement note, or None to keep the current one

        Returns:
            True if the row was updated
        """
        values: dict[str, object] = {"status": to_status.value, "updated_at": _utc_now()}
        if note is not None:
            values["note"] = note
        stmt = update(WorkflowEntryDB).where(WorkflowEntryDB.id == entry_id)
        if from_statuses is not None:
            stmt = stmt.where(WorkflowEntryDB.status.in_([s.value for s in from_statuses]))
        result = self.session.execute(stmt.values(**values))
        return (result.rowcount or 0) > 0

    def all_urls(self, source_id: str | None = None) -> set[str]:
        stmt = select(WorkflowEntryDB.url)
        if source_id:
            stmt = stmt.where(WorkflowEntryDB.source_id == source_id)
        return set(self.session.execute(stmt).scalars().all())

    def count_by_status(self, source_id: str | None = None) -> dict[WorkflowStatus, int]:
        stmt = select(WorkflowEntryDB.status, func.count()).group_by(WorkflowEntryDB.status)
        if source_id:
            stmt = stmt.where(WorkflowEntryDB.source_id == source_id)
        counts = {status: 0 for status in WorkflowStatus}
        for status, count in self.session.execute(stmt).all():
            counts[WorkflowStatus(status)] = count
        return counts

    def _to_domain(self, db_item: WorkflowEntryDB) -> WorkflowEntry:
        """Convert database model to domain model."""
        return WorkflowEntry(
            id=db_item.id,
            url=db_item.url,
            source_id=db_item.source_id,
            name=db_item.name or "",
            status=WorkflowStatus(db_item.status),
            note=db_item.note or "",
            created_at=db_item.created_at,
            updated_at=db_item.updated_at,
        )
