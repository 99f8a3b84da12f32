"""SQLAlchemy ORM models for the lure catalog.

- LureDB: one catalog row per product x color x weight
- WorkflowEntryDB: one queued source URL with its processing status
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def _generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid4())


def weight_key(weight: float | None) -> str:
    """
    Encode a weight for the unique constraint.

    SQL treats NULLs as distinct, so a missing weight is stored as "".
    """
    if weight is None:
        return ""
    return f"{weight:g}"


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ============================================================================
# Catalog
# ============================================================================


class LureDB(Base):
    """
    Database model for catalog rows.

    The unique constraint on the dedup key makes re-scrapes upsert in place.
    """

    __tablename__ = "lures"
    __table_args__ = (
        UniqueConstraint(
            "manufacturer_slug", "source_url", "color_name", "weight_key",
            name="uq_lures_dedup_key",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name_kana: Mapped[str] = mapped_column(String(255), default="")
    slug: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    manufacturer: Mapped[str] = mapped_column(String(255), nullable=False)
    manufacturer_slug: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(100), default="")
    price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str] = mapped_column(Text, default="")
    images_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON array
    target_fish_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON array
    length: Mapped[float | None] = mapped_column(Float, nullable=True)
    weight: Mapped[float | None] = mapped_column(Float, nullable=True)
    weight_key: Mapped[str] = mapped_column(String(32), default="")
    color_name: Mapped[str] = mapped_column(String(255), default="")
    color_description: Mapped[str] = mapped_column(Text, default="")
    is_limited: Mapped[bool] = mapped_column(Boolean, default=False)
    is_discontinued: Mapped[bool] = mapped_column(Boolean, default=False)
    source_url: Mapped[str] = mapped_column(String(1000), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)

    def __repr__(self) -> str:
        return f"<LureDB(id={self.id}, slug='{self.slug}', color='{self.color_name}', weight={self.weight})>"


# ============================================================================
# Workflow
# ============================================================================


class WorkflowEntryDB(Base):
    """Database model for workflow queue entries, keyed by URL."""

    __tablename__ = "workflow_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    url: Mapped[str] = mapped_column(String(1000), nullable=False, unique=True)
    source_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    note: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)

    def __repr__(self) -> str:
        return f"<WorkflowEntryDB(id={self.id}, url='{self.url}', status={self.status})>"
