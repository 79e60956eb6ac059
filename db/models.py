"""SQLAlchemy models for camera listings."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import CheckConstraint, DateTime, Float, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON


class Base(DeclarativeBase):
    """Base declarative class for SQLAlchemy models."""


JSONType = JSONB().with_variant(JSON(), "sqlite")

# Columns an admin may write through create/update.
EDITABLE_FIELDS = frozenset({"title", "description", "brand", "condition", "price", "year", "images"})
NOT_NULL_FIELDS = frozenset({"title", "description", "brand", "condition", "price"})


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Listing(Base):
    """A vintage camera offered in the store."""

    __tablename__ = "listings"
    __table_args__ = (CheckConstraint("price >= 0", name="ck_listings_price_non_negative"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    brand: Mapped[str] = mapped_column(String(128), default="", nullable=False, index=True)
    condition: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    price: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    year: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    images: Mapped[List[str]] = mapped_column(JSONType, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    def update_timestamps(self) -> None:
        self.updated_at = _utcnow()
