"""Repository for camera listing persistence."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import EDITABLE_FIELDS, NOT_NULL_FIELDS, Listing


def _editable_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be written: {', '.join(sorted(unknown))}")
    values = dict(fields)
    nulls = sorted(key for key in NOT_NULL_FIELDS if key in values and values[key] is None)
    if nulls:
        raise ValueError(f"Fields cannot be null: {', '.join(nulls)}")
    if values.get("price") is not None and values["price"] < 0:
        raise ValueError(f"Price cannot be negative: {values['price']}")
    if "images" in values:
        values["images"] = [img for img in values["images"] or [] if isinstance(img, str)]
    return values


class ListingRepository:
    """Encapsulates persistence logic for listings."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_all(self) -> List[Listing]:
        stmt = select(Listing).order_by(Listing.created_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_by_id(self, listing_id: str) -> Optional[Listing]:
        stmt = select(Listing).where(Listing.id == listing_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(Listing.id)))
        return result.scalar_one()

    async def create_listing(self, fields: Mapping[str, Any]) -> Listing:
        values = _editable_fields(fields)
        listing = Listing(**values)
        listing.images = values.get("images") or []
        self.session.add(listing)
        await self.session.flush()
        logger.debug("Created listing", listing_id=listing.id, title=listing.title)
        return listing

    async def update_listing(self, listing: Listing, fields: Mapping[str, Any]) -> Listing:
        values = _editable_fields(fields)
        for key, value in values.items():
            setattr(listing, key, value)
        listing.update_timestamps()
        await self.session.flush()
        logger.debug("Updated listing", listing_id=listing.id, fields=sorted(values))
        return listing

    async def delete_listing(self, listing: Listing) -> None:
        await self.session.delete(listing)
        await self.session.flush()
        logger.debug("Deleted listing", listing_id=listing.id)
