"""Read side of the shop: the catalogue and product pages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from loguru import logger
from pydantic import ValidationError

from repositories import FallbackListingStore
from schemas import ListingResponse
from services.listings import ListingService
from utils.contact import build_contact_url
from utils.error_handling import BackendError

RELATED_LIMIT = 3
RELATED_PRICE_RATIO = 0.3


@dataclass(slots=True)
class Catalogue:
    items: List[ListingResponse]
    source: str


@dataclass(slots=True)
class ProductPage:
    listing: ListingResponse
    contact_url: str
    related: List[ListingResponse] = field(default_factory=list)


def find_related(listing: ListingResponse, candidates: Sequence[ListingResponse]) -> List[ListingResponse]:
    """Same brand, or a price within 30% of the listing's price."""

    related = [
        item
        for item in candidates
        if item.id != listing.id
        and (
            item.brand == listing.brand
            or abs(item.price - listing.price) < listing.price * RELATED_PRICE_RATIO
        )
    ]
    return related[:RELATED_LIMIT]


def _valid_records(records: Sequence[dict]) -> List[ListingResponse]:
    items = []
    for position, record in enumerate(records):
        try:
            items.append(ListingResponse.model_validate(record))
        except ValidationError as exc:
            logger.warning("Skipping invalid fallback listing", position=position, errors=exc.error_count())
    return items


class StorefrontService:
    def __init__(
        self,
        *,
        listings: ListingService,
        fallback: FallbackListingStore,
        contact_phone: str,
        currency: str = "AED",
    ) -> None:
        self._listings = listings
        self._fallback = fallback
        self.contact_phone = contact_phone
        self.currency = currency

    async def browse(self) -> Catalogue:
        try:
            rows = await self._listings.fetch_all()
        except BackendError:
            logger.warning("Serving fallback catalogue", path=str(self._fallback.path))
            return Catalogue(items=_valid_records(await self._fallback.load()), source="fallback")
        return Catalogue(items=[ListingResponse.model_validate(row) for row in rows], source="backend")

    async def product(self, listing_id: str) -> Optional[ProductPage]:
        catalogue = await self.browse()
        listing = next((item for item in catalogue.items if item.id == listing_id), None)
        if listing is None:
            return None
        return ProductPage(
            listing=listing,
            contact_url=self.contact_url(listing),
            related=find_related(listing, catalogue.items),
        )

    def contact_url(self, listing: ListingResponse) -> str:
        return build_contact_url(listing.title, listing.price, self.contact_phone, self.currency)
