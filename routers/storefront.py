"""Public catalogue and product pages."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from schemas import ListingCollection, ProductDetail
from services.storefront import StorefrontService

router = APIRouter(prefix="/listings", tags=["storefront"])


def _get_storefront(request: Request) -> StorefrontService:
    storefront = getattr(request.app.state, "storefront", None)
    if storefront is None:
        raise HTTPException(status_code=503, detail="Storefront is not available")
    return storefront


@router.get("", response_model=ListingCollection)
async def list_listings(request: Request) -> ListingCollection:
    catalogue = await _get_storefront(request).browse()
    return ListingCollection(source=catalogue.source, items=catalogue.items)


@router.get("/{listing_id}", response_model=ProductDetail)
async def get_listing(request: Request, listing_id: str) -> ProductDetail:
    page = await _get_storefront(request).product(listing_id)
    if page is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    return ProductDetail(listing=page.listing, related=page.related, contact_url=page.contact_url)
