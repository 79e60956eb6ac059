"""Pydantic schemas for camera listings."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


def parse_url_images(text: str) -> List[str]:
    """Split the comma-separated URL box of the admin form."""

    return [part.strip() for part in (text or "").split(",") if part.strip()]


class ListingFields(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    brand: str = Field("", max_length=128)
    condition: str = Field("", max_length=64)
    price: float = Field(..., ge=0)
    year: Optional[str] = Field(None, max_length=32)


class ListingCreate(ListingFields):
    """A listing before the backend assigned its id and timestamps."""

    images: List[str] = Field(default_factory=list)


class ListingUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    brand: Optional[str] = Field(None, max_length=128)
    condition: Optional[str] = Field(None, max_length=64)
    price: Optional[float] = Field(None, ge=0)
    year: Optional[str] = Field(None, max_length=32)
    images: Optional[List[str]] = None

    @field_validator("title", "description", "brand", "condition", "price")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        # Omit a field to leave it unchanged; only year may be cleared
        if value is None:
            raise ValueError("must not be null")
        return value


class ListingResponse(ListingCreate):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ListingForm(ListingFields):
    """Admin form payload: widget images plus the free-text URL box."""

    images: List[str] = Field(default_factory=list, description="Images produced by the upload widget")
    url_images: str = Field("", description="Comma-separated image URLs")

    def combined_images(self) -> List[str]:
        return [*self.images, *parse_url_images(self.url_images)]

    def to_fields(self) -> Dict[str, Any]:
        fields = self.model_dump(exclude={"images", "url_images"})
        fields["images"] = self.combined_images()
        return fields

    @classmethod
    def from_listing(cls, listing: Any) -> "ListingForm":
        """Prefill the edit form: inline images go to the widget, URLs to the text box."""

        images = list(listing.images or [])
        return cls(
            title=listing.title,
            description=listing.description or "",
            brand=listing.brand or "",
            condition=listing.condition or "",
            price=listing.price,
            year=listing.year or None,
            images=[img for img in images if img.startswith("data:")],
            url_images=", ".join(img for img in images if not img.startswith("data:")),
        )


class ListingCollection(BaseModel):
    source: str = Field(..., description="'backend' or 'fallback'")
    items: List[ListingResponse]


class ProductDetail(BaseModel):
    listing: ListingResponse
    related: List[ListingResponse] = Field(default_factory=list)
    contact_url: str


class NoticeSchema(BaseModel):
    title: str
    description: str
    variant: str = "default"


class ImageBatchResponse(BaseModel):
    images: List[str]
    added: List[str]
    notices: List[NoticeSchema] = Field(default_factory=list)
    discarded: List[str] = Field(default_factory=list)


class ImageRemoval(BaseModel):
    """Widget removal: drop one image by position, or all of them when ``index`` is omitted."""

    images: List[str]
    index: Optional[int] = Field(None, ge=0)
    listing_id: Optional[str] = Field(None, description="Listing being edited, if it is already saved")


class DatabaseStatus(BaseModel):
    connected: bool
