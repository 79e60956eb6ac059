"""Pydantic schemas for API requests and responses."""

from .listings import (
    DatabaseStatus,
    ImageBatchResponse,
    ImageRemoval,
    ListingCollection,
    ListingCreate,
    ListingForm,
    ListingResponse,
    ListingUpdate,
    NoticeSchema,
    ProductDetail,
    parse_url_images,
)

__all__ = [
    "DatabaseStatus",
    "ImageBatchResponse",
    "ImageRemoval",
    "ListingCollection",
    "ListingCreate",
    "ListingForm",
    "ListingResponse",
    "ListingUpdate",
    "NoticeSchema",
    "ProductDetail",
    "parse_url_images",
]
