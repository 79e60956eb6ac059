"""Repository helpers for listing persistence."""

from .fallback import FallbackListingStore
from .listings import ListingRepository

__all__ = ["ListingRepository", "FallbackListingStore"]
