"""Listing domain events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List


@dataclass(slots=True)
class ListingImagesDiscarded:
    """Emitted when images stop being referenced.

    Raised for images dropped by an update (``updated``), for every image of a
    deleted listing (``deleted``) and for images removed in the admin upload
    widget before the form was saved (``removed``, with an empty
    ``listing_id`` for a listing that does not exist yet).
    """

    listing_id: str
    image_urls: List[str]
    reason: str
    discarded_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
