"""Local JSON copy of the catalogue used when the listings table is unreachable."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List

from loguru import logger

SAMPLE_LISTINGS: List[Dict[str, Any]] = [
    {
        "id": "1",
        "title": "Canon AE-1 Program",
        "description": "Classic 35mm SLR camera in excellent condition. Perfect for film photography enthusiasts.",
        "price": 1100,
        "images": ["/placeholder.svg?height=400&width=400"],
        "condition": "Excellent",
        "year": "1981",
        "brand": "Canon",
    },
    {
        "id": "2",
        "title": "Nikon FM2",
        "description": "Professional mechanical SLR camera. Built like a tank and ready for any adventure.",
        "price": 1650,
        "images": ["/placeholder.svg?height=400&width=400"],
        "condition": "Very Good",
        "year": "1982",
        "brand": "Nikon",
    },
]


class FallbackListingStore:
    """Reads ``cameraListings.json``, seeding it with sample cameras on first use."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    async def load(self) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._load_sync)

    def _load_sync(self) -> List[Dict[str, Any]]:
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("Unreadable fallback listings file", path=str(self.path), error=str(exc))
                return [dict(item) for item in SAMPLE_LISTINGS]
            return [item for item in data or [] if isinstance(item, dict)]

        listings = [dict(item) for item in SAMPLE_LISTINGS]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(listings, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not seed fallback listings file", path=str(self.path), error=str(exc))
        else:
            logger.info("Seeded fallback listings", path=str(self.path), count=len(listings))
        return listings
