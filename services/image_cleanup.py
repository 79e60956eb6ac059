"""Removes stored images that no listing references any more."""

from __future__ import annotations

from loguru import logger
from prometheus_client import Counter

from config import ORPHAN_POLICY_PURGE, ORPHAN_POLICY_RETAIN
from events import ListingImagesDiscarded
from services.event_bus import EventBus
from services.listings import ListingService

IMAGE_CLEANUP_COUNTER = Counter(
    "image_cleanup_total",
    "Discarded listing images, by cleanup outcome",
    labelnames=["outcome"],
)


class ImageCleanupService:
    """Applies the orphaned image policy to ``ListingImagesDiscarded`` events.

    ``retain`` leaves objects in the bucket; ``purge`` deletes the ones this
    store uploaded. Inline data URIs and foreign URLs are never touched.
    """

    def __init__(
        self,
        *,
        listings: ListingService,
        event_bus: EventBus,
        policy: str = ORPHAN_POLICY_RETAIN,
    ) -> None:
        self._listings = listings
        self.policy = policy
        event_bus.subscribe(ListingImagesDiscarded, self._handle_event)

    async def _handle_event(self, event: ListingImagesDiscarded) -> None:
        if self.policy != ORPHAN_POLICY_PURGE:
            IMAGE_CLEANUP_COUNTER.labels(outcome="retained").inc(len(event.image_urls))
            logger.debug(
                "Keeping discarded images",
                listing_id=event.listing_id,
                count=len(event.image_urls),
            )
            return

        storage = self._listings.storage
        for url in event.image_urls:
            if url.startswith("data:") or not storage.owns(url):
                IMAGE_CLEANUP_COUNTER.labels(outcome="skipped").inc()
                continue
            deleted = await self._listings.delete_image(url)
            IMAGE_CLEANUP_COUNTER.labels(outcome="deleted" if deleted else "missing").inc()
            logger.info(
                "Purged discarded image",
                listing_id=event.listing_id,
                url=url,
                deleted=deleted,
            )
