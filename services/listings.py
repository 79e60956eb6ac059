"""Listing access for the storefront and admin console.

Every operation is a single request/response round trip against the listings
table or the image bucket. Failures are logged and turned into a sentinel
return value (``[]``, ``None`` or ``False``) instead of propagating, with
:meth:`ListingService.fetch_all` as the one strict read for callers that need
to tell an empty catalogue apart from a failed query.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from loguru import logger
from prometheus_client import Counter
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from db.models import Listing
from events import ListingImagesDiscarded
from repositories import ListingRepository
from services.event_bus import EventBus
from services.image_intake import IncomingFile
from services.storage import BucketStorage, build_upload_path, storage_path_from_url
from utils.error_handling import BackendError, StorageError, record_failure

DEFAULT_BUCKET = "camera-images"

BACKEND_FAILURES = Counter(
    "listing_backend_failures_total",
    "Listing operations that returned their fallback value",
    labelnames=["operation"],
)

_BACKEND_ERRORS = (SQLAlchemyError, OSError)


class ListingService:
    """Fail-soft access to listings and their stored images."""

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker,
        storage: BucketStorage,
        bucket: str = DEFAULT_BUCKET,
        event_bus: Optional[EventBus] = None,
        cache_seconds: int = 3600,
    ) -> None:
        self._session_factory = session_factory
        self._storage = storage
        self._event_bus = event_bus
        self.bucket = bucket
        self.cache_seconds = cache_seconds

    @property
    def storage(self) -> BucketStorage:
        return self._storage

    async def fetch_all(self) -> List[Listing]:
        """Return all listings newest first, raising :class:`BackendError` on failure."""

        try:
            async with self._session_factory() as session:
                return await ListingRepository(session).list_all()
        except _BACKEND_ERRORS as exc:
            BACKEND_FAILURES.labels(operation="list_all").inc()
            raise BackendError(record_failure(exc, "list_all")) from exc

    async def list_all(self) -> List[Listing]:
        try:
            return await self.fetch_all()
        except BackendError:
            return []

    async def get(self, listing_id: str) -> Optional[Listing]:
        try:
            async with self._session_factory() as session:
                return await ListingRepository(session).get_by_id(listing_id)
        except _BACKEND_ERRORS as exc:
            BACKEND_FAILURES.labels(operation="get").inc()
            record_failure(exc, "get_listing", listing_id=listing_id)
            return None

    async def create(self, fields: Mapping[str, Any]) -> Optional[Listing]:
        try:
            async with self._session_factory() as session:
                listing = await ListingRepository(session).create_listing(fields)
                await session.commit()
        except (*_BACKEND_ERRORS, ValueError, TypeError) as exc:
            BACKEND_FAILURES.labels(operation="create").inc()
            record_failure(exc, "create_listing")
            return None

        logger.info("Listing created", listing_id=listing.id, title=listing.title)
        return listing

    async def update(self, listing_id: str, fields: Mapping[str, Any]) -> Optional[Listing]:
        try:
            async with self._session_factory() as session:
                repo = ListingRepository(session)
                listing = await repo.get_by_id(listing_id)
                if listing is None:
                    raise ValueError(f"Listing {listing_id} not found")
                previous_images = list(listing.images or [])
                listing = await repo.update_listing(listing, fields)
                await session.commit()
        except (*_BACKEND_ERRORS, ValueError, TypeError) as exc:
            BACKEND_FAILURES.labels(operation="update").inc()
            record_failure(exc, "update_listing", listing_id=listing_id)
            return None

        logger.info("Listing updated", listing_id=listing.id)
        current = set(listing.images or [])
        dropped = [image for image in previous_images if image not in current]
        if dropped:
            await self._publish(ListingImagesDiscarded(listing_id=listing.id, image_urls=dropped, reason="updated"))
        return listing

    async def delete(self, listing_id: str) -> bool:
        try:
            async with self._session_factory() as session:
                repo = ListingRepository(session)
                listing = await repo.get_by_id(listing_id)
                if listing is None:
                    logger.debug("Delete requested for absent listing", listing_id=listing_id)
                    return True
                images = list(listing.images or [])
                await repo.delete_listing(listing)
                await session.commit()
        except _BACKEND_ERRORS as exc:
            BACKEND_FAILURES.labels(operation="delete").inc()
            record_failure(exc, "delete_listing", listing_id=listing_id)
            return False

        logger.info("Listing deleted", listing_id=listing_id)
        if images:
            await self._publish(ListingImagesDiscarded(listing_id=listing_id, image_urls=images, reason="deleted"))
        return True

    async def check_connection(self) -> bool:
        try:
            async with self._session_factory() as session:
                await ListingRepository(session).count()
        except _BACKEND_ERRORS as exc:
            record_failure(exc, "check_connection")
            return False
        return True

    async def upload_image(self, file: IncomingFile, bucket: Optional[str] = None) -> Optional[str]:
        """Store an image and return its public URL, or ``None`` so the caller can fall back."""

        bucket = bucket or self.bucket
        path = build_upload_path(file.filename)
        try:
            data = await file.read()
            await self._storage.upload(
                bucket,
                path,
                data,
                content_type=file.content_type,
                cache_control=f"max-age={self.cache_seconds}",
            )
        except Exception as exc:
            BACKEND_FAILURES.labels(operation="upload_image").inc()
            record_failure(exc, "upload_image", filename=file.filename, bucket=bucket)
            return None

        url = self._storage.public_url(bucket, path)
        logger.info("Image uploaded", bucket=bucket, path=path)
        return url

    async def delete_image(self, url: str, bucket: Optional[str] = None) -> bool:
        bucket = bucket or self.bucket
        path = storage_path_from_url(url)
        try:
            removed = await self._storage.remove(bucket, [path])
        except StorageError as exc:
            BACKEND_FAILURES.labels(operation="delete_image").inc()
            record_failure(exc, "delete_image", bucket=bucket, url=url)
            return False

        if path not in removed:
            logger.debug("No stored object matched image URL", url=url, path=path)
            return False
        logger.info("Image deleted", bucket=bucket, path=path)
        return True

    async def discard_images(self, urls: List[str], listing_id: Optional[str] = None) -> List[str]:
        """Report images removed in the upload widget to the orphaned image policy.

        Images the saved listing still references are held back; saving the
        form reports them through :meth:`update` instead. Returns the URLs
        that were reported.
        """

        pending = [url for url in urls if url]
        if listing_id and pending:
            listing = await self.get(listing_id)
            if listing is not None:
                saved = set(listing.images or [])
                pending = [url for url in pending if url not in saved]
        if pending:
            await self._publish(
                ListingImagesDiscarded(listing_id=listing_id or "", image_urls=pending, reason="removed")
            )
        return pending

    async def _publish(self, event: ListingImagesDiscarded) -> None:
        if self._event_bus is not None:
            await self._event_bus.publish(event)
