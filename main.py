from contextlib import asynccontextmanager
from fastapi import FastAPI
from routers import admin, health, storage as storage_router, storefront
from config import load_settings
from db import init_db, close_db, get_session_factory
from repositories import FallbackListingStore
from services.auth import CredentialAuthenticator
from services.event_bus import EventBus
from services.image_cleanup import ImageCleanupService
from services.listings import ListingService
from services.storage import create_storage
from services.storefront import StorefrontService
import logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown events"""
    logger = logging.getLogger(__name__)

    settings = load_settings()
    event_bus: EventBus | None = None
    bucket_storage = None

    try:
        logger.info("Initializing database...")
        await init_db()
        session_factory = get_session_factory()

        bucket_storage = create_storage(settings)
        event_bus = EventBus()
        await event_bus.start()

        listing_service = ListingService(
            session_factory=session_factory,
            storage=bucket_storage,
            bucket=settings.storage_bucket,
            event_bus=event_bus,
            cache_seconds=settings.image_cache_seconds,
        )
        cleanup_service = ImageCleanupService(
            listings=listing_service,
            event_bus=event_bus,
            policy=settings.orphan_image_policy,
        )
        storefront_service = StorefrontService(
            listings=listing_service,
            fallback=FallbackListingStore(settings.fallback_listings_path),
            contact_phone=settings.contact_phone,
            currency=settings.currency,
        )

        app.state.settings = settings
        app.state.storage = bucket_storage
        app.state.event_bus = event_bus
        app.state.listing_service = listing_service
        app.state.image_cleanup = cleanup_service
        app.state.storefront = storefront_service
        app.state.authenticator = CredentialAuthenticator(settings.admin_username, settings.admin_password)

        logger.info("Application startup completed successfully")

        yield

    except Exception as e:
        logger.error(f"Application startup failed: {e}")
        raise
    finally:
        logger.info("Application shutdown initiated...")

        if event_bus:
            try:
                await event_bus.stop()
                logger.info("Event bus stopped successfully")
            except Exception as e:
                logger.error(f"Error stopping event bus: {e}")

        if bucket_storage:
            try:
                await bucket_storage.close()
                logger.info("Bucket storage closed successfully")
            except Exception as e:
                logger.error(f"Error closing bucket storage: {e}")

        try:
            await close_db()
            logger.info("Database connections closed successfully")
        except Exception as e:
            logger.error(f"Error closing database: {e}")

        logger.info("Application shutdown completed")


app = FastAPI(title="Vintage Camera Store", version="1.0.0", lifespan=lifespan)


@app.get("/")
async def root():
    return {
        "message": "Welcome to the Vintage Camera Store API",
        "endpoints": [
            "/listings",
            "/listings/{id}",
            "/admin/listings",
            "/admin/images",
            "/health/database",
            "/metrics",
        ],
        "status": "operational",
    }


app.include_router(storefront.router)
app.include_router(admin.router)
app.include_router(health.router)
app.include_router(storage_router.router)
