"""Runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from loguru import logger

ORPHAN_POLICY_RETAIN = "retain"
ORPHAN_POLICY_PURGE = "purge"


@dataclass(slots=True)
class StoreSettings:
    """Settings shared by the storefront and the admin console."""

    storage_backend: str = "local"
    storage_dir: str = "./storage"
    storage_bucket: str = "camera-images"
    public_base_url: str = "http://localhost:8000"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    fallback_listings_path: str = "./cameraListings.json"
    contact_phone: str = "971522083985"
    currency: str = "AED"
    admin_username: str = "admin"
    admin_password: Optional[str] = None
    orphan_image_policy: str = ORPHAN_POLICY_RETAIN
    image_cache_seconds: int = 3600


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer environment value", name=name, value=raw)
        return default


def load_settings() -> StoreSettings:
    """Build settings from environment variables, falling back to defaults."""

    defaults = StoreSettings()
    policy = os.getenv("ORPHAN_IMAGE_POLICY", defaults.orphan_image_policy).strip().lower()
    if policy not in {ORPHAN_POLICY_RETAIN, ORPHAN_POLICY_PURGE}:
        logger.warning("Unknown orphan image policy, keeping images", policy=policy)
        policy = ORPHAN_POLICY_RETAIN

    settings = StoreSettings(
        storage_backend=os.getenv("STORAGE_BACKEND", defaults.storage_backend).strip().lower(),
        storage_dir=os.getenv("STORAGE_DIR", defaults.storage_dir),
        storage_bucket=os.getenv("STORAGE_BUCKET", defaults.storage_bucket),
        public_base_url=os.getenv("PUBLIC_BASE_URL", defaults.public_base_url).rstrip("/"),
        supabase_url=os.getenv("SUPABASE_URL") or None,
        supabase_key=os.getenv("SUPABASE_KEY") or None,
        fallback_listings_path=os.getenv("FALLBACK_LISTINGS_PATH", defaults.fallback_listings_path),
        contact_phone=os.getenv("CONTACT_PHONE", defaults.contact_phone),
        currency=os.getenv("CURRENCY", defaults.currency),
        admin_username=os.getenv("ADMIN_USERNAME", defaults.admin_username),
        admin_password=os.getenv("ADMIN_PASSWORD") or None,
        orphan_image_policy=policy,
        image_cache_seconds=_int_env("IMAGE_CACHE_SECONDS", defaults.image_cache_seconds),
    )
    if settings.admin_password is None:
        logger.warning("ADMIN_PASSWORD is not set; admin console logins will be rejected")
    return settings
