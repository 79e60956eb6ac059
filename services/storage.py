"""Object storage backends for listing images."""

from __future__ import annotations

import asyncio
import secrets
import string
import time
from pathlib import Path
from typing import List, Optional, Protocol, Sequence
from urllib.parse import quote, unquote, urlsplit

import httpx
from loguru import logger

from utils.error_handling import StorageError

UPLOAD_PREFIX = "uploads"
_TOKEN_ALPHABET = string.digits + string.ascii_lowercase


def build_upload_path(filename: str) -> str:
    """Return ``uploads/<millis>-<token>.<ext>`` for a newly uploaded file."""

    extension = filename.rsplit(".", 1)[-1]
    token = "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(11))
    return f"{UPLOAD_PREFIX}/{int(time.time() * 1000)}-{token}.{extension}"


def storage_path_from_url(url: str) -> str:
    """Best-effort inverse of :func:`build_upload_path` using the last URL segment."""

    file_name = unquote(urlsplit(url).path.rstrip("/").split("/")[-1])
    return f"{UPLOAD_PREFIX}/{file_name}"


class BucketStorage(Protocol):
    """Operations the store needs from an object storage service."""

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: str,
    ) -> None: ...

    def public_url(self, bucket: str, path: str) -> str: ...

    async def remove(self, bucket: str, paths: Sequence[str]) -> List[str]: ...

    def owns(self, url: str) -> bool: ...

    async def close(self) -> None: ...


class LocalBucketStorage:
    """Stores objects on the local filesystem and serves them from ``/storage``."""

    def __init__(self, root: str | Path, public_base_url: str) -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def resolve(self, bucket: str, path: str) -> Path:
        root = self.root.resolve()
        bucket_root = (root / bucket).resolve()
        if bucket_root.parent != root:
            raise StorageError(f"Not a bucket: {bucket}")
        target = (bucket_root / path).resolve()
        if bucket_root not in target.parents:
            raise StorageError(f"Path escapes bucket: {path}")
        return target

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: str,
    ) -> None:
        target = self.resolve(bucket, path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            # "xb" refuses to overwrite an existing object
            with target.open("xb") as handle:
                handle.write(data)

        try:
            await asyncio.to_thread(_write)
        except FileExistsError as exc:
            raise StorageError(f"Object already exists: {bucket}/{path}") from exc
        except OSError as exc:
            raise StorageError(f"Failed to write {bucket}/{path}: {exc}") from exc
        logger.debug("Stored object", bucket=bucket, path=path, size=len(data), content_type=content_type)

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_base_url}/storage/{quote(bucket)}/{quote(path)}"

    async def remove(self, bucket: str, paths: Sequence[str]) -> List[str]:
        removed: List[str] = []
        for path in paths:
            target = self.resolve(bucket, path)
            try:
                await asyncio.to_thread(target.unlink)
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise StorageError(f"Failed to remove {bucket}/{path}: {exc}") from exc
            removed.append(path)
        return removed

    def owns(self, url: str) -> bool:
        return url.startswith(f"{self.public_base_url}/storage/")

    async def close(self) -> None:
        return None


class SupabaseBucketStorage:
    """Talks to the hosted storage REST API of a Supabase project."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._headers = {"Authorization": f"Bearer {api_key}", "apikey": api_key}

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: str,
    ) -> None:
        headers = {
            **self._headers,
            "content-type": content_type,
            "cache-control": cache_control,
            "x-upsert": "false",
        }
        try:
            response = await self._client.post(
                f"{self.base_url}/storage/v1/object/{bucket}/{path}",
                content=data,
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise StorageError(f"Upload of {bucket}/{path} failed: {exc}") from exc

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{quote(bucket)}/{quote(path)}"

    async def remove(self, bucket: str, paths: Sequence[str]) -> List[str]:
        try:
            response = await self._client.request(
                "DELETE",
                f"{self.base_url}/storage/v1/object/{bucket}",
                json={"prefixes": list(paths)},
                headers=self._headers,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise StorageError(f"Removing objects from {bucket} failed: {exc}") from exc

        removed = []
        for item in response.json() or []:
            name = item.get("name") if isinstance(item, dict) else None
            if name:
                removed.append(name)
        return removed

    def owns(self, url: str) -> bool:
        return url.startswith(f"{self.base_url}/storage/v1/object/public/")

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def create_storage(settings) -> BucketStorage:
    """Build the storage backend selected by ``STORAGE_BACKEND``."""

    if settings.storage_backend == "supabase":
        if not settings.supabase_url or not settings.supabase_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_KEY are required for the supabase storage backend")
        logger.info("Using Supabase bucket storage", url=settings.supabase_url)
        return SupabaseBucketStorage(settings.supabase_url, settings.supabase_key)

    logger.info("Using local bucket storage", root=settings.storage_dir)
    return LocalBucketStorage(settings.storage_dir, settings.public_base_url)
