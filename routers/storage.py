"""Serves images written by the local bucket storage."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse

from services.storage import LocalBucketStorage
from utils.error_handling import StorageError

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("/{bucket}/{path:path}")
async def get_object(request: Request, bucket: str, path: str) -> FileResponse:
    storage = getattr(request.app.state, "storage", None)
    if not isinstance(storage, LocalBucketStorage) or bucket != request.app.state.settings.storage_bucket:
        raise HTTPException(status_code=404, detail="Object not found")
    try:
        target = storage.resolve(bucket, path)
    except StorageError as exc:
        raise HTTPException(status_code=404, detail="Object not found") from exc
    if not target.is_file():
        raise HTTPException(status_code=404, detail="Object not found")

    cache_seconds = request.app.state.settings.image_cache_seconds
    return FileResponse(target, headers={"Cache-Control": f"max-age={cache_seconds}"})
