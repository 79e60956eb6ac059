"""Admin console endpoints for managing listings and their images."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from schemas import (
    ImageBatchResponse,
    ImageRemoval,
    ListingForm,
    ListingResponse,
    ListingUpdate,
    NoticeSchema,
)
from services.auth import CredentialAuthenticator
from services.image_intake import ImageIntake, IncomingFile
from services.listings import ListingService

_basic = HTTPBasic()


def _get_authenticator(request: Request) -> CredentialAuthenticator:
    authenticator = getattr(request.app.state, "authenticator", None)
    if authenticator is None:
        raise HTTPException(status_code=503, detail="Admin console is not available")
    return authenticator


def require_admin(
    request: Request,
    credentials: HTTPBasicCredentials = Depends(_basic),
) -> str:
    if not _get_authenticator(request).verify(credentials.username, credentials.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


def _get_listings(request: Request) -> ListingService:
    service = getattr(request.app.state, "listing_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Listing backend is not available")
    return service


router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.post("/login")
async def login(username: str = Depends(require_admin)) -> dict:
    return {"message": "Welcome to the admin panel", "username": username}


@router.get("/listings", response_model=List[ListingResponse])
async def list_listings(request: Request) -> List[ListingResponse]:
    listings = await _get_listings(request).list_all()
    return [ListingResponse.model_validate(listing) for listing in listings]


@router.post("/listings", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
async def create_listing(request: Request, payload: ListingForm) -> ListingResponse:
    listing = await _get_listings(request).create(payload.to_fields())
    if listing is None:
        raise HTTPException(status_code=502, detail="Failed to save the listing")
    return ListingResponse.model_validate(listing)


@router.get("/listings/{listing_id}/form", response_model=ListingForm)
async def get_listing_form(request: Request, listing_id: str) -> ListingForm:
    listing = await _get_listings(request).get(listing_id)
    if listing is None:
        raise HTTPException(status_code=404, detail="Listing not found")
    return ListingForm.from_listing(listing)


@router.put("/listings/{listing_id}", response_model=ListingResponse)
async def replace_listing(request: Request, listing_id: str, payload: ListingForm) -> ListingResponse:
    listing = await _get_listings(request).update(listing_id, payload.to_fields())
    if listing is None:
        raise HTTPException(status_code=502, detail="Failed to update the listing")
    return ListingResponse.model_validate(listing)


@router.patch("/listings/{listing_id}", response_model=ListingResponse)
async def patch_listing(request: Request, listing_id: str, payload: ListingUpdate) -> ListingResponse:
    listing = await _get_listings(request).update(listing_id, payload.model_dump(exclude_unset=True))
    if listing is None:
        raise HTTPException(status_code=502, detail="Failed to update the listing")
    return ListingResponse.model_validate(listing)


@router.delete("/listings/{listing_id}")
async def delete_listing(request: Request, listing_id: str) -> dict:
    if not await _get_listings(request).delete(listing_id):
        raise HTTPException(status_code=502, detail="Failed to delete the listing")
    return {"deleted": True, "id": listing_id}


@router.post("/images", response_model=ImageBatchResponse)
async def upload_images(
    request: Request,
    files: List[UploadFile] = File(...),
    existing: Optional[List[str]] = Form(None),
) -> ImageBatchResponse:
    """Run a batch through the image intake, starting from the form's current images."""

    service = _get_listings(request)
    intake = ImageIntake(service.upload_image, images=existing or [])
    result = await intake.select([IncomingFile.from_upload(upload) for upload in files])
    notices = [NoticeSchema(**notice.to_dict()) for notice in intake.notices]
    if not result.accepted:
        raise HTTPException(status_code=400, detail=[notice.model_dump() for notice in notices])
    return ImageBatchResponse(images=result.images, added=result.added, notices=notices)


@router.delete("/images")
async def delete_image(request: Request, url: str = Query(..., min_length=1)) -> dict:
    deleted = await _get_listings(request).delete_image(url)
    return {"deleted": deleted, "url": url}


@router.post("/images/remove", response_model=ImageBatchResponse)
async def remove_images(request: Request, payload: ImageRemoval) -> ImageBatchResponse:
    """Remove one widget image, or clear them all, and report what was discarded."""

    service = _get_listings(request)
    intake = ImageIntake(service.upload_image, images=payload.images)
    if payload.index is None:
        intake.clear_all_images()
    else:
        try:
            intake.remove_image(payload.index)
        except IndexError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    discarded = await service.discard_images(intake.discarded, listing_id=payload.listing_id)
    notices = [NoticeSchema(**notice.to_dict()) for notice in intake.notices]
    return ImageBatchResponse(images=intake.images, added=[], notices=notices, discarded=discarded)
