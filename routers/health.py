"""Database badge for the admin console and the Prometheus scrape endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from schemas import DatabaseStatus

router = APIRouter(tags=["monitoring"])


@router.get("/health/database", response_model=DatabaseStatus)
async def database_status(request: Request) -> DatabaseStatus:
    listings = getattr(request.app.state, "listing_service", None)
    if listings is None:
        return DatabaseStatus(connected=False)
    return DatabaseStatus(connected=await listings.check_connection())


@router.get("/metrics")
async def metrics() -> Response:
    """Listing backend, image intake and cleanup counters."""

    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
