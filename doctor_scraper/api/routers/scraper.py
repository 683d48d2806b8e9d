"""
doctor_scraper/api/routers/scraper.py

Scraper control endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException, status

from doctor_scraper.schemas.scraper import (
    ControlResponse,
    ScraperConfigRequest,
    ScraperConfigResponse,
    ScraperStatusResponse,
    StartScrapingRequest,
)
from doctor_scraper.services.scraper_service import DoctorScraperService, get_scraper_service

router = APIRouter(prefix="/scraper", tags=["scraper"])


@router.post("/start", response_model=ControlResponse)
def start_scraping(
    payload: StartScrapingRequest | None = Body(default=None),
    scraper_service: DoctorScraperService = Depends(get_scraper_service),
) -> ControlResponse:
    """
    Discover profile links on the active listing tab and start a run.
    """

    payload = payload or StartScrapingRequest()
    result = scraper_service.start_scraping(payload.changes(), listing_url=payload.listing_url)
    if result.get("status") == "error":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.get("message") or "Could not start scraping.",
        )
    return ControlResponse(**result)


@router.post("/stop", response_model=ControlResponse)
def stop_scraping(
    scraper_service: DoctorScraperService = Depends(get_scraper_service),
) -> ControlResponse:
    """
    Request cancellation; the profile in flight finishes first.
    """

    result = scraper_service.stop_scraping()
    if result.get("status") == "error":
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=result.get("message") or "Could not stop scraping.",
        )
    return ControlResponse(**result)


@router.get("/status", response_model=ScraperStatusResponse)
def get_status(
    scraper_service: DoctorScraperService = Depends(get_scraper_service),
) -> ScraperStatusResponse:
    result = scraper_service.get_status()
    if result.get("status") == "error":
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=result.get("message") or "Status unavailable.",
        )
    return ScraperStatusResponse(**result)


@router.put("/config", response_model=ScraperConfigResponse)
def update_config(
    payload: ScraperConfigRequest,
    scraper_service: DoctorScraperService = Depends(get_scraper_service),
) -> ScraperConfigResponse:
    result = scraper_service.update_config(payload.changes())
    if result.get("status") == "error":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.get("message") or "Could not update the configuration.",
        )
    return ScraperConfigResponse(**result)
