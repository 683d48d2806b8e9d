"""
doctor_scraper/schemas package marker.
"""

from doctor_scraper.schemas.scraper import (
    ControlResponse,
    ScraperConfigRequest,
    ScraperConfigResponse,
    ScraperStatusResponse,
    StartScrapingRequest,
)

__all__ = [
    "ControlResponse",
    "ScraperConfigRequest",
    "ScraperConfigResponse",
    "ScraperStatusResponse",
    "StartScrapingRequest",
]
