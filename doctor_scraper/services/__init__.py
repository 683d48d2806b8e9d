"""
doctor_scraper/services package marker.
"""

from doctor_scraper.services.scraper_service import (
    DoctorScraperService,
    build_scraper_service,
    get_scraper_service,
    shutdown_scraper_service,
)

__all__ = [
    "DoctorScraperService",
    "build_scraper_service",
    "get_scraper_service",
    "shutdown_scraper_service",
]
