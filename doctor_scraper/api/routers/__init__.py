"""
doctor_scraper/api/routers package marker.
"""

from doctor_scraper.api.routers.scraper import router as scraper_router

__all__ = [
    "scraper_router",
]
