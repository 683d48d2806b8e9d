"""
doctor_scraper/domain package marker.
"""

from doctor_scraper.domain.doctor import DoctorRecord, Office
from doctor_scraper.domain.scrape_job import (
    ErrorEntry,
    ErrorLedger,
    LastDoctor,
    RetryState,
    ScrapeJob,
    ScraperConfig,
    StatusSnapshot,
)

__all__ = [
    "DoctorRecord",
    "ErrorEntry",
    "ErrorLedger",
    "LastDoctor",
    "Office",
    "RetryState",
    "ScrapeJob",
    "ScraperConfig",
    "StatusSnapshot",
]
