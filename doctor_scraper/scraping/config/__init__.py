"""
Config helpers for the doctor directory scraper.
"""

from doctor_scraper.scraping.config.loader import (
    ensure_delay,
    ensure_retries,
    get_scraper_settings,
    merge_config,
)
from doctor_scraper.scraping.config.models import ScraperSettings
from doctor_scraper.scraping.config.store import ScraperConfigStore

__all__ = [
    "ScraperConfigStore",
    "ScraperSettings",
    "ensure_delay",
    "ensure_retries",
    "get_scraper_settings",
    "merge_config",
]
