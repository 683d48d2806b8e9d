"""
Scraper configuration models.
"""

from __future__ import annotations

from dataclasses import dataclass

from doctor_scraper.domain.scrape_job import DEFAULT_DELAY_MS, DEFAULT_MAX_RETRIES
from doctor_scraper.scraping.urls import DEFAULT_TARGET_HOST


@dataclass(frozen=True)
class ScraperSettings:
    """
    Runtime settings for the doctor directory scraper.
    """

    target_host: str = DEFAULT_TARGET_HOST
    listing_url: str = f"https://{DEFAULT_TARGET_HOST}/"
    default_delay_ms: int = DEFAULT_DELAY_MS
    default_max_retries: int = DEFAULT_MAX_RETRIES
    page_load_timeout_seconds: float = 45.0
    link_wait_seconds: float = 5.0
    load_more_wait_seconds: float = 7.0
    load_more_max_iterations: int = 12
    profile_wait_seconds: float = 8.0
    max_listing_pages: int = 1
    flat_entry_policy: str = "office"
    export_dir: str = "exports"
    headless: bool = True
