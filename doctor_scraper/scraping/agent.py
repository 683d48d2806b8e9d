"""
In-page message handler for the listing and profile tabs.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from doctor_scraper.scraping.browser.base import PageSurface
from doctor_scraper.scraping.config.models import ScraperSettings
from doctor_scraper.scraping.discovery import LinkDiscoverer
from doctor_scraper.scraping.extractor import ProfileExtractor
from doctor_scraper.scraping.logging_utils import log_event

logger = logging.getLogger(__name__)

GET_DOCTOR_LINKS = "GET_DOCTOR_LINKS"
SCRAPE_DOCTOR_DETAILS = "SCRAPE_DOCTOR_DETAILS"


class PageAgent:
    """
    Answers controller messages from inside one tab. Failures are reported
    in the reply as ``{"error": message}`` instead of being raised.
    """

    def __init__(
        self,
        surface: PageSurface,
        *,
        settings: ScraperSettings,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._surface = surface
        self._settings = settings
        self._clock = clock

    def handle(self, message: dict[str, Any]) -> dict[str, Any]:
        message_type = (message or {}).get("type")
        try:
            if message_type == GET_DOCTOR_LINKS:
                listing = LinkDiscoverer(self._surface, settings=self._settings, clock=self._clock).discover()
                return {"links": listing.links, "next_page_url": listing.next_page_url}
            if message_type == SCRAPE_DOCTOR_DETAILS:
                data = ProfileExtractor(self._surface, settings=self._settings, clock=self._clock).extract()
                return {"data": data}
        except Exception as exc:
            log_event(logger, logging.ERROR, "agent_message_failed", type=message_type, error=str(exc))
            return {"error": str(exc) or exc.__class__.__name__}
        return {"error": f"Unsupported message type: {message_type}"}


def agent_factory(settings: ScraperSettings) -> Callable[[PageSurface], PageAgent]:
    def build(surface: PageSurface) -> PageAgent:
        return PageAgent(surface, settings=settings)

    return build
