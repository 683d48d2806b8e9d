"""
Listing-page link discovery driven through a live page surface.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from bs4 import BeautifulSoup

from doctor_scraper.scraping.browser.base import PageSurface
from doctor_scraper.scraping.config.models import ScraperSettings
from doctor_scraper.scraping.logging_utils import log_event
from doctor_scraper.scraping.parsing.listing_parser import find_next_page_url, harvest_profile_links
from doctor_scraper.scraping.parsing.selectors import (
    LOAD_MORE_SELECTORS,
    PROFILE_CARD_SELECTOR,
    PROFILE_LINK_WAIT_SELECTOR,
)
from doctor_scraper.scraping.waiting import await_predicate

logger = logging.getLogger(__name__)

LOAD_MORE_PAUSE_SECONDS = 0.35


@dataclass(frozen=True)
class ListingPage:
    links: list[str] = field(default_factory=list)
    next_page_url: str | None = None


class LinkDiscoverer:
    """
    Expands a listing page through its "show more" control and harvests
    canonical profile links from the resulting DOM.
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

    def discover(self) -> ListingPage:
        self.wait_for_profile_links()
        clicks = self.expand_listing()

        base_url = self._surface.url
        soup = BeautifulSoup(self._surface.html(), "html.parser")
        page = ListingPage(
            links=harvest_profile_links(
                soup,
                base_url=base_url,
                target_host=self._settings.target_host,
            ),
            next_page_url=find_next_page_url(soup, base_url=base_url),
        )
        log_event(
            logger,
            logging.INFO,
            "listing_links_discovered",
            url=base_url,
            links=len(page.links),
            load_more_clicks=clicks,
            next_page_url=page.next_page_url,
        )
        return page

    def wait_for_profile_links(self) -> bool:
        found = await_predicate(
            lambda: self._surface.count(PROFILE_LINK_WAIT_SELECTOR) > 0,
            timeout=self._settings.link_wait_seconds,
            changes=self._surface,
            clock=self._clock,
        )
        return bool(found)

    def find_load_more_control(self) -> Any | None:
        for selector in LOAD_MORE_SELECTORS:
            controls = self._surface.usable_elements(selector)
            if controls:
                return controls[0]
        return None

    def expand_listing(self) -> int:
        """
        Click "show more" until it disappears, stops adding cards, or the
        iteration cap is hit. Returns the number of productive clicks.
        """

        clicks = 0
        previous_count = self._surface.count(PROFILE_CARD_SELECTOR)
        while clicks < self._settings.load_more_max_iterations:
            control = self.find_load_more_control()
            if control is None:
                break

            self._surface.click(control)
            baseline = previous_count
            updated_count = await_predicate(
                lambda: _count_if_above(self._surface.count(PROFILE_CARD_SELECTOR), baseline),
                timeout=self._settings.load_more_wait_seconds,
                changes=self._surface,
                clock=self._clock,
            )
            if not updated_count:
                break

            previous_count = updated_count
            clicks += 1
            self._surface.pause(LOAD_MORE_PAUSE_SECONDS)
        return clicks


def _count_if_above(count: int, baseline: int) -> int:
    return count if count > baseline else 0
