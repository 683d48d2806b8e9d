"""
Profile-page extraction driven through a live page surface.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from doctor_scraper.scraping.browser.base import PageSurface
from doctor_scraper.scraping.config.models import ScraperSettings
from doctor_scraper.scraping.logging_utils import log_event
from doctor_scraper.scraping.parsing.profile_parser import ProfilePage, parse_profile
from doctor_scraper.scraping.parsing.selectors import NAME_WAIT_SELECTOR, REVEAL_PHONE_SELECTOR
from doctor_scraper.scraping.waiting import await_predicate

logger = logging.getLogger(__name__)

REVEAL_SETTLE_SECONDS = 0.5
REVEAL_FINAL_SETTLE_SECONDS = 0.8


class ProfileExtractor:
    """
    Waits for the profile to render, reveals hidden phone numbers, then
    parses a DOM snapshot.
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

    def extract(self) -> dict[str, Any]:
        if not self.wait_for_profile():
            log_event(logger, logging.DEBUG, "profile_name_wait_timed_out", url=self._surface.url)
        self.reveal_phone_numbers()

        url = self._surface.url
        page = ProfilePage.from_html(self._surface.html(), url=url)
        return parse_profile(page, flat_entry_policy=self._settings.flat_entry_policy)

    def wait_for_profile(self) -> bool:
        found = await_predicate(
            lambda: self._surface.count(NAME_WAIT_SELECTOR) > 0,
            timeout=self._settings.profile_wait_seconds,
            changes=self._surface,
            clock=self._clock,
        )
        return bool(found)

    def reveal_phone_numbers(self) -> int:
        """
        Click every usable "show phone numbers" control. Failures are logged;
        extraction continues with whatever is already visible.
        """

        clicked = 0
        try:
            for control in self._surface.usable_elements(REVEAL_PHONE_SELECTOR):
                self._surface.click(control)
                clicked += 1
                self._surface.pause(REVEAL_SETTLE_SECONDS)
            if clicked:
                self._surface.pause(REVEAL_FINAL_SETTLE_SECONDS)
        except Exception as exc:
            log_event(
                logger,
                logging.WARNING,
                "phone_reveal_failed",
                url=self._surface.url,
                clicked=clicked,
                error=str(exc),
            )
        return clicked
