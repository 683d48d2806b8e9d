"""
Lifecycle of the single profile tab used for scraping.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from doctor_scraper.scraping.browser.base import BrowserDriver, TabInfo
from doctor_scraper.scraping.errors import (
    BrowserError,
    InvalidProfileUrlError,
    NavigationTimeoutError,
    NoReceiverError,
    NoSuchTabError,
    SessionClosedError,
    UnsupportedTabPropertyError,
)
from doctor_scraper.scraping.logging_utils import log_event
from doctor_scraper.scraping.urls import DEFAULT_TARGET_HOST, canonicalize_profile_url
from doctor_scraper.scraping.waiting import await_predicate

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LOAD_TIMEOUT_SECONDS = 45.0


class _TabChangeFeed:
    def __init__(self, driver: BrowserDriver, tab_id: str) -> None:
        self._driver = driver
        self._tab_id = tab_id

    def wait_for_change(self, timeout: float) -> bool:
        try:
            return self._driver.wait_for_tab_change(self._tab_id, timeout)
        except NoSuchTabError:
            # Let the predicate observe the closed tab.
            return True


class SessionLifecycleManager:
    """
    Owns at most one profile tab: creates it next to the listing tab, reuses
    it across profiles, waits for loads and tears it down.
    """

    def __init__(
        self,
        driver: BrowserDriver,
        *,
        target_host: str = DEFAULT_TARGET_HOST,
        page_load_timeout: float = DEFAULT_PAGE_LOAD_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._driver = driver
        self._target_host = target_host
        self._page_load_timeout = page_load_timeout
        self._clock = clock
        self._lock = threading.RLock()
        self._profile_tab_id: str | None = None
        self._origin_window_id: str | None = None
        self._origin_index: int | None = None
        self._auto_discard_supported = True

    @property
    def profile_tab_id(self) -> str | None:
        return self._profile_tab_id

    @property
    def auto_discard_supported(self) -> bool:
        return self._auto_discard_supported

    def remember_origin(self, tab: TabInfo) -> None:
        """
        New profile tabs open in the listing tab's window, right after it.
        """

        self._origin_window_id = tab.window_id
        self._origin_index = tab.index + 1 if tab.index is not None else None

    def forget_origin(self) -> None:
        self._origin_window_id = None
        self._origin_index = None

    def ensure_session(self, url: str) -> str:
        """
        Load `url` in the profile tab and return the tab id once it finished
        loading. An existing tab is reused; a tab that fails to navigate is
        replaced by a fresh one.
        """

        target_url = canonicalize_profile_url(url, target_host=self._target_host)
        if not target_url:
            raise InvalidProfileUrlError("Invalid doctor profile URL provided.")

        with self._lock:
            tab_id = self._profile_tab_id
            if tab_id is not None:
                try:
                    self._driver.navigate(tab_id, target_url)
                    self._mark_auto_discardable(tab_id)
                    self.wait_for_load(tab_id)
                    return tab_id
                except BrowserError as exc:
                    log_event(
                        logger,
                        logging.WARNING,
                        "profile_tab_reuse_failed",
                        tab_id=tab_id,
                        url=target_url,
                        error=str(exc),
                    )
                    self.cleanup()

            return self._create_session(target_url)

    def _create_session(self, url: str) -> str:
        tab = self._driver.create_tab(
            url,
            active=False,
            window_id=self._origin_window_id,
            index=self._origin_index,
        )
        self._profile_tab_id = tab.id
        log_event(logger, logging.DEBUG, "profile_tab_created", tab_id=tab.id, url=url)
        self._mark_auto_discardable(tab.id)
        self.wait_for_load(tab.id)
        return tab.id

    def _mark_auto_discardable(self, tab_id: str) -> None:
        if not self._auto_discard_supported:
            return
        try:
            self._driver.set_auto_discardable(tab_id, True)
        except UnsupportedTabPropertyError as exc:
            self._auto_discard_supported = False
            log_event(logger, logging.WARNING, "auto_discard_unsupported", error=str(exc))

    def wait_for_load(self, tab_id: str) -> None:
        def loaded() -> bool:
            try:
                tab = self._driver.get_tab(tab_id)
            except NoSuchTabError as exc:
                raise SessionClosedError("The tab was closed before loading completed.") from exc
            return tab.is_complete

        completed = await_predicate(
            loaded,
            timeout=self._page_load_timeout,
            changes=_TabChangeFeed(self._driver, tab_id),
            clock=self._clock,
        )
        if not completed:
            raise NavigationTimeoutError("Timed out while waiting for the page to finish loading.")

    def cleanup(self) -> None:
        """
        Close the profile tab if there is one. Safe to call repeatedly.
        """

        with self._lock:
            tab_id = self._profile_tab_id
            self._profile_tab_id = None
            if tab_id is None:
                return
            try:
                self._driver.close_tab(tab_id)
            except NoSuchTabError:
                pass
            except BrowserError as exc:
                log_event(logger, logging.WARNING, "profile_tab_close_failed", tab_id=tab_id, error=str(exc))

    def send_message(self, tab_id: str, message: dict[str, Any]) -> dict[str, Any]:
        """
        Deliver `message` to the tab's agent, injecting the agent and retrying
        once when the tab has none.
        """

        try:
            return self._deliver(tab_id, message)
        except NoReceiverError:
            log_event(logger, logging.DEBUG, "agent_reinjected", tab_id=tab_id, type=message.get("type"))
            self._forget_on_missing(tab_id, self._driver.inject_agent, tab_id)
            return self._deliver(tab_id, message)

    def _deliver(self, tab_id: str, message: dict[str, Any]) -> dict[str, Any]:
        return self._forget_on_missing(tab_id, self._driver.send_message, tab_id, message)

    def _forget_on_missing(self, tab_id: str, call: Callable[..., Any], *args: Any) -> Any:
        try:
            return call(*args)
        except NoSuchTabError:
            if tab_id == self._profile_tab_id:
                self._profile_tab_id = None
            raise
