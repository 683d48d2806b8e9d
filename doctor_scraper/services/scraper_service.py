"""
doctor_scraper/services/scraper_service.py

Control surface for the doctor directory scraper. Every entry point turns
failures into an ``{"status": "error", "message": ...}`` response.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from functools import lru_cache
from typing import Any

from db.session import SessionLocal, init_state_schema
from doctor_scraper.scraping.agent import agent_factory
from doctor_scraper.scraping.browser.base import BrowserDriver
from doctor_scraper.scraping.browser.selenium_driver import SeleniumBrowserDriver
from doctor_scraper.scraping.config import ScraperConfigStore, ScraperSettings, get_scraper_settings
from doctor_scraper.scraping.controller import ScrapeController
from doctor_scraper.scraping.errors import NoActiveTabError
from doctor_scraper.scraping.export import CsvExporter, DirectoryExportSink
from doctor_scraper.scraping.logging_utils import log_event
from doctor_scraper.scraping.session import SessionLifecycleManager
from doctor_scraper.scraping.status import StatusPublisher
from doctor_scraper.scraping.storage import SQLAlchemyStateStore, StateStore

logger = logging.getLogger(__name__)


def _error_response(operation: str, exc: Exception) -> dict[str, Any]:
    message = str(exc) or exc.__class__.__name__
    log_event(logger, logging.ERROR, "scraper_control_failed", operation=operation, error=message)
    return {"status": "error", "message": message}


class DoctorScraperService:
    """
    Wraps the scrape controller for HTTP and CLI callers.
    """

    def __init__(self, *, controller: ScrapeController, driver: BrowserDriver) -> None:
        self._controller = controller
        self._driver = driver

    @property
    def controller(self) -> ScrapeController:
        return self._controller

    def open_listing(self, url: str) -> None:
        """
        Point the active tab at a listing page before a run.
        """

        active_tab = self._driver.active_tab()
        if active_tab is None:
            raise NoActiveTabError("No active tab detected.")
        self._driver.navigate(active_tab.id, url)

    def start_scraping(
        self,
        config: Mapping[str, Any] | None = None,
        *,
        listing_url: str | None = None,
    ) -> dict[str, Any]:
        try:
            if listing_url and not self._controller.is_running:
                self.open_listing(listing_url)
            return self._controller.start(config)
        except Exception as exc:
            return _error_response("start", exc)

    def stop_scraping(self) -> dict[str, Any]:
        try:
            return self._controller.stop()
        except Exception as exc:
            return _error_response("stop", exc)

    def get_status(self) -> dict[str, Any]:
        try:
            return self._controller.get_status().to_dict()
        except Exception as exc:
            return _error_response("status", exc)

    def update_config(self, config: Mapping[str, Any] | None) -> dict[str, Any]:
        try:
            return self._controller.update_config(config).to_dict()
        except Exception as exc:
            return _error_response("config", exc)

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        return self._controller.wait_until_idle(timeout)

    def shutdown(self) -> None:
        try:
            self._controller.shutdown(timeout=30.0)
        finally:
            self._driver.quit()


def build_scraper_service(
    *,
    settings: ScraperSettings | None = None,
    store: StateStore | None = None,
    driver: BrowserDriver | None = None,
) -> DoctorScraperService:
    """
    Wire the scraper against the state database and a Chrome session.
    """

    settings = settings or get_scraper_settings()
    if store is None:
        init_state_schema()
        store = SQLAlchemyStateStore(session_factory=SessionLocal)
    if driver is None:
        driver = SeleniumBrowserDriver.launch(
            agent_factory=agent_factory(settings),
            headless=settings.headless,
            page_load_timeout=settings.page_load_timeout_seconds,
        )

    controller = ScrapeController(
        driver=driver,
        session=SessionLifecycleManager(
            driver,
            target_host=settings.target_host,
            page_load_timeout=settings.page_load_timeout_seconds,
        ),
        publisher=StatusPublisher(store),
        config_store=ScraperConfigStore(store=store, settings=settings),
        exporter=CsvExporter(DirectoryExportSink(settings.export_dir)),
        settings=settings,
    )
    controller.publish_current_status()
    return DoctorScraperService(controller=controller, driver=driver)


@lru_cache(maxsize=1)
def get_scraper_service() -> DoctorScraperService:
    """
    Build and cache the scraper service.
    """

    return build_scraper_service()


def shutdown_scraper_service() -> None:
    """
    Stop the cached service, if one was ever built.
    """

    if get_scraper_service.cache_info().currsize:
        get_scraper_service().shutdown()
        get_scraper_service.cache_clear()
