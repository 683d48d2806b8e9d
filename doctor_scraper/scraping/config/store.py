"""
Persisted run configuration.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from doctor_scraper.domain.scrape_job import ScraperConfig
from doctor_scraper.scraping.config.loader import ensure_delay, ensure_retries, merge_config
from doctor_scraper.scraping.config.models import ScraperSettings
from doctor_scraper.scraping.logging_utils import log_event
from doctor_scraper.scraping.storage.base import CONFIG_STORAGE_KEY, StateStore

logger = logging.getLogger(__name__)


class ScraperConfigStore:
    """
    Loads, normalizes and saves the `{delay_ms, max_retries}` run config.
    """

    def __init__(self, *, store: StateStore, settings: ScraperSettings) -> None:
        self._store = store
        self._defaults = ScraperConfig(
            delay_ms=settings.default_delay_ms,
            max_retries=settings.default_max_retries,
        )

    @property
    def defaults(self) -> ScraperConfig:
        return self._defaults

    def load(self) -> ScraperConfig:
        """
        Read the stored config, rewriting it when it is missing or differs
        from its normalized form. Storage failures fall back to defaults.
        """

        try:
            persisted = self._store.get(CONFIG_STORAGE_KEY)
        except Exception as exc:
            log_event(logger, logging.ERROR, "config_load_failed", error=str(exc))
            return self._defaults

        persisted = persisted or {}
        config = ScraperConfig(
            delay_ms=ensure_delay(persisted.get("delay_ms"), self._defaults.delay_ms),
            max_retries=ensure_retries(persisted.get("max_retries"), self._defaults.max_retries),
        )
        if persisted != config.to_dict():
            self.save(config)
        return config

    def save(self, config: ScraperConfig) -> None:
        try:
            self._store.set(CONFIG_STORAGE_KEY, config.to_dict())
        except Exception as exc:
            log_event(logger, logging.WARNING, "config_persist_failed", error=str(exc))

    def apply(self, current: ScraperConfig, changes: Mapping[str, Any] | None, *, persist: bool) -> ScraperConfig:
        updated = merge_config(current, changes)
        if persist:
            self.save(updated)
        return updated
