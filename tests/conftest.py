"""
tests/conftest.py

Shared fixtures.
"""

from __future__ import annotations

import pytest

from doctor_scraper.scraping.config.models import ScraperSettings
from fakes import FakeBrowserDriver, FakeClock


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings(tmp_path) -> ScraperSettings:
    return ScraperSettings(
        default_delay_ms=0,
        default_max_retries=0,
        page_load_timeout_seconds=5.0,
        link_wait_seconds=1.0,
        load_more_wait_seconds=1.0,
        load_more_max_iterations=5,
        profile_wait_seconds=1.0,
        export_dir=str(tmp_path / "exports"),
    )


@pytest.fixture()
def browser() -> FakeBrowserDriver:
    return FakeBrowserDriver()
