"""
Browser driver interfaces and the Selenium implementation.
"""

from doctor_scraper.scraping.browser.base import (
    TAB_STATUS_COMPLETE,
    TAB_STATUS_LOADING,
    BrowserDriver,
    PageSurface,
    TabInfo,
)

__all__ = [
    "BrowserDriver",
    "PageSurface",
    "TAB_STATUS_COMPLETE",
    "TAB_STATUS_LOADING",
    "TabInfo",
]
