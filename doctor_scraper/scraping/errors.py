"""
Exception hierarchy for the scraping core.
"""

from __future__ import annotations


class ScraperError(Exception):
    """Base exception for scraper failures."""


class InvalidInputError(ScraperError):
    """Raised for caller mistakes that must not be retried."""


class NoActiveTabError(InvalidInputError):
    """Raised when no active browser tab is available to start from."""


class NotListingPageError(InvalidInputError):
    """Raised when the active tab is not on the target host."""


class InvalidProfileUrlError(InvalidInputError):
    """Raised when a profile URL is malformed or outside the target host."""


class BrowserError(ScraperError):
    """Base exception for browser driver failures."""


class NoSuchTabError(BrowserError):
    """Raised when a tab id no longer exists."""


class NoReceiverError(BrowserError):
    """Raised when a tab has no extraction agent listening for messages."""


class UnsupportedTabPropertyError(BrowserError):
    """Raised when the driver does not support a requested tab property."""


class NavigationTimeoutError(BrowserError):
    """Raised when a tab does not finish loading in time."""


class SessionClosedError(BrowserError):
    """Raised when the profile tab disappears while waiting for it."""


class ExtractionError(ScraperError):
    """Raised when a page agent reports a failure or returns no data."""


class ExportError(ScraperError):
    """Raised when every export path failed."""
