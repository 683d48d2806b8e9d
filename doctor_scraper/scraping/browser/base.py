"""
Browser automation interfaces consumed by the scraping core.

`BrowserDriver` manages tabs and delivers messages to the extraction agent
living in a tab; `PageSurface` is the handful of in-page primitives that
agent needs. Both are implemented by real drivers and by test fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

TAB_STATUS_LOADING = "loading"
TAB_STATUS_COMPLETE = "complete"


@dataclass(frozen=True)
class TabInfo:
    id: str
    url: str
    status: str = TAB_STATUS_COMPLETE
    window_id: str | None = None
    index: int | None = None

    @property
    def is_complete(self) -> bool:
        return self.status == TAB_STATUS_COMPLETE


class PageSurface(ABC):
    """
    Live page primitives available to an in-page agent.
    """

    @property
    @abstractmethod
    def url(self) -> str:
        """Current document URL."""

    @abstractmethod
    def html(self) -> str:
        """Serialized DOM snapshot."""

    @abstractmethod
    def count(self, selector: str) -> int:
        """Number of elements matching a CSS selector."""

    @abstractmethod
    def usable_elements(self, selector: str) -> list[Any]:
        """Visible, enabled elements matching a CSS selector, in document order."""

    @abstractmethod
    def click(self, element: Any) -> None:
        """Scroll `element` into view and click it."""

    @abstractmethod
    def wait_for_change(self, timeout: float) -> bool:
        """Block until the DOM subtree mutates or `timeout` seconds pass."""

    @abstractmethod
    def pause(self, seconds: float) -> None:
        """Let the page settle."""


class BrowserDriver(ABC):
    """
    Tab management and agent messaging.

    Errors are reported through `doctor_scraper.scraping.errors`:
    `NoSuchTabError` for unknown tab ids, `NoReceiverError` when a tab has no
    agent, `UnsupportedTabPropertyError` for unsupported tab properties.
    """

    @abstractmethod
    def active_tab(self) -> TabInfo | None:
        """The tab the user is looking at, if any."""

    @abstractmethod
    def create_tab(
        self,
        url: str,
        *,
        active: bool = False,
        window_id: str | None = None,
        index: int | None = None,
    ) -> TabInfo:
        """Open `url` in a new tab and return it."""

    @abstractmethod
    def navigate(self, tab_id: str, url: str) -> None:
        """Navigate an existing tab."""

    @abstractmethod
    def get_tab(self, tab_id: str) -> TabInfo:
        """Current tab state."""

    @abstractmethod
    def wait_for_tab_change(self, tab_id: str, timeout: float) -> bool:
        """Block until the tab's state changes or `timeout` seconds pass."""

    @abstractmethod
    def close_tab(self, tab_id: str) -> None:
        """Close a tab."""

    @abstractmethod
    def set_auto_discardable(self, tab_id: str, enabled: bool) -> None:
        """Allow the browser to reclaim the tab's resources."""

    @abstractmethod
    def inject_agent(self, tab_id: str) -> None:
        """Install the extraction agent in a tab."""

    @abstractmethod
    def send_message(self, tab_id: str, message: dict[str, Any]) -> dict[str, Any]:
        """Deliver `message` to the tab's agent and return its reply."""

    @abstractmethod
    def quit(self) -> None:
        """Release the browser."""
