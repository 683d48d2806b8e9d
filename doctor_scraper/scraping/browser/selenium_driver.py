"""
Selenium (Chrome) implementation of the browser driver interfaces.

Tabs are WebDriver window handles. WebDriver has a single "current window",
so every tab operation switches to its handle under one re-entrant lock.
The extraction agent of a tab is a Python object bound to a
`SeleniumPageSurface`; it is forgotten whenever the tab navigates, which is
how a lost content agent surfaces as `NoReceiverError`.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, Protocol

from selenium import webdriver
from selenium.common.exceptions import (
    NoSuchWindowException,
    TimeoutException,
    WebDriverException,
)
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.remote.webelement import WebElement
from selenium.webdriver.support.ui import WebDriverWait

from doctor_scraper.scraping.browser.base import (
    TAB_STATUS_COMPLETE,
    TAB_STATUS_LOADING,
    BrowserDriver,
    PageSurface,
    TabInfo,
)
from doctor_scraper.scraping.errors import (
    BrowserError,
    NavigationTimeoutError,
    NoReceiverError,
    NoSuchTabError,
    UnsupportedTabPropertyError,
)
from doctor_scraper.scraping.logging_utils import log_event

logger = logging.getLogger(__name__)

_USABLE_ELEMENT_SCRIPT = """
const element = arguments[0];
if (!element || element.disabled) {
  return false;
}
if (element.getAttribute("aria-disabled") === "true") {
  return false;
}
if (element.classList.contains("disabled") || element.classList.contains("d-none")) {
  return false;
}
if (element.offsetParent === null && element.getClientRects().length === 0) {
  return false;
}
const style = window.getComputedStyle(element);
return style.visibility !== "hidden" && style.display !== "none";
"""

_CLICK_SCRIPT = """
const element = arguments[0];
element.scrollIntoView({ block: "center" });
element.click();
"""

_DOM_CHANGE_SCRIPT = """
const timeoutMs = arguments[0];
const done = arguments[arguments.length - 1];
const root = document.body || document.documentElement;
if (!root) {
  done(false);
  return;
}
let settled = false;
let timer = null;
const observer = new MutationObserver(() => finish(true));
function finish(changed) {
  if (settled) {
    return;
  }
  settled = true;
  observer.disconnect();
  clearTimeout(timer);
  done(changed);
}
observer.observe(root, { childList: true, subtree: true, attributes: true });
timer = setTimeout(() => finish(false), timeoutMs);
"""

_SCRIPT_TIMEOUT_MARGIN_SECONDS = 5.0


class MessageHandler(Protocol):
    def handle(self, message: dict[str, Any]) -> dict[str, Any]:
        ...


AgentFactory = Callable[[PageSurface], MessageHandler]


def build_chrome_driver(*, headless: bool = True, page_load_timeout: float = 45.0) -> WebDriver:
    """
    Start a local Chrome WebDriver.
    """

    options = Options()
    if headless:
        options.add_argument("--headless=new")
    options.add_argument("--disable-gpu")
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument("--blink-settings=imagesEnabled=false")
    driver = webdriver.Chrome(options=options)
    driver.set_page_load_timeout(page_load_timeout)
    return driver


class SeleniumPageSurface(PageSurface):
    """
    Page primitives executed inside one window handle.
    """

    def __init__(self, driver: WebDriver, handle: str, lock: threading.RLock) -> None:
        self._driver = driver
        self._handle = handle
        self._lock = lock

    @contextmanager
    def _focused(self) -> Iterator[WebDriver]:
        with self._lock:
            try:
                self._driver.switch_to.window(self._handle)
            except NoSuchWindowException as exc:
                raise NoSuchTabError(f"No tab with id: {self._handle}") from exc
            yield self._driver

    @property
    def url(self) -> str:
        with self._focused() as driver:
            return driver.current_url

    def html(self) -> str:
        with self._focused() as driver:
            return driver.page_source

    def count(self, selector: str) -> int:
        with self._focused() as driver:
            return len(driver.find_elements(By.CSS_SELECTOR, selector))

    def usable_elements(self, selector: str) -> list[WebElement]:
        with self._focused() as driver:
            return [
                element
                for element in driver.find_elements(By.CSS_SELECTOR, selector)
                if driver.execute_script(_USABLE_ELEMENT_SCRIPT, element)
            ]

    def click(self, element: WebElement) -> None:
        with self._focused() as driver:
            driver.execute_script(_CLICK_SCRIPT, element)

    def wait_for_change(self, timeout: float) -> bool:
        timeout = max(0.0, timeout)
        with self._focused() as driver:
            driver.set_script_timeout(timeout + _SCRIPT_TIMEOUT_MARGIN_SECONDS)
            try:
                return bool(driver.execute_async_script(_DOM_CHANGE_SCRIPT, int(timeout * 1000)))
            except TimeoutException:
                return False

    def pause(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


class SeleniumBrowserDriver(BrowserDriver):
    """
    `BrowserDriver` over a single Chrome WebDriver session.

    Tab placement (`window_id`, `index`) is not controllable through
    WebDriver and is ignored; auto-discard is reported unsupported.
    """

    def __init__(
        self,
        driver: WebDriver,
        *,
        agent_factory: AgentFactory,
    ) -> None:
        self._driver = driver
        self._agent_factory = agent_factory
        self._agents: dict[str, tuple[MessageHandler, str]] = {}
        self._lock = threading.RLock()
        self._active_handle: str | None = driver.current_window_handle

    @classmethod
    def launch(
        cls,
        *,
        agent_factory: AgentFactory,
        headless: bool = True,
        page_load_timeout: float = 45.0,
    ) -> "SeleniumBrowserDriver":
        return cls(
            build_chrome_driver(headless=headless, page_load_timeout=page_load_timeout),
            agent_factory=agent_factory,
        )

    @contextmanager
    def _tab(self, tab_id: str) -> Iterator[WebDriver]:
        with self._lock:
            try:
                if tab_id not in self._driver.window_handles:
                    raise NoSuchTabError(f"No tab with id: {tab_id}")
                self._driver.switch_to.window(tab_id)
                yield self._driver
            except NoSuchWindowException as exc:
                self._agents.pop(tab_id, None)
                raise NoSuchTabError(f"No tab with id: {tab_id}") from exc
            except TimeoutException as exc:
                raise NavigationTimeoutError(f"Timed out loading tab {tab_id}.") from exc
            except WebDriverException as exc:
                raise BrowserError(str(exc)) from exc

    def _describe(self, driver: WebDriver, tab_id: str) -> TabInfo:
        ready_state = driver.execute_script("return document.readyState")
        return TabInfo(
            id=tab_id,
            url=driver.current_url,
            status=TAB_STATUS_COMPLETE if ready_state == "complete" else TAB_STATUS_LOADING,
        )

    def active_tab(self) -> TabInfo | None:
        with self._lock:
            handle = self._active_handle
            if handle is None or handle not in self._driver.window_handles:
                return None
            with self._tab(handle) as driver:
                return self._describe(driver, handle)

    def create_tab(
        self,
        url: str,
        *,
        active: bool = False,
        window_id: str | None = None,
        index: int | None = None,
    ) -> TabInfo:
        with self._lock:
            try:
                self._driver.switch_to.new_window("tab")
            except WebDriverException as exc:
                raise BrowserError(f"Could not open a new tab: {exc}") from exc
            handle = self._driver.current_window_handle
            if active:
                self._active_handle = handle
            log_event(logger, logging.DEBUG, "tab_created", tab_id=handle, url=url)
            with self._tab(handle) as driver:
                driver.get(url)
                return self._describe(driver, handle)

    def navigate(self, tab_id: str, url: str) -> None:
        with self._tab(tab_id) as driver:
            self._agents.pop(tab_id, None)
            driver.get(url)

    def get_tab(self, tab_id: str) -> TabInfo:
        with self._tab(tab_id) as driver:
            return self._describe(driver, tab_id)

    def wait_for_tab_change(self, tab_id: str, timeout: float) -> bool:
        with self._tab(tab_id) as driver:
            before = self._describe(driver, tab_id)
            try:
                WebDriverWait(driver, max(0.0, timeout)).until(
                    lambda current: self._describe(current, tab_id) != before
                )
            except TimeoutException:
                return False
            return True

    def close_tab(self, tab_id: str) -> None:
        with self._tab(tab_id) as driver:
            driver.close()
            self._agents.pop(tab_id, None)
            remaining = driver.window_handles
            if self._active_handle == tab_id:
                self._active_handle = remaining[0] if remaining else None
            if self._active_handle is not None:
                driver.switch_to.window(self._active_handle)

    def set_auto_discardable(self, tab_id: str, enabled: bool) -> None:
        raise UnsupportedTabPropertyError("autoDiscardable is not supported by WebDriver.")

    def inject_agent(self, tab_id: str) -> None:
        with self._tab(tab_id) as driver:
            surface = SeleniumPageSurface(driver, tab_id, self._lock)
            self._agents[tab_id] = (self._agent_factory(surface), driver.current_url)

    def send_message(self, tab_id: str, message: dict[str, Any]) -> dict[str, Any]:
        with self._tab(tab_id) as driver:
            registered = self._agents.get(tab_id)
            if registered is not None and registered[1] != driver.current_url:
                # The document changed under the agent.
                self._agents.pop(tab_id, None)
                registered = None
            if registered is None:
                raise NoReceiverError("Could not establish connection. Receiving end does not exist.")
            agent, _ = registered
        return agent.handle(message)

    def quit(self) -> None:
        with self._lock:
            self._agents.clear()
            try:
                self._driver.quit()
            except WebDriverException as exc:
                log_event(logger, logging.WARNING, "browser_quit_failed", error=str(exc))
