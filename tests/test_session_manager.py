"""
tests/test_session_manager.py

Pytest unit tests for the profile-tab lifecycle.

Coverage
--------
- Tab creation next to the listing tab, reuse across profiles
- Invalid profile URLs
- Replacement of a tab that can no longer navigate
- Auto-discard support detection
- Load waits: timeout and tab closed while loading
- Idempotent cleanup
- Agent re-injection on a missing receiver
"""

from __future__ import annotations

import pytest

from doctor_scraper.scraping.browser.base import TAB_STATUS_LOADING
from doctor_scraper.scraping.errors import (
    InvalidProfileUrlError,
    NavigationTimeoutError,
    NoSuchTabError,
    SessionClosedError,
)
from doctor_scraper.scraping.session import SessionLifecycleManager
from fakes import FakeBrowserDriver


@pytest.fixture()
def manager(browser: FakeBrowserDriver) -> SessionLifecycleManager:
    return SessionLifecycleManager(browser, page_load_timeout=5.0, clock=browser.clock)


# ---------------------------------------------------------------------------
# ensure_session
# ---------------------------------------------------------------------------


class TestEnsureSession:
    def test_rejects_foreign_urls(self, manager: SessionLifecycleManager) -> None:
        with pytest.raises(InvalidProfileUrlError, match="Invalid doctor profile URL provided."):
            manager.ensure_session("https://example.com/doctor/1")

    def test_creates_tab_after_listing_tab(self, browser: FakeBrowserDriver, manager: SessionLifecycleManager) -> None:
        listing = browser.open_listing(index=3)
        manager.remember_origin(listing)

        tab_id = manager.ensure_session("https://nobat.ir/doctor/1#top")

        created = browser.created[0]
        assert tab_id == created.id == manager.profile_tab_id
        assert created.url == "https://nobat.ir/doctor/1"
        assert created.window_id == "window-1"
        assert created.index == 4
        assert browser.auto_discard_calls == [tab_id]

    def test_reuses_existing_tab(self, browser: FakeBrowserDriver, manager: SessionLifecycleManager) -> None:
        first = manager.ensure_session("https://nobat.ir/doctor/1")
        second = manager.ensure_session("https://nobat.ir/doctor/2")

        assert first == second
        assert len(browser.created) == 1
        assert browser.navigations == [(first, "https://nobat.ir/doctor/2")]

    def test_replaces_tab_that_cannot_navigate(self, browser: FakeBrowserDriver, manager: SessionLifecycleManager) -> None:
        first = manager.ensure_session("https://nobat.ir/doctor/1")
        browser.fail_navigation = True

        second = manager.ensure_session("https://nobat.ir/doctor/2")

        assert second != first
        assert browser.closed == [first]
        assert browser.tabs[second].url == "https://nobat.ir/doctor/2"

    def test_auto_discard_probe_runs_once_when_unsupported(
        self,
        browser: FakeBrowserDriver,
        manager: SessionLifecycleManager,
    ) -> None:
        browser.auto_discard_supported = False
        manager.ensure_session("https://nobat.ir/doctor/1")
        manager.ensure_session("https://nobat.ir/doctor/2")

        assert manager.auto_discard_supported is False
        assert len(browser.auto_discard_calls) == 1


# ---------------------------------------------------------------------------
# Load waits
# ---------------------------------------------------------------------------


class TestWaitForLoad:
    def test_times_out_while_loading(self, browser: FakeBrowserDriver, manager: SessionLifecycleManager) -> None:
        browser.tab_status = TAB_STATUS_LOADING
        with pytest.raises(NavigationTimeoutError, match="Timed out while waiting for the page to finish loading."):
            manager.ensure_session("https://nobat.ir/doctor/1")
        assert browser.clock() >= 5.0

    def test_closed_tab_is_reported(self, manager: SessionLifecycleManager) -> None:
        with pytest.raises(SessionClosedError, match="The tab was closed before loading completed."):
            manager.wait_for_load("tab-404")


# ---------------------------------------------------------------------------
# Cleanup
# ---------------------------------------------------------------------------


class TestCleanup:
    def test_closes_profile_tab_once(self, browser: FakeBrowserDriver, manager: SessionLifecycleManager) -> None:
        tab_id = manager.ensure_session("https://nobat.ir/doctor/1")
        manager.cleanup()
        manager.cleanup()

        assert browser.closed == [tab_id]
        assert manager.profile_tab_id is None

    def test_tab_closed_by_user_is_ignored(self, browser: FakeBrowserDriver, manager: SessionLifecycleManager) -> None:
        tab_id = manager.ensure_session("https://nobat.ir/doctor/1")
        del browser.tabs[tab_id]

        manager.cleanup()

        assert manager.profile_tab_id is None
        assert browser.closed == []


# ---------------------------------------------------------------------------
# Messaging
# ---------------------------------------------------------------------------


class TestSendMessage:
    def test_injects_agent_and_retries_once(self, browser: FakeBrowserDriver, manager: SessionLifecycleManager) -> None:
        browser.responder = lambda tab, message: {"echo": message["type"], "url": tab.url}
        tab_id = manager.ensure_session("https://nobat.ir/doctor/1")
        assert tab_id not in browser.injected

        reply = manager.send_message(tab_id, {"type": "PING"})

        assert reply == {"echo": "PING", "url": "https://nobat.ir/doctor/1"}
        assert tab_id in browser.injected
        assert len(browser.messages) == 1

    def test_missing_tab_forgets_profile_tab(self, browser: FakeBrowserDriver, manager: SessionLifecycleManager) -> None:
        tab_id = manager.ensure_session("https://nobat.ir/doctor/1")
        del browser.tabs[tab_id]

        with pytest.raises(NoSuchTabError):
            manager.send_message(tab_id, {"type": "PING"})
        assert manager.profile_tab_id is None
