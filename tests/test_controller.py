"""
tests/test_controller.py

Pytest tests for the scrape run state machine, driven end to end through the
fake browser with the worker executed inline.

Coverage
--------
- Start preconditions: active tab, listing host, no links, listing errors
- Full run with a failing profile: placeholder rows, error ledger, CSV
- Retry bound and retry status messages
- Link de-duplication across discovery and within the queue
- Uncaught worker failures recorded under the global key
- Stop requests: idle stop, stop during discovery, partial export
- Export fallbacks and finalisation failures
- Config normalization and persistence
- Listing pagination
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest

from doctor_scraper.domain.scrape_job import IDLE_MESSAGE, ScrapeJob, StatusSnapshot
from doctor_scraper.failure_codes import DOWNLOAD_ERROR_KEY, FINALISE_ERROR_KEY, GLOBAL_ERROR_KEY
from doctor_scraper.scraping.agent import GET_DOCTOR_LINKS, SCRAPE_DOCTOR_DETAILS
from doctor_scraper.scraping.browser.base import TabInfo
from doctor_scraper.scraping.config.models import ScraperSettings
from doctor_scraper.scraping.config.store import ScraperConfigStore
from doctor_scraper.scraping.controller import ScrapeController
from doctor_scraper.scraping.errors import ExtractionError, NoActiveTabError, NotListingPageError
from doctor_scraper.scraping.export import CsvExporter, build_csv, decode_data_uri
from doctor_scraper.scraping.session import SessionLifecycleManager
from doctor_scraper.scraping.status import StatusPublisher
from doctor_scraper.scraping.storage import CONFIG_STORAGE_KEY, InMemoryStateStore
from fakes import FakeBrowserDriver, RecordingSink

FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
LISTING_URL = "https://nobat.ir/doctors"
PROFILE_A = "https://nobat.ir/doctor/a"
PROFILE_B = "https://nobat.ir/doctor/b"
PROFILE_C = "https://nobat.ir/doctor/c"


class Harness:
    """
    Controller wired to in-memory collaborators, recording status messages
    and sleeps.
    """

    def __init__(
        self,
        settings: ScraperSettings,
        *,
        links: list[str] | None = None,
        profile: Callable[[str], dict[str, Any]] | None = None,
        sink: RecordingSink | None = None,
        exporter: Any = None,
    ) -> None:
        self.links = links if links is not None else [PROFILE_A, PROFILE_B, PROFILE_C]
        self.profile = profile or (lambda url: {"data": {"name": f"Dr {url[-1].upper()}", "phones": ["021-1"]}})
        self.on_profile: Callable[[str], None] | None = None
        self.requested: list[str] = []
        self.browser = FakeBrowserDriver(self.respond)
        self.store = InMemoryStateStore()
        self.sink = sink or RecordingSink()
        self.sleeps: list[float] = []
        self.messages: list[str] = []
        self.publisher = StatusPublisher(self.store)
        self.publisher.subscribe(lambda snapshot: self.messages.append(snapshot.message))
        self.controller = ScrapeController(
            driver=self.browser,
            session=SessionLifecycleManager(self.browser, page_load_timeout=5.0, clock=self.browser.clock),
            publisher=self.publisher,
            config_store=ScraperConfigStore(store=self.store, settings=settings),
            exporter=exporter or CsvExporter(self.sink),
            settings=settings,
            sleep=self.sleeps.append,
            spawn=lambda target: target(),
            now=lambda: FIXED_NOW,
        )

    def respond(self, tab: TabInfo, message: dict[str, Any]) -> dict[str, Any]:
        if message["type"] == GET_DOCTOR_LINKS:
            return {"links": list(self.links), "next_page_url": None}
        if message["type"] == SCRAPE_DOCTOR_DETAILS:
            self.requested.append(tab.url)
            if self.on_profile is not None:
                self.on_profile(tab.url)
            return self.profile(tab.url)
        return {"error": "unexpected"}

    def status(self) -> StatusSnapshot:
        return self.controller.get_status()

    def csv_lines(self) -> list[str]:
        (payload,) = self.sink.saved.values()
        return payload.decode("utf-8").lstrip("\ufeff").split("\n")


@pytest.fixture()
def harness(settings: ScraperSettings) -> Harness:
    harness = Harness(settings)
    harness.browser.open_listing(LISTING_URL)
    return harness


# ---------------------------------------------------------------------------
# Start preconditions
# ---------------------------------------------------------------------------


class TestStartPreconditions:
    def test_requires_active_tab(self, settings: ScraperSettings) -> None:
        harness = Harness(settings)
        with pytest.raises(NoActiveTabError, match="No active tab detected."):
            harness.controller.start()

    def test_requires_listing_host(self, settings: ScraperSettings) -> None:
        harness = Harness(settings)
        harness.browser.open_listing("https://www.google.com/search?q=nobat")
        with pytest.raises(NotListingPageError, match="Please open a Nobat.ir doctors list page before starting."):
            harness.controller.start()

    def test_no_links(self, settings: ScraperSettings) -> None:
        harness = Harness(settings, links=[])
        harness.browser.open_listing(LISTING_URL)

        assert harness.controller.start() == {"status": "no-links"}
        assert harness.status().message == "No doctor links found on this page."
        assert harness.status().total == 0
        assert harness.controller.is_running is False

    def test_listing_agent_error_is_raised(self, harness: Harness) -> None:
        harness.browser.responder = lambda tab, message: {"error": "listing exploded"}
        with pytest.raises(ExtractionError, match="listing exploded"):
            harness.controller.start()

    def test_already_running(self, settings: ScraperSettings) -> None:
        harness = Harness(settings)
        harness.browser.open_listing(LISTING_URL)
        harness.controller._spawn = lambda target: None

        assert harness.controller.start()["status"] == "started"
        assert harness.controller.start() == {"status": "already-running"}
        assert harness.controller.is_running is True


# ---------------------------------------------------------------------------
# Full runs
# ---------------------------------------------------------------------------


class TestRun:
    def test_failing_profile_gets_placeholder_row(self, harness: Harness) -> None:
        harness.profile = lambda url: (
            {"error": "Profile layout changed"} if url == PROFILE_B else {"data": {"name": f"Dr {url[-1]}"}}
        )

        result = harness.controller.start({"delay_ms": 0, "max_retries": 0})

        assert result == {"status": "started", "total": 3}
        records = harness.controller.last_results
        assert [record.url for record in records] == [PROFILE_A, PROFILE_B, PROFILE_C]
        assert records[1].error == "Profile layout changed"
        assert records[0].error is None

        status = harness.status()
        assert status.message == "Scraping completed."
        assert (status.total, status.processed, status.pending) == (3, 3, 0)
        assert [(entry.url, entry.message) for entry in status.errors] == [(PROFILE_B, "Profile layout changed")]
        assert status.last_doctor is not None and status.last_doctor.name == "Dr c"
        assert status.is_scraping is False

        lines = harness.csv_lines()
        assert len(lines) == 4
        assert lines[0].startswith("Profile URL,Name,Specialty,Code,City,Addresses,Phones,Error")
        assert lines[2] == f"{PROFILE_B},,,,,,,Profile layout changed"

    def test_progress_messages(self, harness: Harness) -> None:
        harness.controller.start({"delay_ms": 0, "max_retries": 0})
        assert harness.messages[0] == "Found 3 doctor profiles. Starting..."
        assert "Processed 1 of 3" in harness.messages
        assert "Processed 3 of 3" in harness.messages
        assert harness.messages[-1] == "Scraping completed."

    def test_delay_between_profiles_only(self, harness: Harness) -> None:
        harness.controller.start({"delay_ms": 1500, "max_retries": 0})
        assert harness.sleeps == [1.5, 1.5]

    def test_export_file_name(self, harness: Harness) -> None:
        harness.controller.start()
        assert list(harness.sink.saved) == ["nobat-doctors-2024-01-02-03-04-05.csv"]

    def test_profile_tab_closed_after_run(self, harness: Harness) -> None:
        harness.controller.start()
        assert list(harness.browser.tabs) == ["tab-1"]

    def test_duplicate_links_are_scraped_once(self, settings: ScraperSettings) -> None:
        harness = Harness(settings, links=[PROFILE_A, f"{PROFILE_A}#reviews", "/doctor/a", PROFILE_B])
        harness.browser.open_listing(LISTING_URL)

        assert harness.controller.start()["total"] == 2
        assert [record.url for record in harness.controller.last_results] == [PROFILE_A, PROFILE_B]

    def test_visited_link_is_skipped_without_retry(self, settings: ScraperSettings) -> None:
        harness = Harness(settings)
        harness.browser.open_listing(LISTING_URL)
        harness.controller._discover_links = lambda tab_id, url: [PROFILE_A, PROFILE_A, PROFILE_B]

        assert harness.controller.start({"delay_ms": 0, "max_retries": 2}) == {"status": "started", "total": 3}

        assert [record.url for record in harness.controller.last_results] == [PROFILE_A, PROFILE_B]
        assert harness.requested.count(PROFILE_A) == 1
        assert "Skipped duplicate link (2 / 3)." in harness.messages
        assert not any(message.startswith("Retrying") for message in harness.messages)
        assert harness.status().processed == 3

    def test_uncaught_worker_failure_is_recorded_globally(
        self,
        settings: ScraperSettings,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        class UnwritableJob(ScrapeJob):
            def add_result(self, record: Any) -> None:
                raise RuntimeError("results unavailable")

        monkeypatch.setattr("doctor_scraper.scraping.controller.ScrapeJob", UnwritableJob)
        harness = Harness(settings)
        harness.browser.open_listing(LISTING_URL)

        assert harness.controller.start()["status"] == "started"

        status = harness.status()
        assert status.message == "Scraping failed: results unavailable"
        assert (GLOBAL_ERROR_KEY, "results unavailable") in [(entry.url, entry.message) for entry in status.errors]
        assert harness.browser.closed and list(harness.browser.tabs) == ["tab-1"]
        assert harness.controller.is_running is False
        assert harness.sink.saved == {}


class TestRetries:
    def test_retries_until_success(self, settings: ScraperSettings) -> None:
        attempts = {"count": 0}

        def flaky(url: str) -> dict[str, Any]:
            attempts["count"] += 1
            if attempts["count"] < 3:
                return {"error": "timeout"}
            return {"data": {"name": "Dr A"}}

        harness = Harness(settings, links=[PROFILE_A], profile=flaky)
        harness.browser.open_listing(LISTING_URL)
        harness.controller.start({"delay_ms": 0, "max_retries": 2})

        assert attempts["count"] == 3
        assert "Retrying current profile (2 / 3)..." in harness.messages
        assert "Retrying current profile (3 / 3)..." in harness.messages
        assert harness.sleeps == [1.0, 1.0]
        assert harness.controller.last_results[0].error is None
        assert harness.status().retrying is None

    def test_attempts_are_bounded(self, settings: ScraperSettings) -> None:
        harness = Harness(settings, links=[PROFILE_A], profile=lambda url: {"error": "always broken"})
        harness.browser.open_listing(LISTING_URL)
        harness.controller.start({"delay_ms": 0, "max_retries": 1})

        assert harness.requested.count(PROFILE_A) == 2
        assert harness.controller.last_results[0].error == "always broken"

    def test_missing_data_counts_as_failure(self, settings: ScraperSettings) -> None:
        harness = Harness(settings, links=[PROFILE_A], profile=lambda url: {"data": {}})
        harness.browser.open_listing(LISTING_URL)
        harness.controller.start({"max_retries": 0})

        assert harness.controller.last_results[0].error == "No data was returned from the doctor profile page."


# ---------------------------------------------------------------------------
# Stop
# ---------------------------------------------------------------------------


class TestStop:
    def test_stop_when_idle(self, harness: Harness) -> None:
        assert harness.controller.stop() == {"status": "idle"}
        assert harness.status().message == IDLE_MESSAGE

    def test_stop_mid_run_exports_partial_csv(self, harness: Harness) -> None:
        def stop_on_b(url: str) -> None:
            if url == PROFILE_B:
                assert harness.controller.stop() == {"status": "stopping"}

        harness.on_profile = stop_on_b
        harness.controller.start({"delay_ms": 0, "max_retries": 0})

        assert [record.url for record in harness.controller.last_results] == [PROFILE_A, PROFILE_B]
        assert "Stop requested. Waiting for the current profile to finish..." in harness.messages
        assert harness.status().message == "Scraping stopped early. Partial CSV downloaded."
        assert list(harness.sink.saved) == ["nobat-doctors-partial-2024-01-02-03-04-05.csv"]
        assert harness.controller.is_running is False

    def test_stop_during_discovery_ends_run_before_first_profile(self, harness: Harness) -> None:
        replies: list[dict[str, Any]] = []
        respond = harness.respond

        def stop_while_discovering(tab: TabInfo, message: dict[str, Any]) -> dict[str, Any]:
            if message["type"] == GET_DOCTOR_LINKS:
                replies.append(harness.controller.stop())
            return respond(tab, message)

        harness.browser.responder = stop_while_discovering

        assert harness.controller.start() == {"status": "started", "total": 3}

        assert replies == [{"status": "stopping"}]
        assert harness.requested == []
        assert harness.status().message == "Scraping stopped before any data was collected."
        assert harness.sink.saved == {}
        assert harness.controller.is_running is False


# ---------------------------------------------------------------------------
# Finalisation
# ---------------------------------------------------------------------------


class _BrokenExporter:
    def export(self, records: Any, *, partial: bool, now: datetime | None = None) -> str:
        raise RuntimeError("kaboom")


class TestFinalise:
    def test_falls_back_to_data_uri(self, settings: ScraperSettings) -> None:
        sink = RecordingSink(fail_bytes=True)
        harness = Harness(settings, sink=sink)
        harness.browser.open_listing(LISTING_URL)
        harness.controller.start()

        (uri,) = sink.uris.values()
        assert decode_data_uri(uri) == build_csv(harness.controller.last_results)
        assert harness.status().message == "Scraping completed."

    def test_download_failure_is_recorded(self, settings: ScraperSettings) -> None:
        harness = Harness(settings, sink=RecordingSink(fail_bytes=True, fail_uri=True))
        harness.browser.open_listing(LISTING_URL)
        harness.controller.start()

        status = harness.status()
        assert status.message == "Failed to save CSV: download blocked"
        assert [(entry.url, entry.message) for entry in status.errors] == [(DOWNLOAD_ERROR_KEY, "download blocked")]

    def test_finalisation_failure_is_recorded(self, settings: ScraperSettings) -> None:
        harness = Harness(settings, exporter=_BrokenExporter())
        harness.browser.open_listing(LISTING_URL)
        harness.controller.start()

        status = harness.status()
        assert status.message == "Scraping finalisation failed: kaboom"
        assert [(entry.url, entry.message) for entry in status.errors] == [(FINALISE_ERROR_KEY, "kaboom")]
        assert harness.controller.is_running is False


# ---------------------------------------------------------------------------
# Config and status
# ---------------------------------------------------------------------------


class TestConfig:
    def test_start_normalizes_and_persists_changes(self, harness: Harness) -> None:
        harness.controller.start({"delay_ms": 10.6, "max_retries": 9})

        assert harness.controller.config.to_dict() == {"delay_ms": 11, "max_retries": 5}
        assert harness.store.get(CONFIG_STORAGE_KEY) == {"delay_ms": 11, "max_retries": 5}

    def test_update_config_keeps_current_value_for_invalid_input(self, harness: Harness) -> None:
        harness.controller.update_config({"delay_ms": 800})
        config = harness.controller.update_config({"delay_ms": -5, "max_retries": "two"})

        assert config.to_dict() == {"delay_ms": 800, "max_retries": 0}
        assert harness.status().delay_ms == 800

    def test_status_defaults_before_any_publish(self, harness: Harness) -> None:
        status = harness.status()
        assert status.message == IDLE_MESSAGE
        assert status.is_scraping is False
        assert status.errors == ()


class TestPagination:
    def test_follows_next_pages_up_to_limit(self, tmp_path) -> None:
        settings = ScraperSettings(
            default_delay_ms=0,
            default_max_retries=0,
            max_listing_pages=2,
            export_dir=str(tmp_path),
        )
        harness = Harness(settings)
        pages = {
            LISTING_URL: {"links": [PROFILE_A], "next_page_url": f"{LISTING_URL}?page=2"},
            f"{LISTING_URL}?page=2": {"links": [PROFILE_B], "next_page_url": f"{LISTING_URL}?page=3"},
            f"{LISTING_URL}?page=3": {"links": [PROFILE_C], "next_page_url": None},
        }

        def respond(tab: TabInfo, message: dict[str, Any]) -> dict[str, Any]:
            if message["type"] == GET_DOCTOR_LINKS:
                return pages[tab.url]
            return {"data": {"name": tab.url}}

        harness.browser.responder = respond
        harness.browser.open_listing(LISTING_URL)

        assert harness.controller.start() == {"status": "started", "total": 2}
        assert harness.browser.navigations[0] == ("tab-1", f"{LISTING_URL}?page=2")
