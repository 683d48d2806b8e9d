"""
tests/test_scraper_router.py

HTTP tests for the scraper control endpoints, with the service dependency
overridden by a controller driving the fake browser inline.

Coverage
--------
- GET /scraper/status before any run
- POST /scraper/start: missing tab, foreign host, optional listing URL
- POST /scraper/stop while idle
- PUT /scraper/config: partial update and request validation
- GET /health
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest
from fastapi.testclient import TestClient

from doctor_scraper.main import create_app
from doctor_scraper.scraping.agent import GET_DOCTOR_LINKS, SCRAPE_DOCTOR_DETAILS
from doctor_scraper.scraping.browser.base import TabInfo
from doctor_scraper.scraping.config.models import ScraperSettings
from doctor_scraper.scraping.config.store import ScraperConfigStore
from doctor_scraper.scraping.controller import ScrapeController
from doctor_scraper.scraping.export import CsvExporter
from doctor_scraper.scraping.session import SessionLifecycleManager
from doctor_scraper.scraping.status import StatusPublisher
from doctor_scraper.scraping.storage import InMemoryStateStore
from doctor_scraper.services.scraper_service import DoctorScraperService, get_scraper_service
from fakes import FakeBrowserDriver, RecordingSink

LISTING_URL = "https://nobat.ir/doctors"


def _respond(tab: TabInfo, message: dict[str, Any]) -> dict[str, Any]:
    if message["type"] == GET_DOCTOR_LINKS:
        return {"links": ["https://nobat.ir/doctor/1", "https://nobat.ir/doctor/2"], "next_page_url": None}
    if message["type"] == SCRAPE_DOCTOR_DETAILS:
        return {"data": {"name": "دکتر نمونه", "phones": ["021-1"]}}
    return {"error": "unexpected"}


@pytest.fixture()
def browser() -> FakeBrowserDriver:
    return FakeBrowserDriver(_respond)


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def client(settings: ScraperSettings, browser: FakeBrowserDriver, sink: RecordingSink) -> TestClient:
    store = InMemoryStateStore()
    controller = ScrapeController(
        driver=browser,
        session=SessionLifecycleManager(browser, page_load_timeout=5.0, clock=browser.clock),
        publisher=StatusPublisher(store),
        config_store=ScraperConfigStore(store=store, settings=settings),
        exporter=CsvExporter(sink),
        settings=settings,
        sleep=lambda seconds: None,
        spawn=lambda target: target(),
        now=lambda: datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
    )
    controller.publish_current_status()
    service = DoctorScraperService(controller=controller, driver=browser)

    app = create_app()
    app.dependency_overrides[get_scraper_service] = lambda: service
    return TestClient(app)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


class TestStatusEndpoint:
    def test_idle_status(self, client: TestClient) -> None:
        response = client.get("/scraper/status")

        assert response.status_code == 200
        body = response.json()
        assert body["is_scraping"] is False
        assert body["message"] == "Idle."
        assert (body["total"], body["processed"], body["pending"]) == (0, 0, 0)
        assert body["errors"] == []


# ---------------------------------------------------------------------------
# Start / stop
# ---------------------------------------------------------------------------


class TestStartEndpoint:
    def test_without_active_tab(self, client: TestClient) -> None:
        response = client.post("/scraper/start")

        assert response.status_code == 400
        assert response.json()["detail"] == "No active tab detected."

    def test_on_foreign_host(self, client: TestClient, browser: FakeBrowserDriver) -> None:
        browser.open_listing("https://example.com/doctors")

        response = client.post("/scraper/start")

        assert response.status_code == 400
        assert response.json()["detail"] == "Please open a Nobat.ir doctors list page before starting."

    def test_runs_to_completion(self, client: TestClient, browser: FakeBrowserDriver, sink: RecordingSink) -> None:
        browser.open_listing(LISTING_URL)

        response = client.post("/scraper/start", json={"delay_ms": 0, "max_retries": 1})

        assert response.status_code == 200
        assert response.json()["status"] == "started"
        assert response.json()["total"] == 2
        status = client.get("/scraper/status").json()
        assert status["is_scraping"] is False
        assert status["processed"] == 2
        assert status["max_retries"] == 1
        assert status["last_doctor"]["name"] == "دکتر نمونه"
        assert len(sink.saved) == 1

    def test_listing_url_is_opened_first(self, client: TestClient, browser: FakeBrowserDriver) -> None:
        tab = browser.open_listing("https://www.google.com/")

        response = client.post("/scraper/start", json={"listing_url": LISTING_URL})

        assert response.status_code == 200
        assert browser.navigations[0] == (tab.id, LISTING_URL)

    def test_stop_while_idle(self, client: TestClient) -> None:
        response = client.post("/scraper/stop")

        assert response.status_code == 200
        assert response.json()["status"] == "idle"


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


class TestConfigEndpoint:
    def test_partial_update(self, client: TestClient) -> None:
        response = client.put("/scraper/config", json={"delay_ms": 1200})

        assert response.status_code == 200
        assert response.json() == {"delay_ms": 1200, "max_retries": 0}
        assert client.get("/scraper/status").json()["delay_ms"] == 1200

    def test_retries_are_capped(self, client: TestClient) -> None:
        response = client.put("/scraper/config", json={"max_retries": 12})
        assert response.json()["max_retries"] == 5

    def test_negative_values_are_rejected(self, client: TestClient) -> None:
        response = client.put("/scraper/config", json={"delay_ms": -5})
        assert response.status_code == 422


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
