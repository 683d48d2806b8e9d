"""
Work-queue state machine for one scrape run.

States: Idle -> Running -> (Stopping) -> Idle. One worker thread processes
the queue; control calls (start/stop/status/config) arrive on other threads.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from doctor_scraper.domain.doctor import DoctorRecord
from doctor_scraper.domain.scrape_job import (
    IDLE_MESSAGE,
    RUNNING_MESSAGE,
    ErrorLedger,
    LastDoctor,
    RetryState,
    ScrapeJob,
    ScraperConfig,
    StatusSnapshot,
)
from doctor_scraper.failure_codes import DOWNLOAD_ERROR_KEY, FINALISE_ERROR_KEY, GLOBAL_ERROR_KEY
from doctor_scraper.scraping.agent import GET_DOCTOR_LINKS, SCRAPE_DOCTOR_DETAILS
from doctor_scraper.scraping.browser.base import BrowserDriver
from doctor_scraper.scraping.config.models import ScraperSettings
from doctor_scraper.scraping.config.store import ScraperConfigStore
from doctor_scraper.scraping.errors import (
    ExportError,
    ExtractionError,
    InvalidInputError,
    NoActiveTabError,
    NotListingPageError,
)
from doctor_scraper.scraping.export import CsvExporter
from doctor_scraper.scraping.logging_utils import log_event
from doctor_scraper.scraping.reconcile import normalize_doctor_data
from doctor_scraper.scraping.session import SessionLifecycleManager
from doctor_scraper.scraping.status import StatusPublisher
from doctor_scraper.scraping.urls import canonicalize_profile_url, is_target_host

logger = logging.getLogger(__name__)

MIN_RETRY_WAIT_MS = 1000

Spawn = Callable[[Callable[[], None]], None]


class ScrapeController:
    """
    Drives the profile session through every discovered URL with bounded
    retries, an inter-profile delay and cooperative cancellation, then
    exports the results.
    """

    def __init__(
        self,
        *,
        driver: BrowserDriver,
        session: SessionLifecycleManager,
        publisher: StatusPublisher,
        config_store: ScraperConfigStore,
        exporter: CsvExporter,
        settings: ScraperSettings,
        sleep: Callable[[float], None] = time.sleep,
        spawn: Spawn | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._driver = driver
        self._session = session
        self._publisher = publisher
        self._config_store = config_store
        self._exporter = exporter
        self._settings = settings
        self._sleep = sleep
        self._spawn = spawn or self._start_worker_thread
        self._now = now or (lambda: datetime.now(timezone.utc))

        self._lock = threading.Lock()
        self._stop_requested = threading.Event()
        self._worker: threading.Thread | None = None
        self._worker_active = False

        self._config: ScraperConfig = config_store.load()
        self._job: ScrapeJob | None = None
        self._errors = ErrorLedger()
        self._last_doctor: LastDoctor | None = None
        self._retrying: RetryState | None = None
        self._starting = False
        self._is_scraping = False
        self._last_results: tuple[DoctorRecord, ...] = ()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def config(self) -> ScraperConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._starting or self._is_scraping or self._worker_active

    @property
    def last_results(self) -> tuple[DoctorRecord, ...]:
        """Records of the most recently finalised run."""
        return self._last_results

    # ------------------------------------------------------------------
    # Control operations
    # ------------------------------------------------------------------

    def start(self, changes: Mapping[str, Any] | None = None) -> dict[str, Any]:
        with self._lock:
            if self.is_running:
                return {"status": "already-running"}

            active_tab = self._driver.active_tab()
            if active_tab is None or not active_tab.id:
                raise NoActiveTabError("No active tab detected.")
            if not is_target_host(active_tab.url, target_host=self._settings.target_host):
                raise NotListingPageError("Please open a Nobat.ir doctors list page before starting.")

            self._session.remember_origin(active_tab)
            self._session.cleanup()
            self._config = self._config_store.apply(self._config, changes, persist=True)
            self._stop_requested.clear()
            self._starting = True

        # Discovery can take minutes; a stop arriving meanwhile is honoured
        # by the worker before the first profile.
        try:
            links = self._discover_links(active_tab.id, active_tab.url)
        except Exception:
            with self._lock:
                self._starting = False
                self._stop_requested.clear()
            raise

        with self._lock:
            self._starting = False
            if not links:
                self._reset()
                self._publish("No doctor links found on this page.", total=0, processed=0, pending=0)
                return {"status": "no-links"}

            self._job = ScrapeJob(links=links)
            self._errors.reset()
            self._last_doctor = None
            self._retrying = None
            self._is_scraping = True
            self._worker_active = True
            total = self._job.total
            log_event(logger, logging.INFO, "scrape_started", total=total, **self._config.to_dict())
            self._publish(f"Found {total} doctor profiles. Starting...")

        self._spawn(self._run)
        return {"status": "started", "total": total}

    def stop(self) -> dict[str, Any]:
        with self._lock:
            if not self.is_running:
                self._session.cleanup()
                self._reset()
                self._publish(IDLE_MESSAGE, total=0, processed=0, pending=0)
                return {"status": "idle"}

            self._stop_requested.set()
            log_event(logger, logging.INFO, "scrape_stop_requested")
            self._publish("Stop requested. Waiting for the current profile to finish...")
            return {"status": "stopping"}

    def get_status(self) -> StatusSnapshot:
        stored = self._publisher.latest()
        if stored is not None:
            return stored
        return StatusSnapshot(
            delay_ms=self._config.delay_ms,
            max_retries=self._config.max_retries,
        )

    def update_config(self, changes: Mapping[str, Any] | None) -> ScraperConfig:
        self._config = self._config_store.apply(self._config, changes or {}, persist=True)
        self._publish()
        return self._config

    def publish_current_status(self) -> StatusSnapshot:
        return self._publish()

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        worker = self._worker
        if worker is not None:
            worker.join(timeout)
        return not self.is_running

    def shutdown(self, timeout: float | None = None) -> None:
        if self.is_running:
            self._stop_requested.set()
            self.wait_until_idle(timeout)
        self._session.cleanup()

    # ------------------------------------------------------------------
    # Link discovery
    # ------------------------------------------------------------------

    def _discover_links(self, listing_tab_id: str, listing_url: str) -> list[str]:
        links: dict[str, None] = {}
        visited_pages: set[str] = {listing_url}
        next_page_url: str | None = None

        for page_number in range(max(1, self._settings.max_listing_pages)):
            if page_number > 0:
                if not next_page_url or next_page_url in visited_pages:
                    break
                self._driver.navigate(listing_tab_id, next_page_url)
                self._session.wait_for_load(listing_tab_id)
            if next_page_url:
                visited_pages.add(next_page_url)

            response = self._session.send_message(listing_tab_id, {"type": GET_DOCTOR_LINKS}) or {}
            if response.get("error"):
                raise ExtractionError(str(response["error"]))

            raw_links = response.get("links")
            for raw in raw_links if isinstance(raw_links, list) else []:
                url = canonicalize_profile_url(raw, target_host=self._settings.target_host)
                if url:
                    links.setdefault(url, None)
            next_page_url = response.get("next_page_url") or None

        return list(links)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _start_worker_thread(self, target: Callable[[], None]) -> None:
        self._worker = threading.Thread(target=target, name="doctor-scraper-worker", daemon=True)
        self._worker.start()

    def _run(self) -> None:
        try:
            self._process_queue()
        except Exception as exc:
            self._fail(exc)
        finally:
            self._worker_active = False

    def _process_queue(self) -> None:
        job = self._job
        if job is None:
            return

        while self._is_scraping and not job.is_exhausted:
            if self._stop_requested.is_set():
                break

            url = job.current_url()
            if not url:
                job.advance()
                continue

            if not job.mark_visited(url):
                job.advance()
                self._publish(f"Skipped duplicate link ({job.processed} / {job.total}).")
                continue

            try:
                record = self._scrape_with_retries(url)
                self._errors.clear(url)
                job.add_result(record)
                self._last_doctor = LastDoctor(name=record.name or record.url or url, url=record.url or url)
            except Exception as exc:
                message = str(exc) or "Unknown error"
                log_event(logger, logging.ERROR, "profile_scrape_failed", url=url, error=message)
                self._errors.record(url, message)
                placeholder = DoctorRecord.placeholder(url, message)
                job.add_result(placeholder)
                self._last_doctor = LastDoctor(name=f"{url} (failed)", url=url)

            job.advance()
            self._publish(f"Processed {job.processed} of {job.total}")

            if self._stop_requested.is_set() or job.is_exhausted:
                break
            if self._config.delay_ms > 0:
                self._sleep(self._config.delay_ms / 1000)

        partial = self._stop_requested.is_set()
        self._is_scraping = False
        self._stop_requested.clear()

        try:
            self._finalise(partial=partial)
        except Exception as exc:
            log_event(logger, logging.ERROR, "scrape_finalise_failed", error=str(exc))
            self._errors.record(FINALISE_ERROR_KEY, str(exc) or exc.__class__.__name__)
            self._session.cleanup()
            self._publish(f"Scraping finalisation failed: {exc}")
            self._reset()

    def _scrape_with_retries(self, url: str) -> DoctorRecord:
        attempts = max(0, self._config.max_retries) + 1
        for attempt in range(1, attempts + 1):
            try:
                if attempt > 1:
                    self._retrying = RetryState(url=url, attempt=attempt, total_attempts=attempts)
                    self._publish(f"Retrying current profile ({attempt} / {attempts})...")
                else:
                    self._retrying = None
                record = self._scrape_profile(url)
                self._retrying = None
                return record
            except InvalidInputError:
                self._retrying = None
                raise
            except Exception as exc:
                if attempt >= attempts:
                    self._retrying = None
                    raise
                log_event(
                    logger,
                    logging.WARNING,
                    "profile_attempt_failed",
                    url=url,
                    attempt=attempt,
                    attempts=attempts,
                    error=str(exc),
                )
                self._sleep(max(self._config.delay_ms, MIN_RETRY_WAIT_MS) / 1000)
        raise ExtractionError("Failed to scrape doctor profile after retries.")

    def _scrape_profile(self, url: str) -> DoctorRecord:
        tab_id = self._session.ensure_session(url)
        response = self._session.send_message(tab_id, {"type": SCRAPE_DOCTOR_DETAILS}) or {}
        if response.get("error"):
            raise ExtractionError(str(response["error"]))
        data = response.get("data")
        if not data:
            raise ExtractionError("No data was returned from the doctor profile page.")
        return normalize_doctor_data(data, url)

    def _finalise(self, *, partial: bool) -> None:
        job = self._job or ScrapeJob(links=[])
        self._session.cleanup()
        self._last_results = tuple(job.results)

        if not job.results:
            self._publish(
                "Scraping stopped before any data was collected." if partial else "No data was collected."
            )
            self._reset()
            return

        try:
            self._exporter.export(job.results, partial=partial, now=self._now())
            self._publish(
                "Scraping stopped early. Partial CSV downloaded." if partial else "Scraping completed."
            )
        except ExportError as exc:
            self._errors.record(DOWNLOAD_ERROR_KEY, str(exc))
            self._publish(f"Failed to save CSV: {exc}")

        log_event(
            logger,
            logging.INFO,
            "scrape_finished",
            partial=partial,
            results=len(job.results),
            errors=len(self._errors),
        )
        self._reset()

    def _fail(self, exc: Exception) -> None:
        log_event(logger, logging.ERROR, "scrape_failed", error=str(exc))
        self._errors.record(GLOBAL_ERROR_KEY, str(exc) or exc.__class__.__name__)
        self._is_scraping = False
        self._stop_requested.clear()
        self._session.cleanup()
        self._publish(f"Scraping failed: {exc}")
        self._reset()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _reset(self) -> None:
        self._job = None
        self._errors.reset()
        self._last_doctor = None
        self._retrying = None
        self._is_scraping = False
        self._stop_requested.clear()
        self._session.forget_origin()

    def _snapshot(
        self,
        message: str | None = None,
        *,
        total: int | None = None,
        processed: int | None = None,
        pending: int | None = None,
    ) -> StatusSnapshot:
        job = self._job
        if job is not None:
            job_counts = (job.total, job.processed, job.pending)
        else:
            job_counts = (0, 0, 0)
        return StatusSnapshot(
            is_scraping=self._is_scraping,
            total=job_counts[0] if total is None else total,
            processed=job_counts[1] if processed is None else processed,
            pending=job_counts[2] if pending is None else pending,
            errors=tuple(self._errors.entries()),
            delay_ms=self._config.delay_ms,
            max_retries=self._config.max_retries,
            last_doctor=self._last_doctor,
            retrying=self._retrying,
            message=message or (RUNNING_MESSAGE if self._is_scraping else IDLE_MESSAGE),
        )

    def _publish(self, message: str | None = None, **counts: int) -> StatusSnapshot:
        return self._publisher.publish(self._snapshot(message, **counts))
