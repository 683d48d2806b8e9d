"""
Status snapshot persistence and change notification.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from doctor_scraper.domain.scrape_job import StatusSnapshot
from doctor_scraper.scraping.logging_utils import log_event
from doctor_scraper.scraping.storage.base import STATUS_STORAGE_KEY, StateStore

logger = logging.getLogger(__name__)

StatusListener = Callable[[StatusSnapshot], None]


class StatusPublisher:
    """
    Persists every snapshot and pushes it to subscribers. Neither a storage
    failure nor a failing listener interrupts the caller.
    """

    def __init__(self, store: StateStore) -> None:
        self._store = store
        self._listeners: list[StatusListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, snapshot: StatusSnapshot) -> StatusSnapshot:
        try:
            self._store.set(STATUS_STORAGE_KEY, snapshot.to_dict())
        except Exception as exc:
            log_event(logger, logging.WARNING, "status_persist_failed", error=str(exc))

        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception as exc:
                log_event(logger, logging.WARNING, "status_listener_failed", error=str(exc))

        log_event(
            logger,
            logging.DEBUG,
            "status_published",
            is_scraping=snapshot.is_scraping,
            processed=snapshot.processed,
            total=snapshot.total,
            message=snapshot.message,
        )
        return snapshot

    def latest(self) -> StatusSnapshot | None:
        try:
            payload = self._store.get(STATUS_STORAGE_KEY)
        except Exception as exc:
            log_event(logger, logging.WARNING, "status_load_failed", error=str(exc))
            return None
        if not payload:
            return None
        try:
            return StatusSnapshot.from_dict(payload)
        except (TypeError, ValueError) as exc:
            log_event(logger, logging.WARNING, "status_payload_invalid", error=str(exc))
            return None
