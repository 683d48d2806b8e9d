"""
doctor_scraper/domain/scrape_job.py

Work-queue, retry, error-ledger and status models for one scrape run.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from doctor_scraper.domain.doctor import DoctorRecord

DEFAULT_DELAY_MS = 2500
DEFAULT_MAX_RETRIES = 2
MAX_RETRY_LIMIT = 5

IDLE_MESSAGE = "Idle."
RUNNING_MESSAGE = "Scraping in progress..."


@dataclass(frozen=True)
class ScraperConfig:
    """
    Process-wide run configuration persisted across runs.
    """

    delay_ms: int = DEFAULT_DELAY_MS
    max_retries: int = DEFAULT_MAX_RETRIES

    def to_dict(self) -> dict[str, int]:
        return {"delay_ms": self.delay_ms, "max_retries": self.max_retries}


@dataclass(frozen=True)
class RetryState:
    """
    Retry bookkeeping for the profile currently in flight.
    """

    url: str
    attempt: int
    total_attempts: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "attempt": self.attempt,
            "total_attempts": self.total_attempts,
        }


@dataclass(frozen=True)
class ErrorEntry:
    url: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "message": self.message}


@dataclass(frozen=True)
class LastDoctor:
    name: str
    url: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "url": self.url}


class ErrorLedger:
    """
    Insertion-ordered error entries keyed by URL or sentinel key.

    Recording an error for a key replaces any earlier entry for that key and
    moves it to the end; recording an empty message clears the key. Safe to
    read from control threads while the worker records.
    """

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}
        self._lock = threading.Lock()

    def record(self, url: str, message: str | None) -> None:
        with self._lock:
            self._entries.pop(url, None)
            if message:
                self._entries[url] = message

    def clear(self, url: str) -> None:
        with self._lock:
            self._entries.pop(url, None)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()

    def entries(self) -> list[ErrorEntry]:
        with self._lock:
            items = list(self._entries.items())
        return [ErrorEntry(url=url, message=message) for url, message in items]

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


@dataclass
class ScrapeJob:
    """
    The queue of profile URLs for one run.

    ``cursor`` only moves forward and ``visited`` only grows; a link already
    visited is skipped without producing a second result.
    """

    links: list[str]
    cursor: int = 0
    visited: set[str] = field(default_factory=set)
    results: list[DoctorRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.links)

    @property
    def processed(self) -> int:
        return min(self.cursor, self.total)

    @property
    def pending(self) -> int:
        return max(self.total - self.processed, 0)

    @property
    def is_exhausted(self) -> bool:
        return self.cursor >= self.total

    def current_url(self) -> str | None:
        if self.is_exhausted:
            return None
        return self.links[self.cursor]

    def advance(self) -> None:
        self.cursor += 1

    def mark_visited(self, url: str) -> bool:
        """
        Record `url` as visited. Returns False when it was already visited.
        """

        if url in self.visited:
            return False
        self.visited.add(url)
        return True

    def add_result(self, record: DoctorRecord) -> None:
        self.results.append(record)


@dataclass(frozen=True)
class StatusSnapshot:
    """
    Read-only projection of controller state published to observers.
    """

    is_scraping: bool = False
    total: int = 0
    processed: int = 0
    pending: int = 0
    errors: tuple[ErrorEntry, ...] = ()
    delay_ms: int = DEFAULT_DELAY_MS
    max_retries: int = DEFAULT_MAX_RETRIES
    last_doctor: LastDoctor | None = None
    retrying: RetryState | None = None
    message: str = IDLE_MESSAGE

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_scraping": self.is_scraping,
            "total": self.total,
            "processed": self.processed,
            "pending": self.pending,
            "errors": [entry.to_dict() for entry in self.errors],
            "delay_ms": self.delay_ms,
            "max_retries": self.max_retries,
            "last_doctor": self.last_doctor.to_dict() if self.last_doctor else None,
            "retrying": self.retrying.to_dict() if self.retrying else None,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "StatusSnapshot":
        last_doctor = payload.get("last_doctor")
        retrying = payload.get("retrying")
        return cls(
            is_scraping=bool(payload.get("is_scraping", False)),
            total=int(payload.get("total", 0)),
            processed=int(payload.get("processed", 0)),
            pending=int(payload.get("pending", 0)),
            errors=tuple(
                ErrorEntry(url=str(item.get("url", "")), message=str(item.get("message", "")))
                for item in payload.get("errors") or []
                if isinstance(item, dict)
            ),
            delay_ms=int(payload.get("delay_ms", DEFAULT_DELAY_MS)),
            max_retries=int(payload.get("max_retries", DEFAULT_MAX_RETRIES)),
            last_doctor=LastDoctor(**last_doctor) if isinstance(last_doctor, dict) else None,
            retrying=RetryState(**retrying) if isinstance(retrying, dict) else None,
            message=str(payload.get("message") or IDLE_MESSAGE),
        )
