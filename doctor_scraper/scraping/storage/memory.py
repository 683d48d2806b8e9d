"""
Process-local state store.
"""

from __future__ import annotations

import copy
import threading
from typing import Any

from doctor_scraper.scraping.storage.base import StateStore


class InMemoryStateStore(StateStore):
    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            payload = self._records.get(key)
            return copy.deepcopy(payload) if payload is not None else None

    def set(self, key: str, payload: dict[str, Any]) -> None:
        with self._lock:
            self._records[key] = copy.deepcopy(payload)
