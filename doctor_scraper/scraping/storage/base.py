"""
Storage layer interface for persisted scraper state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

CONFIG_STORAGE_KEY = "scraper_config"
STATUS_STORAGE_KEY = "scraper_status"


class StateStore(ABC):
    """
    Key/value store for the config and status records. Each record is
    overwritten wholesale.
    """

    @abstractmethod
    def get(self, key: str) -> dict[str, Any] | None:
        """
        Return the stored payload for `key`, or None.
        """

    @abstractmethod
    def set(self, key: str, payload: dict[str, Any]) -> None:
        """
        Replace the payload stored under `key`.
        """
