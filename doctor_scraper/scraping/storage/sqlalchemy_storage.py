"""
SQLAlchemy-backed state store.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models.scraper_state import ScraperState
from doctor_scraper.scraping.storage.base import StateStore


class SQLAlchemyStateStore(StateStore):
    """
    Persist scraper records in the `scraper_state` table, one row per key.

    A short-lived session is opened per call because the worker thread and
    the control threads both write.
    """

    def __init__(self, *, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> dict[str, Any] | None:
        with self._session_factory() as session:
            record = session.get(ScraperState, key)
            if record is None or not isinstance(record.payload, dict):
                return None
            return dict(record.payload)

    def set(self, key: str, payload: dict[str, Any]) -> None:
        with self._session_factory() as session:
            try:
                record = session.get(ScraperState, key)
                if record is None:
                    session.add(ScraperState(key=key, payload=dict(payload)))
                else:
                    record.payload = dict(payload)
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                raise
