"""
db/models/scraper_state.py

Persisted scraper records (run config and last status snapshot).
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONPayload, TimestampMixin


class ScraperState(Base, TimestampMixin):
    __tablename__ = "scraper_state"

    key: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Record name, e.g. scraper_config or scraper_status",
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSONPayload,
        nullable=False,
        comment="Whole record, overwritten on every save",
    )
