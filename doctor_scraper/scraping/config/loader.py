"""
Environment config loader and run-config validation for the scraper.
"""

from __future__ import annotations

import math
import os
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any

from db.config import load_env_files

from doctor_scraper.domain.scrape_job import MAX_RETRY_LIMIT, ScraperConfig
from doctor_scraper.scraping.config.models import ScraperSettings
from doctor_scraper.scraping.parsing.profile_parser import FLAT_ENTRY_AS_OFFICE, FLAT_ENTRY_POLICIES
from doctor_scraper.scraping.urls import DEFAULT_TARGET_HOST


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    stripped = raw.strip()
    return stripped if stripped else default


def _project_root() -> Path:
    return Path(__file__).resolve().parents[3]


def _resolve_path(raw_path: str) -> Path:
    candidate = Path(raw_path)
    if candidate.is_absolute():
        return candidate
    return (_project_root() / candidate).resolve()


@lru_cache(maxsize=1)
def get_scraper_settings() -> ScraperSettings:
    """
    Return cached scraper settings from environment variables.
    """

    load_env_files()
    target_host = _get_str_env("SCRAPER_TARGET_HOST", DEFAULT_TARGET_HOST).lower()
    flat_entry_policy = _get_str_env("SCRAPER_FLAT_ENTRY_POLICY", FLAT_ENTRY_AS_OFFICE).lower()
    if flat_entry_policy not in FLAT_ENTRY_POLICIES:
        flat_entry_policy = FLAT_ENTRY_AS_OFFICE

    return ScraperSettings(
        target_host=target_host,
        listing_url=_get_str_env("SCRAPER_LISTING_URL", f"https://{target_host}/"),
        default_delay_ms=ensure_delay(_get_int_env("SCRAPER_DEFAULT_DELAY_MS", 2500), 2500),
        default_max_retries=ensure_retries(_get_int_env("SCRAPER_DEFAULT_MAX_RETRIES", 2), 2),
        page_load_timeout_seconds=max(
            1.0,
            _get_float_env("SCRAPER_PAGE_LOAD_TIMEOUT_SECONDS", 45.0),
        ),
        link_wait_seconds=max(0.0, _get_float_env("SCRAPER_LINK_WAIT_SECONDS", 5.0)),
        load_more_wait_seconds=max(0.0, _get_float_env("SCRAPER_LOAD_MORE_WAIT_SECONDS", 7.0)),
        load_more_max_iterations=max(0, _get_int_env("SCRAPER_LOAD_MORE_MAX_ITERATIONS", 12)),
        profile_wait_seconds=max(0.0, _get_float_env("SCRAPER_PROFILE_WAIT_SECONDS", 8.0)),
        max_listing_pages=max(1, _get_int_env("SCRAPER_MAX_LISTING_PAGES", 1)),
        flat_entry_policy=flat_entry_policy,
        export_dir=str(_resolve_path(_get_str_env("SCRAPER_EXPORT_DIR", "exports"))),
        headless=_get_bool_env("SCRAPER_HEADLESS", True),
    )


def _finite_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    return numeric if math.isfinite(numeric) else None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def ensure_delay(value: Any, fallback: int) -> int:
    """
    Validate an inter-profile delay in milliseconds.

    Non-numeric or negative values yield `fallback`.
    """

    numeric = _finite_number(value)
    if numeric is None or numeric < 0:
        return max(0, _round_half_up(fallback))
    return max(0, _round_half_up(numeric))


def ensure_retries(value: Any, fallback: int) -> int:
    """
    Validate a retry count; non-numeric or negative values yield `fallback`
    and valid values are clamped to `MAX_RETRY_LIMIT`.
    """

    numeric = _finite_number(value)
    if numeric is None or numeric < 0:
        return max(0, _round_half_up(fallback))
    return min(MAX_RETRY_LIMIT, max(0, _round_half_up(numeric)))


def merge_config(current: ScraperConfig, changes: Mapping[str, Any] | None) -> ScraperConfig:
    """
    Apply a partial config update; absent keys keep their current value.
    """

    if not changes:
        return current
    delay_ms = current.delay_ms
    max_retries = current.max_retries
    if changes.get("delay_ms") is not None:
        delay_ms = ensure_delay(changes["delay_ms"], delay_ms)
    if changes.get("max_retries") is not None:
        max_retries = ensure_retries(changes["max_retries"], max_retries)
    return ScraperConfig(delay_ms=delay_ms, max_retries=max_retries)
