"""
Shared environment-driven database configuration helpers.
"""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_STATE_DATABASE_URL = "sqlite:///doctor_scraper_state.db"


def load_env_files() -> None:
    """
    Load simple KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Existing process environment variables are not overwritten.
    """

    project_root = Path(__file__).resolve().parents[1]
    for filename in (".env", ".env.local"):
        env_path = project_root / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


def normalize_postgres_url(url: str) -> str:
    """
    Normalize postgres URLs to SQLAlchemy's recommended psycopg driver form.
    """

    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def resolve_state_database_url() -> str:
    """
    Resolve the scraper state database URL.

    Priority:
    1) STATE_DATABASE_URL
    2) DATABASE_URL
    3) a local SQLite file
    """

    load_env_files()

    for name in ("STATE_DATABASE_URL", "DATABASE_URL"):
        raw = (os.getenv(name) or "").strip()
        if raw:
            return normalize_postgres_url(raw)
    return DEFAULT_STATE_DATABASE_URL
