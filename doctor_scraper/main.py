from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Load env files on boot; stop any running scrape and close the browser on exit."""
    from db.config import load_env_files

    load_env_files()
    try:
        yield
    finally:
        from doctor_scraper.services.scraper_service import shutdown_scraper_service

        shutdown_scraper_service()
        logging.getLogger(__name__).info("Scraper service shut down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _configure_logging()

    application = FastAPI(
        title="Doctor Scraper API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from doctor_scraper.api.routers import scraper_router

    application.include_router(scraper_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
