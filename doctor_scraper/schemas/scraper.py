"""
doctor_scraper/schemas/scraper.py

Request and response schemas for scraper control operations.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ScraperConfigRequest(BaseModel):
    """
    Partial run-config update; omitted fields keep their current value.
    """

    delay_ms: int | None = Field(default=None, ge=0, description="Pause between profiles in ms")
    max_retries: int | None = Field(default=None, ge=0, description="Retries per profile (capped at 5)")

    def changes(self) -> dict[str, int]:
        return self.model_dump(include={"delay_ms", "max_retries"}, exclude_none=True)


class StartScrapingRequest(ScraperConfigRequest):
    listing_url: str | None = Field(
        default=None,
        description="Optional listing page to open in the active tab before starting",
    )


class ScraperConfigResponse(BaseModel):
    delay_ms: int = Field(..., ge=0)
    max_retries: int = Field(..., ge=0)


class ControlResponse(BaseModel):
    """
    Outcome of a start/stop request.
    """

    status: str
    total: int | None = Field(default=None, ge=0)
    message: str | None = None


class ErrorEntryResponse(BaseModel):
    url: str
    message: str


class LastDoctorResponse(BaseModel):
    name: str
    url: str


class RetryStateResponse(BaseModel):
    url: str
    attempt: int = Field(..., ge=1)
    total_attempts: int = Field(..., ge=1)


class ScraperStatusResponse(BaseModel):
    """
    API response model for the latest status snapshot.
    """

    is_scraping: bool
    total: int = Field(..., ge=0)
    processed: int = Field(..., ge=0)
    pending: int = Field(..., ge=0)
    errors: list[ErrorEntryResponse] = Field(default_factory=list)
    delay_ms: int = Field(..., ge=0)
    max_retries: int = Field(..., ge=0)
    last_doctor: LastDoctorResponse | None = None
    retrying: RetryStateResponse | None = None
    message: str
