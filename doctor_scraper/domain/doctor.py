"""
doctor_scraper/domain/doctor.py

Canonical doctor profile records produced by one scrape run.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class Office:
    """
    One clinic location: city plus its ordered, duplicate-free addresses and phones.
    """

    city: str = ""
    addresses: tuple[str, ...] = ()
    phones: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.city and not self.addresses and not self.phones

    @property
    def dedupe_key(self) -> tuple[str, str, str]:
        return (self.city, "||".join(self.addresses), "||".join(self.phones))

    def to_dict(self) -> dict[str, Any]:
        return {
            "city": self.city,
            "addresses": list(self.addresses),
            "phones": list(self.phones),
        }


@dataclass(frozen=True)
class DoctorRecord:
    """
    Reconciled contact data for one profile URL.

    Top-level city/addresses/phones are the union across all offices plus any
    page-level values. ``error`` is set only for placeholder records of
    profiles that could not be scraped.
    """

    url: str
    name: str = ""
    specialty: str = ""
    code: str = ""
    city: str = ""
    addresses: tuple[str, ...] = ()
    phones: tuple[str, ...] = ()
    offices: tuple[Office, ...] = field(default_factory=tuple)
    error: str | None = None

    @classmethod
    def placeholder(cls, url: str, error: str) -> "DoctorRecord":
        return cls(url=url, error=error)

    def with_error(self, message: str) -> "DoctorRecord":
        return replace(self, error=message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "name": self.name,
            "specialty": self.specialty,
            "code": self.code,
            "city": self.city,
            "addresses": list(self.addresses),
            "phones": list(self.phones),
            "offices": [office.to_dict() for office in self.offices],
            "error": self.error,
        }
