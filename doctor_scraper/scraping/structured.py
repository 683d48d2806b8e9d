"""
Embedded JSON-LD metadata parsed into a small tagged union of known shapes.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from bs4 import BeautifulSoup

from doctor_scraper.scraping.logging_utils import log_event

logger = logging.getLogger(__name__)

_PERSON_TYPES = frozenset(
    {
        "person",
        "physician",
        "doctor",
        "dentist",
        "medicalbusiness",
        "medicalclinic",
        "medicalorganization",
        "hospital",
        "localbusiness",
        "organization",
    }
)
_ADDRESS_FIELDS = ("streetAddress", "addressLocality", "addressRegion", "telephone")


class EntryKind(str, Enum):
    PERSON = "person"
    ADDRESS = "address"
    IDENTIFIER = "identifier"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PostalAddress:
    """
    One address value; plain-string addresses only carry ``text``.
    """

    text: Any = None
    street: Any = None
    locality: Any = None
    region: Any = None
    telephone: Any = None


@dataclass(frozen=True)
class StructuredEntry:
    kind: EntryKind
    data: Mapping[str, Any]

    @property
    def name(self) -> Any:
        return self.data.get("name")

    @property
    def specialty(self) -> Any:
        return (
            self.data.get("medicalSpecialty")
            or self.data.get("specialty")
            or self.data.get("department")
        )

    @property
    def identifier(self) -> Any:
        return self.data.get("identifier")

    @property
    def license_number(self) -> Any:
        return self.data.get("medicalLicenseNumber")

    @property
    def telephone(self) -> Any:
        return self.data.get("telephone")

    @property
    def contact_points(self) -> list[Any]:
        points = self.data.get("contactPoint")
        if isinstance(points, list):
            return points
        return [points] if isinstance(points, Mapping) else []

    @property
    def addresses(self) -> list[PostalAddress]:
        return address_values(self.data.get("address"))

    @property
    def has_flat_address_fields(self) -> bool:
        return any(self.data.get(field) for field in ("streetAddress", "telephone", "addressLocality"))

    def flat_address(self) -> PostalAddress:
        return PostalAddress(
            street=self.data.get("streetAddress"),
            locality=self.data.get("addressLocality"),
            region=self.data.get("addressRegion"),
            telephone=self.data.get("telephone"),
        )


def classify_entry(data: Mapping[str, Any]) -> EntryKind:
    types = {item.lower() for item in _as_list(data.get("@type")) if isinstance(item, str)}
    if types & _PERSON_TYPES:
        return EntryKind.PERSON
    if "postaladdress" in types:
        return EntryKind.ADDRESS
    if "propertyvalue" in types:
        return EntryKind.IDENTIFIER
    if data.get("name") or data.get("medicalSpecialty"):
        return EntryKind.PERSON
    if any(data.get(field) for field in _ADDRESS_FIELDS):
        return EntryKind.ADDRESS
    if "value" in data:
        return EntryKind.IDENTIFIER
    return EntryKind.UNKNOWN


def build_entries(items: list[Any]) -> list[StructuredEntry]:
    entries: list[StructuredEntry] = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        graph = item.get("@graph")
        if isinstance(graph, list):
            entries.extend(build_entries(graph))
            continue
        entries.append(StructuredEntry(kind=classify_entry(item), data=item))
    return entries


def extract_structured_entries(soup: BeautifulSoup) -> list[StructuredEntry]:
    """
    Parse every ``application/ld+json`` block; malformed blocks are ignored.
    """

    items: list[Any] = []
    for script in soup.select('script[type="application/ld+json"]'):
        text = (script.string or script.get_text() or "").strip()
        if not text:
            continue
        try:
            parsed = json.loads(text)
        except ValueError as exc:
            log_event(logger, logging.DEBUG, "structured_block_ignored", error=str(exc))
            continue
        items.extend(parsed if isinstance(parsed, list) else [parsed])
    return build_entries(items)


def address_values(value: Any) -> list[PostalAddress]:
    addresses: list[PostalAddress] = []
    for item in _as_list(value):
        if not item:
            continue
        if isinstance(item, str):
            addresses.append(PostalAddress(text=item))
        elif isinstance(item, Mapping):
            addresses.append(
                PostalAddress(
                    street=item.get("streetAddress"),
                    locality=item.get("addressLocality"),
                    region=item.get("addressRegion"),
                    telephone=item.get("telephone"),
                )
            )
    return addresses


def flatten_candidates(value: Any, *, parse_json_strings: bool = False) -> list[str]:
    """
    Flatten an arbitrarily nested value into candidate strings in source order.

    Lists are walked in order, mappings by value (JSON-LD ``@`` keywords are
    skipped), and, when `parse_json_strings` is set, strings that look like a
    JSON array or object are decoded and walked too.
    """

    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        flattened: list[str] = []
        for item in value:
            flattened.extend(flatten_candidates(item, parse_json_strings=parse_json_strings))
        return flattened
    if isinstance(value, Mapping):
        flattened = []
        for key, item in value.items():
            if isinstance(key, str) and key.startswith("@"):
                continue
            flattened.extend(flatten_candidates(item, parse_json_strings=parse_json_strings))
        return flattened
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed:
            return []
        if parse_json_strings and _looks_like_json(trimmed):
            try:
                decoded = json.loads(trimmed)
            except ValueError:
                return [trimmed]
            return flatten_candidates(decoded, parse_json_strings=parse_json_strings)
        return [trimmed]
    return [str(value)]


def _looks_like_json(text: str) -> bool:
    return (text.startswith("[") and text.endswith("]")) or (
        text.startswith("{") and text.endswith("}")
    )


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]
