"""
Field reconciliation: merge candidate values from several page sources into
ordered, duplicate-free canonical values.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from doctor_scraper.domain.doctor import DoctorRecord, Office
from doctor_scraper.scraping.structured import flatten_candidates
from doctor_scraper.scraping.text import normalize_phone_text, normalize_text, phone_key

Transform = Callable[[Any], str]
KeyFunction = Callable[[str], str]

# (optional letter + optional whitespace) digits (optional whitespace + letter)
CODE_TOKEN_RE = re.compile(r"(?:[^\W\d_]\s*)?[0-9]+(?:\s*[^\W\d_])?")
_TOKEN_SPLIT_RE = re.compile(r"[\W_]+")
_LETTER_RE = re.compile(r"[^\W\d_]")
_DIGIT_RE = re.compile(r"[0-9]")


class UniqueCollector:
    """
    Accumulates transformed values, keeping the first value seen per key.
    """

    def __init__(self, transform: Transform = normalize_text, key: KeyFunction | None = None) -> None:
        self._transform = transform
        self._key = key
        self._seen: set[str] = set()
        self._values: list[str] = []

    def add(self, value: Any) -> None:
        transformed = self._transform(value)
        if not transformed:
            return
        key = self._key(transformed) if self._key else transformed
        if key in self._seen:
            return
        self._seen.add(key)
        self._values.append(transformed)

    def extend(self, values: Iterable[Any]) -> None:
        for value in values:
            self.add(value)

    def first(self) -> str:
        return self._values[0] if self._values else ""

    def values(self) -> list[str]:
        return list(self._values)

    def __len__(self) -> int:
        return len(self._values)


def phone_collector() -> UniqueCollector:
    return UniqueCollector(normalize_phone_text, phone_key)


def collect_values(*values: Any) -> list[Any]:
    """
    Flatten nested lists/tuples and drop ``None``.
    """

    buffer: list[Any] = []
    for value in values:
        if isinstance(value, (list, tuple)):
            buffer.extend(collect_values(*value))
        elif value is not None:
            buffer.append(value)
    return buffer


def reconcile(
    *values: Any,
    transform: Transform = normalize_text,
    key: KeyFunction | None = None,
) -> list[str]:
    collector = UniqueCollector(transform, key)
    collector.extend(collect_values(*values))
    return collector.values()


def reconcile_phones(*values: Any) -> list[str]:
    return reconcile(*values, transform=normalize_phone_text, key=phone_key)


def extract_code_token(text: str) -> str:
    """
    Pull the license-code token out of free text.

    A letter attached to the digits (before or after, whitespace allowed) is
    kept and internal whitespace removed. Without such a match, tokens are
    scanned in order: the first letter+digit token wins, else the first
    purely numeric token.
    """

    if not text:
        return ""

    match = CODE_TOKEN_RE.search(text)
    if match:
        return re.sub(r"\s+", "", match.group(0))

    numeric_fallback = ""
    for token in _TOKEN_SPLIT_RE.split(text):
        if not token or not _DIGIT_RE.search(token):
            continue
        if _LETTER_RE.search(token):
            return token
        if not numeric_fallback:
            numeric_fallback = token
    return numeric_fallback


def resolve_doctor_code(candidates: Iterable[Any]) -> str:
    """
    Return the first code token found across `candidates` in source order.

    Each candidate may be a string, a nested list or a mapping; nested values
    are scanned recursively. When no candidate holds a token, the first
    non-empty candidate text is returned as-is.
    """

    texts = [
        normalize_text(item)
        for candidate in candidates
        for item in flatten_candidates(candidate)
    ]
    texts = [text for text in texts if text]

    for text in texts:
        token = extract_code_token(text)
        if token:
            return token
    return texts[0] if texts else ""


def normalize_office(office: Mapping[str, Any]) -> Office:
    return Office(
        city=normalize_text(office.get("city") or ""),
        addresses=tuple(reconcile(office.get("addresses"), office.get("address"))),
        phones=tuple(reconcile_phones(office.get("phones"), office.get("phone"))),
    )


def normalize_offices(offices: Any) -> list[Office]:
    """
    Normalize raw office mappings, dropping empty ones and duplicates of
    ``(city, addresses, phones)``.
    """

    if not isinstance(offices, (list, tuple)):
        return []

    normalized: list[Office] = []
    seen: set[tuple[str, str, str]] = set()
    for raw in offices:
        if isinstance(raw, Office):
            office = normalize_office(raw.to_dict())
        elif isinstance(raw, Mapping):
            office = normalize_office(raw)
        else:
            continue
        if office.is_empty or office.dedupe_key in seen:
            continue
        seen.add(office.dedupe_key)
        normalized.append(office)
    return normalized


def normalize_doctor_data(data: Mapping[str, Any] | None, url: str | None = None) -> DoctorRecord:
    """
    Build the canonical record from one raw extraction payload. Never raises.
    """

    data = data or {}
    offices = normalize_offices(data.get("offices"))
    addresses = reconcile(
        data.get("addresses"),
        data.get("address"),
        [address for office in offices for address in office.addresses],
    )
    phones = reconcile_phones(
        data.get("phones"),
        data.get("phone"),
        [phone for office in offices for phone in office.phones],
    )
    office_city = next((office.city for office in offices if office.city), "")

    return DoctorRecord(
        url=url or str(data.get("url") or ""),
        name=normalize_text(data.get("name") or ""),
        specialty=normalize_text(data.get("specialty") or ""),
        code=normalize_text(data.get("code") or data.get("doctor_code") or ""),
        city=normalize_text(data.get("city") or office_city),
        addresses=tuple(addresses),
        phones=tuple(phones),
        offices=tuple(offices),
    )
