"""
BeautifulSoup parsing of doctor profile pages.

Every field is resolved by an ordered tuple of strategies; the first
strategy returning a non-empty value wins. Structured (JSON-LD) entries are
parsed once per page and shared by all strategies.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from bs4 import BeautifulSoup, Tag

from doctor_scraper.domain.doctor import Office
from doctor_scraper.scraping.parsing.selectors import (
    ADDRESS_CONTAINER_SELECTORS,
    CODE_SELECTORS,
    LOCALITY_SELECTOR,
    NAME_ATTRIBUTE_SELECTOR,
    NAME_HEADING_SELECTOR,
    OFFICE_CONTAINER_SELECTOR,
    PHONE_CONTAINER_SELECTORS,
    PHONE_DATA_ATTRIBUTES,
    SPECIALTY_SELECTORS,
)
from doctor_scraper.scraping.reconcile import (
    UniqueCollector,
    phone_collector,
    reconcile,
    reconcile_phones,
    resolve_doctor_code,
)
from doctor_scraper.scraping.structured import (
    EntryKind,
    StructuredEntry,
    extract_structured_entries,
    flatten_candidates,
)
from doctor_scraper.scraping.text import normalize_text

FLAT_ENTRY_AS_OFFICE = "office"
FLAT_ENTRY_AS_FIELDS = "fields"
FLAT_ENTRY_POLICIES = frozenset({FLAT_ENTRY_AS_OFFICE, FLAT_ENTRY_AS_FIELDS})

SPECIALTY_SEPARATOR = "، "

_ADDRESS_SELECTOR = ", ".join(ADDRESS_CONTAINER_SELECTORS)
_PHONE_CONTAINER_SELECTOR = ", ".join(PHONE_CONTAINER_SELECTORS)
_PHONE_SPLIT_RE = re.compile(r"\n|،|,|؛|;|\||/")
_PHONE_DATA_KEY_RE = re.compile(r"phone|tel|mobile|number", flags=re.IGNORECASE)
_TEL_PREFIX_RE = re.compile(r"^tel:", flags=re.IGNORECASE)
_NAMED_ENTRY_KINDS = (EntryKind.PERSON, EntryKind.UNKNOWN)


@dataclass
class ProfilePage:
    soup: BeautifulSoup
    url: str
    entries: list[StructuredEntry] = field(default_factory=list)

    @classmethod
    def from_html(cls, html: str, *, url: str) -> "ProfilePage":
        soup = BeautifulSoup(html, "html.parser")
        return cls(soup=soup, url=url, entries=extract_structured_entries(soup))


@dataclass(frozen=True)
class OfficeAggregation:
    city: str
    addresses: list[str]
    offices: list[Office]


FieldStrategy = Callable[[ProfilePage], str]


def first_non_empty(strategies: Iterable[FieldStrategy], page: ProfilePage) -> str:
    for strategy in strategies:
        value = strategy(page)
        if value:
            return value
    return ""


# ---------------------------------------------------------------------------
# Name
# ---------------------------------------------------------------------------


def name_from_heading(page: ProfilePage) -> str:
    heading = page.soup.select_one(NAME_HEADING_SELECTOR)
    if heading is None:
        return ""
    ellipsis = heading.select_one(".text-ellipsis")
    return _node_text(ellipsis if ellipsis is not None else heading)


def name_from_attribute(page: ProfilePage) -> str:
    return _select_text(page.soup, NAME_ATTRIBUTE_SELECTOR)


def name_from_structured(page: ProfilePage) -> str:
    for entry in page.entries:
        if entry.kind not in _NAMED_ENTRY_KINDS or not isinstance(entry.name, str):
            continue
        name = normalize_text(entry.name)
        if name:
            return name
    return ""


NAME_STRATEGIES: tuple[FieldStrategy, ...] = (
    name_from_heading,
    name_from_attribute,
    name_from_structured,
)


# ---------------------------------------------------------------------------
# Specialty
# ---------------------------------------------------------------------------


def specialty_from_selectors(page: ProfilePage) -> str:
    for selector in SPECIALTY_SELECTORS:
        text = _select_text(page.soup, selector)
        if text:
            return text
    return ""


def specialty_from_structured(page: ProfilePage) -> str:
    for entry in page.entries:
        value = entry.specialty
        if isinstance(value, list):
            texts = [text for text in (_specialty_text(item) for item in value) if text]
            if texts:
                return SPECIALTY_SEPARATOR.join(texts)
        else:
            text = _specialty_text(value)
            if text:
                return text
    return ""


SPECIALTY_STRATEGIES: tuple[FieldStrategy, ...] = (
    specialty_from_selectors,
    specialty_from_structured,
)


def _specialty_text(value: Any) -> str:
    if isinstance(value, Mapping):
        value = value.get("name")
    if isinstance(value, str):
        return normalize_text(value)
    return ""


# ---------------------------------------------------------------------------
# License code
# ---------------------------------------------------------------------------


def code_candidates(page: ProfilePage) -> list[Any]:
    """
    Code candidates in priority order: on-page code elements, structured
    identifiers, then structured license numbers.
    """

    candidates: list[Any] = []
    for selector in CODE_SELECTORS:
        node = page.soup.select_one(selector)
        if node is not None:
            candidates.append(node.get_text(" "))
    candidates.extend(entry.identifier for entry in page.entries if entry.identifier)
    candidates.extend(entry.license_number for entry in page.entries if entry.license_number)
    return candidates


def extract_code(page: ProfilePage) -> str:
    return resolve_doctor_code(code_candidates(page))


# ---------------------------------------------------------------------------
# Phones
# ---------------------------------------------------------------------------


def add_phone_candidate(collector: UniqueCollector, value: Any) -> None:
    for item in flatten_candidates(value, parse_json_strings=True):
        collector.add(item)


def collect_phones_from_element(
    root: Tag,
    collector: UniqueCollector,
    *,
    scan_root_when_empty: bool = True,
) -> None:
    containers = root.select(_PHONE_CONTAINER_SELECTOR)
    if not containers and scan_root_when_empty:
        containers = [root]

    for container in containers:
        for item in _PHONE_SPLIT_RE.split(container.get_text("\n")):
            add_phone_candidate(collector, item)

    for link in root.select("a[href^='tel:']"):
        add_phone_candidate(collector, _TEL_PREFIX_RE.sub("", str(link.get("href") or "")))
        add_phone_candidate(collector, link.get_text(" "))

    for attribute in PHONE_DATA_ATTRIBUTES:
        for element in root.select(f"[{attribute}]"):
            add_phone_candidate(collector, element.get(attribute))
            for name, value in element.attrs.items():
                if name.startswith("data-") and _PHONE_DATA_KEY_RE.search(name[5:]):
                    add_phone_candidate(collector, value)


def collect_structured_phones(entries: Iterable[StructuredEntry], collector: UniqueCollector) -> None:
    for entry in entries:
        add_phone_candidate(collector, entry.telephone)
        for point in entry.contact_points:
            if isinstance(point, Mapping):
                add_phone_candidate(collector, point.get("telephone"))
        for address in entry.addresses:
            add_phone_candidate(collector, address.telephone)


def collect_phone_numbers(page: ProfilePage) -> list[str]:
    collector = phone_collector()
    collect_phones_from_element(page.soup, collector, scan_root_when_empty=False)
    collect_structured_phones(page.entries, collector)
    return collector.values()


# ---------------------------------------------------------------------------
# Offices, city and addresses
# ---------------------------------------------------------------------------


class _OfficeBuilder:
    """
    Accumulates normalized, non-empty, duplicate-free offices.
    """

    def __init__(self) -> None:
        self.offices: list[Office] = []
        self._seen: set[tuple[str, str, str]] = set()

    def push(self, *, city: Any = "", addresses: Any = None, phones: Any = None) -> None:
        city_collector = UniqueCollector()
        city_collector.extend(flatten_candidates(city))
        office = Office(
            city=city_collector.first(),
            addresses=tuple(reconcile(flatten_candidates(addresses))),
            phones=tuple(reconcile_phones(flatten_candidates(phones, parse_json_strings=True))),
        )
        if office.is_empty or office.dedupe_key in self._seen:
            return
        self._seen.add(office.dedupe_key)
        self.offices.append(office)


def collect_offices(page: ProfilePage, *, flat_entry_policy: str = FLAT_ENTRY_AS_OFFICE) -> OfficeAggregation:
    """
    Aggregate offices from DOM office containers and structured address
    entries, with a page-wide address fallback when neither source yields an
    office. Also returns the page-level city and address union.
    """

    soup = page.soup
    builder = _OfficeBuilder()
    city_collector = UniqueCollector()
    address_collector = UniqueCollector()
    processed_nodes: set[int] = set()

    def add_address_node(node: Tag, city_target: UniqueCollector, address_target: UniqueCollector) -> None:
        processed_nodes.add(id(node))
        strongs = node.find_all("strong")
        if len(strongs) > 1:
            city_target.add(strongs[0].get_text(" "))
            address_target.add(strongs[-1].get_text(" "))
        elif len(strongs) == 1:
            address_target.add(strongs[0].get_text(" "))
        else:
            address_target.add(node.get_text(" "))

    for container in soup.select(OFFICE_CONTAINER_SELECTOR):
        office_city = UniqueCollector()
        office_city.add(container.get("data-city"))
        office_addresses = UniqueCollector()
        address_nodes = container.select(_ADDRESS_SELECTOR)
        if address_nodes:
            for node in address_nodes:
                add_address_node(node, office_city, office_addresses)
        else:
            office_addresses.add(container.get_text(" "))

        office_phones = phone_collector()
        collect_phones_from_element(container, office_phones)
        builder.push(
            city=office_city.first(),
            addresses=office_addresses.values(),
            phones=office_phones.values(),
        )

    locality = soup.select_one(LOCALITY_SELECTOR)
    if locality is not None:
        city_collector.add(locality.get_text(" "))

    for entry in page.entries:
        city_collector.extend(flatten_candidates(entry.data.get("addressLocality")))
        addresses = entry.addresses

        if not addresses and entry.has_flat_address_fields:
            flat = entry.flat_address()
            if flat_entry_policy == FLAT_ENTRY_AS_OFFICE:
                builder.push(
                    city=flat.locality or flat.region or "",
                    addresses=flat.street,
                    phones=flat.telephone,
                )
            else:
                address_collector.extend(flatten_candidates(flat.street))

        for address in addresses:
            if address.text is not None:
                builder.push(addresses=address.text)
                continue
            office_city = UniqueCollector()
            office_city.extend(flatten_candidates(address.locality))
            office_city.extend(flatten_candidates(address.region))
            builder.push(
                city=office_city.first(),
                addresses=address.street,
                phones=address.telephone,
            )

    if not builder.offices:
        fallback_city = UniqueCollector()
        fallback_addresses = UniqueCollector()
        for node in soup.select(_ADDRESS_SELECTOR):
            if id(node) in processed_nodes:
                continue
            add_address_node(node, fallback_city, fallback_addresses)
        if len(fallback_addresses) or len(fallback_city):
            builder.push(
                city=fallback_city.first(),
                addresses=fallback_addresses.values(),
                phones=collect_phone_numbers(page),
            )

    for office in builder.offices:
        city_collector.add(office.city)
        address_collector.extend(office.addresses)

    for node in soup.select(_ADDRESS_SELECTOR):
        if id(node) not in processed_nodes:
            add_address_node(node, city_collector, address_collector)

    for entry in page.entries:
        for address in entry.addresses:
            if address.text is not None:
                address_collector.add(address.text)
                continue
            address_collector.extend(flatten_candidates(address.street))
            city_collector.extend(flatten_candidates(address.locality))

    return OfficeAggregation(
        city=city_collector.first(),
        addresses=address_collector.values(),
        offices=builder.offices,
    )


# ---------------------------------------------------------------------------
# Whole page
# ---------------------------------------------------------------------------


def parse_profile(page: ProfilePage, *, flat_entry_policy: str = FLAT_ENTRY_AS_OFFICE) -> dict[str, Any]:
    """
    Extract the raw profile payload sent back to the controller.
    """

    aggregation = collect_offices(page, flat_entry_policy=flat_entry_policy)
    return {
        "url": page.url,
        "name": first_non_empty(NAME_STRATEGIES, page),
        "specialty": first_non_empty(SPECIALTY_STRATEGIES, page),
        "code": extract_code(page),
        "city": aggregation.city,
        "addresses": aggregation.addresses,
        "phones": collect_phone_numbers(page),
        "offices": [office.to_dict() for office in aggregation.offices],
    }


def _select_text(root: Tag, selector: str) -> str:
    node = root.select_one(selector)
    return _node_text(node) if node is not None else ""


def _node_text(node: Tag) -> str:
    return normalize_text(node.get_text(" "))
