"""
BeautifulSoup parsing of listing pages: profile links and the next page URL.
"""

from __future__ import annotations

import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from doctor_scraper.scraping.parsing.selectors import (
    NEXT_PAGE_SELECTORS,
    PAGINATION_CONTAINER_SELECTOR,
    PROFILE_LINK_ATTRIBUTE_SELECTORS,
    PROFILE_LINK_ATTRIBUTES,
    PROFILE_LINK_SELECTORS,
)
from doctor_scraper.scraping.text import normalize_text
from doctor_scraper.scraping.urls import DEFAULT_TARGET_HOST, canonicalize_profile_url

_LINK_DATA_KEY_RE = re.compile(r"profile|doctor|url|link", flags=re.IGNORECASE)
_NEXT_TEXT_RE = re.compile(r"(بعد|بعدی|next|›|»)", flags=re.IGNORECASE)
_NEXT_ARIA_RE = re.compile(r"(بعد|بعدی|next)", flags=re.IGNORECASE)
_NEXT_CLASS_RE = re.compile(r"next|بعد", flags=re.IGNORECASE)


def harvest_profile_links(
    soup: BeautifulSoup,
    *,
    base_url: str,
    target_host: str = DEFAULT_TARGET_HOST,
) -> list[str]:
    """
    Collect canonical profile URLs from anchors and data attributes, in
    discovery order and without duplicates.
    """

    links: dict[str, None] = {}

    def add(raw: object) -> None:
        if not isinstance(raw, str):
            return
        url = canonicalize_profile_url(raw, base_url=base_url, target_host=target_host)
        if url:
            links.setdefault(url, None)

    for selector in PROFILE_LINK_SELECTORS:
        for anchor in soup.select(selector):
            add(anchor.get("href") or anchor.get("data-href") or anchor.get("data-profile-url"))

    for selector in PROFILE_LINK_ATTRIBUTE_SELECTORS:
        for element in soup.select(selector):
            for attribute in PROFILE_LINK_ATTRIBUTES:
                add(element.get(attribute))
            for attribute, value in element.attrs.items():
                if attribute.startswith("data-") and _LINK_DATA_KEY_RE.search(attribute[5:]):
                    add(value)

    return list(links)


def find_next_page_url(soup: BeautifulSoup, *, base_url: str) -> str | None:
    """
    Pick the most likely "next page" link, or None when there is none.

    Lower priority wins: rel=next beats next-looking text or aria labels,
    which beat the link following the active pagination item; plain
    pagination links only qualify through a next-ish class.
    """

    scored: list[tuple[int, int, str]] = []
    for index, candidate in enumerate(_pagination_candidates(soup)):
        if _is_disabled(candidate):
            continue
        url = _pagination_url(candidate.get("href"), base_url=base_url)
        if not url:
            continue

        text = normalize_text(candidate.get_text(" ")).lower()
        aria = normalize_text(candidate.get("aria-label") or "").lower()
        rel_values = candidate.get("rel") or []
        if isinstance(rel_values, str):
            rel_values = rel_values.split()

        priority = 5 + index
        has_next_rel = any("next" in value.lower() for value in rel_values)
        if has_next_rel:
            priority = min(priority, 0)
        looks_like_next = bool(_NEXT_TEXT_RE.search(text))
        aria_indicates_next = bool(_NEXT_ARIA_RE.search(aria))
        if looks_like_next or aria_indicates_next:
            priority = min(priority, 1)

        has_next_class = any(_NEXT_CLASS_RE.search(cls) for cls in candidate.get("class") or [])
        after_active = _follows_active_item(candidate)
        if after_active:
            priority = min(priority, 2)

        if not (has_next_rel or looks_like_next or aria_indicates_next or has_next_class or after_active):
            continue
        scored.append((priority, index, url))

    if not scored:
        return None
    scored.sort()
    return scored[0][2]


def _pagination_candidates(soup: BeautifulSoup) -> list[Tag]:
    candidates: list[Tag] = []
    seen: set[int] = set()

    def add(element: Tag | None) -> None:
        if element is None or id(element) in seen:
            return
        seen.add(id(element))
        candidates.append(element)

    for selector in NEXT_PAGE_SELECTORS:
        for element in soup.select(selector):
            add(element)

    for container in soup.select(PAGINATION_CONTAINER_SELECTOR):
        active = container.select_one("li.active, .active")
        if active is not None:
            for sibling in active.find_next_siblings():
                anchor = sibling.select_one("a[href]")
                if anchor is not None:
                    add(anchor)
                    break
        for anchor in container.select("a[href]"):
            add(anchor)

    return candidates


def _is_disabled(element: Tag) -> bool:
    if element.get("aria-disabled") == "true":
        return True
    classes = element.get("class") or []
    if "disabled" in classes or "d-none" in classes:
        return True
    parent = element.find_parent("li")
    if parent is not None:
        if parent.get("aria-disabled") == "true":
            return True
        parent_classes = parent.get("class") or []
        if "disabled" in parent_classes or "d-none" in parent_classes:
            return True
    return False


def _follows_active_item(element: Tag) -> bool:
    parent = element.find_parent("li")
    if parent is None:
        return False
    previous = parent.find_previous_sibling()
    return previous is not None and "active" in (previous.get("class") or [])


def _pagination_url(href: object, *, base_url: str) -> str | None:
    if not isinstance(href, str):
        return None
    trimmed = href.strip()
    if not trimmed or trimmed == "#" or trimmed.lower().startswith("javascript:"):
        return None
    return urljoin(base_url, trimmed)
