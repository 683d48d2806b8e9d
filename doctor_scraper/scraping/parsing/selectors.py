"""
CSS selectors for nobat.ir listing and profile markup.
"""

from __future__ import annotations

LOAD_MORE_SELECTORS: tuple[str, ...] = (
    "button[data-role='load-more']",
    "button.load-more",
    "button.more-doctors",
    ".load-more button",
    "button[data-action='load-more']",
    "button.show-more",
    "a[data-role='load-more']",
)

PROFILE_LINK_WAIT_SELECTOR = "a.doctor-ui, [data-profile-url]"

PROFILE_CARD_SELECTOR = ", ".join(
    (
        "a.doctor-ui",
        "a[data-role='doctor-card']",
        "[data-profile-url]",
        "[data-doctor-url]",
    )
)

PROFILE_LINK_SELECTORS: tuple[str, ...] = (
    "a.doctor-ui",
    "a[data-role='doctor-card']",
    "a.doctor-card",
    ".doctor-ui a[href]",
    "a[href*='/doctor/']",
    "a[href*='/dr/']",
    "a[href*='/profile/doctor']",
)

PROFILE_LINK_ATTRIBUTE_SELECTORS: tuple[str, ...] = (
    "[data-profile-url]",
    "[data-doctor-url]",
    "[data-url]",
    "[data-link]",
)

PROFILE_LINK_ATTRIBUTES: tuple[str, ...] = (
    "data-profile-url",
    "data-doctor-url",
    "data-url",
    "data-link",
)

NEXT_PAGE_SELECTORS: tuple[str, ...] = (
    "a[rel='next']",
    "a.pagination-next",
    ".pagination a.next",
    ".pagination li.next a",
    ".pagination li.active + li a",
    "a[aria-label='Next']",
    "a[aria-label='next']",
    "a[aria-label='بعد']",
    "a[aria-label='بعدی']",
    "a[aria-label*='بعد']",
    "a[aria-label*='next']",
)

PAGINATION_CONTAINER_SELECTOR = (
    ".pagination, nav[aria-label*='page'], nav[aria-label*='صفحه'], nav[role='navigation']"
)

NAME_WAIT_SELECTOR = "h1.doctor-ui-name, .doctor-ui-name, [itemprop='name']"

NAME_HEADING_SELECTOR = "h1.doctor-ui-name"
NAME_ATTRIBUTE_SELECTOR = "[itemprop='name']"

SPECIALTY_SELECTORS: tuple[str, ...] = (
    "h2.doctor-ui-specialty",
    ".doctor-ui-specialty",
    ".doctor-specialty",
    "[data-role='doctor-specialty']",
    "[itemprop='medicalSpecialty']",
)

CODE_SELECTORS: tuple[str, ...] = (
    ".doctor-code span:last-child",
    ".doctor-code",
    "[data-role='doctor-code']",
)

PHONE_CONTAINER_SELECTORS: tuple[str, ...] = (
    ".office-description",
    ".office-contact",
    "[data-role='tells-container']",
    ".doctor-phone",
    ".doctor-phones",
    ".phone-number",
    ".contact-phone",
    ".contact-item",
)

PHONE_DATA_ATTRIBUTES: tuple[str, ...] = (
    "data-phone",
    "data-tel",
    "data-tell",
    "data-mobile",
    "data-number",
    "data-phones",
)

ADDRESS_CONTAINER_SELECTORS: tuple[str, ...] = (
    ".office-address",
    ".doctor-address",
    "[data-role='address']",
    "[itemprop='streetAddress']",
    ".address",
    ".clinic-address",
)

OFFICE_CONTAINER_SELECTOR = (
    ".office, .doctor-office, .office-item, .doctor-ui-office, .doctor-ui__office, .office-info"
)

LOCALITY_SELECTOR = "[itemprop='addressLocality']"

REVEAL_PHONE_SELECTOR = (
    "button[data-role='show-tells'], button.show-tells, [data-role='show-tells'] button"
)
