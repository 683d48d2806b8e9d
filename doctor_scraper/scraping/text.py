"""
Locale-aware text normalization for Persian directory pages.
"""

from __future__ import annotations

import re

_PERSIAN_DIGITS = "۰۱۲۳۴۵۶۷۸۹"
_ARABIC_INDIC_DIGITS = "٠١٢٣٤٥٦٧٨٩"

DIGIT_TRANSLATION = str.maketrans(
    {
        **{digit: str(value) for value, digit in enumerate(_PERSIAN_DIGITS)},
        **{digit: str(value) for value, digit in enumerate(_ARABIC_INDIC_DIGITS)},
    }
)

ZERO_WIDTH_NON_JOINER = "\u200c"

_WHITESPACE_RE = re.compile(r"\s+")
_PHONE_LABEL_RE = re.compile(
    r"^(?:telephone|phones?|tel|call|(?:تلفن|شماره)(?:\s*تماس)?)(?![^\W\d_])[:：\s-]*",
    flags=re.IGNORECASE,
)
_PHONE_KEY_STRIP_RE = re.compile(r"[^0-9+]")
_DIGIT_RE = re.compile(r"[0-9]")


def convert_locale_digits(value: object) -> str:
    if value is None:
        return ""
    return str(value).translate(DIGIT_TRANSLATION)


def normalize_text(value: object) -> str:
    """
    Map locale digits to ASCII, drop ZWNJ, collapse whitespace and trim.

    Total and idempotent: ``None`` yields ``""``.
    """

    text = convert_locale_digits(value).replace(ZERO_WIDTH_NON_JOINER, "")
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_phone_text(value: object) -> str:
    """
    Normalized, human-readable phone text with leading labels removed.
    Text without a single digit is not a phone number and yields "".
    """

    cleaned = normalize_text(value)
    if not cleaned:
        return ""
    stripped = _PHONE_LABEL_RE.sub("", cleaned).strip()
    return stripped if _DIGIT_RE.search(stripped) else ""


def phone_key(value: object) -> str:
    """
    Equality key for phone numbers: digits and ``+`` only, with the Iranian
    country prefix folded into the domestic leading zero.
    """

    key = _PHONE_KEY_STRIP_RE.sub("", convert_locale_digits(value))
    if key.startswith("+98"):
        return "0" + key[3:]
    if key.startswith("0098"):
        return "0" + key[4:]
    if key.startswith("98") and len(key) == 12:
        return "0" + key[2:]
    return key
