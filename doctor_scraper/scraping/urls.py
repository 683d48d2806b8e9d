"""
Profile URL canonicalization restricted to the target host.
"""

from __future__ import annotations

from urllib.parse import urljoin, urlsplit, urlunsplit

DEFAULT_TARGET_HOST = "nobat.ir"


def is_target_host(url: str | None, *, target_host: str = DEFAULT_TARGET_HOST) -> bool:
    """
    Return whether `url` points at `target_host` or one of its subdomains.
    """

    if not url:
        return False
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return False
    return _host_matches(hostname, target_host)


def canonicalize_profile_url(
    raw_url: str | None,
    *,
    base_url: str | None = None,
    target_host: str = DEFAULT_TARGET_HOST,
) -> str | None:
    """
    Resolve `raw_url` against `base_url` and return its canonical form.

    The canonical form is absolute, uses https and has no fragment. Returns
    None for empty, ``javascript:``, malformed or foreign-host input.
    """

    if raw_url is None:
        return None
    candidate = str(raw_url).strip()
    if not candidate or candidate.lower().startswith("javascript:"):
        return None

    base = base_url or f"https://{target_host}/"
    try:
        absolute = urljoin(base, candidate)
        parts = urlsplit(absolute)
        hostname = parts.hostname
    except ValueError:
        return None

    if parts.scheme not in {"http", "https"} or not _host_matches(hostname, target_host):
        return None

    path = parts.path or "/"
    return urlunsplit(("https", parts.netloc.lower(), path, parts.query, ""))


def _host_matches(hostname: str | None, target_host: str) -> bool:
    if not hostname:
        return False
    host = hostname.lower().rstrip(".")
    target = target_host.lower()
    return host == target or host.endswith(f".{target}")
