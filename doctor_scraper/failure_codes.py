"""Shared error-ledger keys for failures that are not tied to one profile URL."""

GLOBAL_ERROR_KEY = "global"
DOWNLOAD_ERROR_KEY = "download"
FINALISE_ERROR_KEY = "finalise"

SENTINEL_ERROR_KEYS = [
    GLOBAL_ERROR_KEY,
    DOWNLOAD_ERROR_KEY,
    FINALISE_ERROR_KEY,
]
