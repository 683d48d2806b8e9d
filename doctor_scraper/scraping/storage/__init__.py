"""
Storage layer exports.
"""

from doctor_scraper.scraping.storage.base import CONFIG_STORAGE_KEY, STATUS_STORAGE_KEY, StateStore
from doctor_scraper.scraping.storage.memory import InMemoryStateStore
from doctor_scraper.scraping.storage.sqlalchemy_storage import SQLAlchemyStateStore

__all__ = [
    "CONFIG_STORAGE_KEY",
    "InMemoryStateStore",
    "SQLAlchemyStateStore",
    "STATUS_STORAGE_KEY",
    "StateStore",
]
