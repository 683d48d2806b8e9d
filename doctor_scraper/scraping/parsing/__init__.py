"""
Pure BeautifulSoup parsers for listing and profile pages.
"""

from doctor_scraper.scraping.parsing.listing_parser import find_next_page_url, harvest_profile_links
from doctor_scraper.scraping.parsing.profile_parser import ProfilePage, collect_offices, parse_profile

__all__ = [
    "ProfilePage",
    "collect_offices",
    "find_next_page_url",
    "harvest_profile_links",
    "parse_profile",
]
