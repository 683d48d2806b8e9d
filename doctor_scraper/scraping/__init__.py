"""
doctor_scraper/scraping package marker.
"""
