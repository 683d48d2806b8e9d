"""
doctor_scraper/api package marker.
"""
