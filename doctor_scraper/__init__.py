"""
doctor_scraper package marker.
"""
