# Scrapers Package
"""
Scraper modules for devpost data extraction.

Available scrapers:
- BaseScraper: Abstract base class owning the HTTP session and rate limiting
- DevpostScraper: Submission galleries and project pages on devpost.com
"""

from scrapers.base_scraper import BaseScraper, FetchCancelled, HTTPError, ParseError, ScrapingError
from scrapers.devpost_scraper import DevpostScraper, ProjectDetails
