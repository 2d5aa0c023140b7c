"""
Base Scraper Module
===================
HTTP transport shared by site scrapers, and the scraper error hierarchy.

The base class owns the requests session (default headers, cookies) and
throttles requests to a fixed rate. Site-specific scrapers implement the
listing and detail fetches on top of get().
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import requests

from utils.models import Project

logger = logging.getLogger(__name__)


DEFAULT_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (X11; Linux x86_64) '
                  'AppleWebKit/537.36 (KHTML, like Gecko) '
                  'Chrome/137.0.0.0 Safari/537.36',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
}


class ScrapingError(Exception):
    """Custom exception for scraping errors."""
    pass


class HTTPError(ScrapingError):
    """A response came back with a status other than 200."""

    def __init__(self, status_code: int, body: bytes = b""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"status {status_code}: {body.decode('utf-8', errors='replace')}")


class ParseError(ScrapingError):
    """The document could not be parsed at all."""
    pass


class FetchCancelled(ScrapingError):
    """The fetch was abandoned because its cancellation event was set."""
    pass


class BaseScraper(ABC):
    """
    Abstract base class for site scrapers.

    Child classes implement:
    - fetch_projects()
    - fetch_project_details()

    The base class handles:
    - Session and default headers
    - Rate limiting
    - Mapping of transport and status failures to ScrapingError
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        headers: Optional[Dict[str, str]] = None,
        qps: float = 1.0,
        timeout: float = 30,
    ):
        """
        Initialize the scraper.

        Args:
            session: requests session to use (a new one if omitted)
            headers: Headers sent with every request, merged over the defaults
            qps: Maximum requests per second; 0 disables throttling
            timeout: Per-request timeout in seconds
        """
        self.session = session or requests.Session()
        self.session.headers.update(DEFAULT_HEADERS)
        if headers:
            self.session.headers.update(headers)
        self.timeout = timeout

        # Rate limiting
        self.request_delay = 1.0 / qps if qps > 0 else 0.0
        self.last_request_time = 0.0
        self._rate_lock = threading.Lock()

    def get(self, url: str, cancel: Optional[threading.Event] = None) -> bytes:
        """
        GET a URL and return the raw body.

        Raises:
            FetchCancelled: If cancel is set before the request goes out
            HTTPError: If the status code is not 200
            ScrapingError: If the request itself failed
        """
        if cancel is not None and cancel.is_set():
            raise FetchCancelled(f"Cancelled before fetching {url}")
        self._respect_rate_limit()
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise ScrapingError(f"HTTP request failed: {e}") from e
        if response.status_code != 200:
            raise HTTPError(response.status_code, response.content)
        return response.content

    def _respect_rate_limit(self) -> None:
        """Ensure we don't overwhelm the target server."""
        with self._rate_lock:
            elapsed = time.monotonic() - self.last_request_time
            if elapsed < self.request_delay:
                sleep_time = self.request_delay - elapsed
                logger.debug(f"Rate limiting: sleeping {sleep_time:.2f}s")
                time.sleep(sleep_time)
            self.last_request_time = time.monotonic()

    # ============ Abstract Methods (Child classes must implement) ============

    @abstractmethod
    def fetch_projects(
        self, event_id: str, cancel: Optional[threading.Event] = None
    ) -> List[Project]:
        """
        Fetch every project listed in an event's gallery.

        Returns:
            Projects in listing order, without detail fields

        Raises:
            ScrapingError: If any page fails to fetch or parse
        """
        pass

    @abstractmethod
    def fetch_project_details(self, url: str, cancel: Optional[threading.Event] = None):
        """
        Fetch the detail fields of one project from its page.

        Raises:
            ScrapingError: If the page fails to fetch or parse
        """
        pass

    def close(self) -> None:
        self.session.close()
