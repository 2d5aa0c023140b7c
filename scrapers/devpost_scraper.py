"""
Devpost Scraper Module
======================
Extracts hackathon submissions from devpost.com, which has no public API.

Two fetches:
- Listing: the paginated submission gallery of an event, one Project per card
- Detail: a single project page, for its description and "built with" tags

Extraction misses are not errors: a selector that finds nothing leaves the
corresponding field at its default.
"""

import logging
import posixpath
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Union
from urllib.parse import urlparse

import requests
from bs4 import ParserRejectedMarkup

from scrapers.base_scraper import BaseScraper, FetchCancelled, ParseError
from utils.dom import Node, first, klass, node_attr, node_id, node_text, parse_html, tag, traverse
from utils.markdown import to_markdown
from utils.models import Person, Project, parse_like_count

logger = logging.getLogger(__name__)


LISTING_URL = (
    "https://{event_id}.devpost.com/submissions/search"
    "?page={page}&sort=alpha&terms=&utf8=%E2%9C%93"
)
HOME_URL = "https://devpost.com"
REFERER = "https://devpost.com/hackathons"

# Markers in the raw page that mean there is nothing more to paginate through.
NO_RESULTS = b"There are no submissions which match your criteria."
NOT_PUBLISHED = b"The hackathon managers haven't published this gallery yet, but hang tight!"


@dataclass
class ProjectDetails:
    """Fields only available on a project's own page."""
    description: str = ""
    description_md: str = ""
    tags: List[str] = field(default_factory=list)

    def apply(self, project: Project) -> None:
        project.description = self.description
        project.description_md = self.description_md
        project.tags = list(self.tags)


def _parse(markup: Union[str, bytes]) -> Node:
    try:
        return parse_html(markup)
    except ParserRejectedMarkup as e:
        raise ParseError(f"Failed to parse HTML: {e}") from e


def _short_name(url: str) -> str:
    return posixpath.basename(urlparse(url).path.rstrip("/"))


def parse_projects(markup: Union[str, bytes]) -> List[Project]:
    """Parse one gallery page; a page without a gallery has no projects."""
    doc = _parse(markup)
    gallery = first(doc, tag("div"), node_id("submission-gallery"))
    if gallery is None:
        return []
    return [parse_project_node(card) for card in traverse(gallery, tag("div"), klass("gallery-item"))]


def parse_project_node(n: Node) -> Project:
    """Decode one gallery card."""
    p = Project(id=node_attr(n, "data-software-id"))
    link = first(n, tag("a"), klass("block-wrapper-link"))
    if link is not None:
        p.url = node_attr(link, "href")
        p.short_name = _short_name(p.url)
        img = first(link, tag("img"), klass("software_thumbnail_image"))
        if img is not None:
            p.image = node_attr(img, "src")
    title = first(n, tag("h5"))
    if title is not None:
        p.title = node_text(title)
    tagline = first(n, tag("p"), klass("tagline"))
    if tagline is not None:
        p.tagline = node_text(tagline)
    p.winner = first(n, tag("aside"), klass("entry-badge")) is not None
    for member in traverse(n, tag("span"), klass("user-profile-link")):
        avatar = first(member, tag("img"))
        if avatar is not None:
            p.team.append(Person(
                name=node_attr(avatar, "alt"),
                url=node_attr(member, "data-url"),
                avatar_url=node_attr(avatar, "src"),
            ))
    likes = first(n, tag("span"), klass("count"), klass("like-count"))
    if likes is not None:
        p.likes = parse_like_count(node_text(likes), p.id)
    return p


def parse_project_details(markup: Union[str, bytes]) -> ProjectDetails:
    """Parse a project page into its description and tags."""
    doc = _parse(markup)
    details = ProjectDetails()
    description = first(doc, tag("div"), node_id("app-details-left"))
    if description is not None:
        details.description = node_text(description)
        details.description_md = to_markdown(description)
    built_with = first(doc, tag("div"), node_id("built-with"))
    if built_with is not None:
        details.tags = [node_text(t) for t in traverse(built_with, tag("span"), klass("cp-tag"))]
    return details


class DevpostScraper(BaseScraper):
    """
    Scraper for devpost.com submission galleries and project pages.

    Usage:
        scraper = DevpostScraper()
        scraper.load_cookies()
        projects = scraper.fetch_projects("vibe-coding-hackathon")
        scraper.fetch_project(projects[0])
    """

    def __init__(self, session: Optional[requests.Session] = None, headers=None, qps: float = 1.0, timeout: float = 30):
        super().__init__(session=session, headers={"Referer": REFERER, **(headers or {})}, qps=qps, timeout=timeout)
        self.session.cookies.set(
            "platform.notifications.newsletter.dismissed", "dismissed", domain="devpost.com"
        )

    def load_cookies(self) -> None:
        """Visit the home page once so the session carries the site's cookies."""
        self.get(HOME_URL)
        logger.info(f"Loaded {len(self.session.cookies)} cookies from {HOME_URL}")

    def fetch_projects(self, event_id: str, cancel: Optional[threading.Event] = None) -> List[Project]:
        """
        Fetch every gallery page of an event, in order.

        Pagination stops on the "no results" or "not published" marker, or on
        a page without any card. Projects are not de-duplicated across pages.
        """
        projects: List[Project] = []
        error = None
        start = time.monotonic()
        try:
            page = 1
            while True:
                if cancel is not None and cancel.is_set():
                    raise FetchCancelled(f"Cancelled listing {event_id} at page {page}")
                url = LISTING_URL.format(event_id=event_id, page=page)
                logger.debug(f"Scraping page {page}: {url}")
                body = self.get(url, cancel)
                if NO_RESULTS in body or NOT_PUBLISHED in body:
                    break
                found = parse_projects(body)
                if not found:
                    logger.debug(f"No projects on page {page}, stopping")
                    break
                projects.extend(found)
                page += 1
            return projects
        except Exception as e:
            error = e
            raise
        finally:
            logger.info(
                f"devpost event={event_id} projects={len(projects)} "
                f"dur={time.monotonic() - start:.2f}s err={error}"
            )

    def fetch_project_details(self, url: str, cancel: Optional[threading.Event] = None) -> ProjectDetails:
        return parse_project_details(self.get(url, cancel))

    def fetch_project(self, project: Project, cancel: Optional[threading.Event] = None) -> None:
        """Refresh a project's description and tags in place, then stamp it."""
        error = None
        start = time.monotonic()
        try:
            self.fetch_project_details(project.url, cancel).apply(project)
            project.last_refresh = datetime.now(timezone.utc)
        except Exception as e:
            error = e
            raise
        finally:
            logger.info(
                f"devpost project={project.short_name} "
                f"dur={time.monotonic() - start:.2f}s err={error}"
            )
