import logging
import threading

import pytest
import requests

from conftest import FakeSession, read_fixture
from scrapers.base_scraper import FetchCancelled, HTTPError, ScrapingError
from scrapers.devpost_scraper import (
    HOME_URL,
    LISTING_URL,
    NO_RESULTS,
    NOT_PUBLISHED,
    DevpostScraper,
    parse_project_details,
    parse_projects,
)
from utils.models import Person, Project


def listing(event_id, page):
    return LISTING_URL.format(event_id=event_id, page=page)


def make_scraper(pages):
    session = FakeSession(pages)
    return DevpostScraper(session=session, qps=0), session


def test_parse_projects_decodes_cards(caplog):
    with caplog.at_level(logging.ERROR):
        projects = parse_projects(read_fixture("gallery_page.html"))

    assert [p.id for p in projects] == ["101", "102"]
    first, second = projects
    assert first.title == "RoastMaster"
    assert first.tagline == "Roasts your code, gently."
    assert first.url == "https://devpost.com/software/roastmaster"
    assert first.short_name == "roastmaster"
    assert first.image == "https://cdn.devpost.com/roastmaster.png"
    assert first.winner is True
    assert first.likes == 42
    assert first.team == [
        Person(name="Alice", url="https://devpost.com/alice", avatar_url="https://cdn.devpost.com/alice.jpg"),
        Person(name="Bob", url="https://devpost.com/bob", avatar_url="https://cdn.devpost.com/bob.jpg"),
    ]
    assert first.last_refresh is None

    assert second.short_name == "plain-app"
    assert second.winner is False
    assert second.image == ""
    assert second.team == []
    # Corrupt like counter
    assert second.likes == 0
    assert "102" in caplog.text


def test_parse_projects_without_gallery():
    assert parse_projects(b"<html><body><p>Nothing here</p></body></html>") == []


def test_parse_project_details():
    details = parse_project_details(read_fixture("project_page.html"))
    assert details.description == "Inspiration We love code reviews. Fast Funny"
    assert "\n## Inspiration\n\n" in details.description_md
    assert "**love**" in details.description_md
    assert "- Fast\n" in details.description_md
    assert details.tags == ["python", "fastapi"]


def test_fetch_projects_paginates_until_no_results():
    gallery = read_fixture("gallery_page.html")
    scraper, session = make_scraper({
        listing("vibe", 1): (200, gallery),
        listing("vibe", 2): (200, gallery),
        listing("vibe", 3): (200, b"<html>" + NO_RESULTS + b"</html>"),
    })
    projects = scraper.fetch_projects("vibe")
    assert session.requested == [listing("vibe", 1), listing("vibe", 2), listing("vibe", 3)]
    # Duplicates across pages are kept.
    assert [p.id for p in projects] == ["101", "102", "101", "102"]


def test_fetch_projects_stops_on_unpublished_gallery():
    scraper, session = make_scraper({listing("early", 1): (200, b"<p>" + NOT_PUBLISHED + b"</p>")})
    assert scraper.fetch_projects("early") == []
    assert len(session.requested) == 1


def test_fetch_projects_stops_on_empty_page():
    scraper, session = make_scraper({
        listing("vibe", 1): (200, read_fixture("gallery_page.html")),
        listing("vibe", 2): (200, b'<div id="submission-gallery"></div>'),
    })
    assert len(scraper.fetch_projects("vibe")) == 2
    assert len(session.requested) == 2


def test_fetch_projects_http_error_carries_status_and_body():
    scraper, _ = make_scraper({listing("gone", 1): (503, b"maintenance")})
    with pytest.raises(HTTPError) as exc_info:
        scraper.fetch_projects("gone")
    assert exc_info.value.status_code == 503
    assert exc_info.value.body == b"maintenance"


def test_transport_error_is_not_an_http_error():
    scraper, _ = make_scraper({listing("down", 1): requests.ConnectionError("refused")})
    with pytest.raises(ScrapingError) as exc_info:
        scraper.fetch_projects("down")
    assert not isinstance(exc_info.value, HTTPError)
    assert isinstance(exc_info.value.__cause__, requests.ConnectionError)


def test_fetch_projects_cancelled_before_any_request():
    scraper, session = make_scraper({})
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(FetchCancelled):
        scraper.fetch_projects("vibe", cancel=cancel)
    assert session.requested == []


def test_fetch_project_replaces_tags_and_stamps():
    url = "https://devpost.com/software/roastmaster"
    scraper, _ = make_scraper({url: (200, read_fixture("project_page.html"))})
    project = Project(id="101", short_name="roastmaster", url=url, tags=["stale-tag"])
    scraper.fetch_project(project)
    assert project.tags == ["python", "fastapi"]
    assert project.description.startswith("Inspiration")
    assert project.last_refresh is not None


def test_fetch_project_failure_leaves_project_untouched():
    url = "https://devpost.com/software/missing"
    scraper, _ = make_scraper({})
    project = Project(id="1", url=url, tags=["keep"])
    with pytest.raises(HTTPError):
        scraper.fetch_project(project)
    assert project.tags == ["keep"]
    assert project.last_refresh is None


def test_load_cookies_hits_home_page():
    scraper, session = make_scraper({HOME_URL: (200, b"<html></html>")})
    scraper.load_cookies()
    assert session.requested == [HOME_URL]
    assert scraper.session.cookies.get("platform.notifications.newsletter.dismissed") == "dismissed"
    assert "Referer" in scraper.session.headers


def test_fetch_projects_cancelled_between_pages():
    cancel = threading.Event()
    gallery = read_fixture("gallery_page.html")

    def first_page():
        cancel.set()
        return 200, gallery

    scraper, session = make_scraper({
        listing("vibe", 1): first_page,
        listing("vibe", 2): (200, gallery),
    })
    with pytest.raises(FetchCancelled):
        scraper.fetch_projects("vibe", cancel=cancel)
    assert session.requested == [listing("vibe", 1)]
