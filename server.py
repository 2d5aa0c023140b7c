"""
Devpost Dashboard Server (FastAPI)
==================================
JSON API over the cached devpost client.
Auto-generated Swagger docs at /docs
"""
import ipaddress
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from database.cache_manager import CacheSaveError, StaleDataError
from scrapers.base_scraper import HTTPError, ScrapingError
from utils.models import Person, Project

logger = logging.getLogger(__name__)


DEMO_PROJECTS = [
    Project(
        id="-1",
        short_name="devpostdash",
        title="Devpost Dashboard",
        tagline="Awesome dashboard for our hackathon",
        url="https://devpost.com/software/devpostdash",
        winner=True,
        team=[Person(name="Dashboard Team", url="https://devpost.com")],
        likes=31337,
        tags=["devpost", "dashboard", "scraping"],
        description=(
            "This project fetches the data from devpost.com using web scraping, "
            "since devpost.com has no API. The server presents an interactive "
            "view that can be used during competitions."
        ),
    ),
    Project(
        id="-2",
        short_name="soon",
        title="Your project here!",
        tagline="Awesome project created during the hackathon",
        url="https://example.com",
        team=[Person(name="You", url="https://example.com")],
        likes=1,
        tags=["soon"],
        description="Solve real world problems, or not, and win prizes!",
    ),
]


def get_real_ip(request: Request) -> Optional[str]:
    """Client IP, honoring X-Forwarded-For and X-Real-IP from proxies."""
    candidates = []
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        candidates.append(forwarded.split(",")[0].strip())
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        candidates.append(real_ip.strip())
    if request.client is not None:
        candidates.append(request.client.host)
    for value in candidates:
        try:
            return str(ipaddress.ip_address(value))
        except ValueError:
            continue
    return None


def present(projects: List[Project]) -> List[dict]:
    """Most liked first, without refresh timestamps."""
    ordered = sorted(projects, key=lambda p: p.likes, reverse=True)
    return [replace(p, last_refresh=None).to_dict() for p in ordered]


def create_app(client) -> FastAPI:
    """
    Build the API around a devpost client.

    The client needs fetch_projects(event_id), fetch_project(project) and
    close(); it is closed when the application shuts down.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        try:
            client.close()
        except CacheSaveError as e:
            logger.error(f"Failed to persist cache on shutdown: {e}")

    app = FastAPI(
        title="Devpost Dashboard API",
        description="Hackathon submissions scraped from devpost.com",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.monotonic()
        try:
            return await call_next(request)
        finally:
            logger.info(
                f"web path={request.url.path} ip={get_real_ip(request)} "
                f"dur={time.monotonic() - start:.3f}s"
            )

    @app.exception_handler(HTTPError)
    async def relay_http_error(request: Request, exc: HTTPError):
        logger.error(f"web path={request.url.path} err={exc}")
        return Response(content=exc.body, status_code=exc.status_code)

    @app.exception_handler(ScrapingError)
    async def scraping_error(request: Request, exc: ScrapingError):
        logger.error(f"web path={request.url.path} err={exc}")
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})

    def get_projects(event_id: str):
        """Returns (projects, stale)."""
        if event_id == "mock":
            return DEMO_PROJECTS, False
        try:
            return client.fetch_projects(event_id), False
        except StaleDataError as e:
            return e.projects, True

    @app.get("/api/events/{event_id}", tags=["Events"])
    def api_event(event_id: str):
        """Projects of an event, most liked first."""
        projects, stale = get_projects(event_id)
        if not projects:
            projects = DEMO_PROJECTS
        headers = {"X-Cache": "stale"} if stale else None
        return JSONResponse(content=present(projects), headers=headers)

    @app.get("/api/events/{event_id}/projects/{project_id}", tags=["Events"])
    def api_project(event_id: str, project_id: str):
        """One project, with its description and tags refreshed if needed."""
        for demo in DEMO_PROJECTS:
            if demo.id == project_id:
                return demo.to_dict()
        projects, _ = get_projects(event_id)
        project = next((p for p in projects if p.id == project_id), None)
        if project is None:
            raise HTTPError(404, f'project "{event_id}/{project_id}" not found'.encode())
        client.fetch_project(project)
        return project.to_dict()

    return app
