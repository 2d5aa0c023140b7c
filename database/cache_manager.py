"""
Cache Manager Module
====================
Staleness-aware cache in front of the devpost scraper.

Features:
- Serves cached listings while they are fresher than the freshness threshold
- Merges each new listing with the detail fields already known, by project ID
- Background sweep refreshing at most one stale event or project per tick
- Events nobody requested for a while are left alone by the sweep
- Versioned JSON persistence, loaded at startup and written on close

All reads and writes of the event map happen under a single lock. Network
fetches happen outside of it, so two callers racing on the same stale event
may both fetch; the merge is idempotent so the last writer simply wins.
"""

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from apscheduler.schedulers.background import BackgroundScheduler

from scrapers.base_scraper import BaseScraper, FetchCancelled, ScrapingError
from utils.models import Event, Project

logger = logging.getLogger(__name__)


CACHE_VERSION = 1


class ConfigurationError(ValueError):
    """The cache was constructed with inconsistent settings."""
    pass


class CacheLoadError(Exception):
    """The persisted cache exists but cannot be used."""
    pass


class CacheSaveError(Exception):
    """The cache could not be written to storage."""
    pass


class StaleDataError(ScrapingError):
    """
    Refreshing an event failed, but older data is available.

    The underlying failure is chained as __cause__.
    """

    def __init__(self, event_id: str, projects: List[Project]):
        self.event_id = event_id
        self.projects = projects
        super().__init__(f"Failed to refresh {event_id}, serving {len(projects)} cached projects")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _later(old: Optional[datetime], new: datetime) -> datetime:
    """Keep refresh timestamps from ever moving backwards."""
    if old is None or new > old:
        return new
    return old


def merge_projects(old: List[Project], new: List[Project]) -> None:
    """
    Carry detail fields over from a previous listing into a new one.

    The new listing's own fields win. Description, Markdown, tags and the
    detail refresh time are copied from the old project with the same ID.
    """
    previous = {p.id: p for p in old}
    for p in new:
        before = previous.get(p.id)
        if before is None:
            continue
        p.description = before.description
        p.description_md = before.description_md
        p.tags = before.tags
        p.last_refresh = before.last_refresh


class CacheManager:
    """
    Caching client for event listings and project details.

    Usage:
        cache = CacheManager(DevpostScraper(), timedelta(minutes=10), timedelta(minutes=5), "cache.json")
        projects = cache.fetch_projects("vibe-coding-hackathon")
        cache.fetch_project(projects[0])
        cache.close()
    """

    def __init__(
        self,
        scraper: BaseScraper,
        freshness: timedelta,
        auto_refresh: timedelta,
        cache_file: str,
        stop_refresh: timedelta = timedelta(hours=4),
        tick: timedelta = timedelta(seconds=1),
        clock: Optional[Callable[[], datetime]] = None,
        autostart: bool = True,
    ):
        """
        Load the persisted cache and start the background sweep.

        Args:
            scraper: Performs the actual listing and detail fetches
            freshness: Maximum age of data served without fetching
            auto_refresh: Age at which the sweep refreshes an entry
            cache_file: JSON file the cache is persisted to
            stop_refresh: Events not requested for this long are not swept
            tick: Delay between two sweep steps
            clock: Returns the current UTC time
            autostart: Start the sweep thread right away

        Raises:
            ConfigurationError: If freshness is not greater than auto_refresh
            CacheLoadError: If the cache file exists but cannot be decoded
        """
        if freshness <= auto_refresh:
            raise ConfigurationError(
                f"freshness ({freshness}) must be greater than auto_refresh ({auto_refresh})"
            )
        self.scraper = scraper
        self.freshness = freshness
        self.auto_refresh = auto_refresh
        self.stop_refresh = stop_refresh
        self.tick = tick
        self.cache_file = Path(cache_file)
        self._now = clock or _utcnow

        self._lock = threading.Lock()
        self._events: Dict[str, Event] = {}

        # Sweep targets whose last refresh failed: ("event", id) or
        # ("project", "event_id/project_id") -> time of the failure
        self._failures: Dict[Tuple[str, str], datetime] = {}

        self._stop = threading.Event()
        self._scheduler: Optional[BackgroundScheduler] = None
        self._closed = False

        self._load()
        if autostart:
            self.start()

    # ============ Persistence ============

    def _load(self) -> None:
        """Load the persisted cache; a missing file just means an empty cache."""
        if not self.cache_file.exists():
            logger.info(f"No cache at {self.cache_file}, starting empty")
            return
        try:
            data = json.loads(self.cache_file.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("top level is not an object")
            version = data.get("version")
            if version != CACHE_VERSION:
                raise ValueError(f"unsupported version {version!r}")
            events = {key: Event.from_dict(value) for key, value in (data.get("events") or {}).items()}
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise CacheLoadError(f"Failed to load cache {self.cache_file}: {e}") from e

        with self._lock:
            self._events = events
        logger.info(f"Loaded cache {self.cache_file}: {len(events)} events")

    def save(self) -> None:
        """
        Write the whole cache atomically.

        Raises:
            CacheSaveError: If encoding or writing fails
        """
        try:
            with self._lock:
                data = {
                    "version": CACHE_VERSION,
                    "events": {key: e.to_dict() for key, e in self._events.items()},
                }
                count = len(self._events)
            payload = json.dumps(data, indent=2, ensure_ascii=False)

            directory = self.cache_file.parent
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=self.cache_file.name, suffix=".tmp", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_path, self.cache_file)
            except BaseException:
                os.unlink(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise CacheSaveError(f"Failed to save cache {self.cache_file}: {e}") from e
        logger.info(f"Saved cache {self.cache_file}: {count} events")

    # ============ Lifecycle ============

    def start(self) -> None:
        """Schedule the background sweep, one step every tick."""
        if self._scheduler is not None:
            return
        self._scheduler = BackgroundScheduler(timezone="UTC")
        self._scheduler.add_job(
            self._sweep,
            "interval",
            seconds=self.tick.total_seconds(),
            id="cache_sweep",
            name="Cache auto-refresh",
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info(f"Auto-refresh running every {self.tick.total_seconds()}s")

    def close(self) -> None:
        """
        Stop the sweep, abandon in-flight fetches and persist the cache.

        Raises:
            CacheSaveError: If the final write fails
        """
        if self._closed:
            return
        self._closed = True
        self._stop.set()
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=True)
            logger.info("Auto-refresh stopped")
        self.save()

    def _sweep(self) -> None:
        if self._stop.is_set():
            return
        try:
            self.refresh_once()
        except Exception:
            logger.exception("Auto-refresh step crashed")

    # ============ Freshness ============

    def _is_fresh(self, last_refresh: Optional[datetime], now: datetime, max_age: timedelta) -> bool:
        return last_refresh is not None and now - last_refresh < max_age

    def _is_inactive(self, event: Event, now: datetime) -> bool:
        return event.last_requested is not None and now - event.last_requested > self.stop_refresh

    def stale_events(self) -> List[str]:
        """IDs of events whose listing is older than the freshness threshold."""
        now = self._now()
        with self._lock:
            return [key for key, e in self._events.items() if not self._is_fresh(e.last_refresh, now, self.freshness)]

    # ============ Public API ============

    def fetch_projects(self, event_id: str) -> List[Project]:
        """
        Projects of an event, fetched only when the cached listing is stale.

        Raises:
            StaleDataError: If the refresh failed but an older listing exists
            ScrapingError: If the refresh failed and nothing is cached
        """
        now = self._now()
        with self._lock:
            event = self._events.get(event_id)
            if event is not None:
                event.last_requested = now
                if self._is_fresh(event.last_refresh, now, self.freshness):
                    return event.projects
                cached = event.projects
        try:
            return self._refresh_event(event_id)
        except ScrapingError as e:
            if event is None:
                raise
            logger.warning(f"Serving stale projects for {event_id}: {e}")
            raise StaleDataError(event_id, cached) from e

    def fetch_project(self, project: Project) -> None:
        """
        Refresh one project's details in place unless they are still fresh.

        Raises:
            ScrapingError: If the detail fetch failed
        """
        with self._lock:
            if self._is_fresh(project.last_refresh, self._now(), self.freshness):
                return
        self._refresh_project(project)

    def refresh_once(self) -> Optional[Tuple[str, str]]:
        """
        Run one sweep step: refresh at most one stale entry.

        Events not requested within stop_refresh are skipped. A stale event
        listing takes precedence over any stale project. An entry whose last
        sweep refresh failed is left alone for auto_refresh, so one broken
        entry cannot starve the others.

        Returns:
            ("event", event_id), ("project", project_id), or None if idle
        """
        now = self._now()
        stale_event = None
        stale_project = None
        key = None
        with self._lock:
            active = [e for e in self._events.values() if not self._is_inactive(e, now)]
            for e in active:
                if self._needs_sweep(e.last_refresh, ("event", e.id), now):
                    stale_event = e.id
                    key = ("event", e.id)
                    break
            else:
                for e in active:
                    for p in e.projects:
                        if self._needs_sweep(p.last_refresh, ("project", f"{e.id}/{p.id}"), now):
                            stale_project = p
                            key = ("project", f"{e.id}/{p.id}")
                            break
                    if stale_project is not None:
                        break

        if key is None:
            return None
        try:
            if stale_event is not None:
                logger.info(f"Auto-refreshing event {stale_event}")
                self._refresh_event(stale_event)
                result = ("event", stale_event)
            else:
                logger.info(f"Auto-refreshing project {stale_project.id}")
                self._refresh_project(stale_project)
                result = ("project", stale_project.id)
        except FetchCancelled:
            logger.info("Auto-refresh cancelled")
            return None
        except ScrapingError as e:
            logger.error(f"Failed to auto-refresh {key[1]}: {e}")
            with self._lock:
                self._failures[key] = now
            return None

        with self._lock:
            self._failures.pop(key, None)
        return result

    def _needs_sweep(self, last_refresh: Optional[datetime], key: Tuple[str, str], now: datetime) -> bool:
        if self._is_fresh(last_refresh, now, self.auto_refresh):
            return False
        failed = self._failures.get(key)
        return failed is None or now - failed >= self.auto_refresh

    # ============ Fetch + merge ============

    def _refresh_event(self, event_id: str) -> List[Project]:
        projects = self.scraper.fetch_projects(event_id, cancel=self._stop)

        now = self._now()
        with self._lock:
            event = self._events.get(event_id)
            if event is None:
                # First fetch of an event always comes from a request.
                event = Event(id=event_id, last_requested=now)
                self._events[event_id] = event
            else:
                merge_projects(event.projects, projects)
            event.projects = projects
            event.last_refresh = _later(event.last_refresh, now)
        return projects

    def _refresh_project(self, project: Project) -> None:
        details = self.scraper.fetch_project_details(project.url, cancel=self._stop)

        now = self._now()
        with self._lock:
            details.apply(project)
            project.last_refresh = _later(project.last_refresh, now)
