"""
Data Models Module
==================
Devpost projects, their team members, and the events that own them.

These are the records the scraper produces, the cache stores and persists,
and the web server hands out as JSON.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_time(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        # Naive stamps are UTC
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_like_count(text: str, project_id: str = "") -> int:
    """Parse a like counter; corrupt values are logged and count as zero."""
    try:
        return int(text)
    except ValueError as e:
        logger.error(f"Failed to parse like count for project {project_id}: {e}")
        return 0


@dataclass
class Person:
    """A team member as shown on a project card."""
    name: str = ""
    url: str = ""
    avatar_url: str = ""

    def to_dict(self) -> Dict:
        return {"name": self.name, "url": self.url, "avatar_url": self.avatar_url}

    @classmethod
    def from_dict(cls, data: Dict) -> 'Person':
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class Project:
    """
    One submission within an event.

    The listing page fills everything up to ``likes``; the detail page adds
    the description, its Markdown rendering and the "built with" tags.
    """
    id: str = ""                     # Site-assigned, stable; the merge key
    short_name: str = ""             # URL slug
    title: str = ""
    url: str = ""
    tagline: str = ""
    image: str = ""
    winner: bool = False
    team: List[Person] = field(default_factory=list)
    likes: int = 0

    # Loaded from the detail page
    description: str = ""
    description_md: str = ""
    tags: List[str] = field(default_factory=list)

    last_refresh: Optional[datetime] = None

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "short_name": self.short_name,
            "title": self.title,
            "url": self.url,
            "tagline": self.tagline,
            "image": self.image,
            "winner": self.winner,
            "team": [p.to_dict() for p in self.team],
            "likes": self.likes,
            "description": self.description,
            "description_md": self.description_md,
            "tags": list(self.tags),
            "last_refresh": _format_time(self.last_refresh),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Project':
        """Create from dictionary."""
        values = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        values["team"] = [Person.from_dict(p) for p in values.get("team") or []]
        values["tags"] = list(values.get("tags") or [])
        values["last_refresh"] = _parse_time(values.get("last_refresh"))
        return cls(**values)

    def content_hash(self) -> str:
        """Hash of every field but last_refresh, to spot real content changes."""
        data = replace(self, last_refresh=None).to_dict()
        canonical = json.dumps(data, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).digest()[:16].hex()


@dataclass
class Event:
    """A hackathon being tracked, identified by its devpost subdomain."""
    id: str
    projects: List[Project] = field(default_factory=list)
    last_refresh: Optional[datetime] = None     # Last full listing fetch
    last_requested: Optional[datetime] = None   # Last external access

    def to_dict(self) -> Dict:
        data = {
            "id": self.id,
            "projects": [p.to_dict() for p in self.projects],
            "last_refresh": _format_time(self.last_refresh),
        }
        if self.last_requested is not None:
            data["last_requested"] = _format_time(self.last_requested)
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> 'Event':
        return cls(
            id=data["id"],
            projects=[Project.from_dict(p) for p in data.get("projects") or []],
            last_refresh=_parse_time(data.get("last_refresh")),
            last_requested=_parse_time(data.get("last_requested")),
        )
