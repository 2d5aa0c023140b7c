"""
Configuration loading for the dashboard.

Values come from built-in defaults, overlaid with config/settings.json when
present. Durations are stored in seconds.
"""

import copy
import json
import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = "config/settings.json"

DEFAULTS: Dict[str, Any] = {
    "freshness": 600,
    "auto_refresh": 300,
    "stop_refresh": 4 * 3600,
    "tick": 1,
    "cache_file": "devpost_cache.json",
    "host": "127.0.0.1",
    "port": 8000,
    "qps": 1.0,
    "headers": {},
}

DURATION_KEYS = ("freshness", "auto_refresh", "stop_refresh", "tick")


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load settings, falling back to the defaults for anything not set.

    Raises:
        ValueError: If the file has keys this program does not know about
    """
    config = copy.deepcopy(DEFAULTS)
    path = Path(config_path)
    if not path.exists():
        logger.info(f"No config at {path}, using defaults")
        return config

    with open(path, 'r', encoding='utf-8') as f:
        loaded = json.load(f)

    unknown = sorted(set(loaded) - set(DEFAULTS))
    if unknown:
        raise ValueError(f"Unknown config keys in {path}: {', '.join(unknown)}")
    headers = loaded.pop("headers", None) or {}
    config.update(loaded)
    config["headers"].update(headers)
    return config


def duration(config: Dict[str, Any], key: str) -> timedelta:
    """Read a duration setting as a timedelta."""
    if key not in DURATION_KEYS:
        raise KeyError(f"{key} is not a duration setting")
    return timedelta(seconds=float(config[key]))
