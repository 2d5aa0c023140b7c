# Database Package
"""
Cache of scraped events and projects, with background refresh and persistence.
"""

from database.cache_manager import (
    CacheLoadError,
    CacheManager,
    CacheSaveError,
    ConfigurationError,
    StaleDataError,
)
