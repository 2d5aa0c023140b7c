"""
Devpost Dashboard
=================
Main entry point for the devpost scraping dashboard.

Usage:
    python main.py serve                          # Start the API with the cache
    python main.py serve --port 8080              # Same, on another port
    python main.py fetch vibe-coding-hackathon    # One-shot listing fetch
    python main.py fetch my-event --details       # Also fetch every project page
    python main.py stale                          # Cached events needing refresh
"""

import argparse
import json
import logging
import sys
from datetime import timedelta
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from database.cache_manager import CacheLoadError, CacheManager, ConfigurationError
from scrapers.base_scraper import ScrapingError
from scrapers.devpost_scraper import DevpostScraper
from utils.config import DEFAULT_CONFIG_PATH, duration, load_config

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def build_cache(config: dict, scraper: DevpostScraper, autostart: bool = True) -> CacheManager:
    return CacheManager(
        scraper,
        freshness=duration(config, "freshness"),
        auto_refresh=duration(config, "auto_refresh"),
        cache_file=config["cache_file"],
        stop_refresh=duration(config, "stop_refresh"),
        tick=duration(config, "tick"),
        autostart=autostart,
    )


def serve(config: dict) -> int:
    """Run the API server until interrupted; the cache is saved on shutdown."""
    import uvicorn
    from server import create_app

    scraper = DevpostScraper(headers=config["headers"], qps=config["qps"])
    try:
        try:
            scraper.load_cookies()
            cache = build_cache(config, scraper)
        except (ScrapingError, CacheLoadError, ConfigurationError) as e:
            logger.error(f"Startup failed: {e}")
            return 1

        logger.info(f"Serving on http://{config['host']}:{config['port']} (docs at /docs)")
        uvicorn.run(create_app(cache), host=config["host"], port=config["port"])
        return 0
    finally:
        scraper.close()


def fetch(config: dict, event_id: str, details: bool, as_json: bool) -> int:
    """Fetch an event straight from the site, bypassing the cache."""
    scraper = DevpostScraper(headers=config["headers"], qps=config["qps"])
    try:
        projects = scraper.fetch_projects(event_id)
        if details:
            for project in projects:
                scraper.fetch_project(project)
    except ScrapingError as e:
        logger.error(f"✗ {event_id}: {e}")
        return 1
    finally:
        scraper.close()

    if as_json:
        print(json.dumps([p.to_dict() for p in projects], indent=2, ensure_ascii=False))
        return 0

    print(f"\nFound {len(projects)} projects in {event_id}:\n")
    for p in projects:
        badge = " 🏆" if p.winner else ""
        print(f"  {p.title}{badge}  ({p.likes} likes)")
        if p.tagline:
            print(f"    {p.tagline}")
        if p.team:
            print(f"    👥 {', '.join(m.name for m in p.team)}")
        if p.tags:
            print(f"    🏷  {', '.join(p.tags)}")
        if p.url:
            print(f"    🔗 {p.url}")
        print()
    return 0


def stale(config: dict) -> int:
    """List cached events whose listing is older than the freshness threshold."""
    scraper = DevpostScraper()
    try:
        try:
            cache = build_cache(config, scraper, autostart=False)
        except (CacheLoadError, ConfigurationError) as e:
            logger.error(f"✗ {e}")
            return 1
        events = cache.stale_events()
    finally:
        scraper.close()

    hours = duration(config, "freshness") / timedelta(hours=1)
    if events:
        print(f"\n⏰ Events needing refresh (>{hours:g}h old):")
        for event_id in events:
            print(f"  • {event_id}")
    else:
        print(f"\n✓ All cached events are fresh (<{hours:g}h old)")
    return 0


def main(argv=None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Devpost Dashboard - hackathon submissions scraper",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py serve --host 0.0.0.0
    python main.py fetch vibe-coding-hackathon --json
    python main.py stale
        """
    )
    parser.add_argument('--config', '-c', default=DEFAULT_CONFIG_PATH, help='Path to settings JSON')
    parser.add_argument('--cache-file', help='Cache file (overrides config)')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Serve command
    serve_parser = subparsers.add_parser('serve', help='Run the dashboard API')
    serve_parser.add_argument('--host', help='Address to listen on')
    serve_parser.add_argument('--port', '-p', type=int, help='Port to listen on')
    serve_parser.add_argument('--freshness', type=float, help='Seconds cached data is served without fetching')
    serve_parser.add_argument('--auto-refresh', type=float, help='Seconds after which the sweep refreshes an entry')

    # Fetch command
    fetch_parser = subparsers.add_parser('fetch', help='Fetch an event without the cache')
    fetch_parser.add_argument('event_id', help='Devpost subdomain of the hackathon')
    fetch_parser.add_argument('--details', '-d', action='store_true', help='Also fetch every project page')
    fetch_parser.add_argument('--json', action='store_true', help='Output as JSON')

    # Stale command
    subparsers.add_parser('stale', help='List cached events needing refresh')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        logger.error(f"Invalid config {args.config}: {e}")
        return 1
    if args.cache_file:
        config['cache_file'] = args.cache_file

    if args.command == 'serve':
        for key in ('host', 'port', 'freshness', 'auto_refresh'):
            value = getattr(args, key)
            if value is not None:
                config[key] = value
        return serve(config)
    if args.command == 'fetch':
        return fetch(config, args.event_id, args.details, args.json)
    if args.command == 'stale':
        return stale(config)
    return 0


if __name__ == "__main__":
    sys.exit(main())
