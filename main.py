#!/usr/bin/env python3
"""
Main entry point for the crawl-and-index pipeline.
"""

import asyncio
import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from crawlindex import __version__
from crawlindex.crawler.scheduler import CrawlerScheduler
from crawlindex.utils.config import Config, load_config
from crawlindex.utils.logger import setup_logging, log_system_info


class CrawlerApp:
    """Main application class for the crawler."""

    def __init__(self):
        self.scheduler: Optional[CrawlerScheduler] = None
        self.logger = logging.getLogger(__name__)

    def setup_signal_handlers(self):
        """Stop the crawl loop after the current URL on SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info(f"Received signal {signum}, initiating shutdown...")
            if self.scheduler:
                self.scheduler.is_running = False

        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, signal_handler, signum)

    async def run(self, config: Config, seed_urls: Optional[List[str]] = None,
                  max_pages: Optional[int] = None, max_duration: Optional[int] = None,
                  dry_run: bool = False) -> int:
        """Run the crawler. Returns the process exit code."""
        if seed_urls:
            config.crawler.seed_urls = list(seed_urls)

        setup_logging(config.logging)
        log_system_info()

        self.logger.info("=== CRAWLER STARTING ===")
        self.logger.info(f"Seed URLs: {config.crawler.seed_urls}")
        self.logger.info(f"Frontier: {config.frontier.type} ({config.frontier.path})")
        self.logger.info(f"Database: {config.database.type} ({config.database.path})")
        self.logger.info(f"Visited cache capacity: {config.crawler.visited_capacity}")
        self.logger.info(f"Request timeout: {config.crawler.request_timeout}")

        try:
            self.scheduler = CrawlerScheduler(config)
            await self.scheduler.initialize()

            if dry_run:
                self.logger.info("DRY RUN MODE: No actual crawling will be performed")
                await self._dry_run(config)
                return 0

            self.setup_signal_handlers()
            await self.scheduler.start_crawling(max_pages, max_duration)

        except Exception as e:
            self.logger.error(f"Fatal error: {e}", exc_info=True)
            return 1

        finally:
            if self.scheduler:
                await self.scheduler.close()
            self.logger.info("=== CRAWLER FINISHED ===")

        return 0

    async def _dry_run(self, config: Config):
        """Check that the store and frontier opened, and try fetching the first seed."""
        frontier_stats = await self.scheduler.frontier.get_stats()
        self.logger.info(f"Frontier reachable: {frontier_stats}")

        db_stats = await self.scheduler.database.get_stats()
        self.logger.info(f"Database reachable: {db_stats}")

        if config.crawler.seed_urls:
            test_url = config.crawler.seed_urls[0]
            result = await self.scheduler.fetcher.fetch(test_url)
            if result.error:
                self.logger.warning(f"Test fetch failed: {result.error}")
            else:
                self.logger.info(f"Test fetch successful: {result.status_code}")

        self.logger.info("Dry run completed")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Single-node crawl-and-index pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                 # Run with default config.yaml
  python main.py --config my_config.yaml         # Run with custom config
  python main.py --seed https://example.com/     # Override the seed URLs
  python main.py --max-pages 1000                # Stop after 1000 stored pages
  python main.py --dry-run                       # Test configuration only
        """
    )

    parser.add_argument(
        '--config',
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )

    parser.add_argument(
        '--seed',
        action='append',
        dest='seeds',
        help='Seed URL (repeatable); replaces the seeds from the config file'
    )

    parser.add_argument(
        '--max-pages',
        type=int,
        help='Maximum number of pages to store'
    )

    parser.add_argument(
        '--max-duration',
        type=int,
        help='Maximum crawl duration in seconds'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Test configuration without actually crawling'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'crawlindex {__version__}'
    )

    args = parser.parse_args()

    if not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found.")
        print("Please create a config.yaml file or specify a different path with --config")
        return 1

    try:
        config = load_config(args.config)
    except (ValueError, TypeError) as e:
        print(f"Error: Invalid configuration: {e}")
        return 1

    app = CrawlerApp()
    try:
        return asyncio.run(app.run(
            config,
            seed_urls=args.seeds,
            max_pages=args.max_pages,
            max_duration=args.max_duration,
            dry_run=args.dry_run
        ))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1


if __name__ == '__main__':
    sys.exit(main())
