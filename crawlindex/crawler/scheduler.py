"""
Crawler scheduler that wires the components together and drives the crawl loop.
"""

import logging
import time
from typing import Dict, List, Optional
from dataclasses import dataclass

from .url_frontier import URLFrontier, EmptyFrontier, create_frontier
from .fetcher import WebFetcher
from .parser import ContentParser
from .pipeline import CrawlPipeline, CrawlOutcome
from .visited import VisitedSet
from ..storage.database import DatabaseManager
from ..utils.config import Config
from ..utils.monitoring import CrawlerMonitor, MetricsCollector


@dataclass
class CrawlStats:
    """Statistics for crawl operations."""
    start_time: float
    urls_dequeued: int = 0
    pages_stored: int = 0
    duplicates_skipped: int = 0
    fetch_failures: int = 0
    parse_failures: int = 0
    urls_in_queue: int = 0

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.pages_stored / elapsed_minutes if elapsed_minutes > 0 else 0


class CrawlerScheduler:
    """
    Main scheduler that coordinates all crawler components.

    Runs one pipeline call at a time until the frontier is empty, a limit is
    reached, stop_crawling() is called, or a persistence failure propagates.
    Components may be passed in to replace the ones built from the config.
    """

    def __init__(self, config: Config, frontier: Optional[URLFrontier] = None,
                 fetcher: Optional[WebFetcher] = None,
                 database: Optional[DatabaseManager] = None,
                 monitor: Optional[CrawlerMonitor] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)

        # Components
        self.frontier = frontier
        self.fetcher = fetcher
        self.database = database
        self.monitor = monitor
        self.parser: Optional[ContentParser] = None
        self.visited: Optional[VisitedSet] = None
        self.crawled: Optional[VisitedSet] = None
        self.pipeline: Optional[CrawlPipeline] = None

        # Crawl state
        self.stats = CrawlStats(start_time=time.time())
        self.is_running = False

    async def initialize(self):
        """Initialize all crawler components."""
        try:
            if self.database is None:
                self.database = DatabaseManager(self.config.database)
            await self.database.initialize()

            if self.frontier is None:
                self.frontier = create_frontier(self.config.frontier)
            await self.frontier.initialize()

            if self.fetcher is None:
                self.fetcher = WebFetcher(
                    user_agent=self.config.crawler.user_agent,
                    request_timeout=self.config.crawler.request_timeout,
                    max_content_bytes=self.config.crawler.max_content_bytes
                )
            await self.fetcher.start()

            if self.monitor is None:
                self.monitor = CrawlerMonitor(MetricsCollector(
                    enable_server=self.config.monitoring.metrics_enabled,
                    prometheus_port=self.config.monitoring.prometheus_port
                ))
                self.monitor.metrics.start_server()

            self.parser = ContentParser()
            self.visited = VisitedSet(self.config.crawler.visited_capacity)
            self.crawled = VisitedSet(self.config.crawler.visited_capacity)

            self.pipeline = CrawlPipeline(
                frontier=self.frontier,
                visited=self.visited,
                fetcher=self.fetcher,
                parser=self.parser,
                database=self.database,
                monitor=self.monitor,
                crawled=self.crawled
            )

            self.logger.info("Crawler scheduler initialized successfully")

        except Exception as e:
            self.logger.error(f"Failed to initialize crawler scheduler: {e}")
            raise

    async def add_seed_urls(self, urls: Optional[List[str]] = None) -> int:
        """Add seed URLs to the frontier as given, without normalization."""
        seeds = urls if urls is not None else self.config.crawler.seed_urls
        for url in seeds:
            await self.frontier.enqueue(url)

        self.logger.info(f"Added {len(seeds)} seed URLs to frontier")
        return len(seeds)

    async def start_crawling(self, max_pages: Optional[int] = None,
                             max_duration: Optional[int] = None) -> CrawlStats:
        """
        Run the crawl loop.

        Args:
            max_pages: Stop after this many pages are stored (None for unlimited)
            max_duration: Stop after this many seconds (None for unlimited)

        Returns:
            The statistics of this run
        """
        if self.is_running:
            self.logger.warning("Crawler is already running")
            return self.stats

        self.is_running = True
        self.stats = CrawlStats(start_time=time.time())

        try:
            # A resumed crawl continues from the persisted frontier
            if await self.frontier.is_empty():
                if not self.config.crawler.seed_urls:
                    self.logger.warning("Frontier is empty and no seed URLs are configured")
                await self.add_seed_urls()

            while self.is_running:
                if max_pages and self.stats.pages_stored >= max_pages:
                    self.logger.info(f"Reached max pages limit: {max_pages}")
                    break

                if max_duration and self.stats.elapsed_time >= max_duration:
                    self.logger.info(f"Reached max duration: {max_duration} seconds")
                    break

                try:
                    url = await self.frontier.dequeue()
                except EmptyFrontier:
                    self.logger.info("Frontier is empty, crawl complete")
                    break

                outcome = await self.pipeline.process_url(url)
                await self.frontier.ack()
                self._record_outcome(outcome)

                if self.stats.urls_dequeued % self.config.crawler.stats_interval == 0:
                    await self._log_current_stats()

            await self._log_final_stats()

        finally:
            self.is_running = False

        return self.stats

    def _record_outcome(self, outcome: CrawlOutcome):
        self.stats.urls_dequeued += 1
        if outcome is CrawlOutcome.PROCESSED:
            self.stats.pages_stored += 1
        elif outcome is CrawlOutcome.DUPLICATE:
            self.stats.duplicates_skipped += 1
        elif outcome is CrawlOutcome.FETCH_FAILED:
            self.stats.fetch_failures += 1
        elif outcome is CrawlOutcome.PARSE_FAILED:
            self.stats.parse_failures += 1

    async def _log_current_stats(self):
        """Log current crawl statistics."""
        frontier_stats = await self.frontier.get_stats()
        self.stats.urls_in_queue = frontier_stats['pending']
        if self.monitor:
            self.monitor.update_queue_size(self.stats.urls_in_queue)

        self.logger.info(
            f"Crawl Progress: "
            f"Dequeued={self.stats.urls_dequeued}, "
            f"Stored={self.stats.pages_stored}, "
            f"Queued={self.stats.urls_in_queue}, "
            f"FetchFailures={self.stats.fetch_failures}, "
            f"ParseFailures={self.stats.parse_failures}, "
            f"Duplicates={self.stats.duplicates_skipped}, "
            f"Rate={self.stats.pages_per_minute:.1f} pages/min"
        )

    async def _log_final_stats(self):
        """Log final crawl statistics."""
        frontier_stats = await self.frontier.get_stats()
        self.stats.urls_in_queue = frontier_stats['pending']
        db_stats = await self.database.get_stats()

        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"Total URLs dequeued: {self.stats.urls_dequeued}")
        self.logger.info(f"Pages stored: {self.stats.pages_stored}")
        self.logger.info(f"Duplicates skipped: {self.stats.duplicates_skipped}")
        self.logger.info(f"Fetch failures: {self.stats.fetch_failures}")
        self.logger.info(f"Parse failures: {self.stats.parse_failures}")
        self.logger.info(f"Total time: {self.stats.elapsed_time:.2f} seconds")
        self.logger.info(f"Average rate: {self.stats.pages_per_minute:.1f} pages/min")
        self.logger.info(f"URLs remaining in queue: {self.stats.urls_in_queue}")
        self.logger.info(f"Fetcher stats: {self.fetcher.get_stats()}")
        self.logger.info(f"Visited cache stats: {self.visited.get_stats()}")
        self.logger.info(f"Crawled cache stats: {self.crawled.get_stats()}")
        self.logger.info(f"Database stats: {db_stats}")
        if self.monitor:
            self.logger.info(f"Outcome summary: {self.monitor.get_summary()}")

    async def stop_crawling(self):
        """Stop the crawl loop after the URL currently being processed."""
        self.logger.info("Stopping crawler...")
        self.is_running = False

    async def close(self):
        """Close all connections and cleanup resources."""
        if self.fetcher:
            await self.fetcher.close()

        if self.database:
            await self.database.close()

        if self.frontier:
            await self.frontier.close()

        self.logger.info("Crawler scheduler closed")

    def get_stats(self) -> Dict:
        """Get current crawl statistics."""
        return {
            'urls_dequeued': self.stats.urls_dequeued,
            'pages_stored': self.stats.pages_stored,
            'duplicates_skipped': self.stats.duplicates_skipped,
            'fetch_failures': self.stats.fetch_failures,
            'parse_failures': self.stats.parse_failures,
            'elapsed_time': self.stats.elapsed_time,
            'pages_per_minute': self.stats.pages_per_minute,
            'urls_in_queue': self.stats.urls_in_queue,
            'is_running': self.is_running
        }
