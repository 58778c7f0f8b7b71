"""
Per-URL crawl pipeline: dedup gate, fetch, parse, store, link discovery, index.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from .fetcher import WebFetcher, FetchError
from .normalizer import normalize_url
from .parser import ContentParser, ParseError, ParsedContent
from .url_frontier import URLFrontier
from .visited import VisitedSet
from ..storage.database import DatabaseManager
from ..storage.indexer import count_terms
from ..utils.monitoring import CrawlerMonitor


class CrawlOutcome(Enum):
    """How processing of one URL ended."""
    DUPLICATE = "duplicate"
    FETCH_FAILED = "fetch_failed"
    PARSE_FAILED = "parse_failed"
    PROCESSED = "processed"


class CrawlPipeline:
    """
    Processes one URL at a time through strictly sequential stages.

    Two bounded caches are kept. `visited` holds every URL already queued or
    processed and decides what link discovery enqueues. `crawled` holds the
    URLs that passed the dedup gate, so a link marked at discovery is still
    processed once when it is dequeued.

    Fetch and parse failures are local: they are logged and the URL is
    skipped. Store and index failures (DatabaseError) and frontier failures
    (FrontierError) propagate to the caller. Nothing is retried.
    """

    def __init__(self, frontier: URLFrontier, visited: VisitedSet, fetcher: WebFetcher,
                 parser: ContentParser, database: DatabaseManager,
                 monitor: Optional[CrawlerMonitor] = None,
                 crawled: Optional[VisitedSet] = None):
        self.frontier = frontier
        self.visited = visited
        self.crawled = crawled if crawled is not None else VisitedSet(visited.capacity)
        self.fetcher = fetcher
        self.parser = parser
        self.database = database
        self.monitor = monitor
        self.logger = logging.getLogger(__name__)

    async def process_url(self, url: str) -> CrawlOutcome:
        """Run every stage for url and report the outcome."""
        outcome = await self._process(url)
        if self.monitor:
            self.monitor.record_outcome(outcome.value)
        return outcome

    async def _process(self, url: str) -> CrawlOutcome:
        if not self.crawled.add(url):
            self.logger.debug(f"Skipping already crawled URL: {url}")
            return CrawlOutcome.DUPLICATE
        # Seeds are never marked at discovery
        self.visited.add(url)

        try:
            html = await self._fetch(url)
        except FetchError as e:
            self.logger.warning(f"Failed to fetch {url}: {e}")
            return CrawlOutcome.FETCH_FAILED

        try:
            parsed_content = self.parser.parse(url, html)
        except ParseError as e:
            self.logger.warning(f"Failed to parse {url}: {e}")
            return CrawlOutcome.PARSE_FAILED

        await self.database.upsert_page(
            url,
            html,
            parsed_content.content,
            parsed_content.title,
            datetime.now(timezone.utc)
        )
        if self.monitor:
            self.monitor.record_page_stored()

        await self._discover_links(parsed_content)
        await self._index(parsed_content)

        self.logger.info(f"Crawled {url} ({parsed_content.word_count} words, "
                         f"{len(parsed_content.links)} links)")
        return CrawlOutcome.PROCESSED

    async def _fetch(self, url: str) -> str:
        fetch_result = await self.fetcher.fetch(url)
        if self.monitor:
            self.monitor.record_fetch(fetch_result.fetch_time)
        fetch_result.raise_for_error()
        return fetch_result.content

    async def _discover_links(self, parsed_content: ParsedContent) -> List[str]:
        """
        Resolve every href and enqueue first sightings.

        Links are marked visited when discovered, so a link found on several
        pages is queued at most once while it stays in the visited window.
        """
        resolved_links: List[str] = []
        seen = set()
        enqueued = 0

        for href in parsed_content.links:
            resolved = normalize_url(parsed_content.url, href)
            if resolved is None:
                continue

            if resolved not in seen:
                seen.add(resolved)
                resolved_links.append(resolved)

            if self.visited.add(resolved):
                await self.frontier.enqueue(resolved)
                enqueued += 1

        await self.database.record_links(parsed_content.url, resolved_links)

        if self.monitor:
            self.monitor.record_links_enqueued(enqueued)

        self.logger.debug(f"Queued {enqueued} new URLs from {parsed_content.url}")
        return resolved_links

    async def _index(self, parsed_content: ParsedContent):
        counts = count_terms(parsed_content.content)
        await self.database.replace_term_frequencies(parsed_content.url, counts)
        if self.monitor:
            self.monitor.record_terms_indexed(len(counts))
