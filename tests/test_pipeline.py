import asyncio
import logging

import pytest

from crawlindex.crawler.parser import ContentParser, ParseError
from crawlindex.crawler.pipeline import CrawlOutcome, CrawlPipeline
from crawlindex.crawler.url_frontier import EmptyFrontier, FileURLFrontier
from crawlindex.crawler.visited import VisitedSet
from crawlindex.storage.database import DatabaseManager, IndexingError, StoreError
from crawlindex.utils.config import DatabaseConfig
from crawlindex.utils.monitoring import CrawlerMonitor

from helpers import FakeFetcher, html_page


async def _build(tmp_path, pages, capacity=100, database=None, monitor=None, parser=None):
    frontier = FileURLFrontier(str(tmp_path / "frontier.log"))
    await frontier.initialize()

    if database is None:
        database = DatabaseManager(DatabaseConfig(path=str(tmp_path / "crawl.db")))
        await database.initialize()

    pipeline = CrawlPipeline(
        frontier=frontier,
        visited=VisitedSet(capacity),
        fetcher=FakeFetcher(pages),
        parser=parser or ContentParser(),
        database=database,
        monitor=monitor
    )
    return pipeline


async def _drain(frontier):
    urls = []
    while True:
        try:
            urls.append(await frontier.dequeue())
        except EmptyFrontier:
            return urls


def test_end_to_end_seed_page(tmp_path):
    pages = {
        "https://x.test/": (200, html_page("Home", "hello hello world", ["/about", "/about"])),
    }

    async def _run():
        pipeline = await _build(tmp_path, pages)
        outcome = await pipeline.process_url("https://x.test/")
        page = await pipeline.database.get_page("https://x.test/")
        terms = await pipeline.database.get_term_frequencies("https://x.test/")
        links = await pipeline.database.get_links("https://x.test/")
        queued = await _drain(pipeline.frontier)
        await pipeline.database.close()
        return outcome, page, terms, links, queued

    outcome, page, terms, links, queued = asyncio.run(_run())

    assert outcome is CrawlOutcome.PROCESSED
    assert page.title == "Home"
    assert ("hello", 2) in terms
    assert ("world", 1) in terms
    assert links == ["https://x.test/about"]
    assert queued == ["https://x.test/about"]


def test_second_visit_is_a_duplicate(tmp_path):
    pages = {"https://x.test/": (200, html_page("Home", "hi"))}

    async def _run():
        pipeline = await _build(tmp_path, pages)
        first = await pipeline.process_url("https://x.test/")
        second = await pipeline.process_url("https://x.test/")
        await pipeline.database.close()
        return first, second, pipeline.fetcher.requested

    first, second, requested = asyncio.run(_run())
    assert first is CrawlOutcome.PROCESSED
    assert second is CrawlOutcome.DUPLICATE
    assert requested == ["https://x.test/"]


def test_link_found_on_two_pages_is_queued_once(tmp_path):
    pages = {
        "https://x.test/a": (200, html_page("A", "a", ["/shared", "/only-a"])),
        "https://x.test/b": (200, html_page("B", "b", ["https://x.test/shared"])),
    }

    async def _run():
        pipeline = await _build(tmp_path, pages)
        await pipeline.process_url("https://x.test/a")
        await pipeline.process_url("https://x.test/b")
        queued = await _drain(pipeline.frontier)
        await pipeline.database.close()
        return queued

    assert asyncio.run(_run()) == ["https://x.test/shared", "https://x.test/only-a"]


def test_unresolvable_links_are_dropped(tmp_path):
    pages = {"https://x.test/": (200, html_page("Home", "x", ["http://[::1", "/ok"]))}

    async def _run():
        pipeline = await _build(tmp_path, pages)
        await pipeline.process_url("https://x.test/")
        queued = await _drain(pipeline.frontier)
        await pipeline.database.close()
        return queued

    assert asyncio.run(_run()) == ["https://x.test/ok"]


def test_fetch_failure_is_logged_and_skipped(tmp_path, caplog):
    async def _run():
        pipeline = await _build(tmp_path, {"https://gone.test/": (404, "")})
        unreachable = await pipeline.process_url("https://down.test/")
        missing = await pipeline.process_url("https://gone.test/")
        stored = await pipeline.database.get_page("https://down.test/")
        await pipeline.database.close()
        return unreachable, missing, stored

    with caplog.at_level(logging.WARNING):
        unreachable, missing, stored = asyncio.run(_run())

    assert unreachable is CrawlOutcome.FETCH_FAILED
    assert missing is CrawlOutcome.FETCH_FAILED
    assert stored is None
    assert "https://down.test/" in caplog.text
    assert "HTTP 404" in caplog.text


def test_store_failure_propagates(tmp_path):
    class FailingDatabase:
        async def upsert_page(self, *args, **kwargs):
            raise StoreError("disk full")

    pages = {"https://x.test/": (200, html_page("Home", "x", ["/next"]))}

    async def _run():
        pipeline = await _build(tmp_path, pages, database=FailingDatabase())
        with pytest.raises(StoreError):
            await pipeline.process_url("https://x.test/")
        return await _drain(pipeline.frontier)

    # Nothing after the store stage ran
    assert asyncio.run(_run()) == []


def test_monitor_records_outcomes(tmp_path):
    pages = {"https://x.test/": (200, html_page("Home", "one two", ["/a"]))}
    monitor = CrawlerMonitor()

    async def _run():
        pipeline = await _build(tmp_path, pages, monitor=monitor)
        await pipeline.process_url("https://x.test/")
        await pipeline.process_url("https://x.test/")
        await pipeline.process_url("https://down.test/")
        await pipeline.database.close()

    asyncio.run(_run())
    assert monitor.outcomes == {"processed": 1, "duplicate": 1, "fetch_failed": 1}
    assert b'crawler_links_enqueued_total 1.0' in monitor.metrics.export_text()


def test_discovered_link_is_processed_when_dequeued(tmp_path):
    pages = {
        "https://x.test/": (200, html_page("Home", "hello", ["/about"])),
        "https://x.test/about": (200, html_page("About", "about us", ["/"])),
    }

    async def _run():
        pipeline = await _build(tmp_path, pages)
        await pipeline.process_url("https://x.test/")
        discovered = await pipeline.frontier.dequeue()
        outcome = await pipeline.process_url(discovered)
        page = await pipeline.database.get_page(discovered)
        # The link back to the seed is not queued again
        requeued = await _drain(pipeline.frontier)
        await pipeline.database.close()
        return discovered, outcome, page, requeued

    discovered, outcome, page, requeued = asyncio.run(_run())
    assert discovered == "https://x.test/about"
    assert outcome is CrawlOutcome.PROCESSED
    assert page.title == "About"
    assert requeued == []


def test_parse_failure_is_logged_and_skipped(tmp_path, caplog):
    class BrokenParser:
        def parse(self, url, html):
            raise ParseError(f"Error parsing content from {url}: bad markup")

    pages = {"https://x.test/": (200, html_page("Home", "x", ["/next"]))}

    async def _run():
        pipeline = await _build(tmp_path, pages, parser=BrokenParser())
        outcome = await pipeline.process_url("https://x.test/")
        stored = await pipeline.database.get_page("https://x.test/")
        queued = await _drain(pipeline.frontier)
        await pipeline.database.close()
        return outcome, stored, queued

    with caplog.at_level(logging.WARNING):
        outcome, stored, queued = asyncio.run(_run())

    assert outcome is CrawlOutcome.PARSE_FAILED
    assert stored is None
    assert queued == []
    assert "Failed to parse https://x.test/" in caplog.text


def test_index_failure_propagates_after_store(tmp_path):
    pages = {"https://x.test/": (200, html_page("Home", "x", ["/next"]))}

    async def _run():
        pipeline = await _build(tmp_path, pages)

        async def failing_replace(*args, **kwargs):
            raise IndexingError("no page row")

        pipeline.database.replace_term_frequencies = failing_replace
        with pytest.raises(IndexingError):
            await pipeline.process_url("https://x.test/")

        stored = await pipeline.database.get_page("https://x.test/")
        queued = await _drain(pipeline.frontier)
        await pipeline.database.close()
        return stored, queued

    stored, queued = asyncio.run(_run())
    # Store and link discovery ran before the index stage failed
    assert stored.title == "Home"
    assert queued == ["https://x.test/next"]
