"""Shared test doubles."""

from typing import Dict, List, Optional, Tuple

from crawlindex.crawler.fetcher import FetchResult


def html_page(title: str, body: str, links: Optional[List[str]] = None) -> str:
    anchors = "".join(f'<a href="{href}">link</a>' for href in links or [])
    return (
        f"<html><head><title>{title}</title></head>"
        f"<body><p>{body}</p>{anchors}</body></html>"
    )


class FakeFetcher:
    """Serves canned responses; unknown URLs fail like an unreachable host."""

    def __init__(self, pages: Dict[str, Tuple[int, str]]):
        self.pages = pages
        self.requested: List[str] = []
        self.started = False

    async def start(self):
        self.started = True

    async def close(self):
        self.started = False

    async def fetch(self, url: str) -> FetchResult:
        self.requested.append(url)
        if url not in self.pages:
            return FetchResult(url=url, status_code=0, error="Client error: Cannot connect to host")

        status, html = self.pages[url]
        if status >= 400:
            return FetchResult(url=url, status_code=status, error=f"HTTP {status}")
        return FetchResult(url=url, status_code=status, content=html, content_type='text/html')

    def get_stats(self):
        return {'total_requests': len(self.requested)}
