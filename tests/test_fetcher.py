import asyncio

import pytest
from aiohttp import web
from aiohttp import test_utils

from crawlindex.crawler.fetcher import FetchError, FetchResult, WebFetcher


async def _page(request):
    return web.Response(text="<html><body>hello</body></html>", content_type="text/html")


async def _missing(request):
    return web.Response(status=404, text="not found", content_type="text/html")


async def _image(request):
    return web.Response(body=b"\x89PNG", content_type="image/png")


async def _slow(request):
    await asyncio.sleep(1)
    return web.Response(text="late", content_type="text/html")


async def _large(request):
    return web.Response(text="x" * 5000, content_type="text/plain")


def _app():
    app = web.Application()
    app.router.add_get("/page", _page)
    app.router.add_get("/missing", _missing)
    app.router.add_get("/image", _image)
    app.router.add_get("/slow", _slow)
    app.router.add_get("/large", _large)
    return app


def _fetch(path, **fetcher_kwargs):
    async def _run():
        server = test_utils.TestServer(_app())
        await server.start_server()
        try:
            async with WebFetcher("crawlindex-test", **fetcher_kwargs) as fetcher:
                result = await fetcher.fetch(str(server.make_url(path)))
                return result, fetcher.get_stats()
        finally:
            await server.close()

    return asyncio.run(_run())


def test_successful_fetch():
    result, stats = _fetch("/page")
    assert result.error is None
    assert result.status_code == 200
    assert "hello" in result.content
    assert stats['successful_requests'] == 1


def test_error_status_is_a_failure():
    result, stats = _fetch("/missing")
    assert result.error == "HTTP 404"
    assert result.content is None
    assert stats['failed_requests'] == 1


def test_non_text_content_is_a_failure():
    result, _ = _fetch("/image")
    assert result.error == "Non-text content type"


def test_timeout_is_a_failure():
    result, _ = _fetch("/slow", request_timeout=0.2)
    assert result.error == "Request timeout"
    assert result.status_code == 0


def test_body_size_cap():
    result, _ = _fetch("/large", max_content_bytes=1000)
    assert result.error == "Content exceeded size limit"


def test_unreachable_host_is_a_failure():
    async def _run():
        async with WebFetcher("crawlindex-test", request_timeout=5) as fetcher:
            # Port 1 on localhost is not listening
            return await fetcher.fetch("http://127.0.0.1:1/")

    result = asyncio.run(_run())
    assert result.error.startswith("Client error")


def test_raise_for_error():
    with pytest.raises(FetchError):
        FetchResult(url="https://x.test/", status_code=0, error="Request timeout").raise_for_error()

    FetchResult(url="https://x.test/", status_code=200, content="").raise_for_error()
