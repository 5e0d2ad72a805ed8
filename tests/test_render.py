"""
Rendered fetcher tests against hand-written Playwright doubles.
"""

import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from kwangu.scrapers import render
from kwangu.scrapers.errors import RenderError


class FakeRequest:
    def __init__(self, resource_type):
        self.resource_type = resource_type


class FakeRoute:
    def __init__(self, resource_type):
        self.request = FakeRequest(resource_type)
        self.action = None

    async def abort(self):
        self.action = "abort"

    async def continue_(self):
        self.action = "continue"


class FakePage:
    def __init__(self, html="<html><a href='/x'>x</a></html>", goto_error=None, selector_timeout=False):
        self.html = html
        self.goto_error = goto_error
        self.selector_timeout = selector_timeout
        self.goto_calls = []
        self.waited_ms = None
        self.route_handler = None

    async def route(self, pattern, handler):
        self.route_handler = handler

    async def goto(self, url, wait_until=None, timeout=None):
        self.goto_calls.append((url, wait_until, timeout))
        if self.goto_error:
            raise self.goto_error

    async def wait_for_selector(self, selector, timeout=None):
        if self.selector_timeout:
            raise PlaywrightTimeoutError(f"waiting for {selector}")

    async def wait_for_timeout(self, ms):
        self.waited_ms = ms

    async def content(self):
        return self.html


class FakeContext:
    def __init__(self, page):
        self._page = page
        self.closed = False

    async def new_page(self):
        return self._page

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, page):
        self.page = page
        self.contexts = []
        self.closed = False

    async def new_context(self, user_agent=None):
        ctx = FakeContext(self.page)
        self.contexts.append(ctx)
        return ctx

    def is_connected(self):
        return not self.closed

    async def close(self):
        self.closed = True


class FakeChromium:
    def __init__(self, browser):
        self.browser = browser
        self.launches = 0

    async def launch(self, headless=True, args=None):
        self.launches += 1
        return self.browser


class FakePlaywright:
    def __init__(self, browser):
        self.chromium = FakeChromium(browser)
        self.stopped = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def start(self):
        return self

    async def stop(self):
        self.stopped = True


@pytest.fixture
def fake_browser(monkeypatch):
    def _install(page):
        browser = FakeBrowser(page)
        pw = FakePlaywright(browser)
        monkeypatch.setattr(render, "async_playwright", lambda: pw)
        return browser, pw
    return _install


def test_block_heavy_resources():
    for kind, action in (("image", "abort"), ("font", "abort"), ("media", "abort"),
                         ("document", "continue"), ("script", "continue")):
        route = FakeRoute(kind)
        asyncio.run(render._block_heavy_resources(route))
        assert route.action == action


def test_render_waits_for_selector_on_domcontentloaded():
    page = FakePage()
    html = asyncio.run(render.render_page(page, "https://jiji.co.ke", wait_selector="a", timeout_ms=1000))

    assert html == page.html
    assert page.goto_calls == [("https://jiji.co.ke", "domcontentloaded", 1000)]
    assert page.waited_ms is None
    assert page.route_handler is render._block_heavy_resources


def test_selector_timeout_still_returns_html():
    page = FakePage(html="<html>partial</html>", selector_timeout=True)
    html = asyncio.run(render.render_page(page, "https://jiji.co.ke", wait_selector=".never"))

    assert html == "<html>partial</html>"


def test_network_idle_and_settle_delay():
    page = FakePage()
    asyncio.run(render.render_page(page, "https://www.property24.co.ke", wait_for_network=True))

    assert page.goto_calls[0][1] == "networkidle"
    assert page.waited_ms == render.SETTLE_NETWORK_MS

    page = FakePage()
    asyncio.run(render.render_page(page, "https://www.property24.co.ke"))
    assert page.waited_ms == render.SETTLE_MS


def test_fetch_rendered_html_closes_browser(fake_browser):
    browser, _ = fake_browser(FakePage(html="<html>rendered</html>"))

    html = asyncio.run(render.fetch_rendered_html("https://jiji.co.ke", wait_selector="a"))

    assert html == "<html>rendered</html>"
    assert browser.closed


def test_navigation_error_raises_render_error_and_closes(fake_browser):
    browser, _ = fake_browser(FakePage(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED")))

    with pytest.raises(RenderError) as exc:
        asyncio.run(render.fetch_rendered_html("https://jiji.co.ke"))

    assert "ERR_NAME_NOT_RESOLVED" in str(exc.value)
    assert browser.closed


def test_pool_reuses_browser_and_closes_contexts(fake_browser):
    browser, pw = fake_browser(FakePage(html="<html>pooled</html>"))

    async def go():
        async with render.BrowserPool(size=2) as pool:
            results = await asyncio.gather(*(
                render.fetch_rendered_html(f"https://jiji.co.ke/{i}", pool=pool) for i in range(4)
            ))
        return results

    results = asyncio.run(go())

    assert results == ["<html>pooled</html>"] * 4
    assert pw.chromium.launches == 1
    assert len(browser.contexts) == 4
    assert all(ctx.closed for ctx in browser.contexts)
    assert browser.closed
    assert pw.stopped


def test_pool_bounds_checkouts(fake_browser):
    fake_browser(FakePage())
    in_use = 0
    peak = 0

    async def worker(pool):
        nonlocal in_use, peak
        async with pool.page():
            in_use += 1
            peak = max(peak, in_use)
            await asyncio.sleep(0.01)
            in_use -= 1

    async def go():
        async with render.BrowserPool(size=2) as pool:
            await asyncio.gather(*(worker(pool) for _ in range(6)))

    asyncio.run(go())
    assert peak == 2


def test_pool_closes_context_on_error(fake_browser):
    browser, _ = fake_browser(FakePage())

    async def go():
        async with render.BrowserPool(size=1) as pool:
            async with pool.page():
                raise RuntimeError("parse blew up")

    with pytest.raises(RuntimeError):
        asyncio.run(go())
    assert browser.contexts[0].closed


class DroppingBrowser(FakeBrowser):
    """Browser whose connection can be cut without close() being called."""

    def __init__(self, page):
        super().__init__(page)
        self.connected = True

    def is_connected(self):
        return self.connected and not self.closed


class FreshChromium:
    def __init__(self, page):
        self.page = page
        self.launched = []

    async def launch(self, headless=True, args=None):
        browser = DroppingBrowser(self.page)
        self.launched.append(browser)
        return browser


def test_pool_closes_disconnected_browser_before_relaunch(monkeypatch):
    pw = FakePlaywright(FakeBrowser(FakePage()))
    pw.chromium = FreshChromium(FakePage())
    monkeypatch.setattr(render, "async_playwright", lambda: pw)

    async def go():
        async with render.BrowserPool(size=1) as pool:
            async with pool.page():
                pass
            pw.chromium.launched[0].connected = False
            async with pool.page():
                pass

    asyncio.run(go())

    first, second = pw.chromium.launched
    assert first.closed
    assert len(second.contexts) == 1
    assert second.closed


def test_pool_size_must_be_positive():
    with pytest.raises(ValueError):
        render.BrowserPool(size=0)
