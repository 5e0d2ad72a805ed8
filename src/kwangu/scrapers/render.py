"""
Rendered fetcher: load a page in headless Chromium so client-side JavaScript
runs before the HTML is captured.

Two modes:
- no pool: an isolated browser is launched for the call and always closed
- BrowserPool: one shared browser, bounded checkouts of fresh contexts/pages
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from kwangu.config import settings
from kwangu.scrapers.errors import RenderError

logger = logging.getLogger(__name__)

BLOCKED_RESOURCE_TYPES = {"image", "media", "font"}

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

RENDER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# settle delays (ms) when no selector is awaited
SETTLE_MS = 1500
SETTLE_NETWORK_MS = 3000


async def _block_heavy_resources(route) -> None:
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


async def render_page(
    page,
    url: str,
    wait_selector: Optional[str] = None,
    timeout_ms: int = 30000,
    wait_for_network: bool = False,
) -> str:
    """Navigate an already open page and return its rendered HTML."""
    await page.route("**/*", _block_heavy_resources)

    wait_until = "networkidle" if wait_for_network else "domcontentloaded"
    await page.goto(url, wait_until=wait_until, timeout=timeout_ms)

    if wait_selector:
        try:
            await page.wait_for_selector(wait_selector, timeout=timeout_ms)
        except PlaywrightTimeoutError:
            # whatever has loaded so far is still worth parsing
            logger.debug("Selector %r never appeared on %s", wait_selector, url)
    else:
        await page.wait_for_timeout(SETTLE_NETWORK_MS if wait_for_network else SETTLE_MS)

    return await page.content()


async def _close_quietly(resource, what: str) -> None:
    try:
        await resource.close()
    except PlaywrightError as e:
        logger.debug("Error closing %s: %s", what, e)


class BrowserPool:
    """
    Shared headless browser handing out at most `size` pages at a time.

    Usage:
        async with BrowserPool(size=2) as pool:
            async with pool.page() as page:
                html = await render_page(page, url)
    """

    def __init__(self, size: int = 2, headless: bool = True, playwright_factory=None):
        if size < 1:
            raise ValueError("BrowserPool size must be >= 1")
        self.size = size
        self.headless = headless
        self._factory = playwright_factory
        self._slots = asyncio.Semaphore(size)
        self._lock = asyncio.Lock()
        self._playwright = None
        self._browser = None

    async def _ensure_browser(self):
        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser
            if self._browser is not None:
                logger.warning("Pooled browser disconnected; relaunching")
                await _close_quietly(self._browser, "disconnected browser")
                self._browser = None
            if self._playwright is None:
                factory = self._factory or async_playwright
                self._playwright = await factory().start()
            logger.debug("Launching pooled Chromium browser")
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless, args=LAUNCH_ARGS
            )
            return self._browser

    @asynccontextmanager
    async def page(self) -> AsyncIterator:
        async with self._slots:
            browser = await self._ensure_browser()
            context = await browser.new_context(user_agent=RENDER_USER_AGENT)
            try:
                yield await context.new_page()
            finally:
                await _close_quietly(context, "browser context")

    async def close(self) -> None:
        async with self._lock:
            if self._browser is not None:
                await _close_quietly(self._browser, "browser")
                self._browser = None
            if self._playwright is not None:
                try:
                    await self._playwright.stop()
                except PlaywrightError as e:
                    logger.warning("Error stopping playwright: %s", e)
                self._playwright = None

    async def __aenter__(self) -> "BrowserPool":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


async def fetch_rendered_html(
    url: str,
    wait_selector: Optional[str] = None,
    timeout_ms: Optional[int] = None,
    wait_for_network: bool = False,
    pool: Optional[BrowserPool] = None,
) -> str:
    """
    Return the rendered HTML of `url`. Raises RenderError when navigation fails;
    a wait_selector that never matches is not a failure.
    """
    timeout_ms = settings.RENDER_TIMEOUT_MS if timeout_ms is None else timeout_ms
    try:
        if pool is not None:
            async with pool.page() as page:
                return await render_page(page, url, wait_selector, timeout_ms, wait_for_network)

        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=True, args=LAUNCH_ARGS)
            try:
                context = await browser.new_context(user_agent=RENDER_USER_AGENT)
                page = await context.new_page()
                return await render_page(page, url, wait_selector, timeout_ms, wait_for_network)
            finally:
                await _close_quietly(browser, "browser")
    except PlaywrightError as e:
        raise RenderError(url, f"{e.__class__.__name__}: {e}") from e
