"""
Headless rendering of WeChat article pages.

Article bodies on mp.weixin.qq.com are filled in by client-side script, so
pages are loaded in a real browser and read back once the content container
appears. One browser is launched per pool and shared by every fetch; pages
are opened in a small set of reusable contexts, and at most
``max_concurrent_pages`` pages are open at once.
"""
import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Set

import structlog
from playwright.async_api import (
    Browser,
    BrowserContext as PlaywrightBrowserContext,
    Page,
    Playwright,
    Route,
    async_playwright,
)
from pydantic import BaseModel

from scorer.config import BrowserConfig, WaitUntil
from scorer.errors import FetchError

logger = structlog.get_logger()

# Hide the usual automation fingerprints and present a Chinese-locale browser
STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {get: () => false});
Object.defineProperty(navigator, 'languages', {get: () => ['zh-CN', 'zh']});
Object.defineProperty(navigator, 'plugins', {get: () => [1, 2, 3, 4, 5]});
"""

# Requests to these hosts are aborted when block_ads is set
BLOCKED_HOSTS = (
    'googlesyndication.com',
    'googleadservices.com',
    'doubleclick.net',
    'ad.weixin.qq.com',
    'mp.weixin.qq.com/mp/ad_',
)


class FetchOptions(BaseModel):
    """How to load a page and when to consider it rendered."""
    timeout_ms: int = 30000
    wait_until: WaitUntil = WaitUntil.DOMCONTENTLOADED
    wait_for_selector: Optional[str] = None
    wait_for_time_ms: Optional[int] = None

    @classmethod
    def single(cls, config: BrowserConfig) -> "FetchOptions":
        """Options for fetching one article at a time."""
        return cls(
            timeout_ms=config.timeout_ms,
            wait_until=config.wait_until,
            wait_for_selector=config.wait_for_selector,
            wait_for_time_ms=config.wait_for_time_ms,
        )

    @classmethod
    def batch(cls, config: BrowserConfig) -> "FetchOptions":
        """Options for a batch: longer timeout, shorter settle time."""
        return cls(
            timeout_ms=config.batch_timeout_ms,
            wait_until=config.wait_until,
            wait_for_selector=config.wait_for_selector,
            wait_for_time_ms=config.batch_wait_for_time_ms,
        )


async def _route_blocked(route: Route) -> None:
    if any(host in route.request.url for host in BLOCKED_HOSTS):
        await route.abort()
    else:
        await route.continue_()


class BrowserContext:
    """A Playwright context plus the pages currently open in it."""

    def __init__(self, browser: Browser, context: PlaywrightBrowserContext, config: BrowserConfig):
        self.browser = browser
        self.context = context
        self.config = config
        self.pages: Set[Page] = set()
        self.busy = False
        self.released_at = time.monotonic()

    async def new_page(self) -> Page:
        page = await self.context.new_page()
        self.pages.add(page)
        try:
            if self.config.stealth_mode:
                await page.add_init_script(STEALTH_SCRIPT)
            if self.config.block_ads:
                await page.route('**/*', _route_blocked)
        except Exception:
            await self.close_page(page)
            raise
        return page

    async def close_page(self, page: Page) -> None:
        if page not in self.pages:
            return
        self.pages.discard(page)
        try:
            await page.close()
        except Exception as e:
            logger.warning("Error closing page", error=str(e))

    async def close(self) -> None:
        for page in list(self.pages):
            await self.close_page(page)
        try:
            await self.context.close()
        except Exception as e:
            logger.warning("Error closing browser context", error=str(e))

    def acquire(self) -> None:
        self.busy = True

    def release(self) -> None:
        self.busy = False
        self.released_at = time.monotonic()


class BrowserPool:
    """
    Explicit handle on the shared headless browser.

    Open it with ``async with`` (or ``initialize()``), pass it to the code
    that fetches pages, and close it when the run is over. The browser is
    relaunched transparently if it disconnects between fetches.
    """

    def __init__(self, config: BrowserConfig):
        self.config = config
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.contexts: List[BrowserContext] = []
        self.semaphore = asyncio.Semaphore(config.max_concurrent_pages)
        self._launch_lock = asyncio.Lock()
        self._closed = False

    async def __aenter__(self) -> "BrowserPool":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()

    async def initialize(self) -> None:
        """Start Playwright and launch the browser."""
        self._closed = False
        await self._ensure_browser()

    async def _ensure_browser(self) -> Browser:
        """Return a connected browser, launching or relaunching it as needed."""
        async with self._launch_lock:
            if self.browser is not None and self.browser.is_connected():
                return self.browser

            if self.browser is not None:
                logger.warning("Browser disconnected, relaunching")
                # Contexts died with the old browser
                self.contexts.clear()
                self.browser = None

            if self.playwright is None:
                self.playwright = await async_playwright().start()

            launch_args = {"headless": self.config.headless}
            if self.config.executable_path:
                launch_args["executable_path"] = str(self.config.executable_path)

            logger.info("Launching browser", browser_type=self.config.browser_type, **launch_args)
            launcher = getattr(self.playwright, self.config.browser_type)
            self.browser = await launcher.launch(**launch_args)
            return self.browser

    async def shutdown(self) -> None:
        """Close every context, the browser and Playwright."""
        if self._closed:
            return
        self._closed = True
        logger.info("Shutting down browser pool", contexts=len(self.contexts))

        for context in self.contexts:
            await context.close()
        self.contexts.clear()

        if self.browser is not None:
            try:
                await self.browser.close()
            except Exception as e:
                logger.warning("Error closing browser", error=str(e))
            self.browser = None

        if self.playwright is not None:
            await self.playwright.stop()
            self.playwright = None

    async def close(self) -> None:
        await self.shutdown()

    async def _acquire_context(self) -> BrowserContext:
        """Reuse an idle context of the current browser or open a new one."""
        browser = await self._ensure_browser()
        for context in self.contexts:
            if not context.busy and context.browser is browser:
                context.acquire()
                return context

        playwright_context = await browser.new_context(
            viewport={"width": self.config.viewport_width, "height": self.config.viewport_height},
            user_agent=self.config.user_agent,
            java_script_enabled=not self.config.disable_javascript,
            locale="zh-CN",
        )
        context = BrowserContext(browser, playwright_context, self.config)
        self.contexts.append(context)
        context.acquire()
        return context

    @asynccontextmanager
    async def get_context(self) -> AsyncIterator[BrowserContext]:
        """Hold a context, and a page slot, for the duration of the block."""
        async with self.semaphore:
            context = await self._acquire_context()
            try:
                yield context
            finally:
                context.release()

    async def fetch_page(self, url: str, options: Optional[FetchOptions] = None) -> str:
        """
        Render a page and return its markup.

        Args:
            url: Article URL
            options: Load timeout and wait strategy; single-page defaults if omitted

        Returns:
            str: The rendered document's HTML

        Raises:
            FetchError: If launching the browser, opening the page, navigation,
                waiting or reading the content fails
        """
        options = options or FetchOptions.single(self.config)
        started = time.monotonic()

        try:
            async with self.get_context() as context:
                page = await context.new_page()
                try:
                    await page.goto(url, wait_until=options.wait_until.value, timeout=options.timeout_ms)
                    if options.wait_for_selector:
                        await page.wait_for_selector(options.wait_for_selector, timeout=options.timeout_ms)
                    if options.wait_for_time_ms:
                        await page.wait_for_timeout(options.wait_for_time_ms)
                    content = await page.content()
                finally:
                    await context.close_page(page)
        except Exception as e:
            raise FetchError(url, str(e)) from e

        logger.info("Fetched page", url=url, length=len(content),
                    load_time=round(time.monotonic() - started, 3))
        return content

    async def fetch_pages(self, urls: List[str], options: Optional[FetchOptions] = None) -> List[str]:
        """
        Render several pages concurrently.

        Result ``i`` always belongs to ``urls[i]``. A page that fails to load
        yields an empty string instead of aborting the rest of the batch.
        """
        options = options or FetchOptions.batch(self.config)

        async def _fetch(url: str) -> str:
            try:
                return await self.fetch_page(url, options)
            except FetchError as e:
                logger.warning("Page fetch failed", url=url, error=str(e))
                return ""

        return list(await asyncio.gather(*(_fetch(url) for url in urls)))
