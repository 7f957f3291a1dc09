"""Playwright browser lifecycle and scoped fetch sessions.

One browser is launched per pipeline run. Every fetch opens its own
browser context configured with an Identity, navigates, paces, hands the
parsed document to a callback and always closes the context.
"""

import asyncio
import random
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Awaitable, Callable, Optional, TypeVar, Union

import structlog
from bs4 import BeautifulSoup
from playwright.async_api import Browser, Error as PlaywrightError, Playwright, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from dealgalaxy.core.exceptions import NavigationTimeout, SessionError
from dealgalaxy.scrapers.extractor import parse_document
from dealgalaxy.scrapers.utils.identity import Identity

if TYPE_CHECKING:
    from dealgalaxy.config import PipelineConfig

logger = structlog.get_logger(__name__)

T = TypeVar("T")
DocumentCallback = Callable[[BeautifulSoup], Union[T, Awaitable[T]]]


class BrowserManager:
    """Manages the Playwright browser and hands out fetch sessions.

    Each session gets a fresh context with:
    - The identity's user agent and proxy
    - Stealth JS injection to mask automation signals
    - Heavy resources (fonts, media) blocked
    """

    def __init__(
        self,
        config: "PipelineConfig",
        browser: Optional[Browser] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        rng: Optional[random.Random] = None,
    ):
        self._config = config
        self._browser = browser
        self._owns_browser = browser is None
        self._playwright: Optional[Playwright] = None
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()
        self._lock = asyncio.Lock()

    async def start(self) -> None:
        """Launch the browser. Call once per run."""
        async with self._lock:
            if self._browser:
                return
            try:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self._config.headless,
                    args=[
                        "--disable-blink-features=AutomationControlled",
                        "--disable-dev-shm-usage",
                        "--no-sandbox",
                        "--disable-gpu",
                    ],
                )
            except PlaywrightError as e:
                raise SessionError(self._config.base_url, f"browser launch failed: {e}") from e
            logger.info("browser_started", headless=self._config.headless)

    async def stop(self) -> None:
        """Close the browser if this manager launched it."""
        async with self._lock:
            if self._browser and self._owns_browser:
                await self._browser.close()
            self._browser = None
            if self._playwright:
                await self._playwright.stop()
                self._playwright = None
            logger.info("browser_stopped")

    async def __aenter__(self) -> "BrowserManager":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def pacing_delay(self) -> float:
        """Random post-navigation pause in seconds within the configured bounds."""
        delay_ms = self._rng.uniform(self._config.delay_min_ms, self._config.delay_max_ms)
        return delay_ms / 1000.0

    @asynccontextmanager
    async def open_session(self, identity: Identity, url: str) -> AsyncIterator[BeautifulSoup]:
        """Open a context for identity, load url and yield the parsed document.

        The context is closed on every exit path, including cancellation.

        Raises:
            NavigationTimeout: If the page does not settle within the timeout
            SessionError: On any other browser or transport failure
        """
        if not self._browser:
            await self.start()

        timeout_ms = self._config.navigation_timeout_ms
        context = None
        try:
            try:
                context = await self._browser.new_context(
                    user_agent=identity.user_agent,
                    proxy=identity.playwright_proxy(),
                    viewport={"width": 1366, "height": 768},
                    locale="en-IN",
                    extra_http_headers={
                        "Accept-Language": "en-US,en;q=0.9",
                        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
                    },
                )
                await context.add_init_script(STEALTH_JS)
                await context.route(
                    "**/*.{woff,woff2,ttf,eot,mp4,webm}",
                    lambda route: route.abort(),
                )
                page = await context.new_page()

                logger.info(
                    "navigating",
                    url=url,
                    has_proxy=identity.proxy is not None,
                )
                await page.goto(url, wait_until="networkidle", timeout=timeout_ms)
                html = await page.content()
            except PlaywrightTimeoutError as e:
                logger.warning("navigation_timeout", url=url, timeout_ms=timeout_ms)
                raise NavigationTimeout(url, timeout_ms) from e
            except PlaywrightError as e:
                logger.warning("session_error", url=url, error=str(e))
                raise SessionError(url, str(e)) from e

            # Mandatory pacing between consecutive fetches
            await self._sleep(self.pacing_delay())

            yield parse_document(html)
        finally:
            if context is not None:
                try:
                    await context.close()
                except PlaywrightError as e:
                    logger.warning("context_close_failed", url=url, error=str(e))

    async def with_session(self, identity: Identity, url: str, fn: DocumentCallback) -> T:
        """Run fn against the loaded document of url inside one fetch session."""
        async with self.open_session(identity, url) as document:
            result = fn(document)
            if asyncio.iscoroutine(result):
                result = await result
            return result


# Minimal stealth JS to mask automation signals
STEALTH_JS = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['en-IN', 'en-US', 'en'] });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
window.chrome = { runtime: {} };
"""
