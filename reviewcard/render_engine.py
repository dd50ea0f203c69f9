"""Headless Chromium render engine with a bounded page pool.

One shared browser is launched lazily and relaunched when it disconnects.
Concurrent callers that arrive while the browser is starting all await the
same launch task. Pages are reused through a small free-list: a render checks
out a page exclusively and hands it back afterwards, or closes it when the
pool is full or the render failed.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from playwright.async_api import Browser, Page, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .card_renderer import CARD_SELECTOR
from .config import settings
from .errors import ErrorCode, RenderError
from .models import SizePreset
from .utils import get_logger

logger = get_logger(__name__)

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
]

BrowserLauncher = Callable[[], Awaitable[Browser]]
TargetSize = Union[SizePreset, tuple[int, int]]


class HealthStatus(str, Enum):
    """Engine connectivity as reported by health checks."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class EngineStats:
    """Counters for observing pool behaviour."""

    launches: int = 0
    pages_created: int = 0
    pages_closed: int = 0
    renders: int = 0
    failures: int = 0

    def to_dict(self) -> dict:
        return {
            "launches": self.launches,
            "pagesCreated": self.pages_created,
            "pagesClosed": self.pages_closed,
            "renders": self.renders,
            "failures": self.failures,
        }


class RenderEngine:
    """Renders card HTML to PNG bytes using a pooled headless browser."""

    def __init__(
        self,
        pool_size: Optional[int] = None,
        timeout_ms: Optional[int] = None,
        settle_ms: Optional[int] = None,
        launcher: Optional[BrowserLauncher] = None,
    ):
        self.pool_size = pool_size if pool_size is not None else settings.render_pool_size
        self.timeout_ms = timeout_ms if timeout_ms is not None else settings.render_timeout_ms
        self.settle_ms = settle_ms if settle_ms is not None else settings.render_settle_ms
        self._launcher = launcher or self._launch_chromium
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._launch_lock = asyncio.Lock()
        self._launch_task: Optional[asyncio.Task] = None
        self._pool: list[Page] = []
        self.stats = EngineStats()

    @property
    def idle_pages(self) -> int:
        """Number of pages currently parked in the pool."""
        return len(self._pool)

    # ------------------------------------------------------------------
    # Browser lifecycle
    # ------------------------------------------------------------------

    async def _launch_chromium(self) -> Browser:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return await self._playwright.chromium.launch(headless=True, args=CHROMIUM_ARGS)

    async def _launch(self) -> Browser:
        logger.info("Launching headless Chromium")
        browser = await self._launcher()
        self.stats.launches += 1
        browser.on("disconnected", self._on_disconnected)
        self._browser = browser
        return browser

    def _on_disconnected(self, browser: Browser) -> None:
        if self._browser is browser:
            logger.warning("Browser disconnected; it will be relaunched on next use")
            self._browser = None
            self._pool.clear()

    async def get_browser(self) -> Browser:
        """Return the live browser, launching it if needed.

        Callers arriving while a launch is in flight await the same task, so
        at most one launch runs at a time.
        """
        browser = self._browser
        if browser is not None and browser.is_connected():
            return browser

        async with self._launch_lock:
            browser = self._browser
            if browser is not None and browser.is_connected():
                return browser
            if self._launch_task is None:
                self._browser = None
                self._pool.clear()
                self._launch_task = asyncio.ensure_future(self._launch())
            task = self._launch_task

        try:
            # Shielded: a waiter timing out must not cancel everyone's launch
            return await asyncio.shield(task)
        finally:
            if task.done() and self._launch_task is task:
                self._launch_task = None

    # ------------------------------------------------------------------
    # Page pool
    # ------------------------------------------------------------------

    async def _checkout(self, browser: Browser) -> Page:
        while self._pool:
            page = self._pool.pop()
            if not page.is_closed():
                return page
        page = await browser.new_page()
        self.stats.pages_created += 1
        return page

    async def _release(self, page: Page, reusable: bool) -> None:
        if page.is_closed():
            return
        browser_alive = self._browser is not None and self._browser.is_connected()
        if reusable and browser_alive and len(self._pool) < self.pool_size:
            self._pool.append(page)
            return
        await self._close_page(page)

    async def _close_page(self, page: Page) -> None:
        try:
            await page.close()
        except PlaywrightError as e:
            logger.debug(f"Ignoring error while closing page: {e}")
        self.stats.pages_closed += 1

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    async def render(self, html: str, size: TargetSize) -> bytes:
        """
        Render an HTML document's #card element to PNG.

        Args:
            html: Complete card document
            size: Size preset or explicit (width, height) viewport

        Returns:
            PNG bytes at device scale

        Raises:
            RenderError: RENDER_TIMEOUT when the fixed timeout elapses,
                RENDER_FAILED for any other failure
        """
        width, height = size.dimensions if isinstance(size, SizePreset) else size
        self.stats.renders += 1
        try:
            return await asyncio.wait_for(
                self._render(html, width, height),
                timeout=self.timeout_ms / 1000,
            )
        except (asyncio.TimeoutError, PlaywrightTimeoutError) as e:
            self.stats.failures += 1
            logger.error(f"Render timed out after {self.timeout_ms}ms ({width}x{height})")
            raise RenderError(
                ErrorCode.RENDER_TIMEOUT, "Render timed out", details=str(e) or None
            ) from e
        except RenderError:
            self.stats.failures += 1
            raise
        except Exception as e:
            self.stats.failures += 1
            logger.error(f"Render failed ({width}x{height}): {e}")
            raise RenderError(ErrorCode.RENDER_FAILED, "Failed to render image", details=str(e)) from e

    async def _render(self, html: str, width: int, height: int) -> bytes:
        browser = await self.get_browser()
        page = await self._checkout(browser)
        succeeded = False
        try:
            await page.set_viewport_size({"width": width, "height": height})
            await page.set_content(html, wait_until="networkidle", timeout=self.timeout_ms)
            # Let web fonts finish loading
            await page.wait_for_timeout(self.settle_ms)
            image = await page.locator(CARD_SELECTOR).screenshot(
                type="png",
                scale="device",
                timeout=self.timeout_ms,
            )
            succeeded = True
            logger.debug(f"Rendered card {width}x{height} ({len(image)} bytes)")
            return image
        finally:
            # A page that failed mid-render may hold half-loaded state; never pool it
            await asyncio.shield(self._release(page, reusable=succeeded))

    # ------------------------------------------------------------------
    # Health / shutdown
    # ------------------------------------------------------------------

    async def health_check(self) -> HealthStatus:
        """Report whether the browser is reachable."""
        try:
            browser = await self.get_browser()
        except Exception as e:
            logger.error(f"Health check could not obtain a browser: {e}")
            return HealthStatus.UNHEALTHY
        return HealthStatus.HEALTHY if browser.is_connected() else HealthStatus.DEGRADED

    async def close(self) -> None:
        """Close pooled pages, the browser and the Playwright driver."""
        pages, self._pool = self._pool, []
        for page in pages:
            if not page.is_closed():
                await self._close_page(page)

        browser, self._browser = self._browser, None
        if browser is not None:
            try:
                await browser.close()
            except PlaywrightError as e:
                logger.debug(f"Ignoring error while closing browser: {e}")

        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        logger.info("Render engine shut down")
