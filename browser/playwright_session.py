"""
Playwright implementation of the browser capability.

Provides:
- PlaywrightBrowser: BrowserCapability over a single Playwright page
- open_browser(): scoped acquisition that always closes the browser
"""

from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Dict, Iterator, List, Optional, Sequence, Union

import structlog
from playwright.async_api import (
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from browser.capability import BrowserCapability, ElementHandle, ScreenshotRegion
from monitor.errors import CapabilityError, CapabilityTimeoutError, CapabilityUnavailableError

logger = structlog.get_logger(__name__)

DEFAULT_LAUNCH_ARGS: List[str] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-first-run",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--disable-background-networking",
    "--disable-extensions",
]


@contextmanager
def _capability_errors(operation: str) -> Iterator[None]:
    """Translate Playwright errors into capability errors."""
    try:
        yield
    except PlaywrightTimeoutError as e:
        raise CapabilityTimeoutError(f"{operation} timed out: {e}") from e
    except PlaywrightError as e:
        if "closed" in str(e).lower():
            raise CapabilityUnavailableError(f"{operation} failed, browser session lost: {e}") from e
        raise CapabilityError(f"{operation} failed: {e}") from e


class PlaywrightBrowser(BrowserCapability):
    """BrowserCapability backed by a Playwright page."""

    def __init__(self, page):
        """
        Initialize the adapter.

        Args:
            page: playwright.async_api.Page instance
        """
        self.page = page
        self.logger = logger.bind(component="playwright_browser")

    async def navigate(self, url: str, timeout: Optional[int] = None) -> None:
        with _capability_errors(f"navigate({url})"):
            await self.page.goto(url, wait_until="networkidle", timeout=timeout)

    async def locate(self, selectors: Sequence[str], timeout: int) -> Optional[ElementHandle]:
        for selector in selectors:
            candidate = self.page.locator(selector).first
            try:
                await candidate.wait_for(state="visible", timeout=timeout)
                self.logger.debug("Located element", selector=selector)
                return candidate
            except PlaywrightTimeoutError:
                self.logger.debug("Selector not visible", selector=selector)
            except PlaywrightError as e:
                if "closed" in str(e).lower():
                    raise CapabilityUnavailableError(f"locate failed, browser session lost: {e}") from e
                self.logger.debug("Selector lookup failed", selector=selector, error=str(e))
        return None

    async def text_content(self, target: Union[str, ElementHandle], timeout: int) -> str:
        handle = self.page.locator(target).first if isinstance(target, str) else target
        with _capability_errors("text_content"):
            text = await handle.text_content(timeout=timeout)
        return text or ""

    async def click(self, handle: ElementHandle) -> None:
        with _capability_errors("click"):
            await handle.click()

    async def fill(self, handle: ElementHandle, value: str) -> None:
        with _capability_errors("fill"):
            await handle.fill(value)

    async def screenshot(self, region: Optional[ScreenshotRegion] = None, path: Optional[str] = None) -> bytes:
        with _capability_errors("screenshot"):
            if region is None:
                return await self.page.screenshot(type="png", path=path)
            if isinstance(region, dict):
                return await self.page.screenshot(type="png", clip=region, path=path)
            await region.scroll_into_view_if_needed()
            return await region.screenshot(type="png", path=path)

    async def wait_for_load_settled(self, timeout: int) -> None:
        with _capability_errors("wait_for_load_settled"):
            await self.page.wait_for_load_state("networkidle", timeout=timeout)

    async def count(self, selector: str) -> int:
        with _capability_errors(f"count({selector})"):
            return await self.page.locator(selector).count()

    async def is_visible(self, selector: str, timeout: int) -> bool:
        try:
            await self.page.locator(selector).first.wait_for(state="visible", timeout=timeout)
            return True
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError as e:
            self.logger.debug("Visibility check failed", selector=selector, error=str(e))
            return False


async def _shutdown(playwright, browser) -> None:
    """Close the browser and stop the Playwright driver, logging failures."""
    if browser is not None:
        try:
            await browser.close()
        except PlaywrightError as e:
            logger.warning("Failed to close browser", error=str(e))
    if playwright is not None:
        try:
            await playwright.stop()
        except PlaywrightError as e:
            logger.warning("Failed to stop Playwright", error=str(e))


@asynccontextmanager
async def open_browser(
    headless: bool = True,
    viewport: Optional[Dict[str, int]] = None,
    launch_args: Optional[List[str]] = None
) -> AsyncIterator[PlaywrightBrowser]:
    """
    Acquire a Chromium page for one run; the browser is closed on every exit path.

    Args:
        headless: Run without a visible window
        viewport: Page viewport size, defaults to 1200x800
        launch_args: Chromium command line flags

    Raises:
        CapabilityUnavailableError: If the browser cannot be launched
    """
    playwright = None
    browser = None
    try:
        playwright = await async_playwright().start()
        browser = await playwright.chromium.launch(
            headless=headless,
            args=launch_args if launch_args is not None else DEFAULT_LAUNCH_ARGS
        )
        context = await browser.new_context(viewport=viewport or {"width": 1200, "height": 800})
        page = await context.new_page()
    except PlaywrightError as e:
        logger.error("Failed to launch browser", error=str(e))
        await _shutdown(playwright, browser)
        raise CapabilityUnavailableError(f"Could not launch browser: {e}") from e

    logger.info("Browser session opened", headless=headless)
    try:
        yield PlaywrightBrowser(page)
    finally:
        await _shutdown(playwright, browser)
        logger.info("Browser session closed")
