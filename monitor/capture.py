"""
Calendar capture for a single period: landing page, verified navigation, screenshot.
"""

import asyncio
from typing import Awaitable, Callable, Dict, Optional

import structlog

from browser.capability import BrowserCapability
from monitor.errors import CapabilityError, CapabilityUnavailableError
from monitor.models import NavigationOutcome, NavigationSettings, Period
from monitor.navigation import NavigationVerifier

logger = structlog.get_logger(__name__)

CALENDAR_TABLE_SELECTORS = ["table"]
FALLBACK_CLIP: Dict[str, int] = {"x": 400, "y": 200, "width": 500, "height": 400}


class CalendarCapturer:
    """Captures the calendar grid of one period from a logged-in session."""

    def __init__(
        self,
        browser: BrowserCapability,
        availability_url: str,
        settings: Optional[NavigationSettings] = None,
        page_load_timeout_ms: int = 20000,
        landing_settle_ms: int = 3000,
        verifier: Optional[NavigationVerifier] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.browser = browser
        self.availability_url = availability_url
        self.settings = settings or NavigationSettings()
        self.page_load_timeout_ms = page_load_timeout_ms
        self.landing_settle_ms = landing_settle_ms
        self.sleep = sleep
        self.verifier = verifier or NavigationVerifier(browser, self.settings, sleep=sleep)
        self.logger = logger.bind(component="calendar_capturer")
        self.last_navigation: Optional[NavigationOutcome] = None

    async def capture(self, period: Period) -> bytes:
        """
        Reload the landing view, navigate to ``period`` and screenshot the calendar.

        Raises:
            NavigationError: If navigation cannot be verified
            CapabilityError: If a browser primitive fails
        """
        self.logger.info("Capturing period", period=period.key)
        await self.browser.navigate(self.availability_url, timeout=self.page_load_timeout_ms)
        await self.sleep(self.landing_settle_ms / 1000)

        self.last_navigation = await self.verifier.navigate_to(period)

        table = await self.browser.locate(CALENDAR_TABLE_SELECTORS, timeout=self.settings.selector_timeout_ms)
        image = None
        if table is not None:
            try:
                image = await self.browser.screenshot(region=table)
            except CapabilityUnavailableError:
                raise
            except CapabilityError as e:
                self.logger.warning("Calendar table screenshot failed, using fallback clip", error=str(e))
        else:
            self.logger.warning("Calendar table not found, using fallback clip", clip=FALLBACK_CLIP)

        if image is None:
            image = await self.browser.screenshot(region=dict(FALLBACK_CLIP))

        self.logger.info("Captured calendar", period=period.key, size=len(image))
        return image
