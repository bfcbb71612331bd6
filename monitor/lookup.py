"""
Lookup strategies for locating calendar text on the page.

This module provides:
- Ordered, injectable strategies for detecting the currently displayed period
- PeriodDetector, the single dispatcher that evaluates them in priority order
- Bulk calendar text extraction and confidence signals
- Structural date-grid check
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

import structlog

from browser.capability import BrowserCapability
from monitor.calendar_text import find_period_token, parse_month_header, score_calendar_text
from monitor.errors import CapabilityError, CapabilityUnavailableError
from monitor.models import CalendarSignal, DetectedHeader, NavigationSettings, ParsedPeriod, Period

logger = structlog.get_logger(__name__)


async def extract_largest_text(
    browser: BrowserCapability,
    selectors: Sequence[str],
    timeout_ms: int
) -> Tuple[str, Optional[str]]:
    """
    Read every candidate region and keep the longest text.

    Returns:
        (text, selector) of the largest region, or ("", None) when nothing was readable
    """
    best_text = ""
    best_selector = None
    for selector in selectors:
        try:
            text = await browser.text_content(selector, timeout=timeout_ms)
        except CapabilityUnavailableError:
            raise
        except CapabilityError:
            continue
        if text and len(text) > len(best_text):
            best_text = text
            best_selector = selector
    return best_text, best_selector


async def read_header(browser: BrowserCapability, selector: str, timeout_ms: int) -> Tuple[str, ParsedPeriod]:
    """Read the text under ``selector`` and parse the period it names."""
    text = await browser.text_content(selector, timeout=timeout_ms)
    token = find_period_token(text)
    return text, parse_month_header(token or text)


async def read_calendar_signal(
    browser: BrowserCapability,
    period: Period,
    selectors: Sequence[str],
    timeout_ms: int
) -> CalendarSignal:
    """Confidence that the calendar text on the page names ``period``."""
    text, selector = await extract_largest_text(browser, selectors, timeout_ms)
    if not text:
        logger.warning("No calendar text extracted", period=period.key)
        return CalendarSignal(confidence=0.0, detected_month="not_found", detected_year=0)

    signal = score_calendar_text(text, period, selector)
    logger.debug(
        "Calendar text signal",
        period=period.key,
        source_selector=selector,
        confidence=signal.confidence,
        has_exact_pattern=signal.has_exact_pattern,
        other_months_found=signal.other_months_found,
        extracted_text=text[:200]
    )
    return signal


async def check_date_grid(browser: BrowserCapability, settings: NavigationSettings) -> bool:
    """At least ``min_date_cells`` date cells, and day tokens 1 and 2 visible."""
    try:
        cell_count = await browser.count(settings.date_cell_selector)
    except CapabilityUnavailableError:
        raise
    except CapabilityError as e:
        logger.warning("Date grid check failed", error=str(e))
        return False

    if cell_count < settings.min_date_cells:
        logger.info("Too few date cells", found=cell_count, expected=settings.min_date_cells)
        return False

    for selector in settings.day_token_selectors:
        if not await browser.is_visible(selector, timeout=settings.selector_timeout_ms):
            logger.info("Day token not visible", selector=selector, cells=cell_count)
            return False
    return True


class LookupStrategy(ABC):
    """One way of finding the currently displayed period."""

    name = "strategy"

    @abstractmethod
    async def find(self, browser: BrowserCapability) -> Optional[DetectedHeader]:
        """Return the detected header, or None when this strategy finds nothing."""


class BulkTextStrategy(LookupStrategy):
    """Scan the largest calendar-like text region for a month/year token."""

    name = "bulk_text"

    def __init__(self, selectors: Sequence[str], timeout_ms: int):
        self.selectors = list(selectors)
        self.timeout_ms = timeout_ms

    async def find(self, browser: BrowserCapability) -> Optional[DetectedHeader]:
        text, selector = await extract_largest_text(browser, self.selectors, self.timeout_ms)
        token = find_period_token(text)
        if token is None or selector is None:
            return None
        return DetectedHeader(text=token, source_selector=selector, strategy=self.name)


class HeaderSelectorStrategy(LookupStrategy):
    """Take the first non-empty header element from a prioritized selector list."""

    name = "header_selector"

    def __init__(self, selectors: Sequence[str], timeout_ms: int):
        self.selectors = list(selectors)
        self.timeout_ms = timeout_ms

    async def find(self, browser: BrowserCapability) -> Optional[DetectedHeader]:
        for selector in self.selectors:
            try:
                text = await browser.text_content(selector, timeout=self.timeout_ms)
            except CapabilityUnavailableError:
                raise
            except CapabilityError as e:
                logger.debug("Header selector failed", selector=selector, error=str(e))
                continue
            if text and text.strip():
                return DetectedHeader(text=text.strip(), source_selector=selector, strategy=self.name)
        return None


class PeriodDetector:
    """Evaluates lookup strategies in order and returns the first hit."""

    def __init__(self, strategies: List[LookupStrategy]):
        self.strategies = strategies
        self.logger = logger.bind(component="period_detector")

    @classmethod
    def from_settings(cls, settings: NavigationSettings) -> "PeriodDetector":
        return cls([
            BulkTextStrategy(settings.calendar_text_selectors, settings.selector_timeout_ms),
            HeaderSelectorStrategy(settings.header_selectors, settings.selector_timeout_ms),
        ])

    async def detect(self, browser: BrowserCapability) -> Optional[DetectedHeader]:
        for strategy in self.strategies:
            detected = await strategy.find(browser)
            if detected is not None:
                self.logger.info(
                    "Detected current period",
                    strategy=detected.strategy,
                    source_selector=detected.source_selector,
                    text=detected.text
                )
                return detected
            self.logger.info("Lookup strategy found nothing", strategy=strategy.name)
        return None
