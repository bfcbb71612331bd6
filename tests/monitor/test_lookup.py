"""
Test cases for lookup strategies, the detector dispatcher and the date-grid check.
"""

import pytest
from unittest.mock import AsyncMock

from conftest import HEADER_SELECTOR, FakeBrowser, make_period
from monitor.errors import CapabilityUnavailableError
from monitor.lookup import (
    BulkTextStrategy,
    HeaderSelectorStrategy,
    PeriodDetector,
    check_date_grid,
    extract_largest_text,
    read_calendar_signal,
    read_header,
)
from monitor.models import DetectedHeader, NavigationSettings


class TestBulkTextStrategy:
    """Test cases for bulk calendar text scanning."""

    @pytest.mark.asyncio
    async def test_finds_token_in_largest_region(self, fake_browser):
        """Test the month/year token is taken from the table text."""
        strategy = BulkTextStrategy(["table", ".calendar"], timeout_ms=0)
        detected = await strategy.find(fake_browser)

        assert detected.text == "September 2025"
        assert detected.source_selector == "table"
        assert detected.strategy == "bulk_text"

    @pytest.mark.asyncio
    async def test_no_readable_region(self, fake_browser):
        """Test nothing is returned when no selector yields text."""
        fake_browser.visible.discard("table")
        strategy = BulkTextStrategy(["table", ".calendar"], timeout_ms=0)
        assert await strategy.find(fake_browser) is None

    @pytest.mark.asyncio
    async def test_text_without_token(self, fake_browser):
        """Test text with no month/year pair is not a detection."""
        fake_browser.table_text_override = "Su Mo Tu We Th Fr Sa 1 2 3"
        strategy = BulkTextStrategy(["table"], timeout_ms=0)
        assert await strategy.find(fake_browser) is None

    @pytest.mark.asyncio
    async def test_lost_session_propagates(self):
        """Test a lost browser session is not treated as a missing selector."""
        browser = FakeBrowser()
        browser.text_content = AsyncMock(side_effect=CapabilityUnavailableError("closed"))
        strategy = BulkTextStrategy(["table"], timeout_ms=0)
        with pytest.raises(CapabilityUnavailableError):
            await strategy.find(browser)


class TestHeaderSelectorStrategy:
    """Test cases for the header element fallback."""

    @pytest.mark.asyncio
    async def test_first_non_empty_header(self, fake_browser):
        """Test the first readable selector in priority order is used."""
        strategy = HeaderSelectorStrategy([".missing", HEADER_SELECTOR], timeout_ms=0)
        detected = await strategy.find(fake_browser)

        assert detected.text == "September 2025"
        assert detected.source_selector == HEADER_SELECTOR
        assert detected.strategy == "header_selector"

    @pytest.mark.asyncio
    async def test_empty_header_is_skipped(self, fake_browser):
        """Test whitespace-only header text does not count."""
        fake_browser.header_override = "   "
        strategy = HeaderSelectorStrategy([HEADER_SELECTOR], timeout_ms=0)
        assert await strategy.find(fake_browser) is None


class TestPeriodDetector:
    """Test cases for the strategy dispatcher."""

    @pytest.mark.asyncio
    async def test_strategies_in_priority_order(self, fake_browser):
        """Test the second strategy is only consulted when the first finds nothing."""
        first = AsyncMock()
        first.name = "first"
        first.find.return_value = None
        second = AsyncMock()
        second.name = "second"
        second.find.return_value = DetectedHeader(text="October 2025", source_selector="h2", strategy="second")

        detector = PeriodDetector([first, second])
        detected = await detector.detect(fake_browser)

        assert detected.text == "October 2025"
        first.find.assert_awaited_once_with(fake_browser)
        second.find.assert_awaited_once_with(fake_browser)

    @pytest.mark.asyncio
    async def test_first_hit_short_circuits(self, fake_browser):
        """Test later strategies are not evaluated after a hit."""
        first = AsyncMock()
        first.name = "first"
        first.find.return_value = DetectedHeader(text="September 2025", source_selector="table", strategy="first")
        second = AsyncMock()
        second.name = "second"

        detected = await PeriodDetector([first, second]).detect(fake_browser)

        assert detected.strategy == "first"
        second.find.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_header_fallback_from_settings(self, fake_browser):
        """Test the default chain falls back to header selectors when no calendar text is readable."""
        fake_browser.visible.discard("table")
        detector = PeriodDetector.from_settings(NavigationSettings(selector_timeout_ms=0))
        detected = await detector.detect(fake_browser)

        assert detected.strategy == "header_selector"
        assert detected.source_selector == HEADER_SELECTOR

    @pytest.mark.asyncio
    async def test_nothing_found(self, fake_browser):
        """Test None when every strategy fails."""
        fake_browser.visible.discard("table")
        fake_browser.header_visible = False
        detector = PeriodDetector.from_settings(NavigationSettings(selector_timeout_ms=0))
        assert await detector.detect(fake_browser) is None


class TestTextHelpers:
    """Test cases for text extraction helpers."""

    @pytest.mark.asyncio
    async def test_extract_largest_text(self, fake_browser):
        """Test the longest readable region wins."""
        text, selector = await extract_largest_text(fake_browser, [HEADER_SELECTOR, "table"], 0)
        assert selector == "table"
        assert text.startswith("September 2025")

    @pytest.mark.asyncio
    async def test_read_header_parses_bulk_text(self, fake_browser):
        """Test reading a header from a bulk text region."""
        text, parsed = await read_header(fake_browser, "table", 0)
        assert parsed.month == "september"
        assert parsed.year == 2025

    @pytest.mark.asyncio
    async def test_signal_without_text(self, fake_browser):
        """Test zero confidence when no calendar text can be read."""
        fake_browser.visible.discard("table")
        signal = await read_calendar_signal(fake_browser, make_period(2025, 9), ["table"], 0)
        assert signal.confidence == 0.0
        assert signal.source_selector is None


class TestDateGridCheck:
    """Test cases for the structural date-grid check."""

    @pytest.mark.asyncio
    async def test_grid_passes(self, fake_browser, fast_settings):
        """Test enough cells with day 1 and day 2 visible."""
        assert await check_date_grid(fake_browser, fast_settings) is True

    @pytest.mark.asyncio
    async def test_too_few_cells(self, fake_browser, fast_settings):
        """Test fewer than the minimum number of date cells."""
        fake_browser.date_cells = 19
        assert await check_date_grid(fake_browser, fast_settings) is False

    @pytest.mark.asyncio
    async def test_missing_day_token(self, fake_browser, fast_settings):
        """Test day 2 not visible."""
        fake_browser.visible_tokens = {'text="1"'}
        assert await check_date_grid(fake_browser, fast_settings) is False
