"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from browser.capability import BrowserCapability
from monitor.baseline_store import BaselineStore
from monitor.errors import CapabilityTimeoutError
from monitor.models import MONTH_NAMES, NavigationSettings, NotificationRecord, Period
from monitor.throttle import NotificationLog

HEADER_SELECTOR = ".ui-datepicker-title"
NEXT_SELECTOR = ".ui-datepicker-next"
PREV_SELECTOR = ".ui-datepicker-prev"


def rgba(*pixels: Tuple[int, int, int]) -> bytes:
    """Build an RGBA byte buffer from RGB triples (alpha 255)."""
    data = bytearray()
    for r, g, b in pixels:
        data.extend((r, g, b, 255))
    return bytes(data)


def solid(pixel: Tuple[int, int, int], count: int) -> bytes:
    return rgba(*([pixel] * count))


def make_period(year: int, month: int) -> Period:
    return Period(
        key=f"{year}-{month:02d}",
        display_name=f"{MONTH_NAMES[month - 1].capitalize()} {year}",
        target_month=month,
        target_year=year
    )


class FakeBrowser(BrowserCapability):
    """
    Scripted calendar widget.

    Shows one month at a time under a datepicker header; the next/prev
    controls move it one month. Individual behaviours can be broken to
    exercise failure paths.
    """

    def __init__(self, year: int = 2025, month: int = 9):
        self.landing = (year, month)
        self.year = year
        self.month = month
        self.visible = {NEXT_SELECTOR, PREV_SELECTOR, "table"}
        self.header_visible = True
        self.header_override: Optional[str] = None
        self.table_text_override: Optional[str] = None
        self.date_cells = 35
        self.visible_tokens = {'text="1"', 'text="2"'}
        self.click_moves_calendar = True
        self.images: Dict[str, bytes] = {}
        self.navigations: List[str] = []
        self.clicks: List[str] = []
        self.fills: List[Tuple[str, str]] = []
        self.screenshot_paths: List[str] = []
        self.screenshot_regions: List[object] = []

    @property
    def current_key(self) -> str:
        return f"{self.year}-{self.month:02d}"

    def header_text(self) -> str:
        if self.header_override is not None:
            return self.header_override
        return f"{MONTH_NAMES[self.month - 1].capitalize()} {self.year}"

    def table_text(self) -> str:
        if self.table_text_override is not None:
            return self.table_text_override
        days = " ".join(str(d) for d in range(1, 31))
        return f"{self.header_text()} Su Mo Tu We Th Fr Sa {days}"

    def _shift(self, delta: int) -> None:
        index = self.year * 12 + (self.month - 1) + delta
        self.year, self.month = divmod(index, 12)
        self.month += 1

    async def navigate(self, url: str, timeout: Optional[int] = None) -> None:
        self.navigations.append(url)
        self.year, self.month = self.landing

    async def locate(self, selectors: Sequence[str], timeout: int):
        for selector in selectors:
            if selector in self.visible:
                return selector
        return None

    async def text_content(self, target, timeout: int) -> str:
        if target == HEADER_SELECTOR and self.header_visible:
            return self.header_text()
        if target == "table" and "table" in self.visible:
            return self.table_text()
        raise CapabilityTimeoutError(f"text_content({target}) timed out")

    async def click(self, handle) -> None:
        self.clicks.append(handle)
        if not self.click_moves_calendar:
            return
        if handle == NEXT_SELECTOR:
            self._shift(1)
        elif handle == PREV_SELECTOR:
            self._shift(-1)

    async def fill(self, handle, value: str) -> None:
        self.fills.append((handle, value))

    async def screenshot(self, region=None, path: Optional[str] = None) -> bytes:
        self.screenshot_regions.append(region)
        if path:
            self.screenshot_paths.append(path)
        if region is None:
            return f"page {self.current_key}".encode() * 10
        return self.images.get(self.current_key, solid((90, 90, 90), 100))

    async def wait_for_load_settled(self, timeout: int) -> None:
        return None

    async def count(self, selector: str) -> int:
        return self.date_cells

    async def is_visible(self, selector: str, timeout: int) -> bool:
        return selector in self.visible_tokens


class InMemoryBaselineStore(BaselineStore):
    """Baselines kept in a dict, with save calls recorded."""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self.data: Dict[str, bytes] = dict(initial or {})
        self.saves: List[Tuple[str, bytes]] = []

    async def load(self, period_key: str) -> Optional[bytes]:
        return self.data.get(period_key)

    async def save(self, period_key: str, image_bytes: bytes) -> None:
        self.saves.append((period_key, image_bytes))
        self.data[period_key] = image_bytes


class InMemoryNotificationLog(NotificationLog):
    """Notification records kept in a list."""

    def __init__(self, records: Optional[List[NotificationRecord]] = None):
        self.records: List[NotificationRecord] = list(records or [])

    async def load(self) -> List[NotificationRecord]:
        return list(self.records)

    async def append(self, record: NotificationRecord) -> None:
        self.records.append(record)

    async def prune(self, cutoff: datetime) -> int:
        kept = [r for r in self.records if r.timestamp > cutoff]
        pruned = len(self.records) - len(kept)
        self.records = kept
        return pruned


async def no_sleep(seconds: float) -> None:
    return None


class SleepRecorder:
    """Sleep replacement that records requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def fake_browser():
    """Calendar landing on September 2025."""
    return FakeBrowser(2025, 9)


@pytest.fixture
def fast_settings():
    """Navigation settings with the default budget and no delays."""
    return NavigationSettings(
        stability_poll_interval_ms=0,
        post_click_delay_ms=0,
        verification_settle_ms=0,
        selector_timeout_ms=0,
        button_visible_timeout_ms=0
    )


@pytest.fixture
def baseline_store():
    return InMemoryBaselineStore()


@pytest.fixture
def notification_log():
    return InMemoryNotificationLog()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def september_2025():
    return make_period(2025, 9)


@pytest.fixture
def fixed_now():
    return datetime(2025, 9, 15, 10, 0, 0)
