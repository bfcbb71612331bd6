"""
Browser automation capability consumed by the monitor core.

The core never talks to Playwright directly; it depends on this interface so
navigation and capture logic can run against scripted fakes in tests.
All timeouts are in milliseconds.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence, Union

# Opaque handle returned by locate(); the Playwright adapter uses Locator objects.
ElementHandle = Any

# Either an element handle or a clip rectangle {x, y, width, height}.
ScreenshotRegion = Union[ElementHandle, Dict[str, int]]


class BrowserCapability(ABC):
    """Primitive browser operations the monitor is built on."""

    @abstractmethod
    async def navigate(self, url: str, timeout: Optional[int] = None) -> None:
        """Load ``url`` and wait for the network to go idle."""

    @abstractmethod
    async def locate(self, selectors: Sequence[str], timeout: int) -> Optional[ElementHandle]:
        """Return the first visible element matching the ordered selector list, or None."""

    @abstractmethod
    async def text_content(self, target: Union[str, ElementHandle], timeout: int) -> str:
        """Text content of a selector's first match or of a handle."""

    @abstractmethod
    async def click(self, handle: ElementHandle) -> None:
        """Click an element."""

    @abstractmethod
    async def fill(self, handle: ElementHandle, value: str) -> None:
        """Fill an input element."""

    @abstractmethod
    async def screenshot(self, region: Optional[ScreenshotRegion] = None, path: Optional[str] = None) -> bytes:
        """Capture the page, an element, or a clip rectangle; optionally also write it to ``path``."""

    @abstractmethod
    async def wait_for_load_settled(self, timeout: int) -> None:
        """Wait until the page has no pending network activity."""

    @abstractmethod
    async def count(self, selector: str) -> int:
        """Number of elements matching ``selector``."""

    @abstractmethod
    async def is_visible(self, selector: str, timeout: int) -> bool:
        """Whether the first match of ``selector`` is visible."""
