"""
Navigation verification state machine.

Drives the remote calendar widget to a target period and certifies arrival
from independent signals: the parsed header, a coarse screenshot-size delta,
a bulk-text confidence score and a structural date-grid check.

States and transitions:

    UNKNOWN -> DETECTED -> COMPARING -> NAVIGATING -> STABILIZING -> DETECTED
                              |
                              +-> VERIFYING -> CONFIRMED
                              |       |
                              |       +-> COMPARING (verification failed)
                              +-> UNKNOWN (unparsable header or contradiction)

    DETECTED -> FINAL_CHECK once the attempt budget is spent;
    FINAL_CHECK -> CONFIRMED or FAILED.
"""

import asyncio
import os
from typing import Awaitable, Callable, Dict, List, Optional

import structlog

from browser.capability import BrowserCapability
from monitor.calendar_text import compute_direction, parse_month_header
from monitor.errors import (
    CapabilityError,
    CapabilityUnavailableError,
    NavigationControlNotFound,
    NavigationDetectionFailure,
    NavigationVerificationFailure,
)
from monitor.lookup import PeriodDetector, check_date_grid, read_calendar_signal, read_header
from monitor.models import (
    CalendarSignal,
    NavigationDirection,
    NavigationOutcome,
    NavigationSettings,
    NavigationState,
    ParsedPeriod,
    Period,
)

logger = structlog.get_logger(__name__)

TERMINAL_STATES = (NavigationState.CONFIRMED, NavigationState.FAILED)


class _NavigationContext:
    """Mutable state of one navigate_to() call."""

    def __init__(self, period: Period):
        self.period = period
        self.attempts = 0
        self.source_selector: Optional[str] = None
        self.header_text: Optional[str] = None
        self.header_is_fresh = False
        self.parsed = ParsedPeriod()
        self.direction: Optional[NavigationDirection] = None
        self.initial_screenshot_size: Optional[int] = None
        self.screenshot_delta: Optional[int] = None
        self.verification_failed = False
        self.signal: Optional[CalendarSignal] = None
        self.transitions: List[NavigationState] = []


class NavigationVerifier:
    """Reaches a target period on the calendar and proves it got there."""

    def __init__(
        self,
        browser: BrowserCapability,
        settings: Optional[NavigationSettings] = None,
        detector: Optional[PeriodDetector] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize the verifier.

        Args:
            browser: Capability positioned on the calendar landing view
            settings: Attempt budget, delays, thresholds and selector lists
            detector: Current-period lookup dispatcher, built from settings if omitted
            sleep: Awaitable used for every timed wait
        """
        self.browser = browser
        self.settings = settings or NavigationSettings()
        self.detector = detector or PeriodDetector.from_settings(self.settings)
        self.sleep = sleep
        self.logger = logger.bind(component="navigation_verifier")

        self._handlers: Dict[NavigationState, Callable[[_NavigationContext], Awaitable[NavigationState]]] = {
            NavigationState.UNKNOWN: self._on_unknown,
            NavigationState.DETECTED: self._on_detected,
            NavigationState.COMPARING: self._on_comparing,
            NavigationState.NAVIGATING: self._on_navigating,
            NavigationState.STABILIZING: self._on_stabilizing,
            NavigationState.VERIFYING: self._on_verifying,
            NavigationState.FINAL_CHECK: self._on_final_check,
        }

    async def navigate_to(self, period: Period) -> NavigationOutcome:
        """
        Drive the calendar to ``period``.

        Returns:
            NavigationOutcome with confirmed=True

        Raises:
            NavigationDetectionFailure: If no lookup strategy finds the current period
            NavigationControlNotFound: If no advance control is visible
            NavigationVerificationFailure: If no signal confirms the target after the attempt budget
            CapabilityUnavailableError: If the browser session is lost
        """
        ctx = _NavigationContext(period)
        state = NavigationState.UNKNOWN
        self.logger.info("Navigating to period", period=period.key, target=period.display_name)

        while state not in TERMINAL_STATES:
            ctx.transitions.append(state)
            handler = self._handlers[state]
            try:
                state = await handler(ctx)
            except CapabilityUnavailableError:
                raise
            except CapabilityError as e:
                state = await self._recover(ctx, state, e)

        ctx.transitions.append(state)
        outcome = NavigationOutcome(
            period_key=period.key,
            confirmed=state == NavigationState.CONFIRMED,
            final_state=state,
            attempts=ctx.attempts,
            header_text=ctx.header_text,
            source_selector=ctx.source_selector,
            signal=ctx.signal,
            screenshot_delta_bytes=ctx.screenshot_delta,
            transitions=ctx.transitions
        )

        if not outcome.confirmed:
            self.logger.error("Navigation failed", period=period.key, attempts=ctx.attempts)
            raise NavigationVerificationFailure(
                f"Could not verify navigation to {period.display_name} after {ctx.attempts} attempts"
            )

        self.logger.info(
            "Navigation confirmed",
            period=period.key,
            attempts=ctx.attempts,
            confidence=ctx.signal.confidence if ctx.signal else None
        )
        return outcome

    async def _recover(self, ctx: _NavigationContext, state: NavigationState, error: CapabilityError) -> NavigationState:
        """Handle a capability failure inside one attempt."""
        if ctx.source_selector is None:
            raise NavigationDetectionFailure(f"Calendar structure not recognized: {error}") from error
        if state == NavigationState.FINAL_CHECK:
            raise NavigationVerificationFailure(f"Final navigation check failed: {error}") from error

        self.logger.warning(
            "Navigation attempt failed",
            period=ctx.period.key,
            state=state.value,
            attempt=ctx.attempts,
            error=str(error)
        )
        await self._diagnostic(f"nav-error-{ctx.attempts}.png")
        ctx.header_is_fresh = False
        return NavigationState.DETECTED

    async def _on_unknown(self, ctx: _NavigationContext) -> NavigationState:
        if ctx.initial_screenshot_size is None:
            initial = await self.browser.screenshot()
            ctx.initial_screenshot_size = len(initial)

        detected = await self.detector.detect(self.browser)
        if detected is None:
            if ctx.source_selector is None:
                await self._diagnostic("navigation-error.png")
                raise NavigationDetectionFailure(
                    "Calendar structure not recognized: no month header or calendar text found"
                )
            self.logger.warning("Re-detection found nothing, keeping previous source", selector=ctx.source_selector)
            ctx.header_is_fresh = False
            return NavigationState.DETECTED

        ctx.source_selector = detected.source_selector
        ctx.header_text = detected.text
        ctx.header_is_fresh = True
        return NavigationState.DETECTED

    async def _on_detected(self, ctx: _NavigationContext) -> NavigationState:
        if ctx.attempts >= self.settings.max_attempts:
            return NavigationState.FINAL_CHECK
        ctx.attempts += 1

        if ctx.header_is_fresh:
            ctx.parsed = parse_month_header(ctx.header_text)
            ctx.header_is_fresh = False
        else:
            ctx.header_text, ctx.parsed = await read_header(
                self.browser, ctx.source_selector, self.settings.selector_timeout_ms
            )

        self.logger.info(
            "Current period",
            attempt=ctx.attempts,
            max_attempts=self.settings.max_attempts,
            month=ctx.parsed.month,
            year=ctx.parsed.year
        )
        return NavigationState.COMPARING

    async def _on_comparing(self, ctx: _NavigationContext) -> NavigationState:
        if not ctx.parsed.is_known:
            self.logger.warning("Could not parse calendar header", text=(ctx.header_text or "")[:100])
            return NavigationState.UNKNOWN

        ctx.direction = compute_direction(ctx.parsed, ctx.period)
        if ctx.direction != NavigationDirection.ALREADY_THERE:
            ctx.verification_failed = False
            return NavigationState.NAVIGATING

        if ctx.verification_failed:
            # Header says we are there but verification disagreed.
            self.logger.warning("Navigation contradiction, restarting detection", period=ctx.period.key)
            await self._diagnostic("navigation-error.png")
            ctx.verification_failed = False
            return NavigationState.UNKNOWN

        return NavigationState.VERIFYING

    async def _on_navigating(self, ctx: _NavigationContext) -> NavigationState:
        forward = ctx.direction == NavigationDirection.FORWARD
        selectors = self.settings.forward_selectors if forward else self.settings.backward_selectors

        button = await self.browser.locate(selectors, timeout=self.settings.button_visible_timeout_ms)
        if button is None:
            raise NavigationControlNotFound(
                f"Could not find {ctx.direction.value} navigation button"
            )

        self.logger.info("Advancing calendar", direction=ctx.direction.value, attempt=ctx.attempts)
        await self.browser.click(button)
        return NavigationState.STABILIZING

    async def _on_stabilizing(self, ctx: _NavigationContext) -> NavigationState:
        await self.sleep(self.settings.post_click_delay_ms / 1000)

        previous = None
        stable_reads = 0
        for poll in range(self.settings.stability_poll_limit):
            try:
                current = await self.browser.text_content(
                    ctx.source_selector, timeout=self.settings.selector_timeout_ms
                )
            except CapabilityUnavailableError:
                raise
            except CapabilityError:
                current = None

            if current is not None and current == previous:
                stable_reads += 1
                if stable_reads >= self.settings.stability_required_reads:
                    self.logger.debug("Calendar stable", polls=poll + 1)
                    return NavigationState.DETECTED
            else:
                stable_reads = 0
            previous = current
            await self.sleep(self.settings.stability_poll_interval_ms / 1000)

        self.logger.warning("Calendar may not be fully stable, proceeding")
        return NavigationState.DETECTED

    async def _on_verifying(self, ctx: _NavigationContext) -> NavigationState:
        await self.sleep(self.settings.verification_settle_ms / 1000)

        ctx.header_text, reparsed = await read_header(
            self.browser, ctx.source_selector, self.settings.selector_timeout_ms
        )
        ctx.parsed = reparsed

        current = await self.browser.screenshot()
        if ctx.initial_screenshot_size is not None:
            ctx.screenshot_delta = abs(len(current) - ctx.initial_screenshot_size)

        ctx.signal = await read_calendar_signal(
            self.browser, ctx.period, self.settings.calendar_text_selectors, self.settings.selector_timeout_ms
        )
        grid_ok = await check_date_grid(self.browser, self.settings)

        header_ok = reparsed.matches(ctx.period)
        confident = ctx.signal.confidence > self.settings.confidence_threshold
        self.logger.info(
            "Verification",
            period=ctx.period.key,
            header_match=header_ok,
            confidence=ctx.signal.confidence,
            date_grid=grid_ok,
            screenshot_delta=ctx.screenshot_delta
        )

        if header_ok and confident and grid_ok:
            return NavigationState.CONFIRMED

        ctx.verification_failed = True
        return NavigationState.COMPARING

    async def _on_final_check(self, ctx: _NavigationContext) -> NavigationState:
        try:
            ctx.header_text, ctx.parsed = await read_header(
                self.browser, ctx.source_selector, self.settings.selector_timeout_ms
            )
        except CapabilityUnavailableError:
            raise
        except CapabilityError as e:
            self.logger.warning("Final header read failed", error=str(e))
            ctx.parsed = ParsedPeriod()

        ctx.signal = await read_calendar_signal(
            self.browser, ctx.period, self.settings.calendar_text_selectors, self.settings.selector_timeout_ms
        )
        await self._diagnostic("final-navigation-state.png")

        header_ok = ctx.parsed.matches(ctx.period)
        text_ok = ctx.signal.confirms(ctx.period, self.settings.confidence_threshold)
        self.logger.info("Final navigation check", header_match=header_ok, text_match=text_ok)
        if header_ok or text_ok:
            return NavigationState.CONFIRMED
        return NavigationState.FAILED

    async def _diagnostic(self, filename: str) -> None:
        """Write a full-page diagnostic screenshot when a diagnostics directory is configured."""
        directory = self.settings.diagnostics_dir
        if not directory:
            return
        path = os.path.join(directory, filename)
        try:
            os.makedirs(directory, exist_ok=True)
            await self.browser.screenshot(path=path)
            self.logger.info("Diagnostic screenshot saved", path=path)
        except CapabilityUnavailableError:
            raise
        except (CapabilityError, OSError) as e:
            self.logger.warning("Failed to save diagnostic screenshot", path=path, error=str(e))
