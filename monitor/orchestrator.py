"""
End-to-end monitor run.

This module provides:
- MonitorOrchestrator: authenticate, capture and compare every period, notify
- build_orchestrator(): wiring from MonitorConfig to concrete backends
"""

import asyncio
from datetime import datetime
from typing import AsyncContextManager, Awaitable, Callable, List, Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorClient

from browser.auth import SiteAuthenticator
from browser.capability import BrowserCapability
from browser.playwright_session import open_browser
from monitor.alerting import WebhookNotifier, build_webhook_payload
from monitor.baseline_store import BaselineStore, FileBaselineStore, MongoBaselineStore
from monitor.capture import CalendarCapturer
from monitor.errors import (
    CapabilityError,
    CapabilityUnavailableError,
    CaptureFailure,
    ConfigurationError,
    MonitorError,
    NavigationError,
    StorageError,
)
from monitor.events import EventSink
from monitor.models import (
    Credentials,
    MonitorRunResult,
    OutcomeStatus,
    Period,
    PeriodOutcome,
    RetryPolicy,
    RunSummary,
)
from monitor.periods import generate_periods
from monitor.throttle import FileNotificationLog, MongoNotificationLog, NotificationThrottle
from monitor.visual_diff import VisualDiffClassifier
from utilities.logger import MonitorLogger

logger = structlog.get_logger(__name__)

BrowserFactory = Callable[[], AsyncContextManager[BrowserCapability]]
Authenticator = Callable[[BrowserCapability, Credentials], Awaitable[None]]
CapturerFactory = Callable[[BrowserCapability], CalendarCapturer]


def summarize(outcomes: List[PeriodOutcome]) -> RunSummary:
    """Aggregate counts over the per-period outcomes of a run."""
    changed = [o for o in outcomes if o.should_notify]
    percentages = [o.comparison.change_percentage for o in outcomes if o.comparison is not None]
    return RunSummary(
        total_months_checked=len(outcomes),
        months_with_changes=len(changed),
        months_failed=sum(1 for o in outcomes if o.status == OutcomeStatus.ERROR),
        months_skipped=sum(1 for o in outcomes if o.status == OutcomeStatus.SKIPPED),
        highest_change_percent=max(percentages) if percentages else 0.0,
        total_availability_increase=sum(
            o.comparison.availability_increase_pixels for o in changed if o.comparison is not None
        )
    )


class MonitorOrchestrator:
    """Sequences periods through capture, comparison, baseline update and notification."""

    def __init__(
        self,
        browser_factory: BrowserFactory,
        authenticator: Authenticator,
        capturer_factory: CapturerFactory,
        baseline_store: BaselineStore,
        throttle: NotificationThrottle,
        notifier: WebhookNotifier,
        classifier: Optional[VisualDiffClassifier] = None,
        retry_policy: Optional[RetryPolicy] = None,
        horizon_days: int = 90,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize the orchestrator.

        Args:
            browser_factory: Returns an async context manager yielding a browser capability
            authenticator: Logs the browser into the site
            capturer_factory: Builds a CalendarCapturer for a browser session
            baseline_store: Per-period baseline storage
            throttle: Daily notification budget
            notifier: Webhook delivery
            classifier: Visual diff classifier
            retry_policy: Capture retry policy
            horizon_days: Forward horizon for period generation
            clock: Current local time
            sleep: Awaitable used for retry backoff
        """
        self.browser_factory = browser_factory
        self.authenticator = authenticator
        self.capturer_factory = capturer_factory
        self.baseline_store = baseline_store
        self.throttle = throttle
        self.notifier = notifier
        self.classifier = classifier or VisualDiffClassifier()
        self.retry_policy = retry_policy or RetryPolicy()
        self.horizon_days = horizon_days
        self.clock = clock
        self.sleep = sleep
        self.logger = logger.bind(component="orchestrator")

    async def run(
        self,
        credentials: Credentials,
        request_id: Optional[str] = None,
        events: Optional[EventSink] = None
    ) -> MonitorRunResult:
        """
        Execute one monitoring run.

        Args:
            credentials: Site credentials
            request_id: Identifier carried through logs and the result
            events: Operation record sink, a fresh one per run if omitted

        Returns:
            MonitorRunResult with one outcome per period

        Raises:
            ConfigurationError: If credentials are incomplete
            CapabilityUnavailableError: If the browser cannot be acquired
            AuthenticationError: If login fails
        """
        if not credentials.is_complete:
            raise ConfigurationError("Missing credentials: username and password are required")

        request_id = request_id or f"local-{int(datetime.utcnow().timestamp() * 1000)}"
        events = events or EventSink()
        run_logger = MonitorLogger(request_id)
        result = MonitorRunResult(request_id=request_id)
        run_started = datetime.utcnow()

        try:
            async with self.browser_factory() as browser:
                await self.authenticator(browser, credentials)

                periods = generate_periods(self.clock(), self.horizon_days)
                run_logger.log_run_start(len(periods))
                capturer = self.capturer_factory(browser)
                result.outcomes = await self._process_periods(capturer, periods, events, run_logger)
        except MonitorError as e:
            events.record("total_monitor_run", run_started, success=False, error=str(e))
            run_logger.log_error(str(e))
            raise

        result.summary = summarize(result.outcomes)
        result.webhook_sent = await self._notify(result)
        result.finished_at = datetime.utcnow()

        events.record(
            "total_monitor_run",
            run_started,
            months_checked=result.summary.total_months_checked,
            months_with_changes=result.summary.months_with_changes
        )
        result.operations = list(events.records)

        run_logger.log_run_complete(
            checked=result.summary.total_months_checked,
            changed=result.summary.months_with_changes,
            failed=result.summary.months_failed,
            duration_seconds=(result.finished_at - run_started).total_seconds(),
            webhook_sent=result.webhook_sent
        )
        return result

    async def _process_periods(
        self,
        capturer: CalendarCapturer,
        periods: List[Period],
        events: EventSink,
        run_logger: MonitorLogger
    ) -> List[PeriodOutcome]:
        outcomes: List[PeriodOutcome] = []
        session_lost: Optional[CapabilityUnavailableError] = None

        for period in periods:
            if session_lost is not None:
                outcomes.append(PeriodOutcome(
                    period=period,
                    status=OutcomeStatus.SKIPPED,
                    error=f"Browser session lost: {session_lost}"
                ))
                continue

            started = datetime.utcnow()
            try:
                outcome = await self._process_period(capturer, period, events, run_logger)
            except CapabilityUnavailableError as e:
                session_lost = e
                run_logger.log_error(str(e), period.key)
                outcome = PeriodOutcome(period=period, status=OutcomeStatus.ERROR, error=str(e))
            except Exception as e:
                run_logger.log_error(f"Unexpected error: {e!r}", period.key)
                outcome = PeriodOutcome(period=period, status=OutcomeStatus.ERROR, error=f"Unexpected error: {e}")

            events.record(f"process_{period.key}", started, success=outcome.status == OutcomeStatus.SUCCESS)
            run_logger.log_period_result(
                period.key,
                outcome.status.value,
                outcome.has_baseline,
                outcome.comparison.change_percentage if outcome.comparison else None,
                outcome.should_notify
            )
            outcomes.append(outcome)

        return outcomes

    async def _process_period(
        self,
        capturer: CalendarCapturer,
        period: Period,
        events: EventSink,
        run_logger: MonitorLogger
    ) -> PeriodOutcome:
        try:
            image = await self._capture_with_retry(capturer, period, events, run_logger)
            return await self._compare(period, image, events)
        except (CaptureFailure, StorageError) as e:
            run_logger.log_error(str(e), period.key)
            return PeriodOutcome(period=period, status=OutcomeStatus.ERROR, error=str(e))

    async def _capture_with_retry(
        self,
        capturer: CalendarCapturer,
        period: Period,
        events: EventSink,
        run_logger: MonitorLogger
    ) -> bytes:
        """
        Capture ``period`` with capped exponential backoff between attempts.

        Raises:
            CaptureFailure: After the last attempt fails
            CapabilityUnavailableError: If the browser session is lost
        """
        policy = self.retry_policy
        last_error: Optional[Exception] = None

        for attempt in range(1, policy.max_attempts + 1):
            started = datetime.utcnow()
            try:
                image = await capturer.capture(period)
                events.record(f"capture_{period.key}", started, attempt=attempt, size=len(image))
                return image
            except CapabilityUnavailableError:
                events.record(f"capture_{period.key}", started, success=False, attempt=attempt)
                raise
            except (NavigationError, CapabilityError) as e:
                last_error = e
                events.record(f"capture_{period.key}", started, success=False, attempt=attempt, error=str(e))

            if attempt < policy.max_attempts:
                delay = policy.delay_ms(attempt) / 1000
                run_logger.log_retry(period.key, attempt, policy.max_attempts, delay, str(last_error))
                await self.sleep(delay)

        raise CaptureFailure(
            f"Failed to capture {period.display_name} after {policy.max_attempts} attempts: {last_error}",
            attempts=policy.max_attempts,
            cause=last_error
        )

    async def _compare(self, period: Period, image: bytes, events: EventSink) -> PeriodOutcome:
        started = datetime.utcnow()
        baseline = await self.baseline_store.load(period.key)

        if baseline is None:
            await self.baseline_store.save(period.key, image)
            self.logger.info("No baseline found, created new baseline", period=period.key)
            events.record(f"compare_{period.key}", started, baseline_created=True)
            return PeriodOutcome(
                period=period,
                has_baseline=False,
                message=f"Baseline created for {period.display_name}"
            )

        comparison = self.classifier.compare(baseline, image)
        if comparison.should_update_baseline:
            await self.baseline_store.save(period.key, image)
            self.logger.info("Baseline replaced after significant change", period=period.key)

        events.record(
            f"compare_{period.key}",
            started,
            change_percentage=round(comparison.change_percentage, 3),
            should_notify=comparison.should_notify
        )
        return PeriodOutcome(
            period=period,
            has_baseline=True,
            comparison=comparison,
            should_notify=comparison.should_notify,
            should_update_baseline=comparison.should_update_baseline
        )

    async def _notify(self, result: MonitorRunResult) -> bool:
        """Deliver one combined webhook if anything changed and the budget allows."""
        changed = result.changed_outcomes
        if not changed:
            self.logger.info("No significant availability changes detected")
            return False

        if not await self.throttle.can_send():
            self.logger.info(
                "Daily notification limit reached, skipping webhook",
                months_with_changes=len(changed)
            )
            return False

        delivered = await self.notifier.deliver(build_webhook_payload(result))
        if delivered:
            try:
                await self.throttle.record()
            except StorageError as e:
                self.logger.error("Failed to record notification", error=str(e))
        return delivered


def build_orchestrator(config) -> MonitorOrchestrator:
    """
    Wire a MonitorOrchestrator from configuration.

    Args:
        config: MonitorConfig instance
    """
    navigation = config.get_navigation_settings()

    if config.storage_backend == "mongodb":
        client = AsyncIOMotorClient(config.mongodb_url)
        database = client[config.mongodb_database]
        baseline_store: BaselineStore = MongoBaselineStore(database[config.baseline_collection])
        notification_log = MongoNotificationLog(database[config.notification_collection])
    else:
        baseline_store = FileBaselineStore(str(config.get_baseline_dir()))
        notification_log = FileNotificationLog(str(config.get_notification_log_path()))

    def browser_factory() -> AsyncContextManager[BrowserCapability]:
        return open_browser(
            headless=config.headless,
            viewport={"width": config.viewport_width, "height": config.viewport_height}
        )

    def capturer_factory(browser: BrowserCapability) -> CalendarCapturer:
        return CalendarCapturer(
            browser,
            config.get_availability_url(),
            settings=navigation,
            page_load_timeout_ms=config.page_load_timeout_ms,
            landing_settle_ms=config.landing_settle_ms
        )

    authenticator = SiteAuthenticator(
        base_url=config.base_url,
        login_url=config.get_login_url(),
        page_load_timeout_ms=config.page_load_timeout_ms,
        selector_timeout_ms=config.selector_timeout_ms,
        post_login_delay_ms=config.post_login_delay_ms
    )

    logger.info("Orchestrator configured", storage_backend=config.storage_backend)
    return MonitorOrchestrator(
        browser_factory=browser_factory,
        authenticator=authenticator,
        capturer_factory=capturer_factory,
        baseline_store=baseline_store,
        throttle=NotificationThrottle(notification_log, config.get_throttle_settings()),
        notifier=WebhookNotifier(config.webhook_url, config.webhook_timeout, config.get_headers()),
        classifier=VisualDiffClassifier(config.get_diff_thresholds()),
        retry_policy=config.get_retry_policy(),
        horizon_days=config.horizon_days
    )
