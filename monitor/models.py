"""
Models for calendar monitoring and visual change detection.

This module defines Pydantic models for:
- Monitored periods and parsed calendar headers
- Navigation evidence (calendar signals)
- Visual comparison results
- Baselines and notification records
- Per-period outcomes and run aggregates
- Component settings (thresholds, navigation, retry, throttle)
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


MONTH_NAMES = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december"
]

UNKNOWN_MONTH = "unknown"


class Period(BaseModel):
    """One calendar month inside the monitoring horizon."""
    key: str = Field(..., description="Period key, e.g. 2025-09")
    display_name: str = Field(..., description="Human readable name, e.g. September 2025")
    target_month: int = Field(..., ge=1, le=12, description="Month number 1..12")
    target_year: int = Field(..., description="Four digit year")

    class Config:
        """Pydantic configuration."""
        frozen = True

    @property
    def month_name(self) -> str:
        """Lower-case month name used for text matching."""
        return MONTH_NAMES[self.target_month - 1]


class ParsedPeriod(BaseModel):
    """Month/year pair parsed from calendar header text."""
    month: str = Field(default=UNKNOWN_MONTH, description="Lower-case month name or 'unknown'")
    year: int = Field(default=0, description="Four digit year, 0 when unparsable")

    @property
    def is_known(self) -> bool:
        return self.month in MONTH_NAMES and self.year > 0

    def matches(self, period: Period) -> bool:
        return self.month == period.month_name and self.year == period.target_year


class NavigationDirection(str, Enum):
    """Direction of a single calendar advance."""
    FORWARD = "forward"
    BACKWARD = "backward"
    ALREADY_THERE = "already_there"


class NavigationState(str, Enum):
    """States of the navigation verification machine."""
    UNKNOWN = "unknown"
    DETECTED = "detected"
    COMPARING = "comparing"
    NAVIGATING = "navigating"
    STABILIZING = "stabilizing"
    VERIFYING = "verifying"
    FINAL_CHECK = "final_check"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class CalendarSignal(BaseModel):
    """Evidence gathered from bulk calendar text while verifying navigation."""
    extracted_text: str = Field(default="", description="Text the signal was computed from")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Confidence the text names the target")
    detected_month: str = Field(default="not_found", description="Target month if present, else not_found")
    detected_year: int = Field(default=0, description="Target year if present, else 0")
    source_selector: Optional[str] = Field(default=None, description="Selector the text was read from")
    has_exact_pattern: bool = Field(default=False)
    other_months_found: int = Field(default=0)

    def confirms(self, period: Period, threshold: float) -> bool:
        """Whether this signal alone certifies the target period."""
        return (
            self.confidence > threshold
            and self.detected_month == period.month_name
            and self.detected_year == period.target_year
        )


class DetectedHeader(BaseModel):
    """Result of a successful current-period lookup."""
    text: str = Field(..., description="Month/year text that was found")
    source_selector: str = Field(..., description="Selector the text was read from")
    strategy: str = Field(..., description="Name of the lookup strategy that succeeded")


class NavigationOutcome(BaseModel):
    """Result of driving the calendar to a target period."""
    period_key: str
    confirmed: bool = Field(default=False)
    final_state: NavigationState = Field(default=NavigationState.UNKNOWN)
    attempts: int = Field(default=0)
    header_text: Optional[str] = Field(default=None)
    source_selector: Optional[str] = Field(default=None)
    signal: Optional[CalendarSignal] = Field(default=None)
    screenshot_delta_bytes: Optional[int] = Field(default=None)
    transitions: List[NavigationState] = Field(default_factory=list)


class ComparisonResult(BaseModel):
    """Structured result of comparing a screenshot against its baseline."""
    total_pixels_sampled: int = Field(default=0)
    changed_pixels: int = Field(default=0)
    availability_increase_pixels: int = Field(default=0)
    highlight_discarded_pixels: int = Field(default=0)
    unrelated_change_pixels: int = Field(default=0)
    change_percentage: float = Field(default=0.0)
    availability_score: float = Field(default=0.0)
    significant_change: bool = Field(default=False)
    likely_new_availability: bool = Field(default=False)
    should_notify: bool = Field(default=False)
    should_update_baseline: bool = Field(default=False)


class Baseline(BaseModel):
    """Last accepted snapshot for a period."""
    period_key: str
    image_bytes: bytes
    stored_at: datetime = Field(default_factory=datetime.utcnow)


class NotificationRecord(BaseModel):
    """One successful notification delivery."""
    timestamp: datetime = Field(default_factory=datetime.now)
    type: str = Field(default="availability_change")

    class Config:
        """Pydantic configuration."""
        json_encoders = {
            datetime: lambda v: v.isoformat()
        }


class OutcomeStatus(str, Enum):
    """Per-period processing status."""
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


class PeriodOutcome(BaseModel):
    """Outcome of processing one period during a run."""
    period: Period
    status: OutcomeStatus = Field(default=OutcomeStatus.SUCCESS)
    has_baseline: bool = Field(default=False)
    comparison: Optional[ComparisonResult] = Field(default=None)
    should_notify: bool = Field(default=False)
    should_update_baseline: bool = Field(default=False)
    error: Optional[str] = Field(default=None)
    message: Optional[str] = Field(default=None)

    def to_summary_dict(self) -> Dict[str, Any]:
        """Wire representation used by the trigger response."""
        result: Dict[str, Any] = {
            "month": self.period.key,
            "name": self.period.display_name,
            "status": self.status.value,
            "hasBaseline": self.has_baseline,
            "shouldNotify": self.should_notify,
            "shouldUpdateBaseline": self.should_update_baseline,
        }
        if self.comparison is not None:
            c = self.comparison
            result.update({
                "totalPixels": c.total_pixels_sampled,
                "changedPixels": c.changed_pixels,
                "changePercentage": round(c.change_percentage, 3),
                "availabilityScore": round(c.availability_score, 3),
                "availabilityIncrease": c.availability_increase_pixels,
                "dateHighlightChanges": c.highlight_discarded_pixels,
                "nonAvailabilityChanges": c.unrelated_change_pixels,
                "significantChange": c.significant_change,
                "likelyNewAvailability": c.likely_new_availability,
            })
        if self.error:
            result["error"] = self.error
        if self.message:
            result["message"] = self.message
        return result


class RunSummary(BaseModel):
    """Summary counts over all periods of a run."""
    total_months_checked: int = Field(default=0)
    months_with_changes: int = Field(default=0)
    months_failed: int = Field(default=0)
    months_skipped: int = Field(default=0)
    highest_change_percent: float = Field(default=0.0)
    total_availability_increase: int = Field(default=0)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "totalMonthsChecked": self.total_months_checked,
            "monthsWithChanges": self.months_with_changes,
            "monthsFailed": self.months_failed,
            "monthsSkipped": self.months_skipped,
            "highestChangePercent": round(self.highest_change_percent, 3),
            "totalAvailabilityIncrease": self.total_availability_increase,
        }


class OperationRecord(BaseModel):
    """One timed operation emitted to the event sink."""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    operation: str
    duration_ms: int = Field(default=0)
    success: bool = Field(default=True)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MonitorRunResult(BaseModel):
    """Aggregate over all periods for one orchestration call."""
    request_id: str
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = Field(default=None)
    success: bool = Field(default=True)
    outcomes: List[PeriodOutcome] = Field(default_factory=list)
    summary: RunSummary = Field(default_factory=RunSummary)
    webhook_sent: bool = Field(default=False)
    operations: List[OperationRecord] = Field(default_factory=list)

    class Config:
        """Pydantic configuration."""
        json_encoders = {
            datetime: lambda v: v.isoformat()
        }

    @property
    def changed_outcomes(self) -> List[PeriodOutcome]:
        return [o for o in self.outcomes if o.should_notify]


class Credentials(BaseModel):
    """Site credentials used by the login flow."""
    username: str = Field(default="")
    password: str = Field(default="")

    @property
    def is_complete(self) -> bool:
        return bool(self.username) and bool(self.password)


class DiffThresholds(BaseModel):
    """Decision thresholds of the visual diff classifier."""
    pixel_distance: float = Field(default=30.0, ge=0.0, description="RGB distance below which a pixel is unchanged")
    significant_change_percent: float = Field(default=2.0, ge=0.0, description="Changed-pixel percentage for a significant change")
    availability_score: float = Field(default=0.01, ge=0.0, description="Availability score needed for likely new availability")


class NavigationSettings(BaseModel):
    """Configuration for the navigation verifier and its lookup strategies."""
    max_attempts: int = Field(default=12, ge=1)
    stability_poll_limit: int = Field(default=10, ge=1)
    stability_poll_interval_ms: int = Field(default=500, ge=0)
    stability_required_reads: int = Field(default=3, ge=1)
    post_click_delay_ms: int = Field(default=3000, ge=0)
    verification_settle_ms: int = Field(default=2000, ge=0)
    selector_timeout_ms: int = Field(default=3000, ge=0)
    button_visible_timeout_ms: int = Field(default=2000, ge=0)
    confidence_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    min_date_cells: int = Field(default=20, ge=0)
    diagnostics_dir: Optional[str] = Field(default=None)

    calendar_text_selectors: List[str] = Field(default=[
        "table", ".calendar", ".datepicker", ".ui-datepicker",
        "[class*=\"calendar\"]", "[class*=\"datepicker\"]", "main", "body"
    ])
    header_selectors: List[str] = Field(default=[
        ".ui-datepicker-title",
        ".calendar-header h3",
        ".calendar-header h2",
        "h2.ui-datepicker-title",
        ".datepicker-title",
        "[class*=\"month\"][class*=\"year\"]",
        "[class*=\"calendar\"][class*=\"header\"] h2",
        "[class*=\"calendar\"][class*=\"header\"] h3"
    ])
    forward_selectors: List[str] = Field(default=[
        ".ui-datepicker-next", ".calendar-header .next",
        "button[title*=\"Next\"]", "a[title*=\"Next\"]", "[class*=\"next\"]"
    ])
    backward_selectors: List[str] = Field(default=[
        ".ui-datepicker-prev", ".calendar-header .prev",
        "button[title*=\"Prev\"]", "a[title*=\"Prev\"]", "[class*=\"prev\"]"
    ])
    date_cell_selector: str = Field(default="td[class*=\"day\"], .calendar-day, .ui-datepicker-calendar td")
    day_token_selectors: List[str] = Field(default=["text=\"1\"", "text=\"2\""])


class RetryPolicy(BaseModel):
    """Capture retry policy with capped exponential backoff."""
    max_attempts: int = Field(default=3, ge=1)
    base_delay_ms: int = Field(default=1000, ge=0)
    max_delay_ms: int = Field(default=8000, ge=0)

    def delay_ms(self, attempt: int) -> int:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        return min(self.base_delay_ms * (2 ** (attempt - 1)), self.max_delay_ms)


class ThrottleSettings(BaseModel):
    """Daily notification budget."""
    max_daily_notifications: int = Field(default=2, ge=0)
    retention_days: int = Field(default=7, ge=1)
