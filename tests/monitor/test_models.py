"""
Test cases for monitor models.
"""

from conftest import make_period
from monitor.models import (
    CalendarSignal,
    ComparisonResult,
    Credentials,
    OutcomeStatus,
    ParsedPeriod,
    PeriodOutcome,
    RetryPolicy,
    RunSummary,
)


class TestRetryPolicy:
    """Test cases for RetryPolicy."""

    def test_exponential_backoff(self):
        """Test delays double from the base delay."""
        policy = RetryPolicy()
        assert [policy.delay_ms(n) for n in (1, 2, 3)] == [1000, 2000, 4000]

    def test_backoff_is_capped(self):
        """Test delays never exceed the maximum."""
        policy = RetryPolicy(max_attempts=6)
        assert policy.delay_ms(4) == 8000
        assert policy.delay_ms(5) == 8000


class TestPeriodModels:
    """Test cases for period and signal helpers."""

    def test_parsed_period_matches(self):
        """Test month and year must both match."""
        period = make_period(2025, 9)
        assert ParsedPeriod(month="september", year=2025).matches(period)
        assert not ParsedPeriod(month="september", year=2026).matches(period)
        assert not ParsedPeriod().is_known

    def test_signal_confirms_strictly_above_threshold(self):
        """Test a signal at exactly the threshold does not confirm."""
        period = make_period(2025, 9)
        signal = CalendarSignal(confidence=0.8, detected_month="september", detected_year=2025)
        assert not signal.confirms(period, 0.8)
        assert signal.copy(update={"confidence": 0.9}).confirms(period, 0.8)

    def test_credentials_complete(self):
        """Test both credentials are required."""
        assert Credentials(username="a", password="b").is_complete
        assert not Credentials(username="a").is_complete


class TestWireFormat:
    """Test cases for outcome and summary serialization."""

    def test_outcome_with_comparison(self):
        """Test camelCase keys and rounded percentages."""
        outcome = PeriodOutcome(
            period=make_period(2025, 10),
            has_baseline=True,
            comparison=ComparisonResult(total_pixels_sampled=3, changed_pixels=1, change_percentage=33.33333),
        )
        data = outcome.to_summary_dict()

        assert data["month"] == "2025-10"
        assert data["name"] == "October 2025"
        assert data["status"] == "success"
        assert data["hasBaseline"] is True
        assert data["changePercentage"] == 33.333
        assert data["totalPixels"] == 3
        assert "error" not in data

    def test_error_outcome(self):
        """Test error outcomes carry the message and no comparison fields."""
        outcome = PeriodOutcome(period=make_period(2025, 10), status=OutcomeStatus.ERROR, error="boom")
        data = outcome.to_summary_dict()

        assert data["status"] == "error"
        assert data["error"] == "boom"
        assert "changePercentage" not in data

    def test_summary_wire_keys(self):
        """Test summary serialization."""
        summary = RunSummary(total_months_checked=4, months_with_changes=1, highest_change_percent=2.34567)
        assert summary.to_wire() == {
            "totalMonthsChecked": 4,
            "monthsWithChanges": 1,
            "monthsFailed": 0,
            "monthsSkipped": 0,
            "highestChangePercent": 2.346,
            "totalAvailabilityIncrease": 0,
        }
