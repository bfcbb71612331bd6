"""
Test cases for calendar header parsing, direction and confidence scoring.
"""

import pytest

from conftest import make_period
from monitor.calendar_text import (
    compute_direction,
    find_period_token,
    normalize_month,
    parse_month_header,
    score_calendar_text,
)
from monitor.models import NavigationDirection, ParsedPeriod


class TestParseMonthHeader:
    """Test cases for parse_month_header."""

    @pytest.mark.parametrize("text", [
        "January 2024",
        "January, 2024",
        "January - 2024",
        "2024 January",
        "  january 2024  ",
    ])
    def test_supported_formats(self, text):
        """Test every supported header layout parses to the same period."""
        parsed = parse_month_header(text)
        assert parsed.month == "january"
        assert parsed.year == 2024
        assert parsed.is_known

    def test_abbreviated_month(self):
        """Test abbreviated month names are normalised."""
        assert parse_month_header("Sept 2025").month == "september"
        assert parse_month_header("Dec 2025").month == "december"

    @pytest.mark.parametrize("text", ["Loading...", "", None, "2025", "Availability"])
    def test_unparsable_header(self, text):
        """Test unparsable text yields the unknown sentinel."""
        parsed = parse_month_header(text)
        assert parsed.month == "unknown"
        assert parsed.year == 0
        assert not parsed.is_known

    def test_normalize_month(self):
        """Test month token normalisation."""
        assert normalize_month("MARCH") == "march"
        assert normalize_month("Jun") == "june"
        assert normalize_month("xyz") == "unknown"


class TestFindPeriodToken:
    """Test cases for scanning bulk calendar text."""

    def test_earliest_token_wins(self):
        """Test the first month/year token in the text is returned."""
        text = "Su Mo Tu October 2025 1 2 3 ... November 2025"
        assert find_period_token(text) == "October 2025"

    def test_no_token(self):
        """Test text without a month/year pair."""
        assert find_period_token("Su Mo Tu We Th Fr Sa 1 2 3") is None
        assert find_period_token("") is None


class TestComputeDirection:
    """Test cases for navigation direction."""

    def test_already_there(self):
        """Test matching period."""
        target = make_period(2025, 9)
        assert compute_direction(ParsedPeriod(month="september", year=2025), target) == NavigationDirection.ALREADY_THERE

    def test_year_takes_precedence(self):
        """Test year comparison overrides month order."""
        assert compute_direction(
            ParsedPeriod(month="december", year=2024), make_period(2025, 1)
        ) == NavigationDirection.FORWARD
        assert compute_direction(
            ParsedPeriod(month="january", year=2026), make_period(2025, 12)
        ) == NavigationDirection.BACKWARD

    def test_same_year(self):
        """Test month comparison within a year."""
        assert compute_direction(
            ParsedPeriod(month="september", year=2025), make_period(2025, 11)
        ) == NavigationDirection.FORWARD
        assert compute_direction(
            ParsedPeriod(month="september", year=2025), make_period(2025, 7)
        ) == NavigationDirection.BACKWARD


class TestScoreCalendarText:
    """Test cases for the confidence score."""

    def test_full_evidence_is_clamped(self):
        """Test exact pattern, month, year and no other months clamp to 1.0."""
        signal = score_calendar_text("September 2025 Su Mo Tu 1 2 3", make_period(2025, 9), "table")
        assert signal.confidence == 1.0
        assert signal.has_exact_pattern
        assert signal.other_months_found == 0
        assert signal.detected_month == "september"
        assert signal.detected_year == 2025
        assert signal.source_selector == "table"

    def test_many_other_months_penalised(self):
        """Test more than two other month names reduce the score by at least 0.3."""
        period = make_period(2025, 9)
        base = score_calendar_text("Calendar for september in the year 2025", period)
        crowded = score_calendar_text(
            "Calendar for september in the year 2025 october november december", period
        )
        assert base.confidence == pytest.approx(0.9)
        assert base.confidence - crowded.confidence >= 0.3 - 1e-9
        assert crowded.other_months_found == 3

    def test_threshold_boundary(self):
        """Test three other months next to an exact match lands exactly on 0.8, which does not confirm."""
        period = make_period(2025, 9)
        signal = score_calendar_text("September 2025 October November December", period)
        assert signal.confidence == 0.8
        assert not signal.confirms(period, 0.8)

    def test_wrong_month(self):
        """Test text naming another month."""
        period = make_period(2025, 11)
        signal = score_calendar_text("September 2025 1 2 3", period)
        assert signal.detected_month == "not_found"
        assert signal.confidence == pytest.approx(0.3)
        assert not signal.confirms(period, 0.8)

    def test_empty_text(self):
        """Test empty text only earns the no-other-months bonus."""
        signal = score_calendar_text("", make_period(2025, 9))
        assert signal.confidence == pytest.approx(0.2)
        assert signal.detected_year == 0
