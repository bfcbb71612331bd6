"""
Test cases for period generation and the event sink.
"""

from datetime import datetime, timedelta

import pytest

from monitor.events import EventSink
from monitor.periods import generate_periods


class TestGeneratePeriods:
    """Test cases for generate_periods."""

    def test_ninety_day_horizon(self):
        """Test months whose first day is within 90 days, starting with the current month."""
        periods = generate_periods(datetime(2025, 9, 15), horizon_days=90)

        assert [p.key for p in periods] == ["2025-09", "2025-10", "2025-11", "2025-12"]
        assert periods[0].display_name == "September 2025"
        assert periods[0].target_month == 9
        assert periods[0].target_year == 2025

    def test_year_boundary(self):
        """Test keys roll into the next year."""
        periods = generate_periods(datetime(2025, 11, 20), horizon_days=90)
        assert [p.key for p in periods] == ["2025-11", "2025-12", "2026-01", "2026-02"]
        assert periods[-1].display_name == "February 2026"

    def test_month_start_on_horizon_edge(self):
        """Test a month starting exactly at the horizon end is included."""
        periods = generate_periods(datetime(2025, 9, 1), horizon_days=30)
        assert [p.key for p in periods] == ["2025-09", "2025-10"]

    def test_periods_are_immutable(self):
        """Test generated periods cannot be modified."""
        period = generate_periods(datetime(2025, 9, 15), horizon_days=0)[0]
        with pytest.raises((TypeError, ValueError)):
            period.target_month = 10


class TestEventSink:
    """Test cases for EventSink."""

    def test_records_operations(self):
        """Test operations are appended with duration and metadata."""
        sink = EventSink()
        sink.record("capture_2025-09", datetime.utcnow(), attempt=1)
        sink.record("compare_2025-09", datetime.utcnow(), success=False, error="boom")

        assert [r.operation for r in sink.records] == ["capture_2025-09", "compare_2025-09"]
        assert sink.records[0].metadata == {"attempt": 1}
        assert sink.records[0].duration_ms >= 0
        assert [r.operation for r in sink.failures()] == ["compare_2025-09"]

    def test_slow_operation_duration(self):
        """Test duration is measured from the supplied start time."""
        sink = EventSink()
        record = sink.record("total_monitor_run", datetime.utcnow() - timedelta(seconds=45))
        assert record.duration_ms >= 45000

    def test_sinks_do_not_share_state(self):
        """Test each run gets its own record stream."""
        first = EventSink()
        first.record("process_2025-09", datetime.utcnow())
        assert EventSink().records == []
