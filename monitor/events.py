"""
Structured operation records for one monitor run.
"""

from datetime import datetime
from typing import Any, List

import structlog

from monitor.models import OperationRecord

logger = structlog.get_logger(__name__)

SLOW_OPERATION_MS = 30000


class EventSink:
    """Append-only stream of timed operation records, one instance per run."""

    def __init__(self, slow_operation_ms: int = SLOW_OPERATION_MS):
        self.slow_operation_ms = slow_operation_ms
        self.records: List[OperationRecord] = []
        self.logger = logger.bind(component="event_sink")

    def record(self, operation: str, started_at: datetime, success: bool = True, **metadata: Any) -> OperationRecord:
        """Record an operation that began at ``started_at`` and ends now."""
        now = datetime.utcnow()
        duration_ms = int((now - started_at).total_seconds() * 1000)
        entry = OperationRecord(
            timestamp=now,
            operation=operation,
            duration_ms=duration_ms,
            success=success,
            metadata=metadata
        )
        self.records.append(entry)

        self.logger.debug("Operation", operation=operation, duration_ms=duration_ms, success=success, **metadata)
        if duration_ms > self.slow_operation_ms:
            self.logger.warning("Slow operation", operation=operation, duration_ms=duration_ms)
        return entry

    def failures(self) -> List[OperationRecord]:
        return [r for r in self.records if not r.success]
