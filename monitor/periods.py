"""
Rolling-horizon period generation.
"""

from datetime import datetime, timedelta
from typing import List, Optional

import structlog

from monitor.models import MONTH_NAMES, Period

logger = structlog.get_logger(__name__)


def _next_month_start(month_start: datetime) -> datetime:
    if month_start.month == 12:
        return month_start.replace(year=month_start.year + 1, month=1)
    return month_start.replace(month=month_start.month + 1)


def generate_periods(now: Optional[datetime] = None, horizon_days: int = 90) -> List[Period]:
    """
    Build the periods to check for one run.

    Every calendar month whose first day falls at or before ``now + horizon_days``
    is included, starting from the current month.

    Args:
        now: Reference time (defaults to the current local time)
        horizon_days: Forward horizon in days

    Returns:
        Ordered list of Period instances
    """
    now = now or datetime.now()
    horizon_end = now + timedelta(days=horizon_days)
    month_start = datetime(now.year, now.month, 1)

    periods = []
    while month_start <= horizon_end:
        periods.append(Period(
            key=f"{month_start.year}-{month_start.month:02d}",
            display_name=f"{MONTH_NAMES[month_start.month - 1].capitalize()} {month_start.year}",
            target_month=month_start.month,
            target_year=month_start.year
        ))
        month_start = _next_month_start(month_start)

    logger.info(
        "Computed monitoring periods",
        horizon_start=now.date().isoformat(),
        horizon_end=horizon_end.date().isoformat(),
        periods=[p.display_name for p in periods]
    )
    return periods
