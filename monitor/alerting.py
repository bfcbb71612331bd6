"""
Webhook alerting for new availability.

This module provides:
- Webhook payload construction from a run result
- WebhookNotifier: single-attempt JSON POST delivery via httpx
"""

from datetime import datetime
from typing import Any, Dict, Optional

import httpx
import structlog

from monitor.errors import WebhookDeliveryFailure
from monitor.models import MonitorRunResult

logger = structlog.get_logger(__name__)

ALERT_TYPE = "NEW_AVAILABILITY_DETECTED"
ALERT_TIMEFRAME = "NEXT_90_DAYS"


def build_webhook_payload(run_result: MonitorRunResult, timestamp: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Build the outbound webhook body for a run with notable changes.

    Args:
        run_result: Run whose changed outcomes are reported
        timestamp: Payload timestamp, defaults to now (UTC)

    Returns:
        JSON-serializable payload dict
    """
    changed = run_result.changed_outcomes
    summary = run_result.summary

    changed_months = []
    for outcome in changed:
        comparison = outcome.comparison
        changed_months.append({
            "month": outcome.period.key,
            "name": outcome.period.display_name,
            "changePercentage": round(comparison.change_percentage, 3) if comparison else 0.0,
            "availabilityScore": round(comparison.availability_score, 3) if comparison else 0.0,
            "availabilityIncrease": comparison.availability_increase_pixels if comparison else 0,
            "significantChange": comparison.significant_change if comparison else False,
            "likelyNewAvailability": comparison.likely_new_availability if comparison else False,
        })

    return {
        "timestamp": (timestamp or datetime.utcnow()).isoformat(),
        "alert": ALERT_TYPE,
        "timeframe": ALERT_TIMEFRAME,
        "summary": {
            "totalMonthsChecked": summary.total_months_checked,
            "monthsWithChanges": summary.months_with_changes,
            "highestChangePercent": round(summary.highest_change_percent, 3),
            "totalAvailabilityIncrease": summary.total_availability_increase,
        },
        "changedMonths": changed_months,
        "message": (
            f"NEW SNOWMASS AVAILABILITY! {len(changed)} month(s) show new condo availability "
            f"in the next 90 days. Book now!"
        ),
    }


class WebhookNotifier:
    """Delivers alert payloads to a webhook endpoint."""

    def __init__(self, url: Optional[str], timeout: float = 10.0, headers: Optional[Dict[str, str]] = None):
        """
        Initialize the notifier.

        Args:
            url: Webhook endpoint; None disables delivery
            timeout: Request timeout in seconds
            headers: Extra request headers
        """
        self.url = url
        self.timeout = timeout
        self.headers = headers or {"Content-Type": "application/json"}
        self.logger = logger.bind(component="webhook_notifier")

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def _post(self, payload: Dict[str, Any]) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json=payload, headers=self.headers)
        except httpx.HTTPError as e:
            raise WebhookDeliveryFailure(f"Webhook request failed: {e}") from e

        if not response.is_success:
            raise WebhookDeliveryFailure(
                f"Webhook returned {response.status_code} {response.reason_phrase}"
            )

    async def deliver(self, payload: Dict[str, Any]) -> bool:
        """
        POST ``payload`` once.

        Returns:
            True only when the endpoint confirmed delivery with a 2xx response
        """
        if not self.enabled:
            self.logger.warning("Webhook URL not configured, skipping delivery")
            return False

        try:
            await self._post(payload)
        except WebhookDeliveryFailure as e:
            self.logger.error("Webhook notification failed", error=str(e))
            return False

        self.logger.info(
            "Webhook notification sent",
            changed_months=len(payload.get("changedMonths", []))
        )
        return True
