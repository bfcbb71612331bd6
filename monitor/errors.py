"""
Exception hierarchy for the availability monitor.

Per-period errors are caught by the orchestrator and recorded in the run
result; only configuration, acquisition and authentication errors abort a run.
"""

from typing import Optional


class MonitorError(Exception):
    """Base class for all monitor errors."""


class ConfigurationError(MonitorError):
    """Required configuration (credentials) is missing."""


class CapabilityError(MonitorError):
    """A browser automation primitive failed."""


class CapabilityTimeoutError(CapabilityError):
    """A browser automation primitive timed out."""


class CapabilityUnavailableError(CapabilityError):
    """The browser could not be acquired or the session was lost."""


class AuthenticationError(MonitorError):
    """The login flow could not be completed."""


class NavigationError(MonitorError):
    """The calendar could not be driven to the target period."""


class NavigationDetectionFailure(NavigationError):
    """No lookup strategy could locate the current period on the page."""


class NavigationControlNotFound(NavigationError):
    """No visible navigation control exists for the required direction."""


class NavigationVerificationFailure(NavigationError):
    """The attempt budget ran out and no signal confirms the target period."""


class CaptureFailure(MonitorError):
    """Capturing a period failed on every retry attempt."""

    def __init__(self, message: str, attempts: int, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.attempts = attempts
        self.cause = cause


class StorageError(MonitorError):
    """Baseline or notification log persistence failed."""


class WebhookDeliveryFailure(MonitorError):
    """The outbound webhook was not delivered."""
