"""
Configuration management using environment variables.
Handles all monitor settings with proper validation and defaults.
"""

from typing import Optional
from pydantic import Field, validator
from pydantic_settings import BaseSettings
from pathlib import Path

from monitor.models import (
    Credentials,
    DiffThresholds,
    NavigationSettings,
    RetryPolicy,
    ThrottleSettings,
)


class MonitorConfig(BaseSettings):
    """
    Configuration class for monitor settings.
    Uses pydantic BaseSettings for environment variable management.
    """

    # Credentials (the trigger request may override these)
    reservation_username: Optional[str] = Field(default=None, env="RESERVATION_USERNAME")
    reservation_password: Optional[str] = Field(default=None, env="RESERVATION_PASSWORD")

    # Site Configuration
    base_url: str = Field(default="https://osrcreservations.com", env="BASE_URL")
    login_path: str = Field(default="/login", env="LOGIN_PATH")
    availability_path: str = Field(default="/generalavailability", env="AVAILABILITY_PATH")

    # Browser Configuration
    headless: bool = Field(default=True, env="HEADLESS")
    viewport_width: int = Field(default=1200, env="VIEWPORT_WIDTH")
    viewport_height: int = Field(default=800, env="VIEWPORT_HEIGHT")
    page_load_timeout_ms: int = Field(default=20000, env="PAGE_LOAD_TIMEOUT_MS")
    selector_timeout_ms: int = Field(default=3000, env="SELECTOR_TIMEOUT_MS")
    post_login_delay_ms: int = Field(default=3000, env="POST_LOGIN_DELAY_MS")
    landing_settle_ms: int = Field(default=3000, env="LANDING_SETTLE_MS")

    # Navigation Configuration
    max_navigation_attempts: int = Field(default=12, env="MAX_NAVIGATION_ATTEMPTS")
    stability_poll_limit: int = Field(default=10, env="STABILITY_POLL_LIMIT")
    stability_poll_interval_ms: int = Field(default=500, env="STABILITY_POLL_INTERVAL_MS")
    stability_required_reads: int = Field(default=3, env="STABILITY_REQUIRED_READS")
    post_click_delay_ms: int = Field(default=3000, env="POST_CLICK_DELAY_MS")
    verification_settle_ms: int = Field(default=2000, env="VERIFICATION_SETTLE_MS")
    confidence_threshold: float = Field(default=0.8, env="CONFIDENCE_THRESHOLD")
    min_date_cells: int = Field(default=20, env="MIN_DATE_CELLS")
    diagnostics_dir: Optional[str] = Field(default="tmp/diagnostics", env="DIAGNOSTICS_DIR")

    # Capture Retry Configuration
    capture_retry_attempts: int = Field(default=3, env="CAPTURE_RETRY_ATTEMPTS")
    retry_base_delay_ms: int = Field(default=1000, env="RETRY_BASE_DELAY_MS")
    retry_max_delay_ms: int = Field(default=8000, env="RETRY_MAX_DELAY_MS")

    # Visual Diff Thresholds
    pixel_distance_threshold: float = Field(default=30.0, env="PIXEL_DISTANCE_THRESHOLD")
    significant_change_percent: float = Field(default=2.0, env="SIGNIFICANT_CHANGE_PERCENT")
    availability_score_threshold: float = Field(default=0.01, env="AVAILABILITY_SCORE_THRESHOLD")

    # Monitoring Horizon
    horizon_days: int = Field(default=90, env="HORIZON_DAYS")

    # Storage Configuration
    storage_backend: str = Field(default="file", env="STORAGE_BACKEND")
    baseline_dir: str = Field(default="tmp/baselines", env="BASELINE_DIR")
    notification_log_path: str = Field(default="tmp/notifications.json", env="NOTIFICATION_LOG_PATH")
    mongodb_url: str = Field(default="mongodb://localhost:27017", env="MONGODB_URL")
    mongodb_database: str = Field(default="availability_monitor", env="MONGODB_DATABASE")
    baseline_collection: str = Field(default="baselines", env="BASELINE_COLLECTION")
    notification_collection: str = Field(default="notifications", env="NOTIFICATION_COLLECTION")

    # Notification Configuration
    webhook_url: Optional[str] = Field(default=None, env="WEBHOOK_URL")
    webhook_timeout: int = Field(default=10, env="WEBHOOK_TIMEOUT")
    max_daily_notifications: int = Field(default=2, env="MAX_DAILY_NOTIFICATIONS")
    notification_retention_days: int = Field(default=7, env="NOTIFICATION_RETENTION_DAYS")

    # Run Control
    run_timeout_seconds: int = Field(default=900, env="RUN_TIMEOUT_SECONDS")
    schedule_cron: str = Field(default="*/30 * * * *", env="SCHEDULE_CRON")
    timezone: str = Field(default="UTC", env="TIMEZONE")

    # Logging Configuration
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: str = Field(default="json", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default="logs/monitor.log", env="LOG_FILE")

    # Development
    debug: bool = Field(default=False, env="DEBUG")

    @validator('max_navigation_attempts')
    def validate_navigation_attempts(cls, v):
        """Ensure the navigation attempt budget is reasonable."""
        if v < 1 or v > 48:
            raise ValueError('max_navigation_attempts must be between 1 and 48')
        return v

    @validator('capture_retry_attempts')
    def validate_retry_attempts(cls, v):
        """Ensure retry attempts is reasonable."""
        if v < 1 or v > 10:
            raise ValueError('capture_retry_attempts must be between 1 and 10')
        return v

    @validator('confidence_threshold')
    def validate_confidence_threshold(cls, v):
        """Ensure confidence threshold is a probability."""
        if v < 0 or v > 1:
            raise ValueError('confidence_threshold must be between 0 and 1')
        return v

    @validator('horizon_days')
    def validate_horizon(cls, v):
        """Ensure the forward horizon is reasonable."""
        if v < 1 or v > 366:
            raise ValueError('horizon_days must be between 1 and 366')
        return v

    @validator('max_daily_notifications')
    def validate_daily_notifications(cls, v):
        """Ensure the daily notification budget is non-negative."""
        if v < 0:
            raise ValueError('max_daily_notifications cannot be negative')
        return v

    @validator('storage_backend')
    def validate_storage_backend(cls, v):
        """Ensure storage backend is supported."""
        valid_backends = ['file', 'mongodb']
        if v.lower() not in valid_backends:
            raise ValueError(f'storage_backend must be one of: {valid_backends}')
        return v.lower()

    @validator('log_level')
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @validator('log_format')
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra fields from .env

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None

    def get_baseline_dir(self) -> Path:
        """Get baseline directory as Path object."""
        return Path(self.baseline_dir)

    def get_notification_log_path(self) -> Path:
        """Get notification log path as Path object."""
        return Path(self.notification_log_path)

    def get_login_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.login_path}"

    def get_availability_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.availability_path}"

    def get_credentials(self) -> Credentials:
        """Credentials configured through the environment (may be empty)."""
        return Credentials(
            username=self.reservation_username or "",
            password=self.reservation_password or ""
        )

    def get_diff_thresholds(self) -> DiffThresholds:
        return DiffThresholds(
            pixel_distance=self.pixel_distance_threshold,
            significant_change_percent=self.significant_change_percent,
            availability_score=self.availability_score_threshold
        )

    def get_navigation_settings(self) -> NavigationSettings:
        return NavigationSettings(
            max_attempts=self.max_navigation_attempts,
            stability_poll_limit=self.stability_poll_limit,
            stability_poll_interval_ms=self.stability_poll_interval_ms,
            stability_required_reads=self.stability_required_reads,
            post_click_delay_ms=self.post_click_delay_ms,
            verification_settle_ms=self.verification_settle_ms,
            selector_timeout_ms=self.selector_timeout_ms,
            confidence_threshold=self.confidence_threshold,
            min_date_cells=self.min_date_cells,
            diagnostics_dir=self.diagnostics_dir or None
        )

    def get_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.capture_retry_attempts,
            base_delay_ms=self.retry_base_delay_ms,
            max_delay_ms=self.retry_max_delay_ms
        )

    def get_throttle_settings(self) -> ThrottleSettings:
        return ThrottleSettings(
            max_daily_notifications=self.max_daily_notifications,
            retention_days=self.notification_retention_days
        )

    def get_user_agent(self) -> str:
        """Get user agent string for outbound webhook requests."""
        return "Availability-Monitor/1.0.0"

    def get_headers(self) -> dict:
        """Get default headers for webhook requests."""
        return {
            "User-Agent": self.get_user_agent(),
            "Content-Type": "application/json",
        }


# Global configuration instance
config = MonitorConfig()
