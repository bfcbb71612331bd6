"""
Structured logging for the availability monitor using structlog.
Provides JSON or console output, optional file logging and a run-scoped logger.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    debug: bool = False
) -> None:
    """
    Set up structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        log_file: Optional log file path
        debug: Add call-site parameters to every event
    """
    level = getattr(logging, log_level.upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(structlog.processors.CallsiteParameterAdder())

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter('%(message)s'))
        logging.getLogger().addHandler(file_handler)

    structlog.get_logger(__name__).info(
        "Logging system initialized",
        level=log_level,
        format=log_format,
        file=str(log_file) if log_file else None,
        debug=debug
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class MonitorLogger:
    """
    Run-scoped logger: every event carries the request id of the run.
    """

    def __init__(self, request_id: str, name: str = "monitor.run"):
        self.logger = structlog.get_logger(name).bind(request_id=request_id)

    def log_run_start(self, periods: int) -> None:
        self.logger.info("Monitor run started", periods=periods)

    def log_period_result(
        self,
        period_key: str,
        status: str,
        has_baseline: bool,
        change_percentage: Optional[float] = None,
        should_notify: bool = False
    ) -> None:
        """Log the outcome of one period."""
        level = "info" if status == "success" else "warning"
        getattr(self.logger, level)(
            "Period processed",
            period=period_key,
            status=status,
            has_baseline=has_baseline,
            change_percentage=round(change_percentage, 3) if change_percentage is not None else None,
            should_notify=should_notify
        )

    def log_retry(self, period_key: str, attempt: int, max_attempts: int, delay: float, error: str) -> None:
        self.logger.warning(
            "Retrying capture",
            period=period_key,
            attempt=attempt,
            max_attempts=max_attempts,
            delay_seconds=delay,
            error=error
        )

    def log_error(self, error: str, period_key: Optional[str] = None) -> None:
        self.logger.error("Monitor error occurred", error=error, period=period_key)

    def log_run_complete(self, checked: int, changed: int, failed: int, duration_seconds: float, webhook_sent: bool) -> None:
        """Log run completion."""
        self.logger.info(
            "Monitor run completed",
            months_checked=checked,
            months_with_changes=changed,
            months_failed=failed,
            duration_seconds=round(duration_seconds, 2),
            webhook_sent=webhook_sent
        )
