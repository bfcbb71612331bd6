"""
Scheduled monitor runs with APScheduler.

This module provides:
- Cron-scheduled monitor runs (single instance at a time)
- Run-once mode
- Graceful shutdown on SIGINT/SIGTERM
"""

import asyncio
import signal
import sys
from datetime import datetime
from typing import Optional

import structlog
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MAX_INSTANCES
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from monitor.errors import MonitorError
from monitor.models import Credentials, MonitorRunResult
from monitor.orchestrator import MonitorOrchestrator

logger = structlog.get_logger(__name__)

JOB_ID = "availability_monitor"


class MonitorScheduler:
    """Runs the monitor on a cron schedule."""

    def __init__(
        self,
        orchestrator: MonitorOrchestrator,
        credentials: Credentials,
        schedule_cron: str = "*/30 * * * *",
        timezone: str = "UTC",
        run_timeout_seconds: int = 900,
        install_signal_handlers: bool = True
    ):
        """
        Initialize the scheduler.

        Args:
            orchestrator: Orchestrator executing each run
            credentials: Site credentials used for every run
            schedule_cron: Five-field crontab expression
            timezone: Timezone of the cron expression
            run_timeout_seconds: Wall-clock bound for a single run
            install_signal_handlers: Register SIGINT/SIGTERM handlers
        """
        self.orchestrator = orchestrator
        self.credentials = credentials
        self.schedule_cron = schedule_cron
        self.timezone = timezone
        self.run_timeout_seconds = run_timeout_seconds
        self.scheduler = AsyncIOScheduler(timezone=timezone)
        self.logger = logger.bind(component="monitor_scheduler")
        self.last_result: Optional[MonitorRunResult] = None

        if install_signal_handlers:
            self._setup_signal_handlers()
        self._setup_scheduler_listeners()

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            self.logger.info(f"Received signal {signum}, shutting down gracefully...")
            self.stop()
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _setup_scheduler_listeners(self) -> None:
        """Setup scheduler event listeners."""
        def job_executed_listener(event):
            self.logger.info("Job executed successfully", job_id=event.job_id)

        def job_error_listener(event):
            self.logger.error("Job execution failed", job_id=event.job_id, error=str(event.exception))

        def job_skipped_listener(event):
            self.logger.warning("Previous run still active, skipping scheduled run", job_id=event.job_id)

        self.scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)
        self.scheduler.add_listener(job_skipped_listener, EVENT_JOB_MAX_INSTANCES)

    def add_jobs(self) -> None:
        """Register the monitor job."""
        self.scheduler.add_job(
            func=self.run_job,
            trigger=CronTrigger.from_crontab(self.schedule_cron, timezone=self.timezone),
            id=JOB_ID,
            name="Availability Monitor",
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self.logger.info("Added monitor job", cron=self.schedule_cron, timezone=self.timezone)

    async def run_job(self) -> Optional[MonitorRunResult]:
        """Execute one monitor run bounded by the run timeout."""
        request_id = f"scheduled-{int(datetime.utcnow().timestamp() * 1000)}"
        try:
            result = await asyncio.wait_for(
                self.orchestrator.run(self.credentials, request_id=request_id),
                timeout=self.run_timeout_seconds
            )
        except asyncio.TimeoutError:
            self.logger.error("Monitor run timed out", request_id=request_id, timeout=self.run_timeout_seconds)
            return None
        except MonitorError as e:
            self.logger.error("Monitor run failed", request_id=request_id, error=str(e))
            return None

        self.last_result = result
        self.logger.info(
            "Scheduled run finished",
            request_id=request_id,
            months_checked=result.summary.total_months_checked,
            months_with_changes=result.summary.months_with_changes,
            webhook_sent=result.webhook_sent
        )
        return result

    async def start(self, run_once: bool = False) -> None:
        """Start the scheduler, or perform a single run when ``run_once`` is set."""
        if run_once:
            self.logger.info("Starting monitor in RUN ONCE MODE")
            await self.run_job()
            self.logger.info("Run once mode completed. Exiting...")
            return

        self.add_jobs()
        self.scheduler.start()
        self.logger.info("Monitor scheduler started", cron=self.schedule_cron, timezone=self.timezone)

        try:
            while self.scheduler.running:
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            self.logger.info("Scheduler loop cancelled, shutting down...")
            self.stop()
            raise

    def stop(self) -> None:
        """Stop the scheduler."""
        self.logger.info("Stopping monitor scheduler")
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.logger.info("Monitor scheduler stopped")
