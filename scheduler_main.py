"""
Entry point for the scheduled availability monitor.

Usage: python scheduler_main.py [--once]
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

import structlog
from utilities.logger import setup_logging
from utilities.config import config
from monitor.orchestrator import build_orchestrator
from monitor.scheduler_service import MonitorScheduler


async def main():
    """Start the scheduler, or run once with --once."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger = structlog.get_logger(__name__)

    run_once = False
    if len(sys.argv) > 1:
        if sys.argv[1] == '--once':
            run_once = True
        else:
            logger.error("Unknown argument", argument=sys.argv[1], usage="python scheduler_main.py [--once]")
            sys.exit(1)

    credentials = config.get_credentials()
    if not credentials.is_complete:
        logger.error("RESERVATION_USERNAME and RESERVATION_PASSWORD must be set")
        sys.exit(1)

    scheduler = MonitorScheduler(
        orchestrator=build_orchestrator(config),
        credentials=credentials,
        schedule_cron=config.schedule_cron,
        timezone=config.timezone,
        run_timeout_seconds=config.run_timeout_seconds
    )

    logger.info(
        "Monitor scheduler configured",
        mode="once" if run_once else "daemon",
        cron=config.schedule_cron,
        timezone=config.timezone,
        storage_backend=config.storage_backend
    )

    try:
        await scheduler.start(run_once=run_once)
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
        scheduler.stop()


if __name__ == "__main__":
    asyncio.run(main())
