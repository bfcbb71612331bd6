"""
Main entry point for a single availability monitor run.
Runs every period once with the configured credentials and exits.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from monitor.errors import MonitorError
from monitor.orchestrator import build_orchestrator
from utilities.config import config
from utilities.logger import setup_logging, get_logger


async def main():
    """Run the monitor once."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    logger = get_logger(__name__)
    logger.info("Starting availability monitor run")

    try:
        orchestrator = build_orchestrator(config)
        result = await asyncio.wait_for(
            orchestrator.run(config.get_credentials()),
            timeout=config.run_timeout_seconds
        )
    except asyncio.TimeoutError:
        logger.error("Monitor run timed out", timeout=config.run_timeout_seconds)
        sys.exit(1)
    except MonitorError as e:
        logger.error("Fatal error occurred", error=str(e))
        sys.exit(1)

    for outcome in result.outcomes:
        logger.info("Period result", **outcome.to_summary_dict())

    logger.info(
        "Monitor run completed",
        request_id=result.request_id,
        webhook_sent=result.webhook_sent,
        **result.summary.to_wire()
    )


if __name__ == "__main__":
    asyncio.run(main())
