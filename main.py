"""
Main entry point: long-running worker with recurring source schedules.
"""

import asyncio
import logging
import os
import signal
import sys

from dotenv import load_dotenv

# Add project root to PYTHONPATH so imports work when running this script directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.config import load_config, setup_logging
from core.models import Job, JobState, ScraperRunResult
from core.runtime import Platform


async def main():
    """Start workers and schedules; drain on SIGINT/SIGTERM."""
    load_dotenv()
    cfg = load_config()
    setup_logging(cfg.logging)
    logger = logging.getLogger(__name__)

    async with Platform(cfg) as platform:
        logger.info(f"Discovered {len(platform.registry)} sources:")
        for name in platform.registry.names():
            logger.info(f"  - {name}: {cfg.scheduler.schedule_for(name) or 'disabled'}")

        jobs = platform.job_scheduler()

        def job_completed(job: Job, result: ScraperRunResult):
            logger.info(
                f"✅ {job.scraper_name}: {result.created} created, "
                f"{result.updated} updated, {result.failed} failed"
            )

        def job_failed(job: Job, error: BaseException):
            if job.state is JobState.FAILED:
                logger.error(f"❌ {job.scraper_name} gave up after {job.attempts} attempts: {error}")

        jobs.on_complete(job_completed)
        jobs.on_fail(job_failed)

        # Setup graceful shutdown
        stop_event = asyncio.Event()

        def signal_handler():
            logger.info("Received shutdown signal")
            stop_event.set()

        for sig in (signal.SIGTERM, signal.SIGINT):
            asyncio.get_running_loop().add_signal_handler(sig, signal_handler)

        await jobs.start()
        try:
            await stop_event.wait()
        finally:
            logger.info("Shutting down...")
            await jobs.stop(grace=cfg.workers.shutdown_grace)

    logger.info("Shutdown complete")


if __name__ == "__main__":
    asyncio.run(main())
