"""
Harvest Scheduler - Cron and On-Demand Execution

Manages scheduled and manual harvest execution using APScheduler.

Features:
- Cron-based scheduling (configurable via EXTRACT_SCHEDULE_CRON)
- RUN_ONCE mode for immediate execution
- Redis event publishing after a completed harvest
- Graceful shutdown handling

Usage:
    # Scheduled mode (default)
    python -m apps.harvester

    # Run once and exit
    RUN_ONCE=true python -m apps.harvester
"""

import asyncio
import logging
import os
import signal
import sys
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from apps.harvester.harvest_job import run_harvest
from apps.harvester.publisher import publish_run_event
from utils.config import Settings, settings as default_settings
from utils.logging import setup_logging
from utils.schemas import RunSummary

logger = logging.getLogger(__name__)


class HarvestScheduler:
    """
    Scheduler for periodic or on-demand harvest runs.

    Handles:
    - APScheduler setup and management
    - Cron-based scheduling
    - RUN_ONCE immediate execution
    - Signal handling for graceful shutdown
    """

    def __init__(self, run_once: bool = False, config: Optional[Settings] = None) -> None:
        """
        Args:
            run_once: If True, run one harvest and exit
            config: Settings, defaults to the global settings
        """
        self.run_once = run_once
        self.config = config or default_settings
        self.scheduler: AsyncIOScheduler | None = None
        self.shutdown_event = asyncio.Event()
        self.last_summary: RunSummary | None = None

        logger.info(
            "HarvestScheduler initialized",
            extra={"run_once": run_once, "cron_schedule": self.config.EXTRACT_SCHEDULE_CRON},
        )

    async def execute_harvest(self) -> RunSummary:
        """Run one harvest and announce it."""
        logger.info("Starting harvest execution")

        try:
            summary = await run_harvest(self.config)
            self.last_summary = summary

            await publish_run_event(summary, self.config.OUTPUT_DIR, self.config)

            logger.info(
                "Total records successfully persisted: %d",
                summary.records_persisted,
                extra={"output_dir": self.config.OUTPUT_DIR},
            )
            return summary

        except Exception as e:
            logger.error("Harvest execution failed", extra={"error": str(e)}, exc_info=True)
            raise

        finally:
            if self.run_once:
                logger.info("RUN_ONCE mode: signaling shutdown")
                self.shutdown_event.set()

    def setup_signal_handlers(self) -> None:
        """Setup handlers for graceful shutdown on SIGINT/SIGTERM."""

        def signal_handler(signum: int, frame: object) -> None:
            logger.info(f"Received signal {signum}, initiating graceful shutdown")
            self.shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def start(self) -> None:
        """
        Start scheduler or execute once.

        In scheduled mode, runs continuously until shutdown signal.
        In RUN_ONCE mode, executes immediately and exits.
        """
        self.setup_signal_handlers()

        if self.run_once:
            logger.info("Running in RUN_ONCE mode")
            await self.execute_harvest()
            return

        logger.info("Running in scheduled mode")

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.execute_harvest,
            trigger=CronTrigger.from_crontab(self.config.EXTRACT_SCHEDULE_CRON),
            id="harvest_job",
            name="Periodic Flight Harvest",
            replace_existing=True,
            max_instances=1,
        )
        self.scheduler.start()

        job = self.scheduler.get_job("harvest_job")
        next_run = getattr(job, "next_run_time", None)
        logger.info(
            "Scheduled harvest job",
            extra={
                "schedule": self.config.EXTRACT_SCHEDULE_CRON,
                "next_run": str(next_run) if next_run is not None else None,
            },
        )

        await self.shutdown_event.wait()

        logger.info("Shutting down scheduler")
        if self.scheduler:
            self.scheduler.shutdown(wait=True)
        logger.info("Scheduler shutdown complete")


async def main() -> None:
    """Main entry point for scheduler."""
    setup_logging(
        level=default_settings.LOG_LEVEL,
        format_type=default_settings.LOG_FORMAT,
        debug=default_settings.XC_DEBUG,
    )

    run_once = os.getenv("RUN_ONCE", "false").lower() in ("true", "1", "yes")
    scheduler = HarvestScheduler(run_once=run_once)

    try:
        await scheduler.start()
    except Exception as e:
        logger.error("Scheduler failed", extra={"error": str(e)}, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
