"""
Scheduler infrastructure for running periodic tasks.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from croniter import croniter


logger = logging.getLogger(__name__)


class Scheduler:
    """Async trigger wrapper around APScheduler.

    Only triggers live here. Anything that must survive a restart is put on
    the durable job queue by the triggered callback, and the triggers
    themselves are re-declared from configuration on every start.
    """

    def __init__(self, timezone: str = "Europe/Warsaw", misfire_grace_time: int = 60):
        job_defaults = {
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": misfire_grace_time,  # seconds
        }
        self.timezone = timezone
        self._scheduler = AsyncIOScheduler(job_defaults=job_defaults, timezone=timezone)
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Start the scheduler."""
        if not self._started:
            self._scheduler.start()
            self._started = True
            logger.info(f"Scheduler started ({self.timezone})")

    async def stop(self) -> None:
        """Stop the scheduler."""
        if self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False
            logger.info("Scheduler stopped")

    def add_interval_job(
        self,
        func: Callable,
        seconds: Optional[int] = None,
        minutes: Optional[int] = None,
        hours: Optional[int] = None,
        job_id: Optional[str] = None,
        **kwargs
    ) -> None:
        """Add a job that runs at regular intervals."""
        trigger_kwargs = {}
        if seconds is not None:
            trigger_kwargs["seconds"] = seconds
        if minutes is not None:
            trigger_kwargs["minutes"] = minutes
        if hours is not None:
            trigger_kwargs["hours"] = hours

        if not trigger_kwargs:
            raise ValueError("At least one of seconds, minutes, or hours must be specified")

        self._scheduler.add_job(
            func,
            trigger=IntervalTrigger(**trigger_kwargs),
            id=job_id,
            replace_existing=True,
            **kwargs
        )
        logger.info(f"Added interval job: {job_id or func.__name__}")

    def add_cron_job(
        self,
        func: Callable,
        cron_expression: str,
        job_id: Optional[str] = None,
        **kwargs
    ) -> None:
        """Add (or replace) a job that runs on a five-field cron schedule."""
        trigger = self.cron_trigger(cron_expression)
        self._scheduler.add_job(
            func,
            trigger=trigger,
            id=job_id,
            replace_existing=True,
            **kwargs
        )
        logger.info(f"Added cron job: {job_id or func.__name__} ({cron_expression})")

    def cron_trigger(self, cron_expression: str) -> CronTrigger:
        if not self.validate_cron_expression(cron_expression):
            raise ValueError(f"Invalid cron expression: {cron_expression}")

        parts = cron_expression.split()
        if len(parts) != 5:
            raise ValueError("Cron expression must have 5 parts: minute hour day month day_of_week")

        minute, hour, day, month, day_of_week = parts
        return CronTrigger(
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=day_of_week,
            timezone=self.timezone,
        )

    @staticmethod
    def validate_cron_expression(cron_expression: str) -> bool:
        """Validate cron expression using croniter."""
        return croniter.is_valid(cron_expression)

    @staticmethod
    def next_run(cron_expression: str, base: datetime) -> datetime:
        return croniter(cron_expression, base).get_next(datetime)

    def has_job(self, job_id: str) -> bool:
        return self._scheduler.get_job(job_id) is not None

    def remove_job(self, job_id: str) -> None:
        """Remove a job by ID."""
        self._scheduler.remove_job(job_id)
        logger.info(f"Removed job: {job_id}")

    def list_jobs(self) -> Dict[str, Any]:
        """List all scheduled jobs."""
        jobs = {}
        for job in self._scheduler.get_jobs():
            jobs[job.id] = {
                "name": job.name,
                "next_run": getattr(job, "next_run_time", None),
                "trigger": str(job.trigger),
            }
        return jobs

    def get_health_status(self) -> Dict[str, Any]:
        jobs = self.list_jobs()
        upcoming = [j["next_run"] for j in jobs.values() if j["next_run"] is not None]
        return {
            "running": self._started,
            "timezone": self.timezone,
            "jobs": len(jobs),
            "next_run": min(upcoming) if upcoming else None,
        }
