"""
Configuration loading for the scraper platform.

Settings come from ``config.yaml`` (path overridable with ``CONFIG_PATH``),
then selected environment variables, which may themselves come from a
``.env`` file.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_CRON = "0 */2 * * *"
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


class DatabaseConfig(BaseModel):
    events_path: str = "db/events.db"
    jobs_path: str = "db/jobs.db"


class HttpConfig(BaseModel):
    timeout: float = 15.0
    max_retries: int = 3
    base_delay: float = 1.0
    user_agent: str = "Mozilla/5.0 (compatible; KidsEventsBot/1.0)"


class QueueConfig(BaseModel):
    max_attempts: int = 3
    backoff_delay: float = 2.0
    completed_retention_hours: float = 24
    completed_retention_count: int = 1000
    failed_retention_days: float = 7
    prune_interval_minutes: int = 60

    def retention(self) -> Dict[str, float]:
        return {
            "completed_age": self.completed_retention_hours * 3600,
            "completed_count": self.completed_retention_count,
            "failed_age": self.failed_retention_days * 24 * 3600,
        }


class SourceSchedule(BaseModel):
    cron: str = DEFAULT_CRON
    enabled: bool = True


class SchedulerConfig(BaseModel):
    timezone: str = "Europe/Warsaw"
    default_cron: str = DEFAULT_CRON
    schedules: Dict[str, SourceSchedule] = Field(default_factory=dict)

    def schedule_for(self, source_name: str) -> Optional[str]:
        """Cron expression for a source, or ``None`` when it is disabled."""
        entry = self.schedules.get(source_name)
        if entry is None:
            return self.default_cron
        return entry.cron if entry.enabled else None


class WorkerConfig(BaseModel):
    concurrency: int = 5
    poll_interval: float = 1.0
    run_timeout: float = 300.0
    shutdown_grace: float = 30.0


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = LOG_FORMAT


class PlatformConfig(BaseModel):
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    workers: WorkerConfig = Field(default_factory=WorkerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _apply_env(cfg: PlatformConfig) -> PlatformConfig:
    if os.getenv("EVENTS_DB_PATH"):
        cfg.database.events_path = os.environ["EVENTS_DB_PATH"]
    if os.getenv("JOBS_DB_PATH"):
        cfg.database.jobs_path = os.environ["JOBS_DB_PATH"]
    if os.getenv("SCHEDULER_TIMEZONE"):
        cfg.scheduler.timezone = os.environ["SCHEDULER_TIMEZONE"]
    if os.getenv("WORKER_CONCURRENCY"):
        try:
            cfg.workers.concurrency = int(os.environ["WORKER_CONCURRENCY"])
        except ValueError:
            logger.warning(f"Ignoring non-numeric WORKER_CONCURRENCY={os.environ['WORKER_CONCURRENCY']!r}")
    if os.getenv("LOG_LEVEL"):
        cfg.logging.level = os.environ["LOG_LEVEL"].upper()
    if os.getenv("SCRAPER_USER_AGENT"):
        cfg.http.user_agent = os.environ["SCRAPER_USER_AGENT"]
    return cfg


def load_config(path: Optional[str] = None, use_dotenv: bool = True) -> PlatformConfig:
    """Load configuration from YAML file plus environment overrides."""
    if use_dotenv:
        load_dotenv()

    config_path = Path(path or os.getenv("CONFIG_PATH", "config.yaml"))
    data = {}
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    else:
        logger.debug(f"No config file at {config_path}, using defaults")

    return _apply_env(PlatformConfig.model_validate(data))


def setup_logging(cfg: LoggingConfig) -> None:
    logging.basicConfig(
        level=getattr(logging, cfg.level.upper(), logging.INFO),
        format=cfg.format,
    )
