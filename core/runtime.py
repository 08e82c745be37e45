"""
Wiring of the platform components from a :class:`PlatformConfig`.
"""

import logging
from typing import Iterable, Optional

from sinks.memory_store import InMemoryEventStore
from sinks.sqlite_store import SqliteEventStore

from .config import PlatformConfig
from .gateway import EventGateway
from .infra.http import HttpClient
from .infra.job_queue import JobQueue
from .infra.scheduler import Scheduler
from .interfaces import EventStore, PageFetcher
from .jobs import JobScheduler
from .orchestrator import Orchestrator, SourceRegistry
from .plugin_loader import build_strategies

logger = logging.getLogger(__name__)


class Platform:
    """Owns the long-lived resources: HTTP session, event store and job queue.

    Use as an async context manager; everything opened on enter is closed on
    exit, in reverse order.
    """

    def __init__(
        self,
        cfg: PlatformConfig,
        dry_run: bool = False,
        fetcher: Optional[PageFetcher] = None,
        store: Optional[EventStore] = None,
        sources: Optional[Iterable[str]] = None,
    ):
        self.cfg = cfg
        self.http = fetcher or HttpClient(
            timeout=cfg.http.timeout,
            max_retries=cfg.http.max_retries,
            base_delay=cfg.http.base_delay,
            user_agent=cfg.http.user_agent,
        )
        if store is not None:
            self.store = store
        elif dry_run:
            self.store = InMemoryEventStore()
        else:
            self.store = SqliteEventStore(cfg.database.events_path)

        self.registry = SourceRegistry(build_strategies(self.http, sources))
        self.gateway = EventGateway(self.store)
        self.orchestrator = Orchestrator(
            self.registry,
            self.gateway,
            run_timeout=cfg.workers.run_timeout,
            concurrency=cfg.workers.concurrency,
        )
        self.queue = JobQueue(
            cfg.database.jobs_path,
            max_attempts=cfg.queue.max_attempts,
            backoff_delay=cfg.queue.backoff_delay,
        )

    def job_scheduler(self) -> JobScheduler:
        """Build the scheduler facade and install the recurring schedules from config."""
        jobs = JobScheduler(
            self.queue,
            self.orchestrator,
            scheduler=Scheduler(timezone=self.cfg.scheduler.timezone),
            concurrency=self.cfg.workers.concurrency,
            poll_interval=self.cfg.workers.poll_interval,
            run_timeout=self.cfg.workers.run_timeout,
            prune_interval_minutes=self.cfg.queue.prune_interval_minutes,
            retention=self.cfg.queue.retention(),
        )
        for name in self.registry.names():
            cron = self.cfg.scheduler.schedule_for(name)
            if cron is None:
                logger.info(f"Source {name} is disabled in config, not scheduling")
                continue
            jobs.schedule(cron, name)
        return jobs

    async def __aenter__(self) -> "Platform":
        await self.store.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.queue.close()
        await self.store.close()
        close = getattr(self.http, "close", None)
        if close is not None:
            await close()
