"""
Worker pool and scheduling facade on top of the durable job queue.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .errors import UnknownSourceError
from .infra.job_queue import JobQueue
from .infra.scheduler import Scheduler
from .models import Job, ScraperRunResult
from .orchestrator import Orchestrator

logger = logging.getLogger(__name__)

# extra slack past the run timeout before an active job counts as orphaned
RECOVERY_GRACE = 60.0

CompleteCallback = Callable[[Job, ScraperRunResult], Any]
FailCallback = Callable[[Job, BaseException], Any]


def schedule_key(scraper_name: str) -> str:
    return f"scheduled-{scraper_name}"


async def _invoke(callback: Callable, *args) -> None:
    try:
        outcome = callback(*args)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception as e:
        logger.error(f"Job callback {getattr(callback, '__name__', callback)!r} raised: {e}")


class WorkerPool:
    """N asyncio workers pulling jobs from a :class:`JobQueue`.

    The pool size is the concurrency ceiling; jobs beyond it simply stay
    queued. Each claimed job runs one source through the orchestrator under
    ``run_timeout``.
    """

    def __init__(
        self,
        queue: JobQueue,
        orchestrator: Orchestrator,
        concurrency: int = 5,
        poll_interval: float = 1.0,
        run_timeout: float = 300.0,
    ):
        self.queue = queue
        self.orchestrator = orchestrator
        self.concurrency = max(1, concurrency)
        self.poll_interval = poll_interval
        self.run_timeout = run_timeout
        self.complete_callbacks: List[CompleteCallback] = []
        self.fail_callbacks: List[FailCallback] = []
        self._tasks: List[asyncio.Task] = []
        self._active: Dict[str, Job] = {}
        self._stopping = asyncio.Event()
        self._wake = asyncio.Event()

    @property
    def running(self) -> bool:
        return bool(self._tasks) and not self._stopping.is_set()

    @property
    def active_jobs(self) -> List[Job]:
        return list(self._active.values())

    def start(self) -> None:
        if self._tasks:
            return
        self._stopping.clear()
        self._tasks = [
            asyncio.create_task(self._worker(i), name=f"worker-{i}")
            for i in range(self.concurrency)
        ]
        logger.info(f"Started {self.concurrency} workers")

    def notify(self) -> None:
        """Wake idle workers, e.g. right after an enqueue."""
        self._wake.set()

    async def _idle(self) -> None:
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            pass
        self._wake.clear()

    async def _worker(self, index: int) -> None:
        while not self._stopping.is_set():
            try:
                await self.queue.promote_due()
                job = await self.queue.claim()
            except Exception as e:
                logger.error(f"worker-{index} could not poll the queue: {e}")
                await self._idle()
                continue

            if job is None:
                await self._idle()
                continue
            try:
                await self.process(job)
            except Exception as e:
                logger.error(f"worker-{index} could not record job {job.id} ({job.scraper_name}): {e!r}")

    async def process(self, job: Job) -> Job:
        """Run one claimed job to completion or failure and record the outcome."""
        self._active[job.id] = job
        try:
            logger.info(f"Processing job {job.id}: {job.scraper_name} (attempt {job.attempts}/{job.max_attempts})")
            result = await asyncio.wait_for(
                self.orchestrator.run_one(job.scraper_name, job.options),
                timeout=self.run_timeout,
            )
        except asyncio.CancelledError:
            await asyncio.shield(self.queue.release(job))
            raise
        except UnknownSourceError as e:
            return await self._failed(job, str(e), e, retry=False)
        except asyncio.TimeoutError as e:
            return await self._failed(job, f"timed out after {self.run_timeout:.0f}s", e)
        except Exception as e:
            return await self._failed(job, str(e) or type(e).__name__, e)
        finally:
            self._active.pop(job.id, None)

        updated = await self._record(job, self.queue.complete(job, result.model_dump(mode="json")))
        for callback in self.complete_callbacks:
            await _invoke(callback, updated, result)
        return updated

    async def _failed(self, job: Job, message: str, error: BaseException, retry: bool = True) -> Job:
        updated = await self._record(job, self.queue.fail(job, message, retry=retry))
        for callback in self.fail_callbacks:
            await _invoke(callback, updated, error)
        return updated

    async def _record(self, job: Job, write: Awaitable[Job]) -> Job:
        """Await an outcome write; if it fails, hand the job back so it is not stuck active."""
        try:
            return await write
        except Exception:
            try:
                await self.queue.release(job)
            except Exception as e:
                logger.error(f"Could not release job {job.id} after a failed write: {e}")
            raise

    async def drain(self, grace: float = 30.0) -> None:
        """Stop claiming; give running jobs ``grace`` seconds, then cancel and release them."""
        if not self._tasks:
            return
        self._stopping.set()
        self._wake.set()

        done, pending = await asyncio.wait(self._tasks, timeout=grace)
        if pending:
            logger.warning(f"Cancelling {len(pending)} workers still busy after {grace:.0f}s")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks = []
        logger.info("Worker pool drained")


class JobScheduler:
    """Facade wiring queue, worker pool and cron triggers together."""

    def __init__(
        self,
        queue: JobQueue,
        orchestrator: Orchestrator,
        scheduler: Optional[Scheduler] = None,
        concurrency: int = 5,
        poll_interval: float = 1.0,
        run_timeout: float = 300.0,
        prune_interval_minutes: int = 60,
        retention: Optional[Dict[str, float]] = None,
    ):
        self.queue = queue
        self.orchestrator = orchestrator
        self.scheduler = scheduler or Scheduler()
        self.pool = WorkerPool(
            queue,
            orchestrator,
            concurrency=concurrency,
            poll_interval=poll_interval,
            run_timeout=run_timeout,
        )
        self.prune_interval_minutes = prune_interval_minutes
        self.retention = retention or {}
        self.schedules: Dict[str, str] = {}

    async def enqueue(
        self,
        scraper_name: str,
        options: Optional[Dict[str, Any]] = None,
        delay: float = 0,
        key: Optional[str] = None,
    ) -> Job:
        job = await self.queue.enqueue(scraper_name, options, key=key, delay=delay)
        self.pool.notify()
        return job

    def schedule(self, cron_expression: str, scraper_name: str, options: Optional[Dict[str, Any]] = None) -> str:
        """Install (or replace) the recurring trigger for a source; returns its id."""
        job_id = schedule_key(scraper_name)
        self.scheduler.add_cron_job(
            self._fire,
            cron_expression,
            job_id=job_id,
            args=[scraper_name, cron_expression, options or {}],
            name=f"{scraper_name} ({cron_expression})",
        )
        self.schedules[scraper_name] = cron_expression
        return job_id

    def unschedule(self, scraper_name: str) -> None:
        job_id = schedule_key(scraper_name)
        if self.scheduler.has_job(job_id):
            self.scheduler.remove_job(job_id)
        self.schedules.pop(scraper_name, None)

    async def _fire(self, scraper_name: str, cron_expression: str, options: Dict[str, Any]) -> None:
        job = await self.queue.enqueue(
            scraper_name,
            options,
            key=schedule_key(scraper_name),
            repeat_cron=cron_expression,
        )
        logger.info(f"Schedule fired for {scraper_name}: job {job.id} ({job.state.value})")
        self.pool.notify()

    def on_complete(self, callback: CompleteCallback) -> None:
        self.pool.complete_callbacks.append(callback)

    def on_fail(self, callback: FailCallback) -> None:
        self.pool.fail_callbacks.append(callback)

    async def prune(self) -> int:
        return await self.queue.prune(**self.retention)

    async def start(self) -> None:
        await self.queue.connect()
        await self.queue.recover(stale_after=self.pool.run_timeout + RECOVERY_GRACE)
        self.scheduler.add_interval_job(
            self.prune,
            minutes=self.prune_interval_minutes,
            job_id="prune-jobs",
        )
        await self.scheduler.start()
        self.pool.start()
        logger.info(f"Job scheduler running with {len(self.schedules)} recurring schedules")

    async def stop(self, grace: float = 30.0) -> None:
        await self.scheduler.stop()
        await self.pool.drain(grace)
        await self.queue.close()
        logger.info("Job scheduler stopped")
