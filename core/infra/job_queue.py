"""
Durable job queue backed by SQLite.

Jobs move through ``scheduled -> waiting -> active -> completed | failed``.
A failed attempt goes back to ``waiting`` with an exponentially growing
``run_at`` until ``max_attempts`` is used up. Claiming is a single
``UPDATE ... RETURNING`` statement, so concurrent workers (and processes)
never receive the same job.
"""

import asyncio
import json
import logging
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from core.models import LIVE_JOB_STATES, Job, JobState, utcnow

from .db import Database

logger = logging.getLogger(__name__)

_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
_LIVE = tuple(state.value for state in LIVE_JOB_STATES)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS jobs (
        id TEXT PRIMARY KEY,
        key TEXT,
        scraper_name TEXT NOT NULL,
        options TEXT NOT NULL DEFAULT '{}',
        state TEXT NOT NULL,
        attempts INTEGER NOT NULL DEFAULT 0,
        max_attempts INTEGER NOT NULL,
        backoff_delay REAL NOT NULL,
        run_at TEXT NOT NULL,
        created_at TEXT NOT NULL,
        started_at TEXT,
        finished_at TEXT,
        last_error TEXT,
        result TEXT,
        repeat_cron TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_jobs_due ON jobs(state, run_at)",
    # at most one live job per key, across processes
    f"""
    CREATE UNIQUE INDEX IF NOT EXISTS idx_jobs_live_key ON jobs(key)
    WHERE key IS NOT NULL AND state IN ({", ".join(repr(s) for s in _LIVE)})
    """,
]


def _ts(value: Optional[datetime]) -> Optional[str]:
    """Fixed-width UTC timestamp so that string order equals time order."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_TS_FORMAT)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.strptime(value, _TS_FORMAT).replace(tzinfo=timezone.utc)


def _row_to_job(row: Any) -> Job:
    data = dict(row)
    return Job(
        id=data["id"],
        key=data["key"],
        scraper_name=data["scraper_name"],
        options=json.loads(data["options"] or "{}"),
        state=JobState(data["state"]),
        attempts=data["attempts"],
        max_attempts=data["max_attempts"],
        backoff_delay=data["backoff_delay"],
        run_at=_parse_ts(data["run_at"]),
        created_at=_parse_ts(data["created_at"]),
        started_at=_parse_ts(data["started_at"]),
        finished_at=_parse_ts(data["finished_at"]),
        last_error=data["last_error"],
        result=json.loads(data["result"]) if data["result"] else None,
        repeat_cron=data["repeat_cron"],
    )


class JobQueue:
    """SQLite-backed queue of scraper runs."""

    def __init__(
        self,
        db_path: str = "jobs.db",
        max_attempts: int = 3,
        backoff_delay: float = 2.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = Database(db_path, schema=SCHEMA)
        self.max_attempts = max_attempts
        self.backoff_delay = backoff_delay
        self._clock = clock
        self._enqueue_lock = asyncio.Lock()

    async def connect(self) -> None:
        await self.db.connect()

    async def close(self) -> None:
        await self.db.close()

    # ---------------------------------------------- #
    # Producers

    async def enqueue(
        self,
        scraper_name: str,
        options: Optional[Dict[str, Any]] = None,
        key: Optional[str] = None,
        delay: float = 0,
        max_attempts: Optional[int] = None,
        backoff_delay: Optional[float] = None,
        repeat_cron: Optional[str] = None,
    ) -> Job:
        """Add a job; with ``key`` set, an existing live job with that key is returned instead."""
        async with self._enqueue_lock:
            if key is not None:
                existing = await self._live_job_with_key(key)
                if existing is not None:
                    logger.debug(f"Job {key} already queued as {existing.id} ({existing.state.value})")
                    return existing

            now = self._clock()
            job = Job(
                id=uuid.uuid4().hex,
                key=key,
                scraper_name=scraper_name,
                options=options or {},
                state=JobState.SCHEDULED if delay > 0 else JobState.WAITING,
                max_attempts=max_attempts or self.max_attempts,
                backoff_delay=self.backoff_delay if backoff_delay is None else backoff_delay,
                run_at=now + timedelta(seconds=max(0, delay)),
                created_at=now,
                repeat_cron=repeat_cron,
            )
            try:
                await self.db.execute_commit(
                    """
                    INSERT INTO jobs (id, key, scraper_name, options, state, attempts, max_attempts,
                                      backoff_delay, run_at, created_at, repeat_cron)
                    VALUES (?, ?, ?, ?, ?, 0, ?, ?, ?, ?, ?)
                    """,
                    (
                        job.id, job.key, job.scraper_name, json.dumps(job.options), job.state.value,
                        job.max_attempts, job.backoff_delay, _ts(job.run_at), _ts(job.created_at),
                        job.repeat_cron,
                    ),
                )
            except sqlite3.IntegrityError:
                # another process queued the same key first
                existing = await self._live_job_with_key(key)
                if existing is None:
                    raise
                return existing

        logger.info(f"Enqueued job {job.id} for {scraper_name} ({job.state.value})")
        return job

    async def _live_job_with_key(self, key: str) -> Optional[Job]:
        row = await self.db.fetch_one(
            f"SELECT * FROM jobs WHERE key = ? AND state IN ({', '.join('?' * len(_LIVE))}) LIMIT 1",
            (key, *_LIVE),
        )
        return _row_to_job(row) if row else None

    # ---------------------------------------------- #
    # Consumers

    async def promote_due(self) -> int:
        """Move scheduled jobs whose ``run_at`` has passed to waiting."""
        count = await self.db.execute_commit(
            "UPDATE jobs SET state = ? WHERE state = ? AND run_at <= ?",
            (JobState.WAITING.value, JobState.SCHEDULED.value, _ts(self._clock())),
        )
        if count:
            logger.debug(f"Promoted {count} scheduled jobs")
        return count

    async def claim(self) -> Optional[Job]:
        """Atomically take the oldest due waiting job, counting the attempt."""
        now = _ts(self._clock())
        rows = await self.db.execute_returning(
            """
            UPDATE jobs SET state = ?, attempts = attempts + 1, started_at = ?
            WHERE id = (
                SELECT id FROM jobs WHERE state = ? AND run_at <= ?
                ORDER BY run_at, created_at LIMIT 1
            )
            RETURNING *
            """,
            (JobState.ACTIVE.value, now, JobState.WAITING.value, now),
        )
        return _row_to_job(rows[0]) if rows else None

    async def complete(self, job: Job, result: Optional[Dict[str, Any]] = None) -> Job:
        await self.db.execute_commit(
            "UPDATE jobs SET state = ?, finished_at = ?, result = ?, last_error = NULL WHERE id = ?",
            (JobState.COMPLETED.value, _ts(self._clock()), json.dumps(result, default=str), job.id),
        )
        logger.info(f"Job {job.id} ({job.scraper_name}) completed")
        return await self.get(job.id)

    async def fail(self, job: Job, error: str, retry: bool = True) -> Job:
        """Record a failed attempt; the returned job's state tells whether a retry is pending."""
        now = self._clock()
        if retry and job.attempts < job.max_attempts:
            delay = job.backoff_for(job.attempts)
            await self.db.execute_commit(
                "UPDATE jobs SET state = ?, run_at = ?, started_at = NULL, last_error = ? WHERE id = ?",
                (JobState.WAITING.value, _ts(now + timedelta(seconds=delay)), error, job.id),
            )
            logger.warning(
                f"Job {job.id} ({job.scraper_name}) attempt {job.attempts}/{job.max_attempts} "
                f"failed, retrying in {delay:.1f}s: {error}"
            )
        else:
            await self.db.execute_commit(
                "UPDATE jobs SET state = ?, finished_at = ?, last_error = ? WHERE id = ?",
                (JobState.FAILED.value, _ts(now), error, job.id),
            )
            logger.error(
                f"Job {job.id} ({job.scraper_name}) failed permanently after "
                f"{job.attempts} attempt(s): {error}"
            )
        return await self.get(job.id)

    async def release(self, job: Job) -> None:
        """Hand an interrupted active job back without consuming its attempt."""
        await self.db.execute_commit(
            """
            UPDATE jobs SET state = ?, attempts = MAX(attempts - 1, 0), started_at = NULL
            WHERE id = ? AND state = ?
            """,
            (JobState.WAITING.value, job.id, JobState.ACTIVE.value),
        )
        logger.info(f"Released job {job.id} ({job.scraper_name}) back to the queue")

    async def recover(self, stale_after: float = 0) -> int:
        """Requeue jobs left active by a process that died mid-run.

        Only jobs started more than ``stale_after`` seconds ago are touched, so
        a second process sharing the file leaves the first one's live runs alone.
        """
        now = self._clock()
        cutoff = _ts(now - timedelta(seconds=max(0, stale_after)))
        exhausted = await self.db.execute_commit(
            """
            UPDATE jobs SET state = ?, finished_at = ?, last_error = 'interrupted'
            WHERE state = ? AND attempts >= max_attempts AND started_at <= ?
            """,
            (JobState.FAILED.value, _ts(now), JobState.ACTIVE.value, cutoff),
        )
        requeued = await self.db.execute_commit(
            "UPDATE jobs SET state = ?, started_at = NULL WHERE state = ? AND started_at <= ?",
            (JobState.WAITING.value, JobState.ACTIVE.value, cutoff),
        )
        if requeued or exhausted:
            logger.warning(f"Recovered {requeued} interrupted jobs ({exhausted} out of attempts)")
        return requeued

    # ---------------------------------------------- #
    # Housekeeping

    async def prune(
        self,
        completed_age: float = 24 * 3600,
        completed_count: int = 1000,
        failed_age: float = 7 * 24 * 3600,
    ) -> int:
        """Apply the retention windows; returns the number of deleted jobs."""
        now = self._clock()
        removed = await self.db.execute_commit(
            "DELETE FROM jobs WHERE state = ? AND finished_at < ?",
            (JobState.COMPLETED.value, _ts(now - timedelta(seconds=completed_age))),
        )
        removed += await self.db.execute_commit(
            """
            DELETE FROM jobs WHERE state = ? AND id NOT IN (
                SELECT id FROM jobs WHERE state = ? ORDER BY finished_at DESC LIMIT ?
            )
            """,
            (JobState.COMPLETED.value, JobState.COMPLETED.value, completed_count),
        )
        removed += await self.db.execute_commit(
            "DELETE FROM jobs WHERE state = ? AND finished_at < ?",
            (JobState.FAILED.value, _ts(now - timedelta(seconds=failed_age))),
        )
        if removed:
            logger.info(f"Pruned {removed} finished jobs")
        return removed

    # ---------------------------------------------- #
    # Queries

    async def get(self, job_id: str) -> Optional[Job]:
        row = await self.db.fetch_one("SELECT * FROM jobs WHERE id = ?", (job_id,))
        return _row_to_job(row) if row else None

    async def list_jobs(self, state: Optional[JobState] = None, limit: int = 50) -> List[Job]:
        if state is None:
            rows = await self.db.fetch_all(
                "SELECT * FROM jobs ORDER BY created_at DESC LIMIT ?", (limit,)
            )
        else:
            rows = await self.db.fetch_all(
                "SELECT * FROM jobs WHERE state = ? ORDER BY created_at DESC LIMIT ?",
                (JobState(state).value, limit),
            )
        return [_row_to_job(row) for row in rows]

    async def counts(self) -> Dict[str, int]:
        counts = {state.value: 0 for state in JobState}
        rows = await self.db.fetch_all("SELECT state, COUNT(*) AS n FROM jobs GROUP BY state")
        for row in rows:
            counts[row["state"]] = row["n"]
        return counts
