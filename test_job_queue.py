"""
Tests for the SQLite job queue: dedup, claiming, retries and retention.
"""

import asyncio

from core.infra.job_queue import JobQueue
from core.models import JobState


class TestEnqueue:

    async def test_immediate_job_is_waiting(self, job_queue):
        job = await job_queue.enqueue("lib-x", {"timeout": 10})
        assert job.state is JobState.WAITING
        assert job.attempts == 0
        stored = await job_queue.get(job.id)
        assert stored.options == {"timeout": 10}
        assert stored.max_attempts == 3

    async def test_key_deduplicates_live_jobs(self, job_queue):
        first = await job_queue.enqueue("lib-x", key="scheduled-lib-x")
        second = await job_queue.enqueue("lib-x", key="scheduled-lib-x")
        assert first.id == second.id
        assert (await job_queue.counts())["waiting"] == 1

    async def test_key_is_free_again_once_job_finished(self, job_queue):
        first = await job_queue.enqueue("lib-x", key="k")
        await job_queue.complete(await job_queue.claim(), {"total": 0})
        second = await job_queue.enqueue("lib-x", key="k")
        assert second.id != first.id

    async def test_key_deduplicates_across_queue_instances(self, tmp_path, manual_clock):
        path = str(tmp_path / "shared.db")
        a, b = JobQueue(path, clock=manual_clock), JobQueue(path, clock=manual_clock)
        await a.connect()
        await b.connect()
        try:
            first = await a.enqueue("lib-x", key="k")
            second = await b.enqueue("lib-x", key="k")
            assert first.id == second.id
        finally:
            await a.close()
            await b.close()

    async def test_delayed_job_is_promoted_when_due(self, job_queue, manual_clock):
        job = await job_queue.enqueue("lib-x", delay=60)
        assert job.state is JobState.SCHEDULED

        assert await job_queue.promote_due() == 0
        assert await job_queue.claim() is None

        manual_clock.advance(61)
        assert await job_queue.promote_due() == 1
        claimed = await job_queue.claim()
        assert claimed.id == job.id


class TestClaim:

    async def test_claim_counts_attempt(self, job_queue):
        job = await job_queue.enqueue("lib-x")
        claimed = await job_queue.claim()
        assert claimed.id == job.id
        assert claimed.state is JobState.ACTIVE
        assert claimed.attempts == 1
        assert claimed.started_at is not None
        assert await job_queue.claim() is None

    async def test_oldest_due_job_first(self, job_queue, manual_clock):
        first = await job_queue.enqueue("a")
        manual_clock.advance(1)
        await job_queue.enqueue("b")
        assert (await job_queue.claim()).id == first.id

    async def test_concurrent_claims_never_share_a_job(self, job_queue):
        await job_queue.enqueue("a")
        await job_queue.enqueue("b")

        claimed = await asyncio.gather(*(job_queue.claim() for _ in range(5)))
        jobs = [j for j in claimed if j is not None]

        assert len(jobs) == 2
        assert len({j.id for j in jobs}) == 2


class TestRetries:

    async def test_backoff_grows_until_attempts_exhausted(self, job_queue, manual_clock):
        await job_queue.enqueue("flaky")
        delays = []
        attempts = 0

        while True:
            job = await job_queue.claim()
            assert job is not None
            attempts += 1
            failed = await job_queue.fail(job, "connection refused")
            if failed.state is JobState.FAILED:
                break
            assert failed.state is JobState.WAITING
            delay = (failed.run_at - manual_clock()).total_seconds()
            delays.append(delay)
            assert await job_queue.claim() is None
            manual_clock.advance(delay)

        assert attempts == 3
        assert delays == [2.0, 4.0]
        assert failed.attempts == 3
        assert failed.last_error == "connection refused"
        assert failed.finished_at is not None

    async def test_non_retryable_failure_is_terminal(self, job_queue):
        await job_queue.enqueue("nope")
        failed = await job_queue.fail(await job_queue.claim(), "unknown source", retry=False)
        assert failed.state is JobState.FAILED
        assert failed.attempts == 1

    async def test_release_does_not_consume_attempt(self, job_queue):
        await job_queue.enqueue("lib-x")
        job = await job_queue.claim()
        await job_queue.release(job)

        released = await job_queue.get(job.id)
        assert released.state is JobState.WAITING
        assert released.attempts == 0
        assert (await job_queue.claim()).attempts == 1

    async def test_complete_stores_result(self, job_queue):
        await job_queue.enqueue("lib-x")
        done = await job_queue.complete(await job_queue.claim(), {"total": 3, "created": 2})
        assert done.state is JobState.COMPLETED
        assert done.result == {"total": 3, "created": 2}


class TestRecovery:

    async def test_interrupted_jobs_requeued_or_failed(self, job_queue):
        await job_queue.enqueue("last-chance", max_attempts=1)
        await job_queue.enqueue("retryable")
        exhausted = await job_queue.claim()
        retryable = await job_queue.claim()

        assert await job_queue.recover() == 1

        assert (await job_queue.get(exhausted.id)).state is JobState.FAILED
        assert (await job_queue.get(exhausted.id)).last_error == "interrupted"
        assert (await job_queue.get(retryable.id)).state is JobState.WAITING

    async def test_recent_active_job_left_alone(self, job_queue, manual_clock):
        await job_queue.enqueue("lib-x")
        running = await job_queue.claim()

        manual_clock.advance(60)
        assert await job_queue.recover(stale_after=360) == 0
        assert (await job_queue.get(running.id)).state is JobState.ACTIVE

        manual_clock.advance(301)
        assert await job_queue.recover(stale_after=360) == 1
        assert (await job_queue.get(running.id)).state is JobState.WAITING

    async def test_second_process_does_not_take_over_live_job(self, job_queue, tmp_path, manual_clock):
        other = JobQueue(str(tmp_path / "jobs.db"), clock=manual_clock)
        await other.connect()
        try:
            await job_queue.enqueue("lib-x")
            running = await job_queue.claim()

            assert await other.recover(stale_after=360) == 0
            assert await other.claim() is None
            assert (await other.get(running.id)).state is JobState.ACTIVE
        finally:
            await other.close()


class TestRetention:

    async def _finish(self, queue, name, ok=True):
        await queue.enqueue(name)
        job = await queue.claim()
        if ok:
            return await queue.complete(job, {})
        return await queue.fail(job, "boom", retry=False)

    async def test_age_windows(self, job_queue, manual_clock):
        old_done = await self._finish(job_queue, "a")
        old_failed = await self._finish(job_queue, "b", ok=False)
        manual_clock.advance(2 * 24 * 3600)
        recent = await self._finish(job_queue, "c")

        assert await job_queue.prune() == 1
        assert await job_queue.get(old_done.id) is None
        assert await job_queue.get(old_failed.id) is not None
        assert await job_queue.get(recent.id) is not None

        manual_clock.advance(6 * 24 * 3600)
        await job_queue.prune()
        assert await job_queue.get(old_failed.id) is None

    async def test_completed_count_window(self, job_queue, manual_clock):
        ids = []
        for name in ("a", "b", "c"):
            ids.append((await self._finish(job_queue, name)).id)
            manual_clock.advance(1)

        assert await job_queue.prune(completed_count=1) == 2
        assert [j.id for j in await job_queue.list_jobs(JobState.COMPLETED)] == [ids[-1]]

    async def test_live_jobs_are_never_pruned(self, job_queue, manual_clock):
        job = await job_queue.enqueue("lib-x")
        manual_clock.advance(30 * 24 * 3600)
        await job_queue.prune(completed_age=0, completed_count=0, failed_age=0)
        assert await job_queue.get(job.id) is not None


class TestQueries:

    async def test_counts_include_every_state(self, job_queue):
        await job_queue.enqueue("a")
        await job_queue.enqueue("b", delay=30)
        counts = await job_queue.counts()
        assert counts == {"scheduled": 1, "waiting": 1, "active": 0, "completed": 0, "failed": 0}

    async def test_list_jobs_filters_by_state(self, job_queue):
        await job_queue.enqueue("a")
        await job_queue.enqueue("b", delay=30)
        assert [j.scraper_name for j in await job_queue.list_jobs(JobState.SCHEDULED)] == ["b"]
        assert len(await job_queue.list_jobs()) == 2

    async def test_sqlite_url_paths_are_accepted(self, tmp_path):
        queue = JobQueue(f"sqlite:///{tmp_path / 'nested' / 'jobs.db'}")
        await queue.connect()
        try:
            await queue.enqueue("a")
            assert (await queue.counts())["waiting"] == 1
        finally:
            await queue.close()
        assert (tmp_path / "nested" / "jobs.db").exists()
