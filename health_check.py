#!/usr/bin/env python3
"""
Health check and monitoring script for the job queue.

Usage:
    python health_check.py [command]

Commands:
    status      - Show queue health status (default)
    jobs [state]- List recent jobs, optionally filtered by state
    overdue     - Show due jobs nobody has picked up
    watch       - Continuously monitor (refresh every 30s)
"""

import asyncio
import os
import sys
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

# Add project root to PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.config import load_config
from core.infra.job_queue import JobQueue
from core.models import Job, JobState, utcnow

OVERDUE_AFTER = timedelta(minutes=5)


class Colors:
    """ANSI color codes for terminal output."""
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"
    BOLD = "\033[1m"
    END = "\033[0m"


def format_timestamp(dt: Optional[datetime]) -> str:
    """Format datetime for display."""
    if not dt:
        return "N/A"
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human readable."""
    if seconds < 60:
        return f"{seconds:.0f}s"
    elif seconds < 3600:
        return f"{seconds/60:.1f}m"
    elif seconds < 86400:
        return f"{seconds/3600:.1f}h"
    else:
        return f"{seconds/86400:.1f}d"


def format_status_indicator(state: JobState) -> str:
    """Format job state with color indicator."""
    indicators = {
        JobState.SCHEDULED: f"{Colors.BLUE}◷{Colors.END}",
        JobState.WAITING: f"{Colors.YELLOW}●{Colors.END}",
        JobState.ACTIVE: f"{Colors.CYAN}▶{Colors.END}",
        JobState.COMPLETED: f"{Colors.GREEN}●{Colors.END}",
        JobState.FAILED: f"{Colors.RED}✖{Colors.END}",
    }
    return indicators.get(state, "●")


def overdue_jobs(jobs: List[Job], now: Optional[datetime] = None) -> List[Job]:
    now = now or utcnow()
    return [j for j in jobs if j.state is JobState.WAITING and now - j.run_at > OVERDUE_AFTER]


async def collect_health(queue: JobQueue) -> Dict[str, Any]:
    counts = await queue.counts()
    waiting = await queue.list_jobs(JobState.WAITING, limit=500)
    late = overdue_jobs(waiting)
    return {
        "timestamp": utcnow(),
        "counts": counts,
        "overdue_jobs": len(late),
        "overdue_job_ids": [j.id for j in late],
        "healthy": not late,
    }


async def show_health_status(queue: JobQueue) -> bool:
    """Show basic queue health status; returns True when healthy."""
    health = await collect_health(queue)
    counts = health["counts"]

    print(f"{Colors.BOLD}📊 Job Queue Health Status{Colors.END}")
    print("=" * 50)
    print(f"Last Check: {Colors.WHITE}{format_timestamp(health['timestamp'])}{Colors.END}")
    print()

    print(f"{Colors.BOLD}Job Summary:{Colors.END}")
    for state in JobState:
        print(f"  {format_status_indicator(state)} {state.value:<10} {counts.get(state.value, 0)}")

    if health["overdue_jobs"] > 0:
        print(f"  Overdue Jobs: {Colors.RED}{health['overdue_jobs']}{Colors.END}")
        print(f"  Overdue IDs: {Colors.YELLOW}{', '.join(health['overdue_job_ids'])}{Colors.END}")
    else:
        print(f"  Overdue Jobs: {Colors.GREEN}0{Colors.END}")
    print()

    if health["healthy"]:
        print(f"{Colors.GREEN}✅ System Healthy{Colors.END}")
    else:
        print(f"{Colors.YELLOW}⚠️  Warning: {health['overdue_jobs']} overdue jobs (is a worker running?){Colors.END}")
    return health["healthy"]


async def show_detailed_jobs(queue: JobQueue, state: Optional[str] = None, limit: int = 25):
    """Show detailed job information."""
    jobs = await queue.list_jobs(JobState(state) if state else None, limit=limit)
    print(f"{Colors.BOLD}📋 Jobs{' (' + state + ')' if state else ''}{Colors.END}")
    print("=" * 80)
    if not jobs:
        print(f"{Colors.YELLOW}No jobs found{Colors.END}")
        return

    now = utcnow()
    for job in jobs:
        age = format_duration((now - job.created_at).total_seconds())
        print(
            f"{format_status_indicator(job.state)} {Colors.BOLD}{job.scraper_name}{Colors.END} "
            f"[{job.id[:8]}] {job.state.value} attempts {job.attempts}/{job.max_attempts}, created {age} ago"
        )
        if job.state in (JobState.SCHEDULED, JobState.WAITING):
            print(f"    next run: {format_timestamp(job.run_at)}")
        if job.result:
            print(
                f"    result: {job.result.get('total', 0)} events, "
                f"{job.result.get('created', 0)} created, {job.result.get('updated', 0)} updated"
            )
        if job.last_error:
            print(f"    {Colors.RED}error: {job.last_error}{Colors.END}")


async def show_overdue_jobs(queue: JobQueue):
    """Show waiting jobs whose run time passed without a worker claiming them."""
    late = overdue_jobs(await queue.list_jobs(JobState.WAITING, limit=500))
    if not late:
        print(f"{Colors.GREEN}✅ No overdue jobs{Colors.END}")
        return
    now = utcnow()
    print(f"{Colors.RED}🚨 {len(late)} overdue jobs{Colors.END}")
    for job in late:
        late_by = format_duration((now - job.run_at).total_seconds())
        print(f"  {format_status_indicator(job.state)} {job.scraper_name} [{job.id[:8]}] late by {late_by}")


async def watch_status(queue: JobQueue, interval: int = 30):
    """Continuously refresh the health status."""
    try:
        while True:
            print("\033[2J\033[H", end="")
            await show_health_status(queue)
            print(f"\n{Colors.BLUE}Refreshing every {interval}s, Ctrl+C to stop{Colors.END}")
            await asyncio.sleep(interval)
    except KeyboardInterrupt:
        print(f"\n{Colors.YELLOW}Stopped watching{Colors.END}")


async def main() -> int:
    command = sys.argv[1].lower() if len(sys.argv) > 1 else "status"
    cfg = load_config()
    queue = JobQueue(cfg.database.jobs_path)
    try:
        if command == "status":
            return 0 if await show_health_status(queue) else 1
        elif command == "jobs":
            await show_detailed_jobs(queue, sys.argv[2] if len(sys.argv) > 2 else None)
        elif command == "overdue":
            await show_overdue_jobs(queue)
        elif command == "watch":
            await watch_status(queue)
        else:
            print(f"{Colors.RED}Unknown command: {command}{Colors.END}")
            print(__doc__)
            return 1
    finally:
        await queue.close()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
