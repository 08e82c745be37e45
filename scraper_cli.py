#!/usr/bin/env python3
"""
Scraper management CLI - Commands for running sources and managing the job queue.

Usage: python scraper_cli.py <command> [options]

Commands:
    list                - List discovered sources and their schedules
    run [source]        - Run one source (or all) right now, bypassing the queue
    enqueue <source>    - Put a one-off job for a source on the queue
    jobs [state]        - List recent jobs (scheduled, waiting, active, completed, failed)
    status              - Show queue health status
    prune               - Delete finished jobs outside the retention windows
    worker              - Start the long-running worker (same as main.py)
"""

import asyncio
import os
import sys

# Add project root to PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.config import load_config, setup_logging
from core.errors import UnknownSourceError
from core.infra.job_queue import JobQueue
from core.models import JobState
from core.plugin_loader import list_available
from health_check import Colors, show_detailed_jobs, show_health_status

EXIT_UNKNOWN_SOURCE = 2


def list_sources(cfg) -> None:
    """Print every discovered source with trust level and schedule."""
    sources = list_available()
    print(f"{Colors.BOLD}📚 {len(sources)} sources{Colors.END}")
    for name, profile in sources.items():
        cron = cfg.scheduler.schedule_for(name)
        schedule = f"{Colors.CYAN}{cron}{Colors.END}" if cron else f"{Colors.YELLOW}disabled{Colors.END}"
        print(f"  {Colors.BOLD}{name}{Colors.END} ({profile.format}, {profile.trust.value.lower()}) {schedule}")
        print(f"    {profile.source_url}")


async def enqueue_source(cfg, source: str) -> int:
    if source not in list_available():
        print(f"{Colors.RED}Error: {UnknownSourceError(source, list_available())}{Colors.END}")
        return EXIT_UNKNOWN_SOURCE

    queue = JobQueue(
        cfg.database.jobs_path,
        max_attempts=cfg.queue.max_attempts,
        backoff_delay=cfg.queue.backoff_delay,
    )
    try:
        job = await queue.enqueue(source)
    finally:
        await queue.close()
    print(f"{Colors.GREEN}✅ Enqueued {source} as job {job.id}{Colors.END}")
    return 0


async def prune_jobs(cfg) -> int:
    queue = JobQueue(cfg.database.jobs_path)
    try:
        removed = await queue.prune(**cfg.queue.retention())
    finally:
        await queue.close()
    print(f"{Colors.GREEN}🧹 Pruned {removed} finished jobs{Colors.END}")
    return 0


async def main() -> int:
    """Main CLI entry point."""
    if len(sys.argv) < 2:
        print(__doc__)
        return 1

    command = sys.argv[1].lower()
    positional = [a for a in sys.argv[2:] if not a.startswith("--")]
    argument = positional[0] if positional else None
    cfg = load_config()

    if command == "list":
        list_sources(cfg)
        return 0
    if command == "run":
        import run_scraper
        return await run_scraper.run(argument, dry_run="--dry-run" in sys.argv, config_path=None)
    if command == "worker":
        import main as worker
        await worker.main()
        return 0

    setup_logging(cfg.logging)
    if command == "enqueue":
        if not argument:
            print(f"{Colors.RED}Usage: python scraper_cli.py enqueue <source>{Colors.END}")
            return 1
        return await enqueue_source(cfg, argument)
    if command == "prune":
        return await prune_jobs(cfg)

    queue = JobQueue(cfg.database.jobs_path)
    try:
        if command == "jobs":
            if argument and argument not in {s.value for s in JobState}:
                print(f"{Colors.RED}Unknown job state: {argument}{Colors.END}")
                return 1
            await show_detailed_jobs(queue, argument)
        elif command == "status":
            await show_health_status(queue)
        else:
            print(f"{Colors.RED}Unknown command: {command}{Colors.END}")
            print(__doc__)
            return 1
    finally:
        await queue.close()
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print(f"\n{Colors.YELLOW}Interrupted{Colors.END}")
