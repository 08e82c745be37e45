"""
Orchestrator for running source strategies through the gateway.
"""

import asyncio
import logging
import traceback
from typing import Any, Dict, Iterable, List, Optional

from .errors import UnknownSourceError
from .gateway import EventGateway, Outcome
from .interfaces import SourceStrategy
from .models import ScraperRunResult, utcnow


logger = logging.getLogger(__name__)


class SourceRegistry:
    """Name -> strategy map, populated once at startup."""

    def __init__(self, strategies: Iterable[SourceStrategy] = ()):
        self._strategies: Dict[str, SourceStrategy] = {}
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: SourceStrategy) -> None:
        if strategy.name in self._strategies:
            raise ValueError(f"Source {strategy.name!r} is already registered")
        self._strategies[strategy.name] = strategy

    def get(self, name: str) -> SourceStrategy:
        try:
            return self._strategies[name]
        except KeyError:
            raise UnknownSourceError(name, self._strategies) from None

    def names(self) -> List[str]:
        return list(self._strategies)

    def __contains__(self, name: str) -> bool:
        return name in self._strategies

    def __len__(self) -> int:
        return len(self._strategies)


class Orchestrator:
    """Runs strategies and reconciles what they produce.

    ``run_one`` lets strategy failures propagate so the job queue can retry
    them; ``run_all`` isolates them so one broken source never hides the
    results of the others.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        gateway: EventGateway,
        run_timeout: float = 300.0,
        concurrency: int = 5,
    ):
        self.registry = registry
        self.gateway = gateway
        self.run_timeout = run_timeout
        self.concurrency = max(1, concurrency)

    async def run_one(self, name: str, options: Optional[Dict[str, Any]] = None) -> ScraperRunResult:
        strategy = self.registry.get(name)
        options = options or {}
        result = ScraperRunResult(name=name)
        logger.info(f"Running source: {name}")

        timeout = options.get("timeout", self.run_timeout)
        candidates = await asyncio.wait_for(strategy.scrape_events(), timeout=timeout)
        result.total = len(candidates)

        for candidate in candidates:
            outcome = await self.gateway.reconcile(candidate, strategy.name, strategy.trust)
            if outcome.outcome is Outcome.CREATED:
                result.created += 1
            elif outcome.outcome is Outcome.UPDATED:
                result.updated += 1
            else:
                result.failed += 1

        result.finished_at = utcnow()
        logger.info(
            f"Source {name} done: {result.total} events, {result.created} created, "
            f"{result.updated} updated, {result.failed} failed"
        )
        return result

    async def run_all(self, names: Optional[Iterable[str]] = None) -> List[ScraperRunResult]:
        selected = list(names) if names is not None else self.registry.names()
        semaphore = asyncio.Semaphore(self.concurrency)

        async def guarded(name: str) -> ScraperRunResult:
            async with semaphore:
                started = utcnow()
                try:
                    return await self.run_one(name)
                except asyncio.TimeoutError:
                    error = f"timed out after {self.run_timeout:.0f}s"
                except Exception as e:
                    error = str(e) or type(e).__name__
                    logger.debug(traceback.format_exc())
                logger.error(f"Source {name} failed: {error}")
                return ScraperRunResult(name=name, error=error, started_at=started, finished_at=utcnow())

        return list(await asyncio.gather(*(guarded(name) for name in selected)))


def summarize(results: Iterable[ScraperRunResult]) -> Dict[str, int]:
    results = list(results)
    return {
        "total": len(results),
        "succeeded": sum(1 for r in results if r.ok),
        "failed": sum(1 for r in results if not r.ok),
        "created": sum(r.created for r in results),
        "updated": sum(r.updated for r in results),
        "events": sum(r.total for r in results),
    }
