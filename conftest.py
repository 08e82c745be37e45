"""
Shared pytest fixtures: a dict-backed fetcher, a fixed clock and stores.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

import pytest

from core.errors import FetchError, SourceUnreachableError
from core.gateway import EventGateway
from core.infra.job_queue import JobQueue
from core.interfaces import SourceStrategy
from core.models import CanonicalEvent, TrustLevel
from core.normalizer import WARSAW
from sinks.memory_store import InMemoryEventStore

# a Tuesday
FIXED_NOW = datetime(2025, 6, 10, 12, 0, tzinfo=WARSAW)


class FakeFetcher:
    """Serves canned bodies; unknown URLs answer 404, listed ones are unreachable."""

    def __init__(self, pages: Optional[Dict[str, str]] = None, unreachable: Iterable[str] = ()):
        self.pages = dict(pages or {})
        self.unreachable = set(unreachable)
        self.calls: List[str] = []

    async def get_text(self, url: str) -> str:
        self.calls.append(url)
        if url in self.unreachable:
            raise SourceUnreachableError(url, "connection refused")
        if url in self.pages:
            return self.pages[url]
        raise FetchError(url, "HTTP 404", status=404)


class StubStrategy(SourceStrategy):
    """Strategy returning fixed candidates, or raising ``error``."""

    def __init__(self, name: str, events: Iterable[CanonicalEvent] = (), error: Optional[BaseException] = None,
                 delay: float = 0, trust: TrustLevel = TrustLevel.TRUSTED):
        self._name = name
        self.events = list(events)
        self.error = error
        self.delay = delay
        self._trust = trust
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def source_url(self) -> str:
        return f"https://{self._name}.example"

    @property
    def trust(self) -> TrustLevel:
        return self._trust

    async def scrape_events(self) -> List[CanonicalEvent]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.events)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def make_event(title: str = "Warsztaty plastyczne", days: int = 4, venue: str = "Biblioteka X", **fields) -> CanonicalEvent:
    start = FIXED_NOW.replace(hour=10, minute=0) + timedelta(days=days)
    return CanonicalEvent(title=title, start=start, venue_name=venue, **fields)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def manual_clock():
    return ManualClock(datetime(2025, 6, 10, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def memory_store():
    return InMemoryEventStore()


@pytest.fixture
def gateway(memory_store):
    return EventGateway(memory_store)


@pytest.fixture
async def job_queue(tmp_path, manual_clock):
    queue = JobQueue(str(tmp_path / "jobs.db"), max_attempts=3, backoff_delay=2.0, clock=manual_clock)
    await queue.connect()
    yield queue
    await queue.close()
