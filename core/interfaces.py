"""
Core interfaces for the scraper platform.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from .models import CanonicalEvent, PersistedEvent, TrustLevel


class PageFetcher(Protocol):
    """Anything that can turn a URL into a document body.

    :class:`core.infra.http.HttpClient` is the production implementation;
    tests pass a dict-backed fake.
    """

    async def get_text(self, url: str) -> str:
        ...


class SourceStrategy(ABC):
    """Per-source scraping contract.

    A strategy turns one external source into a list of canonical event
    candidates. Content problems are logged and skipped; the only error a
    strategy raises on purpose is ``SourceUnreachableError`` when none of its
    URLs could be reached.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier used by the registry and job queue."""
        pass

    @property
    @abstractmethod
    def source_url(self) -> str:
        """Public landing page of the source."""
        pass

    @property
    def trust(self) -> TrustLevel:
        return TrustLevel.UNVERIFIED

    @abstractmethod
    async def scrape_events(self) -> List[CanonicalEvent]:
        """Fetch and normalize the current listing."""
        pass

    def fallback_events(self, base_date: Optional[datetime] = None) -> List[CanonicalEvent]:
        """Events to report when the source is reachable but yields nothing."""
        return []


class EventStore(ABC):
    """Upsert-by-fingerprint persistence contract."""

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    async def find_by_fingerprint(self, fingerprint: str) -> Optional[PersistedEvent]:
        pass

    @abstractmethod
    async def insert(self, event: PersistedEvent) -> PersistedEvent:
        """Store a new record; raise ``DuplicateFingerprintError`` on a key clash."""
        pass

    @abstractmethod
    async def update(self, event_id: str, fields: Dict[str, Any]) -> None:
        """Overwrite the given mutable fields of an existing record."""
        pass

    async def count(self) -> int:
        return 0
