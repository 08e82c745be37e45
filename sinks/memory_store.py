"""
In-memory event store used for dry runs and tests.
"""

import uuid
from typing import Any, Dict, List, Optional

from core.errors import DuplicateFingerprintError, StorageError
from core.interfaces import EventStore
from core.models import PersistedEvent

_PROTECTED = {"id", "fingerprint", "source_name", "status", "created_at", "view_count", "click_count"}


class InMemoryEventStore(EventStore):
    """Dict-backed store with the same uniqueness guarantee as the SQLite one."""

    def __init__(self):
        self.events: Dict[str, PersistedEvent] = {}
        self._by_fingerprint: Dict[str, str] = {}

    async def find_by_fingerprint(self, fingerprint: str) -> Optional[PersistedEvent]:
        event_id = self._by_fingerprint.get(fingerprint)
        return self.events.get(event_id) if event_id else None

    async def insert(self, event: PersistedEvent) -> PersistedEvent:
        if event.fingerprint in self._by_fingerprint:
            raise DuplicateFingerprintError(event.fingerprint)
        if event.id is None:
            event = event.model_copy(update={"id": uuid.uuid4().hex})
        self.events[event.id] = event
        self._by_fingerprint[event.fingerprint] = event.id
        return event

    async def update(self, event_id: str, fields: Dict[str, Any]) -> None:
        existing = self.events.get(event_id)
        if existing is None:
            raise StorageError(f"Event {event_id} does not exist")
        changes = {k: v for k, v in fields.items() if k not in _PROTECTED}
        self.events[event_id] = PersistedEvent.model_validate({**existing.model_dump(), **changes})

    async def count(self) -> int:
        return len(self.events)

    def all(self) -> List[PersistedEvent]:
        return list(self.events.values())
