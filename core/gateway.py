"""
Content-addressed deduplication and upsert in front of an event store.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Optional

from pydantic import BaseModel

from .errors import DuplicateFingerprintError, StorageError
from .interfaces import EventStore
from .models import CanonicalEvent, PersistedEvent, TrustLevel, event_fingerprint, utcnow

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    FAILED = "failed"


class ReconcileResult(BaseModel):
    outcome: Outcome
    fingerprint: str
    event_id: Optional[str] = None
    error: Optional[str] = None


class _LockEntry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class EventGateway:
    """Reconciles candidates against storage by fingerprint.

    Same-fingerprint reconciliations are serialized in-process by a lock map;
    across processes the store's unique constraint decides, and a lost insert
    race is turned into an update. Storage errors never escape
    :meth:`reconcile`.
    """

    def __init__(self, store: EventStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self._clock = clock
        self._locks: Dict[str, _LockEntry] = {}

    @property
    def pending_locks(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def _locked(self, fingerprint: str):
        entry = self._locks.get(fingerprint)
        if entry is None:
            entry = self._locks[fingerprint] = _LockEntry()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[fingerprint]

    async def reconcile(
        self,
        candidate: CanonicalEvent,
        source_name: str,
        trust: TrustLevel = TrustLevel.UNVERIFIED,
    ) -> ReconcileResult:
        fingerprint = event_fingerprint(candidate)
        try:
            async with self._locked(fingerprint):
                existing = await self.store.find_by_fingerprint(fingerprint)
                if existing is None:
                    try:
                        record = await self.store.insert(
                            self._new_record(candidate, fingerprint, source_name, trust)
                        )
                        logger.debug(f"Created {fingerprint[:12]} from {source_name}: {candidate.title}")
                        return ReconcileResult(
                            outcome=Outcome.CREATED, fingerprint=fingerprint, event_id=record.id
                        )
                    except DuplicateFingerprintError:
                        existing = await self.store.find_by_fingerprint(fingerprint)
                        if existing is None:
                            raise StorageError(f"Fingerprint {fingerprint[:12]} clashed but cannot be found")

                await self.store.update(existing.id, self._update_fields(candidate))
                logger.debug(f"Updated {fingerprint[:12]} from {source_name}: {candidate.title}")
                return ReconcileResult(
                    outcome=Outcome.UPDATED, fingerprint=fingerprint, event_id=existing.id
                )
        except Exception as e:
            logger.error(f"Failed to reconcile {candidate.title!r} from {source_name}: {e}")
            return ReconcileResult(outcome=Outcome.FAILED, fingerprint=fingerprint, error=str(e))

    def _new_record(
        self,
        candidate: CanonicalEvent,
        fingerprint: str,
        source_name: str,
        trust: TrustLevel,
    ) -> PersistedEvent:
        now = self._clock()
        return PersistedEvent(
            **candidate.mutable_fields(),
            fingerprint=fingerprint,
            source_name=source_name,
            status=trust.initial_status,
            created_at=now,
            updated_at=now,
        )

    def _update_fields(self, candidate: CanonicalEvent) -> Dict:
        fields = candidate.mutable_fields()
        fields["updated_at"] = self._clock()
        return fields
