"""
Tests for fingerprint-based reconciliation against the event stores.
"""

import asyncio
from decimal import Decimal

import pytest

from conftest import make_event
from core.errors import StorageError
from core.gateway import EventGateway, Outcome
from core.models import EventStatus, PriceInfo, PriceType, TrustLevel, event_fingerprint
from sinks.memory_store import InMemoryEventStore
from sinks.sqlite_store import SqliteEventStore


class BrokenStore(InMemoryEventStore):
    async def insert(self, event):
        raise StorageError("disk full")


class SlowStore(InMemoryEventStore):
    async def find_by_fingerprint(self, fingerprint):
        await asyncio.sleep(0)
        return await super().find_by_fingerprint(fingerprint)


class RacingStore(InMemoryEventStore):
    """Misses the first lookup, as if another process inserted right after it."""

    def __init__(self):
        super().__init__()
        self.missed = False

    async def find_by_fingerprint(self, fingerprint):
        if not self.missed:
            self.missed = True
            return None
        return await super().find_by_fingerprint(fingerprint)


class TestReconcile:

    async def test_first_sighting_creates_then_updates(self, gateway, memory_store):
        event = make_event()
        first = await gateway.reconcile(event, "lib-x", TrustLevel.TRUSTED)
        second = await gateway.reconcile(event, "lib-x", TrustLevel.TRUSTED)

        assert first.outcome is Outcome.CREATED
        assert second.outcome is Outcome.UPDATED
        assert first.fingerprint == second.fingerprint == event_fingerprint(event)
        assert first.event_id == second.event_id
        assert await memory_store.count() == 1

    @pytest.mark.parametrize("trust, status", [
        (TrustLevel.TRUSTED, EventStatus.ACTIVE),
        (TrustLevel.UNVERIFIED, EventStatus.DRAFT),
    ])
    async def test_trust_decides_status_of_new_events(self, gateway, memory_store, trust, status):
        result = await gateway.reconcile(make_event(), "src", trust)
        assert memory_store.events[result.event_id].status is status

    async def test_update_overwrites_content_but_keeps_bookkeeping(self, memory_store, manual_clock):
        gateway = EventGateway(memory_store, clock=manual_clock)
        created = await gateway.reconcile(make_event(description="stary opis"), "lib-x", TrustLevel.UNVERIFIED)
        stored = memory_store.events[created.event_id]
        memory_store.events[created.event_id] = stored.model_copy(update={"view_count": 5, "click_count": 2})

        manual_clock.advance(3600)
        changed = make_event(
            description="nowy opis",
            price=PriceInfo(type=PriceType.PAID, amount=Decimal("15")),
        )
        result = await gateway.reconcile(changed, "other-source", TrustLevel.TRUSTED)
        after = memory_store.events[created.event_id]

        assert result.outcome is Outcome.UPDATED
        assert after.description == "nowy opis"
        assert after.price.amount == Decimal("15")
        assert after.view_count == 5
        assert after.click_count == 2
        assert after.status is EventStatus.DRAFT
        assert after.source_name == "lib-x"
        assert after.created_at == stored.created_at
        assert after.updated_at > stored.updated_at

    async def test_storage_failure_becomes_failed_outcome(self):
        gateway = EventGateway(BrokenStore())
        result = await gateway.reconcile(make_event(), "lib-x")
        assert result.outcome is Outcome.FAILED
        assert "disk full" in result.error
        assert gateway.pending_locks == 0

    async def test_lost_insert_race_turns_into_update(self):
        store = RacingStore()
        event = make_event()
        await store.insert(await _persisted(event))

        result = await EventGateway(store).reconcile(event, "lib-x")
        assert result.outcome is Outcome.UPDATED
        assert await store.count() == 1

    async def test_concurrent_same_fingerprint_creates_once(self):
        store = SlowStore()
        gateway = EventGateway(store)
        event = make_event()

        results = await asyncio.gather(*(gateway.reconcile(event, "lib-x") for _ in range(5)))

        outcomes = [r.outcome for r in results]
        assert outcomes.count(Outcome.CREATED) == 1
        assert outcomes.count(Outcome.UPDATED) == 4
        assert await store.count() == 1
        assert gateway.pending_locks == 0

    async def test_different_events_get_different_records(self, gateway, memory_store):
        await gateway.reconcile(make_event("Bal przebierańców"), "lib-x")
        await gateway.reconcile(make_event("Koncert kolęd"), "lib-x")
        assert await memory_store.count() == 2


async def _persisted(event):
    """The record a gateway would create for ``event``."""
    store = InMemoryEventStore()
    result = await EventGateway(store).reconcile(event, "other-process")
    record = store.events[result.event_id]
    return record.model_copy(update={"id": None})


class TestSqliteEventStore:

    @pytest.fixture
    async def store(self, tmp_path):
        store = SqliteEventStore(str(tmp_path / "events.db"))
        await store.connect()
        yield store
        await store.close()

    async def test_reconcile_twice_keeps_one_row(self, store):
        gateway = EventGateway(store)
        event = make_event(
            price=PriceInfo(type=PriceType.PAID, amount=Decimal("12.50")),
            tags=["dzieci", "warsztaty"],
            image_urls=["https://img.example/1.jpg"],
        )
        first = await gateway.reconcile(event, "lib-x", TrustLevel.TRUSTED)
        second = await gateway.reconcile(event, "lib-x", TrustLevel.TRUSTED)

        assert (first.outcome, second.outcome) == (Outcome.CREATED, Outcome.UPDATED)
        assert await store.count() == 1

        stored = await store.find_by_fingerprint(first.fingerprint)
        assert stored.id == first.event_id
        assert stored.status is EventStatus.ACTIVE
        assert stored.start == event.start
        assert stored.price.amount == Decimal("12.50")
        assert stored.tags == ["dzieci", "warsztaty"]
        assert stored.image_urls == ["https://img.example/1.jpg"]

    async def test_duplicate_insert_is_reported_as_update(self, store):
        event = make_event()
        record = await _persisted(event)
        await store.insert(record)

        result = await EventGateway(RacingSqlite(store)).reconcile(event, "lib-x")
        assert result.outcome is Outcome.UPDATED
        assert await store.count() == 1

    async def test_update_of_missing_row_raises(self, store):
        with pytest.raises(StorageError):
            await store.update("missing", {"title": "X"})

    async def test_list_events_by_source(self, store):
        gateway = EventGateway(store)
        await gateway.reconcile(make_event("Bal przebierańców"), "lib-x")
        await gateway.reconcile(make_event("Koncert kolęd", days=1), "teatr")

        assert [e.title for e in await store.list_events()] == ["Koncert kolęd", "Bal przebierańców"]
        assert [e.title for e in await store.list_events("lib-x")] == ["Bal przebierańców"]


class RacingSqlite:
    """Wraps a SQLite store and misses its first lookup."""

    def __init__(self, store):
        self.store = store
        self.missed = False

    async def find_by_fingerprint(self, fingerprint):
        if not self.missed:
            self.missed = True
            return None
        return await self.store.find_by_fingerprint(fingerprint)

    async def insert(self, event):
        return await self.store.insert(event)

    async def update(self, event_id, fields):
        await self.store.update(event_id, fields)
