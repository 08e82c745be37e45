"""
SQLite event store for persisting reconciled events.
"""

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.errors import DuplicateFingerprintError, StorageError
from core.infra.db import Database
from core.interfaces import EventStore
from core.models import EventStatus, PersistedEvent


logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS events (
        id TEXT PRIMARY KEY,
        fingerprint TEXT NOT NULL UNIQUE,
        source_name TEXT NOT NULL,
        status TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        age_min INTEGER NOT NULL,
        age_max INTEGER NOT NULL,
        price_type TEXT NOT NULL,
        price_amount TEXT,
        price_currency TEXT,
        price_description TEXT,
        venue_name TEXT NOT NULL DEFAULT '',
        address TEXT NOT NULL DEFAULT '',
        city TEXT NOT NULL DEFAULT '',
        latitude REAL,
        longitude REAL,
        postal_code TEXT,
        organizer_name TEXT NOT NULL DEFAULT '',
        source_url TEXT NOT NULL DEFAULT '',
        image_urls TEXT NOT NULL DEFAULT '[]',
        start_at TEXT NOT NULL,
        end_at TEXT,
        category TEXT NOT NULL,
        tags TEXT NOT NULL DEFAULT '[]',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        view_count INTEGER NOT NULL DEFAULT 0,
        click_count INTEGER NOT NULL DEFAULT 0
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_events_start ON events(start_at)",
    "CREATE INDEX IF NOT EXISTS idx_events_status ON events(status)",
]

# model field -> column for fields that are stored one-to-one
_PLAIN_COLUMNS = [
    "id", "fingerprint", "source_name", "status", "title", "description",
    "venue_name", "address", "city", "latitude", "longitude", "postal_code",
    "organizer_name", "source_url", "category", "view_count", "click_count",
]


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def to_row(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten (a subset of) model fields into column values."""
    row: Dict[str, Any] = {}
    for key in _PLAIN_COLUMNS:
        if key in fields:
            row[key] = _enum_value(fields[key])
    if "age" in fields:
        row["age_min"] = fields["age"]["min"]
        row["age_max"] = fields["age"]["max"]
    if "price" in fields:
        price = fields["price"]
        row["price_type"] = _enum_value(price["type"])
        row["price_amount"] = str(price["amount"]) if price.get("amount") is not None else None
        row["price_currency"] = price.get("currency")
        row["price_description"] = price.get("description")
    if "image_urls" in fields:
        row["image_urls"] = json.dumps(list(fields["image_urls"]), ensure_ascii=False)
    if "tags" in fields:
        row["tags"] = json.dumps(list(fields["tags"]), ensure_ascii=False)
    for key, column in (("start", "start_at"), ("end", "end_at"),
                        ("created_at", "created_at"), ("updated_at", "updated_at")):
        if key in fields:
            row[column] = _iso(fields[key])
    return row


def from_row(row: Any) -> PersistedEvent:
    data = dict(row)
    return PersistedEvent(
        id=data["id"],
        fingerprint=data["fingerprint"],
        source_name=data["source_name"],
        status=EventStatus(data["status"]),
        title=data["title"],
        description=data["description"],
        age={"min": data["age_min"], "max": data["age_max"]},
        price={
            "type": data["price_type"],
            "amount": Decimal(data["price_amount"]) if data["price_amount"] is not None else None,
            "currency": data["price_currency"],
            "description": data["price_description"],
        },
        venue_name=data["venue_name"],
        address=data["address"],
        city=data["city"],
        latitude=data["latitude"],
        longitude=data["longitude"],
        postal_code=data["postal_code"],
        organizer_name=data["organizer_name"],
        source_url=data["source_url"],
        image_urls=json.loads(data["image_urls"]),
        start=datetime.fromisoformat(data["start_at"]),
        end=datetime.fromisoformat(data["end_at"]) if data["end_at"] else None,
        category=data["category"],
        tags=json.loads(data["tags"]),
        created_at=datetime.fromisoformat(data["created_at"]),
        updated_at=datetime.fromisoformat(data["updated_at"]),
        view_count=data["view_count"],
        click_count=data["click_count"],
    )


class SqliteEventStore(EventStore):
    """Event store backed by a single SQLite table keyed by fingerprint."""

    def __init__(self, db_path: str = "events.db"):
        self.db = Database(db_path, schema=SCHEMA)

    async def connect(self) -> None:
        await self.db.connect()

    async def close(self) -> None:
        await self.db.close()

    async def find_by_fingerprint(self, fingerprint: str) -> Optional[PersistedEvent]:
        try:
            row = await self.db.fetch_one("SELECT * FROM events WHERE fingerprint = ?", (fingerprint,))
        except sqlite3.Error as e:
            raise StorageError(f"Lookup of {fingerprint[:12]} failed: {e}") from e
        return from_row(row) if row else None

    async def insert(self, event: PersistedEvent) -> PersistedEvent:
        if event.id is None:
            event = event.model_copy(update={"id": uuid.uuid4().hex})
        row = to_row(event.model_dump())
        columns = list(row)
        sql = f"INSERT INTO events ({', '.join(columns)}) VALUES ({', '.join('?' * len(columns))})"
        try:
            await self.db.execute_commit(sql, tuple(row.values()))
        except sqlite3.IntegrityError as e:
            if "fingerprint" in str(e):
                raise DuplicateFingerprintError(event.fingerprint) from e
            raise StorageError(f"Insert failed: {e}") from e
        except sqlite3.Error as e:
            raise StorageError(f"Insert failed: {e}") from e
        return event

    async def update(self, event_id: str, fields: Dict[str, Any]) -> None:
        # identity, provenance and counters are never rewritten
        protected = {"id", "fingerprint", "source_name", "status", "created_at", "view_count", "click_count"}
        row = to_row({k: v for k, v in fields.items() if k not in protected})
        if not row:
            return
        assignments = ", ".join(f"{column} = ?" for column in row)
        try:
            updated = await self.db.execute_commit(
                f"UPDATE events SET {assignments} WHERE id = ?",
                (*row.values(), event_id),
            )
        except sqlite3.Error as e:
            raise StorageError(f"Update of {event_id} failed: {e}") from e
        if updated == 0:
            raise StorageError(f"Event {event_id} does not exist")

    async def count(self) -> int:
        row = await self.db.fetch_one("SELECT COUNT(*) AS n FROM events")
        return row["n"] if row else 0

    async def list_events(self, source_name: Optional[str] = None, limit: int = 100) -> List[PersistedEvent]:
        if source_name:
            rows = await self.db.fetch_all(
                "SELECT * FROM events WHERE source_name = ? ORDER BY start_at LIMIT ?",
                (source_name, limit),
            )
        else:
            rows = await self.db.fetch_all("SELECT * FROM events ORDER BY start_at LIMIT ?", (limit,))
        return [from_row(row) for row in rows]
