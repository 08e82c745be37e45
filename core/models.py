"""
Core data models for the ingestion platform.
"""

from __future__ import annotations

import hashlib
import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

AGE_FLOOR = 0
AGE_CEILING = 18
MAX_IMAGES = 5
MAX_TAGS = 10


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PriceType(str, Enum):
    FREE = "FREE"
    PAID = "PAID"
    DONATION = "DONATION"


class EventCategory(str, Enum):
    WORKSHOP = "WORKSHOP"
    PERFORMANCE = "PERFORMANCE"
    SPORT = "SPORT"
    EDUCATION = "EDUCATION"
    OTHER = "OTHER"


class EventStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    ARCHIVED = "ARCHIVED"


class TrustLevel(str, Enum):
    """How far a source is trusted; decides the status of newly created events."""
    TRUSTED = "TRUSTED"
    UNVERIFIED = "UNVERIFIED"

    @property
    def initial_status(self) -> EventStatus:
        return EventStatus.ACTIVE if self is TrustLevel.TRUSTED else EventStatus.DRAFT


class AgeRange(BaseModel):
    """Inclusive age range, always inside the children's domain."""
    min: int = AGE_FLOOR
    max: int = AGE_CEILING

    @model_validator(mode="after")
    def _clamp(self) -> "AgeRange":
        lo = max(AGE_FLOOR, min(AGE_CEILING, self.min))
        hi = max(AGE_FLOOR, min(AGE_CEILING, self.max))
        if lo > hi:
            lo, hi = hi, lo
        self.min, self.max = lo, hi
        return self


class PriceInfo(BaseModel):
    type: PriceType
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    description: Optional[str] = None

    @model_validator(mode="after")
    def _default_currency(self) -> "PriceInfo":
        if self.amount is not None and self.currency is None:
            self.currency = "PLN"
        return self


class DateRange(BaseModel):
    start: datetime
    end: Optional[datetime] = None
    recurring: bool = False
    pattern: Optional[str] = None


class CategoryRule(BaseModel):
    """One entry of a keyword-priority decision list."""
    category: EventCategory
    keywords: List[str]


class CanonicalEvent(BaseModel):
    """Normalized event candidate produced by a source strategy."""
    title: str
    start: datetime
    description: str = ""
    age: AgeRange = Field(default_factory=AgeRange)
    price: PriceInfo = Field(default_factory=lambda: PriceInfo(type=PriceType.PAID, amount=Decimal(20)))
    venue_name: str = ""
    address: str = ""
    city: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    postal_code: Optional[str] = None
    organizer_name: str = ""
    source_url: str = ""
    image_urls: List[str] = Field(default_factory=list)
    end: Optional[datetime] = None
    category: EventCategory = EventCategory.OTHER
    tags: List[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _title_present(cls, value: str) -> str:
        value = re.sub(r"\s+", " ", value or "").strip()
        if not value:
            raise ValueError("title must not be empty")
        return value

    @field_validator("start", "end")
    @classmethod
    def _whole_minutes(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.replace(second=0, microsecond=0)

    @field_validator("image_urls")
    @classmethod
    def _bound_images(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(u for u in value if u))[:MAX_IMAGES]

    @field_validator("tags")
    @classmethod
    def _bound_tags(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(t.strip() for t in value if t and t.strip()))[:MAX_TAGS]

    @model_validator(mode="after")
    def _end_after_start(self) -> "CanonicalEvent":
        if self.end is not None and self.end < self.start:
            self.end = None
        return self

    def mutable_fields(self) -> Dict[str, Any]:
        """Fields a re-sighting of the same event may overwrite."""
        return self.model_dump(include=set(CanonicalEvent.model_fields))


def _fingerprint_part(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip().casefold()


def compute_fingerprint(title: str, start: datetime, venue_name: str) -> str:
    """Deterministic identity over (title, start, venue)."""
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    start_utc = start.astimezone(timezone.utc).replace(second=0, microsecond=0)
    data = f"{_fingerprint_part(title)}|{start_utc.isoformat()}|{_fingerprint_part(venue_name)}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def event_fingerprint(event: CanonicalEvent) -> str:
    return compute_fingerprint(event.title, event.start, event.venue_name)


class PersistedEvent(CanonicalEvent):
    """Event as stored by the persistence sink."""
    id: Optional[str] = None
    fingerprint: str
    source_name: str
    status: EventStatus = EventStatus.DRAFT
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    view_count: int = 0
    click_count: int = 0


class ScraperRunResult(BaseModel):
    """Outcome of one run of one source strategy."""
    name: str
    total: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    error: Optional[str] = None
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def duration(self) -> Optional[timedelta]:
        if self.finished_at is None:
            return None
        return self.finished_at - self.started_at


class JobState(str, Enum):
    SCHEDULED = "scheduled"
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


LIVE_JOB_STATES = (JobState.SCHEDULED, JobState.WAITING, JobState.ACTIVE)


class Job(BaseModel):
    """Durable unit of work wrapping one source run."""
    id: str
    key: Optional[str] = None
    scraper_name: str
    options: Dict[str, Any] = Field(default_factory=dict)
    state: JobState = JobState.WAITING
    attempts: int = 0
    max_attempts: int = 3
    backoff_delay: float = 2.0
    run_at: datetime = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    last_error: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    repeat_cron: Optional[str] = None

    @property
    def attempts_left(self) -> int:
        return max(0, self.max_attempts - self.attempts)

    def backoff_for(self, attempt: int) -> float:
        """Exponential backoff before the retry that follows ``attempt``."""
        return self.backoff_delay * (2 ** max(0, attempt - 1))
