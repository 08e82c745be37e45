"""
Generic source strategies driven by declarative source profiles.

A source is described by a :class:`SourceProfile` (pure data, see
``plugins/``) and executed by one of the strategies below. Adding a source is
a matter of writing a profile; there is no per-source subclassing.
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional, Tuple
from urllib.parse import urljoin

import feedparser
from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel, Field, ValidationError

from .errors import FetchError, SourceUnreachableError
from .interfaces import PageFetcher, SourceStrategy
from .models import (
    MAX_IMAGES,
    AgeRange,
    CanonicalEvent,
    CategoryRule,
    DateRange,
    EventCategory,
    PriceInfo,
    PriceType,
    TrustLevel,
)
from .normalizer import (
    DEFAULT_CATEGORY_RULES,
    WARSAW,
    classify_category,
    days_from_now,
    extract_age_range,
    extract_city,
    extract_location,
    generate_tags,
    normalize_text,
    parse_date,
    parse_price,
)

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200

DEFAULT_ITEM_SELECTORS = [
    ".event-item", ".wydarzenie", ".calendar-event", ".event-card", ".event",
    ".news-item", "article", ".content-item", ".card", ".post",
]
DEFAULT_TITLE_SELECTORS = ["h1", "h2", "h3", "h4", ".title", ".event-title", ".card-title", "a"]
DEFAULT_DESCRIPTION_SELECTORS = [".description", ".excerpt", ".content", ".summary", "p", ".card-text"]
DEFAULT_DATE_SELECTORS = ["time", ".date", ".event-date", ".data", ".termin"]


class StandingEvent(BaseModel):
    """A recurring offering reported when a reachable source lists nothing."""
    title: str
    description: str = ""
    age: Optional[AgeRange] = None
    price: Optional[PriceInfo] = None
    category: Optional[EventCategory] = None
    tags: List[str] = Field(default_factory=list)


class SourceProfile(BaseModel):
    """Declarative description of one external source."""
    name: str
    format: Literal["html", "rss"] = "html"
    source_url: str
    candidate_urls: List[str] = Field(default_factory=list)
    trust: TrustLevel = TrustLevel.UNVERIFIED

    venue_name: str = ""
    address: str = ""
    city: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    postal_code: Optional[str] = None
    organizer_name: str = ""
    extract_venue: bool = True

    default_age: AgeRange = Field(default_factory=AgeRange)
    default_start_days: int = 7
    category_rules: List[CategoryRule] = Field(default_factory=list)
    default_category: EventCategory = EventCategory.OTHER
    base_tags: List[str] = Field(default_factory=list)
    tag_keywords: List[str] = Field(default_factory=list)

    item_selectors: List[str] = Field(default_factory=lambda: list(DEFAULT_ITEM_SELECTORS))
    title_selectors: List[str] = Field(default_factory=lambda: list(DEFAULT_TITLE_SELECTORS))
    description_selectors: List[str] = Field(default_factory=lambda: list(DEFAULT_DESCRIPTION_SELECTORS))
    date_selectors: List[str] = Field(default_factory=lambda: list(DEFAULT_DATE_SELECTORS))
    min_title_length: int = 5
    max_items_per_page: int = 50
    description_fallback: str = ""

    standing_events: List[StandingEvent] = Field(default_factory=list)
    standing_event_spacing_days: int = 5

    @property
    def urls(self) -> List[str]:
        return list(self.candidate_urls or [self.source_url])

    @property
    def rules(self) -> List[CategoryRule]:
        return self.category_rules or DEFAULT_CATEGORY_RULES


class ProfileStrategy(SourceStrategy):
    """Shared plumbing for profile-driven strategies.

    Subclasses implement :meth:`parse_document`, which turns one fetched body
    into candidates. Fetching, unreachability accounting, in-run dedup and the
    standing-event fallback live here.
    """

    def __init__(
        self,
        profile: SourceProfile,
        fetcher: PageFetcher,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.profile = profile
        self.fetcher = fetcher
        self._clock = clock or (lambda: datetime.now(WARSAW))

    @property
    def name(self) -> str:
        return self.profile.name

    @property
    def source_url(self) -> str:
        return self.profile.source_url

    @property
    def trust(self) -> TrustLevel:
        return self.profile.trust

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    @abstractmethod
    def parse_document(self, body: str, url: str) -> List[CanonicalEvent]:
        """Turn one fetched page or feed into events."""

    async def scrape_events(self) -> List[CanonicalEvent]:
        events: List[CanonicalEvent] = []
        reachable = 0
        last_error: Optional[SourceUnreachableError] = None

        for url in self.profile.urls:
            try:
                body = await self.fetcher.get_text(url)
            except SourceUnreachableError as e:
                logger.warning(f"[{self.name}] {url} unreachable: {e}")
                last_error = e
                continue
            except FetchError as e:
                # host answered, page is just not usable
                reachable += 1
                logger.warning(f"[{self.name}] {url} skipped: {e}")
                continue

            reachable += 1
            page_events = self.parse_document(body, url)
            if page_events:
                logger.info(f"[{self.name}] Found {len(page_events)} events at {url}")
            events.extend(page_events)

        if reachable == 0:
            raise SourceUnreachableError(
                self.profile.source_url,
                f"all {len(self.profile.urls)} candidate URLs unreachable ({last_error})",
            )

        unique = self.dedupe(events)
        if not unique:
            logger.info(f"[{self.name}] No events found, reporting standing events")
            return self.fallback_events()

        logger.info(f"[{self.name}] Parsed {len(unique)} unique events")
        return unique

    @staticmethod
    def dedupe(events: Iterable[CanonicalEvent]) -> List[CanonicalEvent]:
        """Keep the first event per casefolded title."""
        seen = set()
        unique = []
        for event in events:
            key = normalize_text(event.title).casefold()
            if key in seen:
                continue
            seen.add(key)
            unique.append(event)
        return unique

    def fallback_events(self, base_date: Optional[datetime] = None) -> List[CanonicalEvent]:
        base = base_date or self._clock()
        profile = self.profile
        events = []
        for index, standing in enumerate(profile.standing_events):
            offset = profile.default_start_days + index * profile.standing_event_spacing_days
            text = f"{standing.title} {standing.description}"
            events.append(self._make_event(
                title=standing.title,
                description=standing.description,
                start=days_from_now(offset, base),
                age=standing.age or extract_age_range(text, profile.default_age),
                price=standing.price or parse_price(text),
                category=standing.category or classify_category(
                    text, profile.rules, profile.default_category
                ),
                tags=profile.base_tags + standing.tags,
                source_url=profile.source_url,
            ))
        return events

    # ---------------------------------------------- #
    # Candidate assembly

    def _make_event(self, **fields: Any) -> CanonicalEvent:
        profile = self.profile
        defaults: Dict[str, Any] = {
            "venue_name": profile.venue_name,
            "address": profile.address,
            "city": profile.city,
            "latitude": profile.latitude,
            "longitude": profile.longitude,
            "postal_code": profile.postal_code,
            "organizer_name": profile.organizer_name,
        }
        defaults.update({k: v for k, v in fields.items() if v is not None})
        return CanonicalEvent(**defaults)

    def build_candidate(
        self,
        title: str,
        description: str,
        link: str,
        images: List[str],
        text: str,
        date_text: str = "",
        published: Optional[datetime] = None,
        extra_tags: Iterable[str] = (),
        category_text: Optional[str] = None,
        organizer: Optional[str] = None,
    ) -> Optional[CanonicalEvent]:
        """Run the normalizer over one extracted item; ``None`` if it is filtered out."""
        profile = self.profile
        title = normalize_text(title, MAX_TITLE_LENGTH)
        if len(title) < profile.min_title_length:
            return None

        description = normalize_text(description) or profile.description_fallback or title
        blob = normalize_text(f"{title} {description} {text}")
        base = self._clock()

        dates = (
            (date_text and parse_date(date_text, base))
            or parse_date(blob, base)
            or (DateRange(start=published) if published else None)
            or DateRange(start=days_from_now(profile.default_start_days, base))
        )

        venue = None
        city = None
        if profile.extract_venue:
            venue = extract_location(blob)
            city = extract_city(blob, profile.city or "Warszawa")

        return self._make_event(
            title=title,
            description=description,
            start=dates.start,
            end=dates.end,
            age=extract_age_range(blob, profile.default_age),
            price=parse_price(blob),
            venue_name=venue,
            city=city,
            organizer_name=organizer,
            source_url=link or profile.source_url,
            image_urls=images[:MAX_IMAGES],
            category=classify_category(
                category_text if category_text else blob,
                profile.rules,
                profile.default_category,
            ),
            tags=generate_tags(blob, list(profile.base_tags) + list(extra_tags), profile.tag_keywords),
        )


class HtmlListingStrategy(ProfileStrategy):
    """Scrapes listing pages with BeautifulSoup using the profile's selector lists."""

    def parse_document(self, body: str, url: str) -> List[CanonicalEvent]:
        soup = BeautifulSoup(body, "html.parser")
        for selector in self.profile.item_selectors:
            elements = soup.select(selector)
            if not elements:
                continue
            logger.debug(f"[{self.name}] {len(elements)} candidates for selector {selector!r}")

            events = []
            for index, element in enumerate(elements[: self.profile.max_items_per_page]):
                try:
                    event = self._parse_item(element, url)
                except (ValidationError, ValueError, AttributeError, TypeError) as e:
                    logger.warning(f"[{self.name}] Skipping item {index} at {url}: {e}")
                    continue
                if event is not None:
                    events.append(event)
            if events:
                return events
        return []

    @staticmethod
    def _first_text(element: Tag, selectors: Iterable[str], min_length: int = 0) -> str:
        found = ""
        for selector in selectors:
            match = element.select_one(selector)
            if match is None:
                continue
            text = match.get_text(" ", strip=True)
            if text:
                found = found or text
                if len(text) > min_length:
                    return text
        return found

    def _parse_item(self, element: Tag, page_url: str) -> Optional[CanonicalEvent]:
        profile = self.profile
        title = self._first_text(element, profile.title_selectors, profile.min_title_length)
        if not title:
            return None
        description = self._first_text(element, profile.description_selectors)

        link_tag = element if element.name == "a" and element.get("href") else element.select_one("a[href]")
        link = urljoin(page_url, link_tag["href"]) if link_tag is not None else ""

        date_text = ""
        for selector in profile.date_selectors:
            date_tag = element.select_one(selector)
            if date_tag is not None:
                date_text = date_tag.get("datetime") or date_tag.get_text(" ", strip=True)
                if date_text:
                    break

        return self.build_candidate(
            title=title,
            description=description,
            link=link,
            images=self._images(element, page_url),
            text=element.get_text(" ", strip=True),
            date_text=date_text,
        )

    @staticmethod
    def _images(element: Tag, page_url: str) -> List[str]:
        images = []
        for img in element.select("img"):
            src = img.get("src") or img.get("data-src")
            if not src or src.startswith("data:"):
                continue
            images.append(urljoin(page_url, src))
        return images[:MAX_IMAGES]


class RssFeedStrategy(ProfileStrategy):
    """Reads RSS/Atom feeds with feedparser."""

    # explicit event-date fields some feeds carry (xCal, ev:, dc:date)
    EVENT_DATE_KEYS = ("ev_startdate", "xcal_dtstart", "event_date", "dc_date", "startdate")

    def parse_document(self, body: str, url: str) -> List[CanonicalEvent]:
        feed = feedparser.parse(body)
        if feed.bozo and not feed.entries:
            logger.warning(f"[{self.name}] Could not parse feed at {url}: {feed.get('bozo_exception')}")
            return []

        events = []
        for entry in feed.entries[: self.profile.max_items_per_page]:
            try:
                event = self._parse_entry(entry, url)
            except (ValidationError, ValueError, AttributeError, TypeError) as e:
                logger.warning(f"[{self.name}] Skipping feed entry {entry.get('title', '?')!r}: {e}")
                continue
            if event is not None:
                events.append(event)
        return events

    def _parse_entry(self, entry: Any, feed_url: str) -> Optional[CanonicalEvent]:
        title = entry.get("title", "")
        link = entry.get("link", "")
        if not title or not link:
            return None

        summary_html = entry.get("summary") or entry.get("description") or ""
        content_html = " ".join(c.get("value", "") for c in entry.get("content", []))
        summary = BeautifulSoup(summary_html, "html.parser").get_text(" ", strip=True)
        content = BeautifulSoup(content_html, "html.parser").get_text(" ", strip=True)
        categories = [normalize_text(t.get("term", "")) for t in entry.get("tags", [])]
        categories = [c for c in categories if c]

        explicit_date = next((entry.get(key) for key in self.EVENT_DATE_KEYS if entry.get(key)), "")

        return self.build_candidate(
            title=title,
            description=summary or content,
            link=urljoin(feed_url, link),
            images=self._images(entry, f"{summary_html} {content_html}", feed_url),
            text=content,
            date_text=explicit_date,
            published=self._published(entry),
            extra_tags=categories,
            category_text=" ".join(categories) or None,
            organizer=entry.get("author"),
        )

    @staticmethod
    def _published(entry: Any) -> Optional[datetime]:
        parsed = entry.get("published_parsed") or entry.get("updated_parsed")
        if not parsed:
            return None
        return datetime(*parsed[:6], tzinfo=timezone.utc)

    @staticmethod
    def _images(entry: Any, html: str, feed_url: str) -> List[str]:
        images = [
            enclosure.get("href")
            for enclosure in entry.get("enclosures", [])
            if enclosure.get("href") and enclosure.get("type", "image/").startswith("image/")
        ]
        images += [m.get("url") for m in entry.get("media_content", []) if m.get("url")]
        if html.strip():
            soup = BeautifulSoup(html, "html.parser")
            images += [img.get("src") for img in soup.select("img[src]")]
        return [urljoin(feed_url, src) for src in images if src][:MAX_IMAGES]


STRATEGY_TYPES: Dict[str, type] = {
    "html": HtmlListingStrategy,
    "rss": RssFeedStrategy,
}


def build_strategy(
    profile: SourceProfile,
    fetcher: PageFetcher,
    clock: Optional[Callable[[], datetime]] = None,
) -> ProfileStrategy:
    try:
        strategy_cls = STRATEGY_TYPES[profile.format]
    except KeyError:
        raise ValueError(f"No strategy for source format {profile.format!r}") from None
    return strategy_cls(profile, fetcher, clock=clock)


def standing(
    title: str,
    description: str,
    age: Tuple[int, int],
    price: Optional[int] = None,
    category: Optional[EventCategory] = None,
    tags: Iterable[str] = (),
) -> StandingEvent:
    """Terse constructor used by plugin profiles; ``price=None`` means free."""
    if price is None:
        price_info = PriceInfo(type=PriceType.FREE)
    else:
        price_info = PriceInfo(type=PriceType.PAID, amount=Decimal(price), currency="PLN")
    return StandingEvent(
        title=title,
        description=description,
        age=AgeRange(min=age[0], max=age[1]),
        price=price_info,
        category=category,
        tags=list(tags),
    )
