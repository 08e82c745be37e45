"""
Heuristic extraction of structured event fields from free-form Polish text.

Every public function here is total: for any string, including an empty one,
it returns a usable value (or ``None`` where documented) instead of raising.
Callers are expected to layer their own defaults on top.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Sequence
from zoneinfo import ZoneInfo

from .models import (
    AgeRange,
    CategoryRule,
    DateRange,
    EventCategory,
    PriceInfo,
    PriceType,
)

WARSAW = ZoneInfo("Europe/Warsaw")

DEFAULT_PRICE_AMOUNT = Decimal(20)
MAX_TEXT_LENGTH = 5000
MAX_LOCATION_LENGTH = 120

# ---------------------------------------------- #
# Vocabulary

POLISH_MONTHS = {
    "stycznia": 1, "lutego": 2, "marca": 3, "kwietnia": 4, "maja": 5, "czerwca": 6,
    "lipca": 7, "sierpnia": 8, "września": 9, "października": 10, "listopada": 11, "grudnia": 12,
    "styczeń": 1, "luty": 2, "marzec": 3, "kwiecień": 4, "maj": 5, "czerwiec": 6,
    "lipiec": 7, "sierpień": 8, "wrzesień": 9, "październik": 10, "listopad": 11, "grudzień": 12,
}

# Python weekday numbers, Monday == 0
RECURRING_WEEKDAYS = {
    "poniedziałki": 0, "wtorki": 1, "środy": 2, "czwartki": 3,
    "piątki": 4, "soboty": 5, "niedziele": 6,
}
SINGLE_WEEKDAYS = {
    "poniedziałek": 0, "wtorek": 1, "środę": 2, "czwartek": 3,
    "piątek": 4, "sobotę": 5, "niedzielę": 6,
}

FREE_KEYWORDS = [
    "bezpłatn", "darmow", "wstęp wolny", "wstęp bezpłatny", "free", "gratis",
    "za darmo", "bez opłat", "nieodpłatn",
]

DONATION_KEYWORDS = ["dobrowoln", "wsparcie", "darowizn", "co łaska"]

VENUE_ALIASES = {
    "bok": "Białostocki Ośrodek Kultury",
    "clz": "Centrum im. L. Zamenhofa",
    "mdk": "Młodzieżowy Dom Kultury",
    "btl": "Białostocki Teatr Lalek",
    "oifp": "Opera i Filharmonia Podlaska",
    "książnica": "Książnica Podlaska",
    "epi-centrum": "Epi-Centrum Nauki",
    "pb": "Politechnika Białostocka",
    "uwb": "Uniwersytet w Białymstoku",
    "cnk": "Centrum Nauki Kopernik",
}

POLISH_CITIES = [
    "Warszawa", "Kraków", "Wrocław", "Poznań", "Gdańsk", "Szczecin", "Bydgoszcz",
    "Lublin", "Białystok", "Katowice", "Gdynia", "Częstochowa", "Radom", "Rzeszów",
    "Toruń", "Kielce", "Gliwice", "Olsztyn",
]

# locative forms as they appear after "w"/"we"
CITY_LOCATIVES = {
    "warszawie": "Warszawa", "krakowie": "Kraków", "wrocławiu": "Wrocław",
    "poznaniu": "Poznań", "gdańsku": "Gdańsk", "szczecinie": "Szczecin",
    "lublinie": "Lublin", "białymstoku": "Białystok", "katowicach": "Katowice",
    "gdyni": "Gdynia", "toruniu": "Toruń", "olsztynie": "Olsztyn",
}

DEFAULT_CATEGORY_RULES: List[CategoryRule] = [
    CategoryRule(category=EventCategory.WORKSHOP, keywords=["warsztat", "zajęcia", "kurs", "lekcj"]),
    CategoryRule(category=EventCategory.PERFORMANCE, keywords=["spektakl", "teatr", "przedstawieni", "musical", "koncert"]),
    CategoryRule(category=EventCategory.SPORT, keywords=["sport", "basen", "taniec", "joga", "gimnastyk", "piłk"]),
    CategoryRule(category=EventCategory.EDUCATION, keywords=["nauk", "eduk", "szkoł", "akademi", "robot", "programow"]),
]

# ---------------------------------------------- #
# Patterns

_NUM = r"(\d{1,2})"
_DASH = r"\s*[-–]\s*"

# (pattern, kind) in priority order; kind decides how groups become a range
_AGE_PATTERNS = [
    (re.compile(rf"\bod\s*{_NUM}\s*do\s*{_NUM}\s*(?:lat|roku)"), "range"),
    (re.compile(rf"dla\s+dzieci\s+{_NUM}{_DASH}{_NUM}\s*lat"), "range"),
    (re.compile(rf"(?<![\d.])\b{_NUM}{_DASH}{_NUM}\s*(?:lat|l\.)"), "range"),
    (re.compile(rf"\bwiek\s*:?\s*{_NUM}{_DASH}{_NUM}"), "range"),
    (re.compile(rf"\bdzieci\s+{_NUM}{_DASH}{_NUM}\b"), "range"),
    (re.compile(rf"młodzież\w*\s+{_NUM}\s*\+"), "open"),
    (re.compile(rf"rodzinn\w*\s*\(\s*{_NUM}\s*\+\s*\)"), "open"),
    (re.compile(rf"\bod\s*{_NUM}\s*(?:lat|roku|r\.)"), "open"),
    (re.compile(rf"(?<![\d.,])\b{_NUM}\s*\+"), "open"),
    (re.compile(rf"\bdo\s*{_NUM}\s*(?:lat|roku)"), "upto"),
]

_AGE_BUCKETS = [
    (("niemowl",), (0, 1)),
    (("maluch",), (1, 3)),
    (("przedszkol",), (3, 6)),
    (("szkoln", "podstawów"), (6, 18)),
    (("młodzież", "nastolat"), (13, 18)),
    (("rodzin",), (0, 18)),
]

_AMOUNT = r"(\d+(?:[.,]\d{1,2})?)"
_PRICE_RANGE_PATTERN = re.compile(rf"{_AMOUNT}\s*[-–/]\s*{_AMOUNT}\s*(?:zł|pln)")
_PRICE_PATTERNS = [
    re.compile(rf"{_AMOUNT}\s*(?:zł|pln|złot)"),
    re.compile(rf"\bbilet\w*\s*:?\s*{_AMOUNT}"),
    re.compile(rf"\bopłata\s*:?\s*{_AMOUNT}"),
    re.compile(rf"\bkoszt\w*\s*:?\s*{_AMOUNT}"),
    re.compile(rf"\bcena\s*:?\s*{_AMOUNT}"),
]

_ISO_DATE = re.compile(r"(\d{4})-(\d{2})-(\d{2})(?:[Tt ](\d{2}):(\d{2}))?")
_DOTTED_DATE = re.compile(r"(?<!\d)(\d{1,2})\.(\d{1,2})\.(\d{4})(?!\d)")
_MONTH_DATE = re.compile(
    r"(?<!\d)(\d{1,2})\s+("
    + "|".join(sorted(POLISH_MONTHS, key=len, reverse=True))
    + r")(?!\w)(?:\s+(\d{4}))?"
)
_RECURRING_WEEKDAY = re.compile(r"\b(" + "|".join(RECURRING_WEEKDAYS) + r")\b")
_EVERY_WEEKDAY = re.compile(r"\bkażd[ąy]\s+(" + "|".join(SINGLE_WEEKDAYS) + r")\b")
_LABELLED_TIME = re.compile(r"\b(?:godz\.?|godzina|godzinie|o)\s*(\d{1,2})[:.](\d{2})\b")
_BARE_TIME = re.compile(r"(?<![\d.:])(\d{1,2}):(\d{2})(?![\d:])")

_UPPER = "A-ZĄĆĘŁŃÓŚŹŻ"
_LOCATION_PATTERNS = [
    re.compile(r"miejsce\s*:\s*([^,\n]+?)(?:\.\s|[,\n]|\.?$)", re.IGNORECASE),
    re.compile(r"lokalizacja\s*:\s*([^,\n]+?)(?:\.\s|[,\n]|\.?$)", re.IGNORECASE),
    re.compile(r"adres\s*:\s*([^,\n]+?)(?:\.\s|[,\n]|\.?$)", re.IGNORECASE),
    re.compile(rf"(?<!\w)[wW]\s+([{_UPPER}][^.,\n]*)"),
    re.compile(r"(?<!\w)(ul\.\s*[^.,\n]+)", re.IGNORECASE),
    re.compile(r"(?<!\w)(al\.\s*[^.,\n]+)", re.IGNORECASE),
    re.compile(r"(?<!\w)(pl\.\s*[^.,\n]+)", re.IGNORECASE),
]

_VENUE_ALIAS_PATTERNS = [
    (re.compile(rf"(?<!\w){re.escape(alias)}(?!\w)"), full_name)
    for alias, full_name in VENUE_ALIASES.items()
]


# ---------------------------------------------- #
# Text

def normalize_text(text: Optional[str], max_length: int = MAX_TEXT_LENGTH) -> str:
    """Collapse whitespace, canonicalize quotes, trim and cap length."""
    if not text:
        return ""
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"[“”„‟″«»]", '"', text)
    text = re.sub(r"[‘’‚‛′]", "'", text)
    return text.strip()[:max_length].strip()


# ---------------------------------------------- #
# Age

def extract_age_range(text: Optional[str], default: Optional[AgeRange] = None) -> AgeRange:
    """Find the age range a text talks about.

    Numeric patterns outrank keyword buckets; within each group the first
    match in priority order wins. Open-ended ranges ("od 5 lat", "5+") take
    their upper bound from ``default`` when it is compatible, otherwise 18.
    """
    fallback = default or AgeRange()
    clean = (text or "").lower()

    for pattern, kind in _AGE_PATTERNS:
        match = pattern.search(clean)
        if not match:
            continue
        first = int(match.group(1))
        if kind == "range":
            return AgeRange(min=first, max=int(match.group(2)))
        if kind == "open":
            upper = fallback.max if default and default.max >= first else 18
            return AgeRange(min=first, max=upper)
        if kind == "upto":
            return AgeRange(min=0, max=first)

    for keywords, (lo, hi) in _AGE_BUCKETS:
        if any(keyword in clean for keyword in keywords):
            return AgeRange(min=lo, max=hi)

    return fallback.model_copy()


# ---------------------------------------------- #
# Price

def _to_decimal(raw: str) -> Optional[Decimal]:
    try:
        return Decimal(raw.replace(",", "."))
    except InvalidOperation:
        return None


def parse_price(text: Optional[str]) -> PriceInfo:
    """Classify a price text as FREE, PAID or DONATION.

    Text with no price signal at all is treated as PAID with a placeholder
    amount, never as FREE.
    """
    clean = (text or "").lower()

    if any(keyword in clean for keyword in FREE_KEYWORDS):
        return PriceInfo(type=PriceType.FREE)

    range_match = _PRICE_RANGE_PATTERN.search(clean)
    if range_match:
        low, high = _to_decimal(range_match.group(1)), _to_decimal(range_match.group(2))
        if low is not None and high is not None:
            low, high = sorted((low, high))
            return PriceInfo(
                type=PriceType.PAID,
                amount=low,
                currency="PLN",
                description=f"{low}-{high} zł",
            )

    for pattern in _PRICE_PATTERNS:
        match = pattern.search(clean)
        if match:
            amount = _to_decimal(match.group(1))
            if amount is not None:
                return PriceInfo(type=PriceType.PAID, amount=amount, currency="PLN")

    if any(keyword in clean for keyword in DONATION_KEYWORDS):
        return PriceInfo(type=PriceType.DONATION)

    return PriceInfo(type=PriceType.PAID, amount=DEFAULT_PRICE_AMOUNT, currency="PLN")


# ---------------------------------------------- #
# Dates

def _as_local(base_date: Optional[datetime]) -> datetime:
    if base_date is None:
        return datetime.now(WARSAW)
    if base_date.tzinfo is None:
        return base_date.replace(tzinfo=WARSAW)
    return base_date.astimezone(WARSAW)


def _local_midnight(year: int, month: int, day: int) -> Optional[datetime]:
    try:
        return datetime(year, month, day, tzinfo=WARSAW)
    except ValueError:
        return None


def _find_time(text: str) -> Optional[tuple]:
    for pattern in (_LABELLED_TIME, _BARE_TIME):
        for match in pattern.finditer(text):
            hour, minute = int(match.group(1)), int(match.group(2))
            if hour < 24 and minute < 60:
                return hour, minute
    return None


def _with_time(day: datetime, text: str) -> datetime:
    found = _find_time(text)
    if not found:
        return day
    return day.replace(hour=found[0], minute=found[1])


def next_weekday(base_date: datetime, weekday: int) -> datetime:
    """Next occurrence of ``weekday`` strictly after ``base_date`` (a date at midnight)."""
    days_ahead = (weekday - base_date.weekday()) % 7 or 7
    start = base_date.replace(hour=0, minute=0, second=0, microsecond=0)
    return start + timedelta(days=days_ahead)


def days_from_now(days: int, base_date: Optional[datetime] = None) -> datetime:
    """Local midnight ``days`` after ``base_date``; the usual caller-side default."""
    base = _as_local(base_date)
    midnight = base.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight + timedelta(days=days)


def parse_date(text: Optional[str], base_date: Optional[datetime] = None) -> Optional[DateRange]:
    """Resolve the first date-like expression in ``text``.

    Tried in order: ISO dates, dd.mm.yyyy, Polish month names, weekday
    recurrence, relative days and seasonal windows. Returns ``None`` when
    nothing matches.
    """
    if not text:
        return None
    base = _as_local(base_date)
    clean = text.lower()

    iso = _ISO_DATE.search(clean)
    if iso:
        day = _local_midnight(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))
        if day is not None:
            if iso.group(4):
                hour, minute = int(iso.group(4)), int(iso.group(5))
                if hour < 24 and minute < 60:
                    day = day.replace(hour=hour, minute=minute)
            else:
                day = _with_time(day, clean)
            return DateRange(start=day)

    dotted = _DOTTED_DATE.search(clean)
    if dotted:
        day = _local_midnight(int(dotted.group(3)), int(dotted.group(2)), int(dotted.group(1)))
        if day is not None:
            return DateRange(start=_with_time(day, clean))

    for match in _MONTH_DATE.finditer(clean):
        month = POLISH_MONTHS[match.group(2)]
        explicit_year = match.group(3)
        year = int(explicit_year) if explicit_year else base.year
        day = _local_midnight(year, month, int(match.group(1)))
        if day is None:
            continue
        if not explicit_year and day < base - timedelta(days=30):
            day = _local_midnight(year + 1, month, int(match.group(1))) or day
        return DateRange(start=_with_time(day, clean))

    recurring = _RECURRING_WEEKDAY.search(clean) or _EVERY_WEEKDAY.search(clean)
    if recurring:
        word = recurring.group(1)
        weekday = RECURRING_WEEKDAYS.get(word, SINGLE_WEEKDAYS.get(word))
        start = _with_time(next_weekday(base, weekday), clean)
        return DateRange(start=start, recurring=True, pattern=word)

    for pattern, offset in ((r"\bpojutrze\b", 2), (r"\bjutro\b", 1), (r"\b(?:dziś|dzisiaj)\b", 0)):
        if re.search(pattern, clean):
            return DateRange(start=_with_time(days_from_now(offset, base), clean))

    if "ferie zimowe" in clean:
        start = datetime(base.year, 1, 20, tzinfo=WARSAW)
        return DateRange(start=start, end=start + timedelta(days=14))
    if "ferie letnie" in clean or "wakacje" in clean:
        start = datetime(base.year, 7, 1, tzinfo=WARSAW)
        return DateRange(start=start, end=start + timedelta(days=60))

    return None


# ---------------------------------------------- #
# Places

def normalize_venue(text: Optional[str]) -> str:
    """Map well-known abbreviations to the institution's canonical name."""
    if not text:
        return ""
    clean = text.lower().strip()
    for pattern, full_name in _VENUE_ALIAS_PATTERNS:
        if pattern.search(clean):
            return full_name
    return normalize_text(text)


def extract_location(text: Optional[str]) -> Optional[str]:
    """First venue-looking phrase in ``text``, or ``None``."""
    if not text:
        return None
    for pattern in _LOCATION_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).strip():
            location = normalize_text(match.group(1), MAX_LOCATION_LENGTH)
            if location:
                return normalize_venue(location)
    return None


def extract_city(text: Optional[str], default: str = "Warszawa") -> str:
    clean = (text or "").lower()
    for city in POLISH_CITIES:
        if city.lower() in clean:
            return city
    for locative, city in CITY_LOCATIVES.items():
        if re.search(rf"\bwe?\s+{locative}\b", clean):
            return city
    return default


# ---------------------------------------------- #
# Classification

def classify_category(
    text: Optional[str],
    rules: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES,
    default: EventCategory = EventCategory.OTHER,
) -> EventCategory:
    """Walk the decision list; the first rule with a matching keyword wins."""
    clean = (text or "").lower()
    for rule in rules:
        if any(keyword.lower() in clean for keyword in rule.keywords):
            return rule.category
    return default


def generate_tags(
    text: Optional[str],
    base_tags: Iterable[str] = (),
    keywords: Iterable[str] = (),
    limit: int = 10,
) -> List[str]:
    tags = list(dict.fromkeys(base_tags))
    clean = (text or "").lower()
    for keyword in keywords:
        if keyword.lower() in clean and keyword not in tags:
            tags.append(keyword)
    return tags[:limit]
