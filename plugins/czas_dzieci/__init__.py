"""
CzasDzieci.pl - nationwide children's events portal, read from its RSS feed.
"""

from core.models import CategoryRule, EventCategory, TrustLevel
from core.strategies import SourceProfile

# matched against the feed's <category> terms
CATEGORY_RULES = [
    CategoryRule(category=EventCategory.WORKSHOP, keywords=["warsztat", "zajęcia"]),
    CategoryRule(category=EventCategory.PERFORMANCE, keywords=["spektakl", "teatr"]),
    CategoryRule(category=EventCategory.SPORT, keywords=["sport", "basen"]),
    CategoryRule(category=EventCategory.EDUCATION, keywords=["nauk", "eduk"]),
]

CZAS_DZIECI = SourceProfile(
    name="czas-dzieci",
    format="rss",
    source_url="https://czasdzieci.pl/wydarzenia/rss/",
    trust=TrustLevel.UNVERIFIED,
    venue_name="Do potwierdzenia",
    address="Zobacz na stronie wydarzenia",
    city="Warszawa",
    organizer_name="CzasDzieci.pl",
    category_rules=CATEGORY_RULES,
    default_category=EventCategory.OTHER,
    min_title_length=3,
)

SOURCES = [CZAS_DZIECI]

__all__ = ["SOURCES", "CZAS_DZIECI"]
