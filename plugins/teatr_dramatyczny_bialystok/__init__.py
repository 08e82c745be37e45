"""
Teatr Dramatyczny im. Aleksandra Węgierki - family and school repertoire.
"""

from core.models import AgeRange, CategoryRule, EventCategory, TrustLevel
from core.strategies import SourceProfile, standing

BASE_URL = "https://teatr.bialystok.pl"
THEATRE = "Teatr Dramatyczny im. Aleksandra Węgierki"

CATEGORY_RULES = [
    CategoryRule(category=EventCategory.WORKSHOP, keywords=["warsztat", "zajęcia", "aktorskie", "sceniczne", "teatralne"]),
    CategoryRule(category=EventCategory.PERFORMANCE, keywords=["spektakl", "przedstawienie", "bajki", "familijne", "mikołajkowe", "teatr"]),
    CategoryRule(category=EventCategory.EDUCATION, keywords=["edukacyjne", "szkoły", "literatura", "program"]),
]

TEATR_DRAMATYCZNY = SourceProfile(
    name="teatr-dramatyczny-bialystok",
    format="html",
    source_url=BASE_URL,
    candidate_urls=[
        f"{BASE_URL}/repertuar",
        f"{BASE_URL}/pl/repertuar",
        f"{BASE_URL}/dzieci",
        f"{BASE_URL}/rodzinne",
        f"{BASE_URL}/spektakle",
        f"{BASE_URL}/wydarzenia",
        BASE_URL,
    ],
    trust=TrustLevel.TRUSTED,
    venue_name=THEATRE,
    address="ul. Zabia 2, Białystok",
    city="Białystok",
    latitude=53.1325,
    longitude=23.1688,
    postal_code="15-077",
    organizer_name=THEATRE,
    extract_venue=False,
    default_age=AgeRange(min=6, max=18),
    category_rules=CATEGORY_RULES,
    default_category=EventCategory.PERFORMANCE,
    base_tags=["białystok", "teatr", "spektakle", "kultura"],
    tag_keywords=["bajki", "rodzinne", "warsztaty", "młodzież", "premiera"],
    item_selectors=[
        ".event-item", ".spektakl", ".performance", ".show-item", ".calendar-event",
        ".event-card", ".event", ".repertuar-item", "article", ".content-item",
        ".card", ".theater-event",
    ],
    title_selectors=["h1", "h2", "h3", "h4", ".title", ".event-title", ".card-title", ".spektakl-title", "a"],
    description_fallback="Spektakl w Teatrze Dramatycznym w Białymstoku.",
    standing_events=[
        standing(
            "Bajkowe spektakle dla najmłodszych",
            "Klasyczne bajki w wykonaniu profesjonalnych aktorów. Interaktywne przedstawienia dla dzieci w wieku przedszkolnym.",
            age=(3, 7), price=20, category=EventCategory.PERFORMANCE,
            tags=["bajki", "przedszkolne", "interaktywne", "klasyczne"],
        ),
        standing(
            "Spektakle familijne w weekendy",
            "Niedzielne przedstawienia dla całej rodziny. Repertuar dostosowany do różnych grup wiekowych.",
            age=(5, 18), price=25, category=EventCategory.PERFORMANCE,
            tags=["rodzinne", "weekend", "niedzielne"],
        ),
        standing(
            "Warsztaty teatralne dla dzieci",
            "Zajęcia rozwijające umiejętności aktorskie. Dzieci uczą się podstaw gry aktorskiej i technik scenicznych.",
            age=(8, 16), price=30, category=EventCategory.WORKSHOP,
            tags=["aktorskie", "sceniczne", "podstawy", "umiejętności"],
        ),
        standing(
            "Spektakle edukacyjne dla szkół",
            "Przedstawienia dopasowane do programu szkolnego. Literatura polska w atrakcyjnej formie teatralnej.",
            age=(7, 17), price=15, category=EventCategory.PERFORMANCE,
            tags=["edukacyjne", "szkoły", "literatura", "program"],
        ),
        standing(
            "Mikołajkowe przedstawienia",
            "Świąteczne spektakle z udziałem Św. Mikołaja. Magiczne chwile dla najmłodszych widzów.",
            age=(3, 12), price=35, category=EventCategory.PERFORMANCE,
            tags=["mikołajkowe", "świąteczne", "magiczne", "widzowie"],
        ),
        standing(
            "Młodzieżowe spektakle współczesne",
            "Nowoczesne przedstawienia poruszające tematy ważne dla młodzieży. Aktualne problemy w formie teatralnej.",
            age=(12, 18), price=22, category=EventCategory.PERFORMANCE,
            tags=["młodzieżowe", "współczesne", "aktualne", "problemy"],
        ),
    ],
)

SOURCES = [TEATR_DRAMATYCZNY]

__all__ = ["SOURCES", "TEATR_DRAMATYCZNY"]
