"""
Muzeum Podlaskie w Białymstoku - museum workshops and guided visits.
"""

from core.models import AgeRange, CategoryRule, EventCategory, TrustLevel
from core.strategies import SourceProfile, standing

BASE_URL = "https://muzeum.bialystok.pl"
MUSEUM = "Muzeum Podlaskie w Białymstoku"

CATEGORY_RULES = [
    CategoryRule(category=EventCategory.WORKSHOP, keywords=["warsztat", "rękodzieło", "archeologiczne", "tworzenie", "techniki"]),
    CategoryRule(category=EventCategory.PERFORMANCE, keywords=["noc", "nocne", "spektakl", "latarki"]),
    CategoryRule(category=EventCategory.EDUCATION, keywords=["zwiedzanie", "przewodnik", "lekcje", "edukacja", "szkoły", "historia"]),
]

MUZEUM_PODLASKIE = SourceProfile(
    name="muzeum-podlaskie",
    format="html",
    source_url=BASE_URL,
    candidate_urls=[
        f"{BASE_URL}/wydarzenia",
        f"{BASE_URL}/pl/wydarzenia",
        f"{BASE_URL}/edukacja",
        f"{BASE_URL}/warsztaty",
        f"{BASE_URL}/dzieci",
        f"{BASE_URL}/aktualnosci",
        BASE_URL,
    ],
    trust=TrustLevel.TRUSTED,
    venue_name=MUSEUM,
    address="ul. Kilińskiego 1, Białystok",
    city="Białystok",
    latitude=53.1325,
    longitude=23.1688,
    postal_code="15-089",
    organizer_name=MUSEUM,
    extract_venue=False,
    default_age=AgeRange(min=6, max=16),
    category_rules=CATEGORY_RULES,
    default_category=EventCategory.EDUCATION,
    base_tags=["białystok", "muzeum", "podlaskie", "historia"],
    tag_keywords=["warsztaty", "rodzinne", "zwiedzanie", "archeologia", "rękodzieło"],
    item_selectors=[
        ".event-item", ".wydarzenie", ".calendar-event", ".event-card", ".event",
        ".news-item", ".warsztat", ".edukacja-item", "article", ".content-item",
        ".card", ".museum-event",
    ],
    description_fallback="Wydarzenie w Muzeum Podlaskim w Białymstoku.",
    standing_events=[
        standing(
            "Warsztaty historyczne dla dzieci",
            "Interaktywne zajęcia poznające historię Podlasia. Dzieci wcielają się w role postaci historycznych.",
            age=(8, 14), price=15, category=EventCategory.WORKSHOP,
            tags=["historia", "podlaskie", "interaktywne", "postacie"],
        ),
        standing(
            "Zwiedzanie z przewodnikiem dla rodzin",
            "Oprowadzanie dostosowane do najmłodszych. Historia regionu opowiedziana w przystępny sposób.",
            age=(5, 16), price=10, category=EventCategory.EDUCATION,
            tags=["przewodnik", "rodziny", "region"],
        ),
        standing(
            "Warsztaty archeologiczne",
            "Dzieci uczą się pracy archeologa. Symulacja wykopalisk i odkrywanie starożytnych artefaktów.",
            age=(9, 15), price=20, category=EventCategory.WORKSHOP,
            tags=["archeologia", "wykopaliska", "artefakty", "odkrywanie"],
        ),
        standing(
            "Lekcje muzealne dla szkół",
            "Specjalne zajęcia edukacyjne dopasowane do programu szkolnego. Historia lokalna w praktyce.",
            age=(6, 18), price=8, category=EventCategory.EDUCATION,
            tags=["szkoły", "program", "lokalna", "praktyka"],
        ),
        standing(
            "Noce w muzeum - rodzinne wydarzenia",
            "Wyjątkowe nocne zwiedzanie z latarkami. Muzeum po zmroku dla odważnych rodzin.",
            age=(7, 18), price=25, category=EventCategory.PERFORMANCE,
            tags=["nocne", "latarki", "zmrok", "odważne"],
        ),
        standing(
            "Warsztaty rękodzieła ludowego",
            "Nauka tradycyjnych technik rękodzielniczych Podlasia. Tworzenie pamiątek według dawnych wzorów.",
            age=(10, 16), price=18, category=EventCategory.WORKSHOP,
            tags=["rękodzieło", "tradycyjne", "pamiątki", "wzory"],
        ),
    ],
)

SOURCES = [MUZEUM_PODLASKIE]

__all__ = ["SOURCES", "MUZEUM_PODLASKIE"]
