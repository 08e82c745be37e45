"""
Biblioteka Publiczna w Białymstoku - municipal library events for children.
"""

from core.models import AgeRange, CategoryRule, EventCategory, TrustLevel
from core.strategies import SourceProfile, standing

BASE_URL = "https://www.biblioteka.bialystok.pl"

CATEGORY_RULES = [
    CategoryRule(category=EventCategory.WORKSHOP, keywords=["warsztat", "plastyczne", "twórcze", "komputerowe", "abc"]),
    CategoryRule(category=EventCategory.PERFORMANCE, keywords=["teatrzyk", "kukiełkowy", "przedstawienie", "spektakl"]),
    CategoryRule(category=EventCategory.EDUCATION, keywords=["spotkanie", "czytanie", "edukacja", "lekcje", "klub", "nauka"]),
]

BIBLIOTEKA_BIALYSTOK = SourceProfile(
    name="biblioteka-bialystok",
    format="html",
    source_url=BASE_URL,
    candidate_urls=[
        f"{BASE_URL}/wydarzenia",
        f"{BASE_URL}/pl/wydarzenia",
        f"{BASE_URL}/aktualnosci",
        f"{BASE_URL}/dzieci",
        f"{BASE_URL}/spotkania",
        f"{BASE_URL}/warsztaty",
        BASE_URL,
    ],
    trust=TrustLevel.TRUSTED,
    venue_name="Biblioteka Publiczna w Białymstoku",
    address="ul. Młynowa 6, Białystok",
    city="Białystok",
    latitude=53.1325,
    longitude=23.1688,
    postal_code="15-404",
    organizer_name="Biblioteka Publiczna w Białymstoku",
    extract_venue=False,
    default_age=AgeRange(min=4, max=14),
    category_rules=CATEGORY_RULES,
    default_category=EventCategory.EDUCATION,
    base_tags=["białystok", "biblioteka", "dzieci", "edukacja"],
    tag_keywords=["bajki", "czytanie", "warsztaty", "komputer", "teatrzyk", "klub"],
    item_selectors=[
        ".event-item", ".wydarzenie", ".calendar-event", ".event-card", ".event",
        ".news-item", ".aktualnosci-item", ".spotkanie", ".warsztat", "article",
        ".content-item", ".card", ".post",
    ],
    description_fallback="Wydarzenie dla dzieci w Bibliotece Publicznej w Białymstoku.",
    standing_events=[
        standing(
            "Spotkania z bajką dla najmłodszych",
            "Cotygodniowe spotkania z czytaniem bajek dla dzieci 3-6 lat. Rozwój czytelnictwa i wyobraźni.",
            age=(3, 6), category=EventCategory.EDUCATION,
            tags=["bajki", "czytanie", "najmłodsi", "cotygodniowe"],
        ),
        standing(
            "Warsztaty plastyczne w bibliotece",
            "Twórcze warsztaty inspirowane przeczytanymi książkami. Dzieci tworzą ilustracje do ulubionych historii.",
            age=(6, 12), price=5, category=EventCategory.WORKSHOP,
            tags=["plastyczne", "książki", "ilustracje", "twórczość"],
        ),
        standing(
            "Klub młodego czytelnika",
            "Spotkania dla dzieci w wieku szkolnym. Dyskusje o książkach, prezentacje i konkursy czytelnicze.",
            age=(7, 15), category=EventCategory.EDUCATION,
            tags=["czytanie", "dyskusje", "konkursy", "szkolne"],
        ),
        standing(
            "Lekcje biblioteczne dla szkół",
            "Specjalne zajęcia edukacyjne dla grup szkolnych. Nauka korzystania z biblioteki i wyszukiwania informacji.",
            age=(6, 16), category=EventCategory.EDUCATION,
            tags=["szkoły", "edukacyjne", "informacja", "grupy"],
        ),
        standing(
            "Teatrzyk kukiełkowy w bibliotece",
            "Comiesięczne przedstawienia kukiełkowe na podstawie znanych bajek. Interaktywna zabawa dla całej rodziny.",
            age=(3, 10), price=10, category=EventCategory.PERFORMANCE,
            tags=["kukiełki", "teatrzyk", "bajki", "interaktywne"],
        ),
        standing(
            "Rodzinne czytanie w weekend",
            "Sobotnie spotkania dla całych rodzin. Głośne czytanie, gry słowne i zabawy czytelnicze.",
            age=(0, 18), category=EventCategory.EDUCATION,
            tags=["rodzinne", "weekend", "słowne", "czytelnicze"],
        ),
        standing(
            "Komputerowe ABC dla dzieci",
            "Wprowadzenie do obsługi komputera i internetu. Bezpieczne korzystanie z zasobów cyfrowych.",
            age=(8, 14), price=15, category=EventCategory.WORKSHOP,
            tags=["komputery", "internet", "bezpieczne", "cyfrowe"],
        ),
    ],
)

SOURCES = [BIBLIOTEKA_BIALYSTOK]

__all__ = ["SOURCES", "BIBLIOTEKA_BIALYSTOK"]
