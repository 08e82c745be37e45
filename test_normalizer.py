"""
Tests for the Polish text normalizer.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from conftest import FIXED_NOW
from core.models import AgeRange, CategoryRule, EventCategory, PriceType
from core.normalizer import (
    WARSAW,
    classify_category,
    extract_age_range,
    extract_city,
    extract_location,
    generate_tags,
    normalize_text,
    normalize_venue,
    parse_date,
    parse_price,
)


def local(*args) -> datetime:
    return datetime(*args, tzinfo=WARSAW)


class TestAgeRange:

    @pytest.mark.parametrize("text, expected", [
        ("Warsztaty dla dzieci od 5 lat", (5, 18)),
        ("Zajęcia 3-6 lat", (3, 6)),
        ("Spektakl od 4 do 10 lat", (4, 10)),
        ("Dla dzieci 7-12 lat", (7, 12)),
        ("Wiek: 8-14", (8, 14)),
        ("Maluchy do 3 lat", (0, 3)),
        ("Koncert 6+", (6, 18)),
        ("Spektakl dla przedszkolaków", (3, 6)),
        ("Lekcje dla dzieci w wieku szkolnym", (6, 18)),
        ("Zajęcia dla niemowląt", (0, 1)),
        ("Dyskusje dla młodzieży", (13, 18)),
        ("Piknik rodzinny", (0, 18)),
    ])
    def test_patterns(self, text, expected):
        age = extract_age_range(text)
        assert (age.min, age.max) == expected

    def test_numeric_pattern_wins_over_keyword(self):
        age = extract_age_range("Warsztaty dla przedszkolaków 4-5 lat")
        assert (age.min, age.max) == (4, 5)

    def test_open_range_uses_compatible_default_ceiling(self):
        default = AgeRange(min=4, max=14)
        assert extract_age_range("Zajęcia 6+", default) == AgeRange(min=6, max=14)
        assert extract_age_range("Zajęcia 16+", default) == AgeRange(min=16, max=18)

    def test_out_of_range_values_are_clamped(self):
        assert extract_age_range("Warsztaty 10-25 lat") == AgeRange(min=10, max=18)
        assert extract_age_range("Warsztaty 12-8 lat") == AgeRange(min=8, max=12)

    def test_generic_children_keyword_keeps_default(self):
        default = AgeRange(min=4, max=14)
        assert extract_age_range("Spotkanie dla dzieci", default) == default

    @pytest.mark.parametrize("text", ["", None, "Brak informacji o wieku"])
    def test_no_signal_returns_full_range(self, text):
        age = extract_age_range(text)
        assert (age.min, age.max) == (0, 18)


class TestPrice:

    @pytest.mark.parametrize("text", ["Wstęp wolny!", "Udział bezpłatny", "Zajęcia darmowe", "Wstęp za darmo"])
    def test_free(self, text):
        assert parse_price(text).type is PriceType.FREE

    def test_single_amount(self):
        price = parse_price("Bilety: 25 zł od osoby")
        assert price.type is PriceType.PAID
        assert price.amount == Decimal("25")
        assert price.currency == "PLN"

    def test_decimal_amount_with_comma(self):
        assert parse_price("Bilet 12,50 zł").amount == Decimal("12.50")

    def test_labelled_amount_without_currency(self):
        assert parse_price("Bilety: 15").amount == Decimal("15")

    def test_range_takes_minimum(self):
        price = parse_price("Cena 20-30 zł")
        assert price.type is PriceType.PAID
        assert price.amount == Decimal("20")
        assert price.description == "20-30 zł"

    def test_donation(self):
        assert parse_price("Wstęp za dobrowolną darowizną").type is PriceType.DONATION

    @pytest.mark.parametrize("text", ["", None, "Zapraszamy serdecznie"])
    def test_ambiguous_defaults_to_paid(self, text):
        price = parse_price(text)
        assert price.type is PriceType.PAID
        assert price.amount == Decimal(20)
        assert price.currency == "PLN"


class TestDates:

    def test_iso_date(self):
        assert parse_date("Termin: 2025-06-17", FIXED_NOW).start == local(2025, 6, 17)

    def test_iso_datetime(self):
        assert parse_date("2025-06-17T18:30", FIXED_NOW).start == local(2025, 6, 17, 18, 30)

    def test_dotted_date(self):
        assert parse_date("Zapraszamy 21.06.2025", FIXED_NOW).start == local(2025, 6, 21)

    def test_month_name_with_time(self):
        dates = parse_date("17 czerwca 2025, godz. 10:00", FIXED_NOW)
        assert dates.start == local(2025, 6, 17, 10, 0)
        assert not dates.recurring

    def test_month_name_without_year_uses_base_year(self):
        assert parse_date("20 czerwca", FIXED_NOW).start == local(2025, 6, 20)

    def test_month_name_long_past_rolls_to_next_year(self):
        assert parse_date("5 maja", FIXED_NOW).start == local(2026, 5, 5)

    def test_nominative_month(self):
        assert parse_date("3 lipiec 2025", FIXED_NOW).start == local(2025, 7, 3)

    def test_every_weekday_is_recurring(self):
        dates = parse_date("Zajęcia w każdą sobotę o 11:00", FIXED_NOW)
        assert dates.start == local(2025, 6, 14, 11, 0)
        assert dates.recurring
        assert dates.pattern == "sobotę"

    def test_plural_weekday_same_day_moves_a_week(self):
        dates = parse_date("Spotkania we wtorki", FIXED_NOW)
        assert dates.start == local(2025, 6, 17)
        assert dates.recurring

    def test_relative_days(self):
        assert parse_date("dziś", FIXED_NOW).start == local(2025, 6, 10)
        assert parse_date("jutro o 17:00", FIXED_NOW).start == local(2025, 6, 11, 17, 0)
        assert parse_date("pojutrze", FIXED_NOW).start == local(2025, 6, 12)

    def test_winter_break_window(self):
        dates = parse_date("Półkolonie w ferie zimowe", FIXED_NOW)
        assert dates.start == local(2025, 1, 20)
        assert dates.end == local(2025, 2, 3)

    def test_summer_window(self):
        dates = parse_date("Zajęcia na wakacje", FIXED_NOW)
        assert dates.start == local(2025, 7, 1)
        assert (dates.end - dates.start).days == 60

    def test_naive_base_date_is_local(self):
        assert parse_date("jutro", datetime(2025, 6, 10, 12, 0)).start == local(2025, 6, 11)

    @pytest.mark.parametrize("text", ["", None, "Zapraszamy wkrótce", "31 lutego"])
    def test_no_date(self, text):
        assert parse_date(text, FIXED_NOW) is None

    def test_results_are_timezone_aware(self):
        assert parse_date("20 czerwca", FIXED_NOW).start.tzinfo is not None


class TestPlaces:

    def test_labelled_location(self):
        assert extract_location("Miejsce: Sala Kameralna, ul. Nowa 1") == "Sala Kameralna"

    def test_locative_with_alias(self):
        assert extract_location("Zajęcia odbędą się w BOK. Zapraszamy") == "Białostocki Ośrodek Kultury"

    def test_street_prefix(self):
        assert extract_location("Spotkanie przy ul. Lipowej 5, Białystok") == "ul. Lipowej 5"

    def test_no_location(self):
        assert extract_location("Zapraszamy wszystkich") is None
        assert extract_location("") is None

    def test_location_is_capped(self):
        assert len(extract_location("Miejsce: " + "A" * 300)) <= 120

    @pytest.mark.parametrize("alias, name", [
        ("MDK", "Młodzieżowy Dom Kultury"),
        ("btl", "Białostocki Teatr Lalek"),
        ("Książnica", "Książnica Podlaska"),
    ])
    def test_venue_aliases(self, alias, name):
        assert normalize_venue(alias) == name

    def test_unknown_venue_is_trimmed(self):
        assert normalize_venue("  Teatr   Lalek ") == "Teatr Lalek"

    def test_city(self):
        assert extract_city("Festyn, Kraków, Rynek") == "Kraków"
        assert extract_city("Koncert w Białymstoku") == "Białystok"
        assert extract_city("Brak miasta", default="Białystok") == "Białystok"


class TestTextHelpers:

    def test_normalize_text(self):
        assert normalize_text('  „Bajka”  o\n smoku ’x’ ') == "\"Bajka\" o smoku 'x'"

    def test_normalize_text_caps_length(self):
        assert len(normalize_text("a" * 6000)) == 5000
        assert normalize_text(None) == ""

    def test_classify_first_rule_wins(self):
        assert classify_category("Warsztaty teatralne") is EventCategory.WORKSHOP
        assert classify_category("Spektakl dla dzieci") is EventCategory.PERFORMANCE
        assert classify_category("Zapraszamy") is EventCategory.OTHER

    def test_classify_custom_rules_and_default(self):
        rules = [CategoryRule(category=EventCategory.SPORT, keywords=["basen"])]
        assert classify_category("Nauka pływania na basenie", rules) is EventCategory.SPORT
        assert classify_category("Czytanie bajek", rules, EventCategory.EDUCATION) is EventCategory.EDUCATION

    def test_generate_tags(self):
        tags = generate_tags("Warsztaty z robotyki", ["dzieci", "dzieci"], ["robotyki", "lego"])
        assert tags == ["dzieci", "robotyki"]
        assert len(generate_tags("", [str(i) for i in range(20)])) == 10
