"""Tests for relative date translation. 2026-01-19 is a Monday."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from notevault.vault.dates import (
    DEFAULT_RULES,
    DateQueryTranslator,
    day_terms,
    parse_month_name,
    translate_query,
)

MONDAY = date(2026, 1, 19)
WEDNESDAY = date(2026, 1, 21)
SATURDAY = date(2026, 1, 24)
SUNDAY = date(2026, 1, 25)


def _range(query: str, today: date) -> tuple[date | None, date | None]:
    result = translate_query(query, today)
    return result.start_date, result.end_date


class TestHelpers:
    def test_day_terms_four_formats(self):
        assert day_terms(date(2026, 1, 8), date(2026, 1, 8)) == [
            "2026-01-08", "20260108", "January 8, 2026", "8 January 2026",
        ]

    @pytest.mark.parametrize("name,expected", [
        ("jan", 1), ("January", 1), ("sept", 9), ("DEC", 12), ("smarch", None),
    ])
    def test_parse_month_name(self, name, expected):
        assert parse_month_name(name) == expected

    def test_rules_compiled_once_in_order(self):
        names = [rule.name for rule in DEFAULT_RULES]
        assert names[0] == "week_of_year"
        assert names[-1] == "month_name"
        assert names.index("specific_date") < names.index("month_name")


class TestSingleDays:
    def test_yesterday(self):
        result = translate_query("what did I do yesterday", MONDAY)
        assert result.start_date == result.end_date == date(2026, 1, 18)
        assert "2026-01-18" in result.date_terms
        assert "20260118" in result.date_terms
        assert "January 18, 2026" in result.date_terms
        assert "18 January 2026" in result.date_terms

    def test_today(self):
        assert _range("notes from today", MONDAY) == (MONDAY, MONDAY)

    def test_case_insensitive(self):
        assert _range("YESTERDAY", MONDAY) == (date(2026, 1, 18),) * 2

    def test_days_ago(self):
        assert _range("3 days ago", MONDAY) == (date(2026, 1, 16),) * 2

    def test_last_weekday(self):
        assert _range("last friday", MONDAY) == (date(2026, 1, 16),) * 2

    def test_last_weekday_same_day_goes_back_a_week(self):
        assert _range("last monday", MONDAY) == (date(2026, 1, 12),) * 2


class TestWeeks:
    def test_last_week(self):
        result = translate_query("last week", MONDAY)
        assert (result.start_date, result.end_date) == (date(2026, 1, 12), date(2026, 1, 18))
        assert "2026-W03" in result.date_terms
        assert "2026-01-12" in result.date_terms
        assert "2026-01-18" in result.date_terms

    def test_this_week_capped_at_today(self):
        assert _range("this week", WEDNESDAY) == (date(2026, 1, 19), WEDNESDAY)

    def test_this_week_on_sunday(self):
        assert _range("this week", SUNDAY) == (date(2026, 1, 19), SUNDAY)

    def test_weeks_ago(self):
        result = translate_query("2 weeks ago", MONDAY)
        assert (result.start_date, result.end_date) == (date(2026, 1, 5), date(2026, 1, 11))
        assert "2026-W02" in result.date_terms


class TestWeekends:
    def test_last_weekend(self):
        assert _range("last weekend", MONDAY) == (date(2026, 1, 17), date(2026, 1, 18))

    def test_last_weekend_on_saturday(self):
        assert _range("last weekend", SATURDAY) == (date(2026, 1, 17), date(2026, 1, 18))

    def test_this_weekend(self):
        assert _range("this weekend", WEDNESDAY) == (date(2026, 1, 24), date(2026, 1, 25))

    def test_this_weekend_on_sunday(self):
        assert _range("this weekend", SUNDAY) == (date(2026, 1, 24), date(2026, 1, 25))

    def test_next_weekend(self):
        assert _range("next weekend", MONDAY) == (date(2026, 1, 24), date(2026, 1, 25))

    def test_next_weekend_on_saturday(self):
        assert _range("next weekend", SATURDAY) == (date(2026, 1, 31), date(2026, 2, 1))

    def test_weekend_terms(self):
        result = translate_query("last weekend", MONDAY)
        assert result.date_terms[:4] == day_terms(date(2026, 1, 17), date(2026, 1, 17))
        assert "18 January 2026" in result.date_terms


class TestMonths:
    def test_last_month_across_year(self):
        result = translate_query("last month", MONDAY)
        assert (result.start_date, result.end_date) == (date(2025, 12, 1), date(2025, 12, 31))
        assert result.date_terms == ["2025-12", "December 2025"]

    def test_this_month(self):
        assert _range("this month", MONDAY) == (date(2026, 1, 1), MONDAY)

    def test_months_ago(self):
        assert _range("2 months ago", MONDAY) == (date(2025, 11, 1), date(2025, 11, 30))

    def test_bare_month_in_the_past_year(self):
        result = translate_query("trips in March", MONDAY)
        assert (result.start_date, result.end_date) == (date(2025, 3, 1), date(2025, 3, 31))
        assert result.date_terms == ["2025-03", "March 2025", "March"]

    def test_bare_current_month_capped(self):
        assert _range("january", MONDAY) == (date(2026, 1, 1), MONDAY)


class TestSpecificDates:
    def test_natural_date_ordinal(self):
        result = translate_query("January 1st", date(2026, 6, 1))
        assert result.start_date == result.end_date == date(2026, 1, 1)
        assert "2026-01-01" in result.date_terms

    def test_natural_day_first(self):
        assert _range("18 January", MONDAY) == (date(2026, 1, 18),) * 2

    def test_natural_future_rolls_back(self):
        assert _range("December 25th", MONDAY) == (date(2025, 12, 25),) * 2

    def test_natural_day_clamped(self):
        assert _range("February 30", date(2026, 6, 1)) == (date(2026, 2, 28),) * 2

    def test_iso_literal(self):
        assert _range("notes on 2025-07-04", MONDAY) == (date(2025, 7, 4),) * 2

    def test_invalid_iso_literal(self):
        result = translate_query("2026-02-30", MONDAY)
        assert not result.has_range
        assert result.date_terms == []

    def test_european_date(self):
        assert _range("18.01.2026", MONDAY) == (date(2026, 1, 18),) * 2
        assert _range("04/07/2025", MONDAY) == (date(2025, 7, 4),) * 2

    def test_invalid_european_date(self):
        assert not translate_query("31/02/2026", MONDAY).has_range


class TestWeekOf:
    def test_first_week_of_year(self):
        assert _range("first week of 2025", MONDAY) == (date(2025, 1, 1), date(2025, 1, 7))

    def test_last_week_of_year_wins_over_last_week(self):
        result = translate_query("last week of 2025", MONDAY)
        assert (result.start_date, result.end_date) == (date(2025, 12, 25), date(2025, 12, 31))
        assert "2025-12-31" in result.date_terms
        # The plain "last week" rule still contributes its terms
        assert "2026-W03" in result.date_terms

    def test_first_week_of_future_month(self):
        assert _range("first week of March", MONDAY) == (date(2025, 3, 1), date(2025, 3, 7))

    def test_week_of_this_month_name(self):
        assert _range("last week of this March", MONDAY) == (date(2026, 3, 25), date(2026, 3, 31))

    def test_week_of_last_month_name(self):
        assert _range("last week of last January", MONDAY) == (date(2025, 1, 25), date(2025, 1, 31))

    def test_explicit_year(self):
        assert _range("first week of March 2024", MONDAY) == (date(2024, 3, 1), date(2024, 3, 7))


class TestTranslator:
    def test_no_dates(self):
        result = translate_query("gardening tips", MONDAY)
        assert result.combined_query == "gardening tips"
        assert result.date_terms == []
        assert not result.has_range

    def test_combined_query(self):
        result = translate_query("what happened yesterday", MONDAY)
        assert result.combined_query.startswith("what happened yesterday 2026-01-18 20260118")

    def test_first_matching_rule_sets_range(self):
        result = translate_query("last week and yesterday", MONDAY)
        assert result.start_date == result.end_date == date(2026, 1, 18)
        assert "2026-W03" in result.date_terms

    def test_overlapping_rules_do_not_repeat_terms(self):
        result = translate_query("yesterday 2026-01-18", MONDAY)
        assert result.date_terms == day_terms(date(2026, 1, 18), date(2026, 1, 18))

        result = translate_query("last week and yesterday", MONDAY)
        assert len(result.date_terms) == len(set(result.date_terms))

    def test_accepts_datetime(self):
        result = translate_query("yesterday", datetime(2026, 1, 19, 23, 59))
        assert result.start_date == date(2026, 1, 18)

    def test_custom_rule_set(self):
        result = DateQueryTranslator(rules=[]).translate("yesterday", MONDAY)
        assert result.date_terms == []
