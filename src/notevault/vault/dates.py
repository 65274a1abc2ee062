"""Resolve relative date phrases in search queries.

"What did I do last weekend?" embeds poorly on its own: the notes that answer
it are named ``2026-01-17.md`` and say nothing about weekends. The translator
turns each date phrase into concrete literals (``2026-01-17``, ``20260117``,
``January 17, 2026`` ...) that are appended to the query before embedding,
plus a start/end range for callers that filter daily notes by date.

Rules run in a fixed order, most specific first. Every matching rule adds
its terms, but only the first matching rule sets the range. The order matters:
"January 1st" must be claimed by the specific-date rule before the bare
month rule reads it as "all of January".
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Sequence


MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_MONTHS = "|".join(m.lower() for m in MONTH_NAMES)
_WEEKDAYS = "|".join(WEEKDAY_NAMES)


@dataclass
class TranslatedQuery:
    """A query plus the concrete date terms and range its phrases resolved to."""
    original_query: str
    date_terms: list[str] = field(default_factory=list)
    start_date: date | None = None
    end_date: date | None = None

    @property
    def combined_query(self) -> str:
        if not self.date_terms:
            return self.original_query
        return f"{self.original_query} {' '.join(self.date_terms)}"

    @property
    def has_range(self) -> bool:
        return self.start_date is not None and self.end_date is not None


@dataclass(frozen=True)
class Resolution:
    """What one rule contributes: a date range and the literal terms for it."""
    start: date
    end: date
    terms: tuple[str, ...]


Resolver = Callable[["re.Match[str]", date], "Resolution | None"]


@dataclass(frozen=True)
class DateRule:
    """A named recognizer/resolver pair.

    A rule may carry several alternatives; they are tried in order and the
    first one that resolves wins, so at most one alternative fires per rule.
    """
    name: str
    alternatives: tuple[tuple["re.Pattern[str]", Resolver], ...]

    def apply(self, query: str, today: date) -> Resolution | None:
        for pattern, resolver in self.alternatives:
            match = pattern.search(query)
            if match is None:
                continue
            resolution = resolver(match, today)
            if resolution is not None:
                return resolution
        return None


def _rule(name: str, pattern: str, resolver: Resolver) -> DateRule:
    return DateRule(name, ((re.compile(pattern, re.IGNORECASE), resolver),))


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------

def parse_month_name(name: str) -> int | None:
    """Map "jan", "January", "sept" ... to a month number."""
    normalized = name.strip().lower()
    for number, month in enumerate(MONTH_NAMES, start=1):
        if normalized.startswith(month.lower()[:3]):
            return number
    return None


def _days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _month_bounds(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, _days_in_month(year, month))


def _shift_months(first_of_month: date, months: int) -> date:
    index = first_of_month.year * 12 + (first_of_month.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def _monday_of(day: date) -> date:
    return day - timedelta(days=day.weekday())


def iso_week_term(day: date) -> str:
    iso_year, week, _ = day.isocalendar()
    return f"{iso_year}-W{week:02d}"


def day_terms(start: date, end: date) -> list[str]:
    """Expand a range into per-day literals in the four formats notes use."""
    terms: list[str] = []
    day = start
    while day <= end:
        month = MONTH_NAMES[day.month - 1]
        terms.append(day.isoformat())
        terms.append(day.strftime("%Y%m%d"))
        terms.append(f"{month} {day.day}, {day.year}")
        terms.append(f"{day.day} {month} {day.year}")
        day += timedelta(days=1)
    return terms


def month_terms(first_of_month: date) -> list[str]:
    month = MONTH_NAMES[first_of_month.month - 1]
    return [first_of_month.strftime("%Y-%m"), f"{month} {first_of_month.year}"]


def _days(start: date, end: date) -> Resolution:
    return Resolution(start, end, tuple(day_terms(start, end)))


def _week(start: date, end: date) -> Resolution:
    return Resolution(start, end, (iso_week_term(start), *day_terms(start, end)))


def _month(first: date, end: date) -> Resolution:
    return Resolution(first, end, tuple(month_terms(first)))


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------

def _resolve_week_of_year(match: re.Match[str], today: date) -> Resolution | None:
    # Calendar days, not ISO weeks: year boundaries rarely fall on a Monday
    year = int(match.group(2))
    if not 1 <= year <= 9999:
        return None
    if match.group(1).lower() == "last":
        end = date(year, 12, 31)
        return _days(end - timedelta(days=6), end)
    start = date(year, 1, 1)
    return _days(start, start + timedelta(days=6))


def _resolve_week_of_month(match: re.Match[str], today: date) -> Resolution | None:
    position, modifier, month_name, year_text = match.groups()
    month = parse_month_name(month_name)
    if month is None:
        return None

    modifier = modifier.lower() if modifier else None
    if year_text:
        year = int(year_text)
    elif modifier == "this":
        year = today.year
    elif modifier == "last":
        year = today.year - 1 if month >= today.month else today.year
    else:
        year = today.year - 1 if month > today.month else today.year
    if not 1 <= year <= 9999:
        return None

    first, last = _month_bounds(year, month)
    if position.lower() == "last":
        return _days(last - timedelta(days=6), last)
    return _days(first, first + timedelta(days=6))


def _resolve_weekend(match: re.Match[str], today: date) -> Resolution:
    modifier = match.group(1).lower()
    weekday = today.weekday()
    since_saturday = (weekday - 5) % 7

    if modifier == "last":
        # On the weekend itself, "last weekend" is the one before
        saturday = today - timedelta(days=since_saturday + (7 if weekday >= 5 else 0))
    elif modifier == "next":
        saturday = today + timedelta(days=(5 - weekday) % 7 or 7)
    elif weekday == 6:
        saturday = today - timedelta(days=1)
    else:
        saturday = today + timedelta(days=(5 - weekday) % 7)

    return _days(saturday, saturday + timedelta(days=1))


def _resolve_yesterday(match: re.Match[str], today: date) -> Resolution:
    yesterday = today - timedelta(days=1)
    return _days(yesterday, yesterday)


def _resolve_today(match: re.Match[str], today: date) -> Resolution:
    return _days(today, today)


def _resolve_last_week(match: re.Match[str], today: date) -> Resolution:
    monday = _monday_of(today) - timedelta(days=7)
    return _week(monday, monday + timedelta(days=6))


def _resolve_this_week(match: re.Match[str], today: date) -> Resolution:
    return _week(_monday_of(today), today)


def _resolve_last_month(match: re.Match[str], today: date) -> Resolution:
    first = _shift_months(today.replace(day=1), -1)
    return _month(first, _month_bounds(first.year, first.month)[1])


def _resolve_this_month(match: re.Match[str], today: date) -> Resolution:
    return _month(today.replace(day=1), today)


def _resolve_days_ago(match: re.Match[str], today: date) -> Resolution | None:
    try:
        day = today - timedelta(days=int(match.group(1)))
    except OverflowError:
        return None
    return _days(day, day)


def _resolve_weeks_ago(match: re.Match[str], today: date) -> Resolution | None:
    try:
        monday = _monday_of(today) - timedelta(weeks=int(match.group(1)))
    except OverflowError:
        return None
    return _week(monday, monday + timedelta(days=6))


def _resolve_months_ago(match: re.Match[str], today: date) -> Resolution | None:
    try:
        first = _shift_months(today.replace(day=1), -int(match.group(1)))
    except ValueError:
        return None
    return _month(first, _month_bounds(first.year, first.month)[1])


def _resolve_last_weekday(match: re.Match[str], today: date) -> Resolution:
    target = WEEKDAY_NAMES.index(match.group(1).lower())
    days_back = (today.weekday() - target) % 7 or 7
    day = today - timedelta(days=days_back)
    return _days(day, day)


def _resolve_iso_date(match: re.Match[str], today: date) -> Resolution | None:
    try:
        day = date.fromisoformat(match.group(0))
    except ValueError:
        return None
    return _days(day, day)


def _resolve_european_date(match: re.Match[str], today: date) -> Resolution | None:
    day, month, year = (int(g) for g in match.groups())
    if not (1 <= month <= 12 and 1 <= year <= 9999):
        return None
    if not 1 <= day <= _days_in_month(year, month):
        return None
    target = date(year, month, day)
    return _days(target, target)


def _resolve_natural_date(match: re.Match[str], today: date) -> Resolution | None:
    if match.group(1):
        day_text, month_name = match.group(1), match.group(2)
    else:
        day_text, month_name = match.group(4), match.group(3)

    month = parse_month_name(month_name)
    day = int(day_text)
    if month is None or day < 1:
        return None

    year = today.year
    target = date(year, month, min(day, _days_in_month(year, month)))
    if target > today:
        year -= 1
        target = date(year, month, min(day, _days_in_month(year, month)))
    return _days(target, target)


def _resolve_month_name(match: re.Match[str], today: date) -> Resolution | None:
    month = parse_month_name(match.group(1))
    if month is None:
        return None
    year = today.year - 1 if month > today.month else today.year
    first, last = _month_bounds(year, month)
    if (year, month) == (today.year, today.month):
        last = today
    return Resolution(first, last, (*month_terms(first), MONTH_NAMES[month - 1]))


# ---------------------------------------------------------------------------
# Rule table (order is significant)
# ---------------------------------------------------------------------------

DEFAULT_RULES: tuple[DateRule, ...] = (
    _rule("week_of_year", r"\b(first|last)\s+week\s+of\s+(\d{4})\b", _resolve_week_of_year),
    _rule(
        "week_of_month",
        rf"\b(first|last)\s+week\s+of\s+(?:(last|this)\s+)?({_MONTHS})(?:\s+(\d{{4}}))?\b",
        _resolve_week_of_month,
    ),
    _rule("weekend", r"\b(last|this|next)\s+weekend\b", _resolve_weekend),
    _rule("yesterday", r"\byesterday\b", _resolve_yesterday),
    _rule("today", r"\btoday\b", _resolve_today),
    _rule("last_week", r"\blast\s+week\b", _resolve_last_week),
    _rule("this_week", r"\bthis\s+week\b", _resolve_this_week),
    _rule("last_month", r"\blast\s+month\b", _resolve_last_month),
    _rule("this_month", r"\bthis\s+month\b", _resolve_this_month),
    _rule("days_ago", r"\b(\d{1,6})\s+days?\s+ago\b", _resolve_days_ago),
    _rule("weeks_ago", r"\b(\d{1,5})\s+weeks?\s+ago\b", _resolve_weeks_ago),
    _rule("months_ago", r"\b(\d{1,5})\s+months?\s+ago\b", _resolve_months_ago),
    _rule("last_weekday", rf"\blast\s+({_WEEKDAYS})\b", _resolve_last_weekday),
    DateRule(
        "specific_date",
        (
            (re.compile(r"\b\d{4}-\d{2}-\d{2}\b"), _resolve_iso_date),
            (re.compile(r"\b(\d{1,2})[./](\d{1,2})[./](\d{4})\b"), _resolve_european_date),
            (
                re.compile(
                    rf"\b(?:(\d{{1,2}})(?:st|nd|rd|th)?\s+({_MONTHS})"
                    rf"|({_MONTHS})\s+(\d{{1,2}})(?:st|nd|rd|th)?)\b",
                    re.IGNORECASE,
                ),
                _resolve_natural_date,
            ),
        ),
    ),
    _rule("month_name", rf"\b(?:in\s+)?({_MONTHS})\b", _resolve_month_name),
)


class DateQueryTranslator:
    """Apply the ordered date rules to a query."""

    def __init__(self, rules: Sequence[DateRule] = DEFAULT_RULES) -> None:
        self.rules = tuple(rules)

    def translate(self, query: str, reference_date: date | datetime) -> TranslatedQuery:
        today = reference_date.date() if isinstance(reference_date, datetime) else reference_date
        result = TranslatedQuery(original_query=query)

        for rule in self.rules:
            resolution = rule.apply(query, today)
            if resolution is None:
                continue
            for term in resolution.terms:
                if term not in result.date_terms:
                    result.date_terms.append(term)
            if result.start_date is None:
                result.start_date = resolution.start
                result.end_date = resolution.end

        return result


def translate_query(query: str, reference_date: date | datetime) -> TranslatedQuery:
    return DateQueryTranslator().translate(query, reference_date)
