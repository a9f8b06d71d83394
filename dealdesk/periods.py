"""Turn free-form report period labels ("Q3 2024", "Jan - Mar 2024") into sortable dates."""

import re
from datetime import date
from typing import Optional

EPOCH = date(1970, 1, 1)

MONTHS = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "jun": 6, "jul": 7, "aug": 8,
    "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}

# A quarter sorts on its last month.
QUARTERS = {"q1": 3, "q2": 6, "q3": 9, "q4": 12}

SEASONS = {"winter": 2, "spring": 5, "summer": 8, "fall": 11, "autumn": 11}

_NAMED = re.compile(r"^([a-z0-9]+)\s+(\d{4})$")
_RANGE = re.compile(r"^(\w+)\s*-\s*(\w+)\s+(\d{4})$")
_YEAR_RANGE = re.compile(r"^(\d{4})\s*-\s*(\d{4})$")
_YEAR = re.compile(r"^(\d{4})$")


def _safe_date(year: int, month: int, day: int) -> date:
    # year 0000 is not representable
    try:
        return date(year, month, day)
    except ValueError:
        return EPOCH


def _named_month(name: str) -> Optional[int]:
    return MONTHS.get(name) or QUARTERS.get(name)


def parse_period_sort_date(period: Optional[str]) -> date:
    if not period:
        return EPOCH
    p = period.strip().lower()

    match = _NAMED.match(p)
    if match:
        name, year = match.group(1), int(match.group(2))
        month = _named_month(name) or SEASONS.get(name)
        if month:
            return _safe_date(year, month, 1)

    match = _RANGE.match(p)
    if match:
        month = _named_month(match.group(2))
        if month:
            return _safe_date(int(match.group(3)), month, 1)

    match = _YEAR_RANGE.match(p)
    if match:
        return _safe_date(int(match.group(2)), 12, 31)

    match = _YEAR.match(p)
    if match:
        return _safe_date(int(match.group(1)), 12, 31)

    return EPOCH


def is_period_range(period: Optional[str]) -> bool:
    if not period:
        return False
    p = period.strip().lower()
    return (
        " - " in p
        or re.match(r"^q\d", p) is not None
        or re.match(r"^(winter|spring|summer|fall|autumn)", p) is not None
        or _YEAR.match(p) is not None
    )
