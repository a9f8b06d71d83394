"""Metric labels, type inference and French-locale value formatting."""

import math
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Any, Optional

# wide enough for any finite float
_DECIMAL_CONTEXT = Context(prec=400)

CURRENCY = "currency"
PERCENTAGE = "percentage"
NUMBER = "number"
MONTHS = "months"

METRIC_LABELS = {
    "aum": "AuM",
    "mrr": "MRR",
    "arr": "ARR",
    "ebitda": "EBITDA",
    "cac": "CAC",
    "ltv": "LTV",
    "gmv": "GMV",
    "nps": "NPS",
    "kpi": "KPI",
    "revenue": "Revenue",
    "cash_position": "Cash Position",
    "runway_months": "Runway Months",
    "burn_rate": "Burn Rate",
}

# Upper-cased wherever they appear inside a longer key, e.g. "new_mrr".
ACRONYMS = {"mrr", "arr", "ebitda", "cac", "ltv", "gmv", "nps", "kpi", "aum", "b2b", "b2c"}

# Ordered: the first matching rule wins.
TYPE_RULES = [
    (re.compile(r"burn"), CURRENCY),
    (re.compile(r"percent|ratio|margin|growth|rate|churn|retention|conversion"), PERCENTAGE),
    (re.compile(r"months|runway"), MONTHS),
    (
        re.compile(
            r"amount|revenue|mrr|arr|aum|cash|ebitda|sales|gmv|valuation|ticket|income|cost|expense"
        ),
        CURRENCY,
    ),
]

CURRENCY_KEY = re.compile(r"aum|mrr|arr|revenue|cash|burn|ebitda")

_LEADING_NUMBER = re.compile(r"^\s*[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?")

FRENCH_MONTHS = [
    "janv.", "févr.", "mars", "avr.", "mai", "juin",
    "juil.", "août", "sept.", "oct.", "nov.", "déc.",
]


def format_metric_label(key: str) -> str:
    lower = key.lower()
    if lower in METRIC_LABELS:
        return METRIC_LABELS[lower]
    words = [w for w in lower.replace("-", "_").split("_") if w]
    return " ".join(w.upper() if w in ACRONYMS else w.capitalize() for w in words)


def infer_metric_type(key: str) -> str:
    lower = key.lower()
    for pattern, metric_type in TYPE_RULES:
        if pattern.search(lower):
            return metric_type
    return NUMBER


def parse_number(value: Any) -> Optional[float]:
    """Leading-number parse in the manner of JavaScript's parseFloat.

    Returns None for None, booleans, NaN and strings without a leading number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _LEADING_NUMBER.match(str(value))
        if not match:
            return None
        number = float(match.group(0))
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _group_thousands(digits: str) -> str:
    groups = []
    while len(digits) > 3:
        groups.insert(0, digits[-3:])
        digits = digits[:-3]
    groups.insert(0, digits)
    return " ".join(groups)


def round_half_up(value: float, decimals: int = 0) -> Decimal:
    """Round halves away from zero; Python's round() would send 2.5 to 2."""
    return Decimal(value).quantize(
        Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP, context=_DECIMAL_CONTEXT
    )


def format_decimal(value: float, decimals: int = 1) -> str:
    """Fixed decimals with a comma separator, e.g. 1.25 -> '1,3'."""
    return format(round_half_up(value, decimals), "f").replace(".", ",")


def format_locale_number(value: float, max_decimals: int = 2) -> str:
    """fr-FR style grouping: 1234567.5 -> '1 234 567,5'."""
    sign = "-" if value < 0 else ""
    text = format(round_half_up(abs(value), max_decimals), "f")
    integer, _, fraction = text.partition(".")
    fraction = fraction.rstrip("0")
    result = _group_thousands(integer)
    if fraction:
        result = f"{result},{fraction}"
    return f"{sign}{result}"


def _abbreviate(abs_value: float, units, suffix: str) -> Optional[str]:
    for index, (threshold, unit) in enumerate(units):
        if abs_value < threshold:
            continue
        scaled = float(round_half_up(abs_value / threshold, 1))
        # 999 950 would otherwise print as "1000,0k"
        if scaled >= 1000 and index > 0:
            bigger_threshold, bigger_unit = units[index - 1]
            return f"{format_decimal(abs_value / bigger_threshold)}{bigger_unit}{suffix}"
        return f"{format_decimal(scaled)}{unit}{suffix}"
    return None


def format_currency_value(number: float) -> str:
    sign = "-" if number < 0 else ""
    abs_value = abs(number)
    abbreviated = _abbreviate(abs_value, [(1e9, "Md"), (1e6, "M"), (1e3, "k")], "€")
    if abbreviated is not None:
        return f"{sign}{abbreviated}"
    return f"{sign}{format_locale_number(abs_value)}€"


def format_percentage_value(number: float) -> str:
    if abs(number) <= 1:
        return f"{format_decimal(number * 100)}%"
    return f"{format_decimal(number)}%"


def format_count_value(number: float) -> str:
    sign = "-" if number < 0 else ""
    abs_value = abs(number)
    if abs_value >= 1_000_000:
        return f"{sign}{format_decimal(abs_value / 1_000_000)}M"
    if abs_value >= 10_000:
        return f"{sign}{int(round_half_up(abs_value / 1_000))}k"
    return format_locale_number(number)


def format_metric_value(value: Any, metric_type: str, key: str = "") -> str:
    """Render a raw metric value for display.

    Non-numeric input is returned unchanged so free-text metrics still show up.
    """
    if value is None:
        return "-"
    number = parse_number(value)
    if number is None:
        return str(value)

    lower_key = key.lower()
    # stored types are sometimes plain "number" for money-like keys
    if metric_type == NUMBER and CURRENCY_KEY.search(lower_key):
        metric_type = CURRENCY
    if metric_type == CURRENCY:
        return format_currency_value(number)
    if metric_type == PERCENTAGE:
        return format_percentage_value(number)
    if metric_type == MONTHS or (metric_type == NUMBER and "runway" in lower_key):
        return f"{int(round_half_up(number))} mois"
    return format_count_value(number)


def format_variation(previous: Any, last: Any) -> Optional[str]:
    """Signed percentage change between two values, None when undefined."""
    prev_number = parse_number(previous)
    last_number = parse_number(last)
    if prev_number is None or last_number is None or prev_number == 0:
        return None
    pct = (last_number - prev_number) / abs(prev_number) * 100
    sign = "+" if pct >= 0 else ""
    return f"{sign}{format_decimal(pct)}%"


def format_currency_cents(cents: Optional[int]) -> str:
    if not cents:
        return "-"
    euros = int(round_half_up(cents / 100))
    return f"{format_locale_number(euros, max_decimals=0)} €"


def format_percentage(value: Optional[float]) -> str:
    if value is None:
        return "-"
    return f"{format(round_half_up(value * 100, 2), 'f')}%"


def format_date(value) -> str:
    if not value:
        return "-"
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        value = value.date()
    if not isinstance(value, date):
        return "-"
    return f"{value.day} {FRENCH_MONTHS[value.month - 1]} {value.year}"


def format_file_size(size: Optional[int]) -> str:
    if not size:
        return "-"
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"
