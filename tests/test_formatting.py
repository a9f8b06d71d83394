from datetime import date

import pytest

from dealdesk.formatting import (
    CURRENCY,
    MONTHS,
    NUMBER,
    PERCENTAGE,
    format_currency_cents,
    format_date,
    format_file_size,
    format_metric_label,
    format_metric_value,
    format_variation,
    infer_metric_type,
    parse_number,
)


@pytest.mark.parametrize(
    "key, expected",
    [
        ("mrr", "MRR"),
        ("cash_position", "Cash Position"),
        ("new_mrr", "New MRR"),
        ("gross_margin", "Gross Margin"),
        ("active-users", "Active Users"),
    ],
)
def test_format_metric_label(key, expected):
    assert format_metric_label(key) == expected


@pytest.mark.parametrize(
    "key, expected",
    [
        ("burn_rate", CURRENCY),
        ("monthly_burn", CURRENCY),
        ("gross_margin", PERCENTAGE),
        ("churn_rate", PERCENTAGE),
        ("mrr_growth", PERCENTAGE),
        ("runway_months", MONTHS),
        ("revenue", CURRENCY),
        ("cash_position", CURRENCY),
        ("employees", NUMBER),
    ],
)
def test_infer_metric_type(key, expected):
    assert infer_metric_type(key) == expected


def test_parse_number_behaves_like_parse_float():
    assert parse_number("12.5k") == 12.5
    assert parse_number(" 42") == 42
    assert parse_number("n/a") is None
    assert parse_number(None) is None
    assert parse_number(True) is None
    assert parse_number(float("nan")) is None


def test_currency_values_use_french_suffixes():
    assert format_metric_value(1_200_000, CURRENCY) == "1,2M€"
    assert format_metric_value(2_500_000_000, CURRENCY) == "2,5Md€"
    assert format_metric_value(1_000_000, CURRENCY) == "1,0M€"
    assert format_metric_value(45_000, CURRENCY) == "45,0k€"
    assert format_metric_value(-1_500_000, CURRENCY) == "-1,5M€"
    assert format_metric_value(950, CURRENCY) == "950€"


def test_rounding_promotes_to_bigger_unit():
    assert format_metric_value(999_960, CURRENCY) == "1,0M€"


def test_percentages_scale_fractions():
    assert format_metric_value(0.15, PERCENTAGE) == "15,0%"
    assert format_metric_value(35, PERCENTAGE) == "35,0%"


def test_months_and_runway():
    assert format_metric_value(18, MONTHS) == "18 mois"
    assert format_metric_value(9.6, NUMBER, "runway") == "10 mois"


def test_money_like_key_with_number_type_is_currency():
    assert format_metric_value(3_000_000, NUMBER, "aum_total") == "3,0M€"


def test_missing_and_non_numeric_values():
    assert format_metric_value(None, CURRENCY) == "-"
    assert format_metric_value("stable", NUMBER) == "stable"


def test_plain_numbers():
    assert format_metric_value(45, NUMBER) == "45"
    assert format_metric_value(2_300_000, NUMBER) == "2,3M"


def test_format_variation():
    assert format_variation(1_000_000, 1_200_000) == "+20,0%"
    assert format_variation(200, 150) == "-25,0%"
    assert format_variation(0, 10) is None


def test_display_helpers():
    assert format_currency_cents(150_000_000) == "1 500 000 €"
    assert format_currency_cents(None) == "-"
    assert format_date(date(2024, 3, 5)) == "5 mars 2024"
    assert format_date("2024-08-01T10:00:00") == "1 août 2024"
    assert format_file_size(2048) == "2.0 KB"
    assert format_file_size(None) == "-"


def test_halves_round_away_from_zero():
    assert format_metric_value(2.5, MONTHS) == "3 mois"
    assert format_metric_value(12_500, NUMBER) == "13k"
    assert format_metric_value(0.125, PERCENTAGE) == "12,5%"
    assert format_metric_value(1_250_000, CURRENCY) == "1,3M€"
    assert format_currency_cents(250) == "3 €"
