from datetime import date, datetime
from types import SimpleNamespace

from dealdesk.metrics import (
    MetricSelection,
    build_metric_series,
    group_by_category,
    metric_category,
)
from dealdesk.periods import EPOCH, is_period_range, parse_period_sort_date


def make_report(metrics, period=None, report_date=None, created_at=None):
    return SimpleNamespace(
        metrics=metrics,
        report_period=period,
        report_date=report_date,
        created_at=created_at or datetime(2024, 1, 1),
    )


def test_parse_period_sort_date():
    assert parse_period_sort_date("March 2024") == date(2024, 3, 1)
    assert parse_period_sort_date("Q3 2024") == date(2024, 9, 1)
    assert parse_period_sort_date("Summer 2023") == date(2023, 8, 1)
    assert parse_period_sort_date("Jan - Mar 2024") == date(2024, 3, 1)
    assert parse_period_sort_date("2022 - 2023") == date(2023, 12, 31)
    assert parse_period_sort_date("2021") == date(2021, 12, 31)
    assert parse_period_sort_date("whenever") == EPOCH
    assert parse_period_sort_date(None) == EPOCH
    assert parse_period_sort_date("0000") == EPOCH
    assert parse_period_sort_date("Q1 0000") == EPOCH
    assert parse_period_sort_date("Jan - Mar 0000") == EPOCH


def test_is_period_range():
    assert is_period_range("Q2 2024")
    assert is_period_range("Jan - Mar 2024")
    assert not is_period_range("March 2024")


def test_mrr_series_from_two_reports():
    reports = [
        make_report({"mrr": 1_200_000}, "Q2 2024", date(2024, 6, 30)),
        make_report({"mrr": 1_000_000}, "Q1 2024", date(2024, 3, 31)),
    ]
    series = build_metric_series(reports)
    assert len(series) == 1
    mrr = series[0]
    assert mrr.key == "mrr"
    assert mrr.metric_type == "currency"
    assert [p.value for p in mrr.points] == [1_000_000, 1_200_000]
    assert mrr.latest_value == 1_200_000
    assert mrr.formatted_latest == "1,2M€"
    assert mrr.variation == "+20,0%"


def test_sparse_metrics_are_dropped_unless_priority():
    reports = [make_report({"cash_position": 500_000, "office_plants": 12}, "Q1 2024")]
    keys = [s.key for s in build_metric_series(reports)]
    assert keys == ["cash_position"]


def test_non_numeric_values_are_skipped():
    reports = [
        make_report({"revenue": "n/a"}, "Q1 2024"),
        make_report({"revenue": "250000"}, "Q2 2024"),
    ]
    (revenue,) = build_metric_series(reports)
    assert len(revenue.points) == 1
    assert revenue.latest_value == 250_000


def test_points_fall_back_to_period_then_creation_date():
    reports = [
        make_report({"employees": 20}, "Q4 2023"),
        make_report({"employees": 12}, None, created_at=datetime(2023, 2, 1)),
    ]
    (employees,) = build_metric_series(reports)
    assert [p.date for p in employees.points] == [date(2023, 2, 1), date(2023, 12, 1)]


def test_series_order_follows_priority():
    reports = [
        make_report({"nps": 40, "burn_rate": 80_000, "revenue": 1}, "Q1 2024"),
        make_report({"nps": 45, "burn_rate": 70_000, "revenue": 2}, "Q2 2024"),
    ]
    assert [s.key for s in build_metric_series(reports)] == ["revenue", "burn_rate", "nps"]


def test_categories():
    assert metric_category("mrr_growth", "percentage") == "Growth"
    assert metric_category("burn_rate", "currency") == "Cash"
    assert metric_category("arr", "currency") == "Revenue"
    assert metric_category("churn_rate", "percentage") == "Clients"
    assert metric_category("gross_margin", "percentage") == "Performance"
    assert metric_category("nps", "number") == "Other"


def test_group_by_category_skips_empty_buckets():
    reports = [
        make_report({"revenue": 1, "burn_rate": 3}, "Q1 2024"),
        make_report({"revenue": 2, "burn_rate": 4}, "Q2 2024"),
    ]
    grouped = group_by_category(build_metric_series(reports))
    assert list(grouped) == ["Revenue", "Cash"]


def test_selection_starts_with_the_densest_series():
    reports = [
        make_report({"revenue": 1, "arr": 1, "mrr": 1, "ebitda": 1}, "Q1 2024"),
        make_report({"revenue": 2, "mrr": 2, "ebitda": 2}, "Q2 2024"),
        make_report({"ebitda": 3}, "Q3 2024"),
    ]
    selection = MetricSelection.initial(build_metric_series(reports))
    assert selection.top_keys() == ["ebitda", "revenue", "mrr"]
    assert selection.extra_keys() == []


def test_selection_toggle_promote_and_bulk():
    selection = MetricSelection(selected=["a", "b"], top_slots=["a", "b"])
    selection.toggle("c")
    assert selection.top_keys() == ["a", "b", "c"]

    selection.toggle("d")
    assert selection.extra_keys() == ["d"]

    selection.promote("d")
    assert selection.top_keys() == ["a", "b", "d"]
    assert selection.extra_keys() == ["c"]

    selection.toggle("a")
    assert "a" not in selection.selected
    assert selection.top_keys() == ["b", "d"]

    selection.select_none()
    assert selection.top_keys() == []
    selection.select_all(["x", "y", "z", "w"])
    assert selection.top_keys() == ["x", "y", "z"]
    assert selection.extra_keys(order=["w", "x"]) == ["w"]
