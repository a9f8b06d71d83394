from datetime import date

from dealdesk.charts import (
    NEGATIVE_COLOR,
    POSITIVE_COLOR,
    chart_coordinates,
    render_line_chart,
    trend_is_positive,
    x_label_indices,
    y_domain,
)
from dealdesk.schemas import MetricPoint, MetricSeries


def make_series(key, values, metric_type="currency"):
    points = [
        MetricPoint(period=f"Q{i % 4 + 1} {2020 + i // 4}", date=date(2020 + i // 4, 3 * (i % 4) + 1, 1), value=v)
        for i, v in enumerate(values)
    ]
    return MetricSeries(key=key, label=key, metric_type=metric_type, category="Other", points=points)


def test_y_domain_pads_ten_percent():
    assert y_domain([100, 200]) == (90, 210)


def test_y_domain_anchors_at_zero_when_close():
    lower, upper = y_domain([10, 110])
    assert lower == 0
    assert upper == 120


def test_y_domain_flat_series():
    lower, upper = y_domain([50, 50])
    assert lower < 50 < upper
    assert y_domain([0, 0]) == (0, 0.1)


def test_trend_direction_respects_inverse_metrics():
    assert trend_is_positive("revenue", [1, 2])
    assert not trend_is_positive("revenue", [2, 1])
    assert trend_is_positive("burn_rate", [100, 80])
    assert not trend_is_positive("churn_rate", [0.02, 0.05])


def test_x_labels_thin_out_on_long_series():
    assert x_label_indices(3) == [0, 1, 2]
    assert x_label_indices(10) == [0, 3, 6, 9]
    assert x_label_indices(9) == [0, 3, 6, 8]


def test_coordinates_span_the_plot_area():
    coords = chart_coordinates([1, 2, 3])
    assert coords[0][0] == 40
    assert coords[-1][0] == 280
    assert coords[0][1] > coords[-1][1]


def test_single_point_renders_nothing():
    assert render_line_chart(make_series("mrr", [1])) is None


def test_render_line_chart():
    svg = render_line_chart(make_series("mrr", [1_000_000, 1_200_000]))
    assert svg.startswith("<svg")
    assert svg.endswith("</svg>")
    assert "1,2M€" in svg
    assert POSITIVE_COLOR in svg
    assert svg.count("<circle") == 2
    assert "rotate(" not in svg


def test_long_inverse_series_is_red_and_rotated():
    svg = render_line_chart(make_series("burn_rate", [10, 20, 30, 40, 50, 60]))
    assert NEGATIVE_COLOR in svg
    assert "rotate(-35" in svg
