"""Hand-rolled SVG line charts for metric series."""

import math
from typing import List, Optional, Sequence, Tuple
from xml.sax.saxutils import escape

from .formatting import format_metric_value
from .schemas import MetricSeries

WIDTH = 320
HEIGHT = 160
PAD_X = 40
PAD_Y = 24

Y_TICKS = 5
MAX_PLAIN_X_LABELS = 4
X_LABEL_CHARS = 8

# A decrease is an improvement for these.
INVERSE_METRICS = {"burn_rate", "churn_rate", "outflow_rate"}

POSITIVE_COLOR = "#16a34a"
NEGATIVE_COLOR = "#dc2626"
AXIS_COLOR = "#94a3b8"
GRID_COLOR = "#e2e8f0"


def y_domain(values: Sequence[float]) -> Tuple[float, float]:
    """Data range padded by 10%, anchored at zero when zero sits just below the data."""
    low, high = min(values), max(values)
    spread = high - low
    if spread == 0:
        spread = abs(high) or 1.0
    lower = low - spread * 0.1
    upper = high + spread * 0.1
    if 0 <= low <= spread * 0.3:
        lower = 0.0
    return lower, upper


def trend_is_positive(key: str, values: Sequence[float]) -> bool:
    if key.lower() in INVERSE_METRICS:
        return values[-1] <= values[0]
    return values[-1] >= values[0]


def x_label_indices(count: int) -> List[int]:
    if count <= MAX_PLAIN_X_LABELS:
        return list(range(count))
    step = math.ceil(count / MAX_PLAIN_X_LABELS)
    indices = list(range(0, count, step))
    if indices[-1] != count - 1:
        indices.append(count - 1)
    return indices


def _fmt(number: float) -> str:
    return f"{number:.1f}".rstrip("0").rstrip(".")


def chart_coordinates(values: Sequence[float]) -> List[Tuple[float, float]]:
    lower, upper = y_domain(values)
    span = upper - lower
    last = len(values) - 1
    coords = []
    for index, value in enumerate(values):
        x = PAD_X + (index / last) * (WIDTH - PAD_X * 2)
        y = PAD_Y + (1 - (value - lower) / span) * (HEIGHT - PAD_Y * 2)
        coords.append((x, y))
    return coords


def render_line_chart(series: MetricSeries) -> Optional[str]:
    """Return an SVG document for the series, or None below two points."""
    values = [p.value for p in series.points]
    if len(values) < 2:
        return None

    lower, upper = y_domain(values)
    coords = chart_coordinates(values)
    baseline = HEIGHT - PAD_Y
    color = POSITIVE_COLOR if trend_is_positive(series.key, values) else NEGATIVE_COLOR

    line_path = " ".join(
        f"{'M' if i == 0 else 'L'}{_fmt(x)},{_fmt(y)}" for i, (x, y) in enumerate(coords)
    )
    area_path = (
        f"{line_path} L{_fmt(coords[-1][0])},{baseline} L{_fmt(coords[0][0])},{baseline} Z"
    )

    parts = [
        f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 {WIDTH} {HEIGHT}" '
        f'class="metric-chart" data-metric="{escape(series.key)}">'
    ]

    for i in range(Y_TICKS):
        value = lower + (upper - lower) * i / (Y_TICKS - 1)
        y = PAD_Y + (1 - i / (Y_TICKS - 1)) * (HEIGHT - PAD_Y * 2)
        label = format_metric_value(value, series.metric_type, series.key)
        parts.append(
            f'<line x1="{PAD_X}" y1="{_fmt(y)}" x2="{WIDTH - PAD_X}" y2="{_fmt(y)}" '
            f'stroke="{GRID_COLOR}" stroke-width="0.5"/>'
        )
        parts.append(
            f'<text x="{PAD_X - 4}" y="{_fmt(y + 3)}" text-anchor="end" font-size="8" '
            f'fill="{AXIS_COLOR}">{escape(label)}</text>'
        )

    parts.append(f'<path d="{area_path}" fill="{color}" fill-opacity="0.1"/>')
    parts.append(f'<path d="{line_path}" fill="none" stroke="{color}" stroke-width="2"/>')
    for x, y in coords:
        parts.append(f'<circle cx="{_fmt(x)}" cy="{_fmt(y)}" r="3" fill="{color}"/>')

    end_x, end_y = coords[-1]
    end_label = format_metric_value(values[-1], series.metric_type, series.key)
    parts.append(
        f'<text x="{_fmt(end_x)}" y="{_fmt(end_y - 8)}" text-anchor="middle" font-size="9" '
        f'font-weight="600" class="end-value">{escape(end_label)}</text>'
    )

    rotate = len(values) > MAX_PLAIN_X_LABELS
    for index in x_label_indices(len(values)):
        x = coords[index][0]
        period = series.points[index].period[:X_LABEL_CHARS]
        if rotate:
            parts.append(
                f'<text x="{_fmt(x)}" y="{HEIGHT - 4}" text-anchor="end" font-size="7" '
                f'fill="{AXIS_COLOR}" transform="rotate(-35 {_fmt(x)} {HEIGHT - 4})">'
                f"{escape(period)}</text>"
            )
        else:
            parts.append(
                f'<text x="{_fmt(x)}" y="{HEIGHT - 4}" text-anchor="middle" font-size="7" '
                f'fill="{AXIS_COLOR}">{escape(period)}</text>'
            )

    parts.append("</svg>")
    return "".join(parts)
