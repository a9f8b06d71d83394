"""Build per-metric time series from company reports and track chart selection."""

import logging
from collections import OrderedDict
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from .formatting import (
    PERCENTAGE,
    format_metric_label,
    format_metric_value,
    format_variation,
    infer_metric_type,
    parse_number,
)
from .periods import EPOCH, parse_period_sort_date
from .schemas import MetricPoint, MetricSeries

logger = logging.getLogger(__name__)

# Shown even with a single data point.
PRIORITY_KEYS = [
    "revenue",
    "arr",
    "mrr",
    "cash_position",
    "burn_rate",
    "runway_months",
    "ebitda",
    "gross_margin",
    "churn_rate",
    "employees",
]

CATEGORIES = ["Revenue", "Cash", "Performance", "Growth", "Clients", "Other"]

CATEGORY_RULES = [
    ("Growth", ("growth",)),
    ("Cash", ("cash", "burn", "runway")),
    ("Revenue", ("revenue", "mrr", "arr", "sales", "gmv", "aum")),
    ("Clients", ("customer", "client", "user", "churn", "retention")),
    ("Performance", ("margin", "ebitda", "conversion")),
]

TOP_SLOTS = 3


def metric_category(key: str, metric_type: str) -> str:
    lower = key.lower()
    for category, keywords in CATEGORY_RULES:
        if any(word in lower for word in keywords):
            return category
    if metric_type == PERCENTAGE:
        return "Performance"
    return "Other"


def _priority_index(key: str) -> int:
    try:
        return PRIORITY_KEYS.index(key)
    except ValueError:
        return len(PRIORITY_KEYS)


def _point_date(report) -> date:
    if report.report_date:
        return report.report_date
    parsed = parse_period_sort_date(report.report_period)
    if parsed != EPOCH:
        return parsed
    created_at = getattr(report, "created_at", None)
    if isinstance(created_at, datetime):
        return created_at.date()
    return EPOCH


def build_metric_series(reports: Iterable) -> List[MetricSeries]:
    """Group report metrics by key into chronologically ordered series.

    Keys with a single point are dropped unless they are in PRIORITY_KEYS.
    """
    points: Dict[str, List[MetricPoint]] = OrderedDict()
    for report in reports:
        if not report.metrics:
            continue
        when = _point_date(report)
        for key, raw_value in report.metrics.items():
            value = parse_number(raw_value)
            if value is None:
                continue
            points.setdefault(key, []).append(
                MetricPoint(period=report.report_period or "", date=when, value=value)
            )

    series = []
    for key, key_points in points.items():
        if len(key_points) < 2 and key not in PRIORITY_KEYS:
            logger.debug("Dropping sparse metric %s", key)
            continue
        key_points.sort(key=lambda p: p.date)
        metric_type = infer_metric_type(key)
        latest = key_points[-1].value
        variation = None
        if len(key_points) >= 2:
            variation = format_variation(key_points[-2].value, latest)
        series.append(
            MetricSeries(
                key=key,
                label=format_metric_label(key),
                metric_type=metric_type,
                category=metric_category(key, metric_type),
                points=key_points,
                latest_value=latest,
                formatted_latest=format_metric_value(latest, metric_type, key),
                variation=variation,
            )
        )

    series.sort(key=lambda s: (_priority_index(s.key), s.key))
    return series


def group_by_category(series: Iterable[MetricSeries]) -> "OrderedDict[str, List[MetricSeries]]":
    buckets: Dict[str, List[MetricSeries]] = {name: [] for name in CATEGORIES}
    for item in series:
        buckets.setdefault(item.category, []).append(item)
    return OrderedDict((name, items) for name, items in buckets.items() if items)


class MetricSelection:
    """Which metrics are checked for display and which three get a full chart."""

    def __init__(self, selected: Optional[Iterable[str]] = None, top_slots: Optional[List[str]] = None):
        self.selected = set(selected or [])
        self.top_slots = list(top_slots or [])

    @classmethod
    def initial(cls, series: Iterable[MetricSeries]) -> "MetricSelection":
        ranked = sorted(series, key=lambda s: (-len(s.points), _priority_index(s.key)))
        top = [s.key for s in ranked[:TOP_SLOTS]]
        return cls(selected=top, top_slots=top)

    def toggle(self, key: str) -> None:
        if key in self.selected:
            self.selected.discard(key)
            self.top_slots = [k for k in self.top_slots if k != key]
        else:
            self.selected.add(key)
            if len(self.top_slots) < TOP_SLOTS:
                self.top_slots.append(key)

    def select_all(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        self.selected = set(keys)
        if not self.top_slots:
            self.top_slots = keys[:TOP_SLOTS]

    def select_none(self) -> None:
        self.selected = set()
        self.top_slots = []

    def promote(self, key: str) -> None:
        """Move a key into the charted slots, replacing the last one."""
        without = [k for k in self.top_slots if k != key]
        self.top_slots = without[: TOP_SLOTS - 1] + [key]
        self.selected.add(key)

    def top_keys(self) -> List[str]:
        return [k for k in self.top_slots if k in self.selected]

    def extra_keys(self, order: Optional[Iterable[str]] = None) -> List[str]:
        extras = [k for k in self.selected if k not in self.top_slots]
        if order is None:
            return sorted(extras)
        rank = {k: i for i, k in enumerate(order)}
        return sorted(extras, key=lambda k: rank.get(k, len(rank)))
