"""Choropleth color scales and per-metric coverage statistics."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Sequence

from .formatters import legend_fmt
from .models import CountryRecord, MetricDefinition, is_number

ScaleMode = Literal["quantile", "linear"]

QUANTILE_STEPS = (0.2, 0.4, 0.6, 0.8)
PALETTE_SIZE = 5
NO_DATA_COLOR = "#e5e7eb"
ADDITIONAL_GROUP = "Additional metrics"


def white_blue(t: float) -> str:
    """Map t in [0, 1] onto a near-white to saturated blue gradient."""
    if not isinstance(t, (int, float)) or not math.isfinite(t):
        t = 0.0
    clamped = max(0.0, min(1.0, float(t)))
    lightness = math.floor(98 - 40 * clamped + 0.5)
    return f"hsl(210, 70%, {lightness}%)"


def white_blue_palette(n: int) -> tuple[str, ...]:
    return tuple(white_blue(1.0 if n == 1 else index / (n - 1)) for index in range(n))


def quantile(sorted_values: Sequence[float], p: float) -> float:
    """Percentile with linear interpolation between bracketing order statistics."""
    index = (len(sorted_values) - 1) * p
    lo = math.floor(index)
    hi = math.ceil(index)
    if lo == hi:
        return sorted_values[lo]
    t = index - lo
    return sorted_values[lo] * (1 - t) + sorted_values[hi] * t


def metric_values(rows: Iterable[CountryRecord], field_name: str) -> list[float]:
    values: list[float] = []
    for row in rows:
        value = row.value(field_name)
        if is_number(value):
            values.append(float(value))
    return values


@dataclass(frozen=True, slots=True)
class LegendEntry:
    color: str
    lower: float
    upper: float

    @property
    def label(self) -> str:
        return f"{legend_fmt(self.lower)} – {legend_fmt(self.upper)}"


@dataclass(frozen=True, slots=True)
class ColorScale:
    """Color mapping derived from one metric's values across all countries."""

    mode: ScaleMode
    values: tuple[float, ...] = ()
    thresholds: tuple[float, ...] = ()
    palette: tuple[str, ...] = ()
    minimum: float | None = None
    maximum: float | None = None

    @property
    def sufficient(self) -> bool:
        """False when fewer than two distinct values exist."""
        if self.minimum is None or self.maximum is None:
            return False
        return self.maximum > self.minimum

    def bucket(self, value: float) -> int:
        """Number of quantile thresholds the value strictly exceeds.

        When ties drag every threshold up to the maximum, the maximum would
        share bucket 0 with the minimum; it is pinned to the top bucket instead.
        """
        if self.sufficient and self.maximum is not None and value >= self.maximum:
            return len(self.thresholds)
        index = 0
        while index < len(self.thresholds) and value > self.thresholds[index]:
            index += 1
        return index

    def position(self, value: float) -> float:
        if self.minimum is None or self.maximum is None or self.maximum == self.minimum:
            return 0.0
        t = (value - self.minimum) / (self.maximum - self.minimum)
        return max(0.0, min(1.0, t))

    def color_for(self, value: Any) -> str:
        if not is_number(value):
            return NO_DATA_COLOR
        if not self.sufficient:
            return white_blue(0.0)
        if self.mode == "quantile":
            return self.palette[self.bucket(float(value))]
        return white_blue(self.position(float(value)))

    def legend(self) -> list[LegendEntry]:
        """Legend bins; empty when there is not enough data for a legend."""
        lo, hi = self.minimum, self.maximum
        if lo is None or hi is None or not self.sufficient:
            return []
        if self.mode == "linear":
            return [
                LegendEntry(color=white_blue(0.0), lower=lo, upper=lo),
                LegendEntry(color=white_blue(1.0), lower=hi, upper=hi),
            ]
        edges = (lo, *self.thresholds, hi)
        return [
            LegendEntry(color=self.palette[index], lower=edges[index], upper=edges[index + 1])
            for index in range(len(self.palette))
        ]

    def gradient_css(self) -> str:
        return f"linear-gradient(to right, {white_blue(0.0)}, {white_blue(1.0)})"


def build_color_scale(
    rows: Iterable[CountryRecord],
    field_name: str | None,
    mode: ScaleMode = "quantile",
) -> ColorScale:
    """Recompute the scale for the active metric and scale mode."""
    if mode not in ("quantile", "linear"):
        raise ValueError(f"Unknown scale mode '{mode}'")
    if not field_name:
        return ColorScale(mode=mode)
    values = sorted(metric_values(rows, field_name))
    if not values:
        return ColorScale(mode=mode)
    if mode == "linear":
        return ColorScale(mode=mode, values=tuple(values), minimum=values[0], maximum=values[-1])
    return ColorScale(
        mode=mode,
        values=tuple(values),
        thresholds=tuple(quantile(values, p) for p in QUANTILE_STEPS),
        palette=white_blue_palette(PALETTE_SIZE),
        minimum=values[0],
        maximum=values[-1],
    )


@dataclass(frozen=True, slots=True)
class Coverage:
    count: int
    ratio: float | None


def coverage_by_field(
    rows: Sequence[CountryRecord],
    metrics: Iterable[MetricDefinition],
) -> dict[str, Coverage]:
    """Share of countries that have a latest value for each metric."""
    total = len(rows)
    out: dict[str, Coverage] = {}
    for metric in metrics:
        count = sum(1 for row in rows if is_number(row.value(metric.field)))
        out[metric.field] = Coverage(count=count, ratio=count / total if total else None)
    return out


def _meets_coverage(metric: MetricDefinition, coverage: Coverage | None) -> bool:
    if coverage is None or coverage.ratio is None:
        return True
    return coverage.ratio >= (metric.min_coverage or 0.0)


def curated_metrics(
    rows: Sequence[CountryRecord],
    metrics: Sequence[MetricDefinition],
) -> list[MetricDefinition]:
    """Metrics shown by default: always-included or with enough coverage."""
    coverage = coverage_by_field(rows, metrics)
    return [
        metric
        for metric in metrics
        if metric.always_include or _meets_coverage(metric, coverage.get(metric.field))
    ]


def suppressed_metric_labels(
    rows: Sequence[CountryRecord],
    metrics: Sequence[MetricDefinition],
) -> list[str]:
    coverage = coverage_by_field(rows, metrics)
    labels: list[str] = []
    for metric in metrics:
        stats = coverage.get(metric.field)
        if metric.always_include or stats is None or stats.ratio is None:
            continue
        if stats.ratio < (metric.min_coverage or 0.0):
            labels.append(f"{metric.label} ({stats.count} countries)")
    return labels


@dataclass(slots=True)
class MetricGroup:
    title: str
    metrics: list[MetricDefinition] = field(default_factory=list)


def group_metrics(metrics: Iterable[MetricDefinition]) -> list[MetricGroup]:
    """Group metrics by category, groups ordered by first appearance."""
    groups: dict[str, MetricGroup] = {}
    for metric in metrics:
        title = metric.category or ADDITIONAL_GROUP
        groups.setdefault(title, MetricGroup(title=title)).metrics.append(metric)
    return list(groups.values())


def latest_year_by_field(
    rows: Iterable[CountryRecord],
    fields: Iterable[str],
) -> dict[str, int | None]:
    rows = list(rows)
    result: dict[str, int | None] = {}
    for field_name in fields:
        years = [row.year(field_name) for row in rows]
        present = [year for year in years if year is not None]
        result[field_name] = max(present) if present else None
    return result


def default_year(latest_years: dict[str, int | None]) -> int | None:
    years = [year for year in latest_years.values() if year is not None]
    return max(years) if years else None
