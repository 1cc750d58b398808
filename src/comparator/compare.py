"""Side-by-side comparison rows and country search."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from .colorscale import MetricGroup
from .formatters import PLACEHOLDER, Relation, diff_fmt, relation
from .models import CountryRecord, MetricDefinition


@dataclass(frozen=True, slots=True)
class ComparisonRow:
    metric: MetricDefinition
    year: int | None
    value_a: float | None
    value_b: float | None
    relation: Relation
    stale: bool

    @property
    def display_a(self) -> str:
        return self.metric.format(self.value_a)

    @property
    def display_b(self) -> str:
        return self.metric.format(self.value_b)

    @property
    def difference(self) -> tuple[str, str]:
        return diff_fmt(self.value_a, self.value_b, self.metric.diff_suffix)

    @property
    def label(self) -> str:
        if self.stale and self.year is not None:
            return f"{self.metric.label} ({self.year})"
        return self.metric.label


def row_year(series_a: Mapping[int, float], series_b: Mapping[int, float]) -> int | None:
    """Latest year both series report, else the latest year in either."""
    common = set(series_a) & set(series_b)
    if common:
        return max(common)
    either = set(series_a) | set(series_b)
    return max(either) if either else None


def compare_metric(
    metric: MetricDefinition,
    a: CountryRecord | None,
    b: CountryRecord | None,
    *,
    default_year: int | None = None,
) -> ComparisonRow:
    series_a = a.series_for(metric.field) if a is not None else {}
    series_b = b.series_for(metric.field) if b is not None else {}
    year = row_year(series_a, series_b)
    value_a = series_a.get(year) if year is not None else None
    value_b = series_b.get(year) if year is not None else None
    return ComparisonRow(
        metric=metric,
        year=year,
        value_a=value_a,
        value_b=value_b,
        relation=relation(value_a, value_b),
        stale=year is not None and default_year is not None and year < default_year,
    )


def comparison_table(
    groups: Sequence[MetricGroup],
    a: CountryRecord | None,
    b: CountryRecord | None,
    *,
    default_year: int | None = None,
) -> list[tuple[str, list[ComparisonRow]]]:
    return [
        (
            group.title,
            [compare_metric(metric, a, b, default_year=default_year) for metric in group.metrics],
        )
        for group in groups
    ]


def header_name(record: CountryRecord | None) -> str:
    return record.display_name if record is not None else PLACEHOLDER


def filter_countries(rows: Iterable[CountryRecord], term: str) -> list[CountryRecord]:
    """Case-insensitive name search, one entry per ISO-3, sorted by name."""
    needle = term.strip().casefold()
    seen: set[str] = set()
    out: list[CountryRecord] = []
    for row in rows:
        if row.iso3 in seen:
            continue
        seen.add(row.iso3)
        if needle in (row.name or "").casefold():
            out.append(row)
    return sorted(out, key=lambda row: (row.name.casefold(), row.iso3))
