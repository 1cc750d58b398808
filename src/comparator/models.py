"""Domain models shared across pipeline modules."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from .formatters import country_with_flag, resolve_formatter


def _require_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def iso_code(value: Any, expected_len: int) -> str | None:
    """Uppercased code of exactly `expected_len` ASCII letters, else None."""
    if not isinstance(value, str):
        return None
    normalized = value.strip().upper()
    if len(normalized) != expected_len or not (normalized.isascii() and normalized.isalpha()):
        return None
    return normalized


def _normalize_iso(value: str, expected_len: int, field_name: str) -> str:
    normalized = iso_code(value, expected_len)
    if normalized is None:
        raise ValueError(f"Invalid {field_name}: '{value}'")
    return normalized


def is_number(value: Any) -> bool:
    """True for finite real numbers (booleans excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


@dataclass(frozen=True, slots=True)
class MetricDefinition:
    """Catalog entry describing one World Bank indicator."""

    field: str
    label: str
    code: str
    formatter: str = "number"
    digits: int = 1
    diff_suffix: str = ""
    min_coverage: float | None = None
    always_include: bool = False
    category: str | None = None

    def format(self, value: Any) -> str:
        return self.formatter_fn()(value)

    def formatter_fn(self) -> Callable[[Any], str]:
        return resolve_formatter(self.formatter, self.digits)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> MetricDefinition:
        field_name = _require_str(data.get("field"), "metrics[].field")
        label = _require_str(data.get("label"), f"metrics[{field_name}].label")
        code = _require_str(data.get("code"), f"metrics[{field_name}].code")

        formatter = data.get("format", "number")
        digits = data.get("digits", 1)
        if not isinstance(digits, int) or isinstance(digits, bool) or digits < 0:
            raise ValueError(f"Expected non-negative integer for 'metrics[{field_name}].digits'")
        # Fail at load time rather than on first render.
        resolve_formatter(_require_str(formatter, f"metrics[{field_name}].format"), digits)

        suffix = data.get("diff_suffix", "")
        if not isinstance(suffix, str):
            raise ValueError(f"Expected string for 'metrics[{field_name}].diff_suffix'")

        min_coverage_raw = data.get("min_coverage")
        min_coverage: float | None
        if min_coverage_raw is None:
            min_coverage = None
        elif is_number(min_coverage_raw) and 0.0 <= float(min_coverage_raw) <= 1.0:
            min_coverage = float(min_coverage_raw)
        else:
            raise ValueError(f"metrics[{field_name}].min_coverage must be between 0 and 1")

        always = data.get("always_include", False)
        if not isinstance(always, bool):
            raise ValueError(f"Expected bool for 'metrics[{field_name}].always_include'")

        category_raw = data.get("category")
        category = (
            _require_str(category_raw, f"metrics[{field_name}].category")
            if category_raw is not None
            else None
        )
        return cls(
            field=field_name,
            label=label,
            code=code,
            formatter=formatter.strip(),
            digits=digits,
            diff_suffix=suffix,
            min_coverage=min_coverage,
            always_include=always,
            category=category,
        )


@dataclass(frozen=True, slots=True)
class Observation:
    value: float
    year: int


@dataclass(frozen=True, slots=True)
class IndicatorBundle:
    """One indicator reduced to per-country latest values and year series."""

    latest: Mapping[str, Observation] = field(default_factory=dict)
    series: Mapping[str, Mapping[int, float]] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class MetadataCountry:
    """Country identity from the World Bank country list."""

    iso3: str
    name: str
    iso2: str | None = None


@dataclass(frozen=True, slots=True)
class BoundaryCountry:
    """Country identity derived from one boundary-file feature."""

    iso3: str
    name: str
    iso2: str | None = None


@dataclass(frozen=True, slots=True)
class CountryRecord:
    """Merged per-country row: identity plus every metric's latest value and series."""

    iso3: str
    name: str
    iso2: str | None = None
    latest: Mapping[str, float] = field(default_factory=dict)
    years: Mapping[str, int] = field(default_factory=dict)
    series: Mapping[str, Mapping[int, float]] = field(default_factory=dict)

    def value(self, field_name: str) -> float | None:
        return self.latest.get(field_name)

    def year(self, field_name: str) -> int | None:
        return self.years.get(field_name)

    def series_for(self, field_name: str) -> Mapping[int, float]:
        return self.series.get(field_name, {})

    @property
    def display_name(self) -> str:
        return country_with_flag(self.name, self.iso2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "iso3": self.iso3,
            "iso2": self.iso2,
            "name": self.name,
            "latest": dict(self.latest),
            "years": dict(self.years),
            # JSON object keys must be strings.
            "series": {
                key: {str(year): value for year, value in values.items()}
                for key, values in self.series.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CountryRecord:
        iso3 = _normalize_iso(_require_str(data.get("iso3"), "iso3"), 3, "iso3")
        iso2_raw = data.get("iso2")
        iso2 = _normalize_iso(iso2_raw, 2, "iso2") if isinstance(iso2_raw, str) else None
        name = data.get("name")
        latest_raw = data.get("latest") or {}
        years_raw = data.get("years") or {}
        series_raw = data.get("series") or {}
        if not all(isinstance(item, Mapping) for item in (latest_raw, years_raw, series_raw)):
            raise ValueError(f"Malformed cached record for {iso3}")
        return cls(
            iso3=iso3,
            iso2=iso2,
            name=name if isinstance(name, str) and name else iso3,
            latest={str(k): float(v) for k, v in latest_raw.items() if is_number(v)},
            years={str(k): int(v) for k, v in years_raw.items() if is_number(v)},
            series={
                str(key): {int(year): float(value) for year, value in values.items()}
                for key, values in series_raw.items()
                if isinstance(values, Mapping)
            },
        )


@dataclass(frozen=True, slots=True)
class Dataset:
    """Result of one successful refresh."""

    rows: tuple[CountryRecord, ...]
    refreshed_at_ms: int | None = None

    @property
    def by_iso3(self) -> dict[str, CountryRecord]:
        return {row.iso3: row for row in self.rows}

    def get(self, iso3: str | None) -> CountryRecord | None:
        if not iso3:
            return None
        wanted = iso3.strip().upper()
        for row in self.rows:
            if row.iso3 == wanted:
                return row
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "refreshed_at_ms": self.refreshed_at_ms,
            "rows": [row.to_dict() for row in self.rows],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Dataset:
        rows_raw = data.get("rows")
        if not isinstance(rows_raw, list):
            raise ValueError("Expected list for 'rows' in cached dataset")
        refreshed = data.get("refreshed_at_ms")
        return cls(
            rows=tuple(CountryRecord.from_dict(item) for item in rows_raw),
            refreshed_at_ms=int(refreshed) if is_number(refreshed) else None,
        )
