"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml

from .models import MetricDefinition

SCALE_MODES = ("quantile", "linear")


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path:
    raw = _str(value, field_name)
    p = Path(raw)
    return p if p.is_absolute() else root_dir / p


@dataclass(frozen=True, slots=True)
class ApiConfig:
    base_url: str
    countries_per_page: int
    indicator_per_page: int
    most_recent_values: int
    request_timeout_s: float
    user_agent: str
    max_workers: int

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ApiConfig:
        max_workers = _int(raw.get("max_workers"), "api.max_workers")
        if max_workers < 1:
            raise ValueError("api.max_workers must be >= 1")
        timeout = _float(raw.get("request_timeout_s"), "api.request_timeout_s")
        if timeout <= 0:
            raise ValueError("api.request_timeout_s must be > 0")
        return cls(
            base_url=_str(raw.get("base_url"), "api.base_url").rstrip("/"),
            countries_per_page=_int(raw.get("countries_per_page"), "api.countries_per_page"),
            indicator_per_page=_int(raw.get("indicator_per_page"), "api.indicator_per_page"),
            most_recent_values=_int(raw.get("most_recent_values"), "api.most_recent_values"),
            request_timeout_s=timeout,
            user_agent=_str(raw.get("user_agent"), "api.user_agent"),
            max_workers=max_workers,
        )


@dataclass(frozen=True, slots=True)
class PathsConfig:
    boundaries: Path
    cache_dir: Path
    state_file: Path
    dataset_cache: Path
    reports_dir: Path
    logs_dir: Path

    @property
    def build_directories(self) -> tuple[Path, ...]:
        return (self.cache_dir, self.reports_dir, self.logs_dir)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> PathsConfig:
        return cls(
            boundaries=_path_from_cfg(raw.get("boundaries"), "paths.boundaries", root_dir),
            cache_dir=_path_from_cfg(raw.get("cache_dir"), "paths.cache_dir", root_dir),
            state_file=_path_from_cfg(raw.get("state_file"), "paths.state_file", root_dir),
            dataset_cache=_path_from_cfg(raw.get("dataset_cache"), "paths.dataset_cache", root_dir),
            reports_dir=_path_from_cfg(raw.get("reports_dir"), "paths.reports_dir", root_dir),
            logs_dir=_path_from_cfg(raw.get("logs_dir"), "paths.logs_dir", root_dir),
        )


@dataclass(frozen=True, slots=True)
class MapConfig:
    width: float
    height: float
    min_zoom: float
    max_zoom: float
    zoom_step: float
    initial_center: tuple[float, float]
    initial_zoom: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> MapConfig:
        width = _float(raw.get("width"), "map.width")
        height = _float(raw.get("height"), "map.height")
        if width <= 0 or height <= 0:
            raise ValueError("map.width and map.height must be > 0")
        min_zoom = _float(raw.get("min_zoom"), "map.min_zoom")
        max_zoom = _float(raw.get("max_zoom"), "map.max_zoom")
        if min_zoom <= 0 or max_zoom < min_zoom:
            raise ValueError("map zoom bounds must satisfy 0 < min_zoom <= max_zoom")
        zoom_step = _float(raw.get("zoom_step"), "map.zoom_step")
        if zoom_step <= 1:
            raise ValueError("map.zoom_step must be > 1")

        center_raw = raw.get("initial_center", [0.0, 0.0])
        if not isinstance(center_raw, list) or len(center_raw) != 2:
            raise ValueError("Expected [lon, lat] list for 'map.initial_center'")
        center = (
            _float(center_raw[0], "map.initial_center[0]"),
            _float(center_raw[1], "map.initial_center[1]"),
        )
        return cls(
            width=width,
            height=height,
            min_zoom=min_zoom,
            max_zoom=max_zoom,
            zoom_step=zoom_step,
            initial_center=center,
            initial_zoom=_float(raw.get("initial_zoom", 1.0), "map.initial_zoom"),
        )


@dataclass(frozen=True, slots=True)
class RefreshConfig:
    interval_hours: float

    @property
    def interval_ms(self) -> int:
        return int(self.interval_hours * 60 * 60 * 1000)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> RefreshConfig:
        hours = _float(raw.get("interval_hours"), "refresh.interval_hours")
        if hours <= 0:
            raise ValueError("refresh.interval_hours must be > 0")
        return cls(interval_hours=hours)


@dataclass(frozen=True, slots=True)
class ColorsConfig:
    default_metric: str
    default_scale: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ColorsConfig:
        scale = _str(raw.get("default_scale"), "colors.default_scale").casefold()
        if scale not in SCALE_MODES:
            raise ValueError("colors.default_scale must be one of: " + ", ".join(SCALE_MODES))
        return cls(
            default_metric=_str(raw.get("default_metric"), "colors.default_metric"),
            default_scale=scale,
        )


def _metrics(value: Any) -> tuple[MetricDefinition, ...]:
    if not isinstance(value, list) or not value:
        raise ValueError("Expected non-empty list for 'metrics'")
    metrics: list[MetricDefinition] = []
    seen: set[str] = set()
    for idx, item in enumerate(value):
        metric = MetricDefinition.from_mapping(_mapping(item, f"metrics[{idx}]"))
        if metric.field in seen:
            raise ValueError(f"Duplicate metric field '{metric.field}'")
        seen.add(metric.field)
        metrics.append(metric)
    return tuple(metrics)


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path
    api: ApiConfig
    paths: PathsConfig
    map: MapConfig
    refresh: RefreshConfig
    colors: ColorsConfig
    metrics: tuple[MetricDefinition, ...]

    def metric(self, field_name: str) -> MetricDefinition | None:
        for metric in self.metrics:
            if metric.field == field_name:
                return metric
        return None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path) -> AppConfig:
        root_dir = source_path.parent.resolve()
        metrics = _metrics(raw.get("metrics"))
        colors = ColorsConfig.from_mapping(_mapping(raw.get("colors"), "colors"))
        if colors.default_metric not in {metric.field for metric in metrics}:
            raise ValueError(
                f"colors.default_metric '{colors.default_metric}' is not a configured metric"
            )
        return cls(
            source_path=source_path.resolve(),
            api=ApiConfig.from_mapping(_mapping(raw.get("api"), "api")),
            paths=PathsConfig.from_mapping(_mapping(raw.get("paths"), "paths"), root_dir),
            map=MapConfig.from_mapping(_mapping(raw.get("map"), "map")),
            refresh=RefreshConfig.from_mapping(_mapping(raw.get("refresh"), "refresh")),
            colors=colors,
            metrics=metrics,
        )


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
