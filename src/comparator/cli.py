"""CLI entrypoint for the country comparator."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from .colorscale import (
    build_color_scale,
    curated_metrics,
    default_year,
    group_metrics,
    latest_year_by_field,
    suppressed_metric_labels,
)
from .compare import comparison_table, filter_countries, header_name
from .config import SCALE_MODES, AppConfig, load_config
from .formatters import fmt_time, legend_fmt
from .geo_props import BoundaryDataError, load_boundaries
from .models import CountryRecord, Dataset, MetricDefinition
from .refresh import Refresher, RefreshOutcome
from .report import ReportContext, write_report
from .selection import SelectionState, select, swap
from .util import ensure_directories, now_ms, setup_logging
from .viewport import PanZoomClamper, ViewState, fit_projection

LOGGER = logging.getLogger("comparator.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="comparator",
        description="Compare World Bank indicators for two countries.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="config.yaml", help="Path to YAML config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    def add_scale(p: argparse.ArgumentParser) -> None:
        p.add_argument("--metric", default=None, help="Metric field used for map colors.")
        p.add_argument("--scale", choices=SCALE_MODES, default=None, help="Color scale mode.")

    refresh_p = subparsers.add_parser("refresh", help="Fetch live data unless the cache is fresh.")
    add_common(refresh_p)
    refresh_p.add_argument("--force", action="store_true", help="Ignore the refresh interval.")

    countries_p = subparsers.add_parser("countries", help="List selectable countries.")
    add_common(countries_p)
    countries_p.add_argument("--search", default="", help="Case-insensitive name filter.")

    compare_p = subparsers.add_parser("compare", help="Compare two countries and write a report.")
    add_common(compare_p)
    add_scale(compare_p)
    compare_p.add_argument("country_a", help="ISO3 code of the first country.")
    compare_p.add_argument("country_b", help="ISO3 code of the second country.")
    compare_p.add_argument("--swap", action="store_true", help="Swap the two columns.")
    compare_p.add_argument("--output", default=None, help="Report HTML path.")

    colors_p = subparsers.add_parser("colors", help="Show the color scale for a metric.")
    add_common(colors_p)
    add_scale(colors_p)

    view_p = subparsers.add_parser("view", help="Compute a bounded map view.")
    add_common(view_p)
    view_p.add_argument("--lon", type=float, default=None, help="Requested center longitude.")
    view_p.add_argument("--lat", type=float, default=None, help="Requested center latitude.")
    view_p.add_argument("--zoom", type=float, default=None, help="Requested zoom factor.")
    view_p.add_argument(
        "--drag",
        type=float,
        nargs=2,
        metavar=("DX", "DY"),
        default=None,
        help="Pan by a screen-pixel offset after centering.",
    )
    view_p.add_argument("--zoom-in", type=int, default=0, help="Zoom-in steps to apply.")
    view_p.add_argument("--zoom-out", type=int, default=0, help="Zoom-out steps to apply.")
    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    setup_logging(cfg.paths.logs_dir / "comparator.log", verbose=args.verbose)
    ensure_directories(cfg.paths.build_directories)
    return cfg


def _refresh(cfg: AppConfig, *, force: bool = False) -> RefreshOutcome:
    outcome = Refresher(cfg).run(force=force)
    if outcome.error:
        LOGGER.error("Live data unavailable: %s", outcome.error)
        if outcome.dataset is not None:
            LOGGER.warning("Showing previously cached data.")
    return outcome


def _resolve_color_metric(
    cfg: AppConfig,
    rows: Sequence[CountryRecord],
    requested: str | None,
) -> MetricDefinition | None:
    available = curated_metrics(rows, cfg.metrics)
    wanted = requested or cfg.colors.default_metric
    for metric in available:
        if metric.field == wanted:
            return metric
    if requested:
        LOGGER.warning("Metric '%s' unavailable; using first available metric.", requested)
    return available[0] if available else None


def _run_refresh(cfg: AppConfig, *, force: bool) -> int:
    outcome = _refresh(cfg, force=force)
    if outcome.dataset is None:
        return 1
    LOGGER.info(
        "Dataset has %d countries (last refreshed %s).",
        len(outcome.dataset.rows),
        fmt_time(outcome.last_refreshed_ms) if outcome.last_refreshed_ms else "never",
    )
    return 0 if outcome.ok else 1


def _run_countries(cfg: AppConfig, *, search: str) -> int:
    outcome = _refresh(cfg)
    if outcome.dataset is None:
        return 1
    matches = filter_countries(outcome.dataset.rows, search)
    for record in matches:
        LOGGER.info("%s  %s", record.iso3, record.display_name)
    LOGGER.info("%d countries matched.", len(matches))
    return 0


def _run_compare(
    cfg: AppConfig,
    *,
    country_a: str,
    country_b: str,
    do_swap: bool,
    metric: str | None,
    scale: str | None,
    output: str | None,
) -> int:
    outcome = _refresh(cfg)
    dataset = outcome.dataset
    if dataset is None:
        return 1

    state = SelectionState()
    for code in (country_a, country_b):
        if dataset.get(code) is None:
            LOGGER.warning("Country '%s' is not in the dataset.", code)
        state = select(state, code, now_ms())
    if do_swap:
        state = swap(state)
    record_a = dataset.get(state.a)
    record_b = dataset.get(state.b)

    rows = dataset.rows
    curated = curated_metrics(rows, cfg.metrics)
    groups = group_metrics(curated)
    years = latest_year_by_field(rows, [m.field for m in curated])
    year = default_year(years)
    color_metric = _resolve_color_metric(cfg, rows, metric)
    color_scale = build_color_scale(
        rows,
        color_metric.field if color_metric else None,
        scale or cfg.colors.default_scale,  # type: ignore[arg-type]
    )

    LOGGER.info("A: %s | B: %s", header_name(record_a), header_name(record_b))
    for title, table_rows in comparison_table(groups, record_a, record_b, default_year=year):
        LOGGER.info("-- %s", title)
        for row in table_rows:
            diff_abs, diff_pct = row.difference
            LOGGER.info(
                "%-40s %16s %16s %14s %9s",
                row.label,
                row.display_a,
                row.display_b,
                diff_abs,
                diff_pct,
            )

    output_path = (
        Path(output)
        if output
        else cfg.paths.reports_dir / f"compare_{state.a or 'none'}_{state.b or 'none'}.html"
    )
    write_report(
        ReportContext(
            record_a=record_a,
            record_b=record_b,
            rows=rows,
            groups=groups,
            color_metric=color_metric,
            scale=color_scale,
            default_year=year,
            hidden_metrics=suppressed_metric_labels(rows, cfg.metrics),
            last_refreshed_ms=outcome.last_refreshed_ms,
            error=outcome.error,
        ),
        output_path,
    )
    LOGGER.info("Comparison report written to %s", output_path)
    return 0


def _run_colors(cfg: AppConfig, *, metric: str | None, scale: str | None) -> int:
    outcome = _refresh(cfg)
    dataset: Dataset | None = outcome.dataset
    if dataset is None:
        return 1
    color_metric = _resolve_color_metric(cfg, dataset.rows, metric)
    if color_metric is None:
        LOGGER.error("No metric has data to color by.")
        return 1
    color_scale = build_color_scale(
        dataset.rows,
        color_metric.field,
        scale or cfg.colors.default_scale,  # type: ignore[arg-type]
    )
    LOGGER.info("Coloring by %s (%s scale).", color_metric.label, color_scale.mode)
    legend = color_scale.legend()
    if not legend:
        LOGGER.warning("Insufficient data for a %s legend.", color_metric.label)
    for entry in legend:
        LOGGER.info("%s  %s", entry.color, entry.label)
    if color_scale.thresholds:
        LOGGER.info("Thresholds: %s", ", ".join(legend_fmt(t) for t in color_scale.thresholds))
    for record in dataset.rows:
        value = record.value(color_metric.field)
        LOGGER.debug(
            "%s %-32s %-22s %s",
            record.iso3,
            record.name,
            color_scale.color_for(value),
            color_metric.format(value),
        )
    return 0


def _run_view(
    cfg: AppConfig,
    *,
    lon: float | None,
    lat: float | None,
    zoom: float | None,
    drag: Sequence[float] | None,
    zoom_in: int,
    zoom_out: int,
) -> int:
    try:
        features = load_boundaries(cfg.paths.boundaries)["features"]
    except BoundaryDataError as exc:
        LOGGER.warning("%s; using the globe outline for view bounds.", exc)
        features = []

    projection, bounds = fit_projection(features, cfg.map.width, cfg.map.height)
    clamper = PanZoomClamper(
        projection,
        bounds,
        min_zoom=cfg.map.min_zoom,
        max_zoom=cfg.map.max_zoom,
    )
    state = clamper.reset(cfg.map.initial_center, cfg.map.initial_zoom)
    center = (
        lon if lon is not None else state.center[0],
        lat if lat is not None else state.center[1],
    )
    state = clamper.set_view(state, center, zoom if zoom is not None else state.zoom)
    for _ in range(max(zoom_in, 0)):
        state = clamper.zoom_by(state, cfg.map.zoom_step)
    for _ in range(max(zoom_out, 0)):
        state = clamper.zoom_by(state, 1 / cfg.map.zoom_step)
    if drag is not None:
        state = clamper.drag(state, drag[0], drag[1])

    _log_view(clamper, state)
    return 0


def _log_view(clamper: PanZoomClamper, state: ViewState) -> None:
    position = clamper.position(state)
    LOGGER.info("Center: lon=%.4f lat=%.4f", state.center[0], state.center[1])
    LOGGER.info("Zoom: %.3f (bounds %.1f-%.1f)", state.zoom, clamper.min_zoom, clamper.max_zoom)
    LOGGER.info("Transform: %s", position.transform)


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = str(args.command)
    if command == "refresh":
        return _run_refresh(cfg, force=bool(args.force))
    if command == "countries":
        return _run_countries(cfg, search=str(args.search))
    if command == "compare":
        return _run_compare(
            cfg,
            country_a=str(args.country_a),
            country_b=str(args.country_b),
            do_swap=bool(args.swap),
            metric=args.metric,
            scale=args.scale,
            output=args.output,
        )
    if command == "colors":
        return _run_colors(cfg, metric=args.metric, scale=args.scale)
    if command == "view":
        return _run_view(
            cfg,
            lon=args.lon,
            lat=args.lat,
            zoom=args.zoom,
            drag=args.drag,
            zoom_in=int(args.zoom_in),
            zoom_out=int(args.zoom_out),
        )
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
