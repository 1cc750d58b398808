"""Static HTML comparison report."""

from __future__ import annotations

from dataclasses import dataclass
from html import escape
from pathlib import Path
from typing import Sequence

from .colorscale import ColorScale, MetricGroup
from .compare import ComparisonRow, comparison_table, header_name
from .formatters import fmt_time
from .models import CountryRecord, MetricDefinition


@dataclass(frozen=True, slots=True)
class ReportContext:
    record_a: CountryRecord | None
    record_b: CountryRecord | None
    rows: Sequence[CountryRecord]
    groups: Sequence[MetricGroup]
    color_metric: MetricDefinition | None
    scale: ColorScale
    default_year: int | None = None
    hidden_metrics: Sequence[str] = ()
    last_refreshed_ms: int | None = None
    error: str | None = None


def _relation_class(row: ComparisonRow, side: str) -> str:
    if row.relation in ("na", "tie"):
        return ""
    return "higher" if row.relation == side else "lower"


def _table_rows(ctx: ReportContext) -> list[str]:
    out: list[str] = []
    for title, rows in comparison_table(
        ctx.groups, ctx.record_a, ctx.record_b, default_year=ctx.default_year
    ):
        out.append(f"      <tr class='group'><th colspan='4'>{escape(title)}</th></tr>")
        for row in rows:
            diff_abs, diff_pct = row.difference
            label = escape(row.label)
            if row.stale:
                label = f"<span class='stale' title='Older data'>{label}</span>"
            out.append(
                "\n".join(
                    [
                        "      <tr>",
                        f"        <td>{label}</td>",
                        f"        <td class='{_relation_class(row, 'A')}'>{escape(row.display_a)}</td>",
                        f"        <td class='{_relation_class(row, 'B')}'>{escape(row.display_b)}</td>",
                        f"        <td>{escape(diff_abs)}<br><small>{escape(diff_pct)}</small></td>",
                        "      </tr>",
                    ]
                )
            )
    return out


def _legend(ctx: ReportContext) -> list[str]:
    if ctx.color_metric is None:
        return ["  <p class='legend'>No metric selected.</p>"]
    entries = ctx.scale.legend()
    if not entries:
        return ["  <p class='legend'>Insufficient data for a legend.</p>"]
    items = [
        f"    <li><span class='swatch' style='background:{escape(entry.color)}'></span>"
        f"{escape(entry.label)}</li>"
        for entry in entries
    ]
    return [
        f"  <h2>{escape(ctx.color_metric.label)} ({escape(ctx.scale.mode)})</h2>",
        "  <ul class='legend'>",
        *items,
        "  </ul>",
    ]


def _country_colors(ctx: ReportContext) -> list[str]:
    if ctx.color_metric is None:
        return []
    field_name = ctx.color_metric.field
    items: list[str] = []
    for record in sorted(ctx.rows, key=lambda r: r.name.casefold()):
        value = record.value(field_name)
        color = ctx.scale.color_for(value)
        items.append(
            f"    <li><span class='swatch' style='background:{escape(color)}'></span>"
            f"{escape(record.display_name)} ({record.iso3}): "
            f"{escape(ctx.color_metric.format(value))}</li>"
        )
    return ["  <h2>Map colors</h2>", "  <ul class='colors'>", *items, "  </ul>"]


def render_report(ctx: ReportContext) -> str:
    banner = (
        [f"  <p class='error'>{escape(ctx.error)}</p>"] if ctx.error else []
    )
    refreshed = (
        [f"  <p class='meta'>Last refreshed: {escape(fmt_time(ctx.last_refreshed_ms))}</p>"]
        if ctx.last_refreshed_ms
        else []
    )
    hidden = (
        [
            "  <p class='meta'>Hidden for low coverage: "
            + escape(", ".join(ctx.hidden_metrics))
            + "</p>"
        ]
        if ctx.hidden_metrics
        else []
    )
    return "\n".join(
        [
            "<!doctype html>",
            "<html lang='en'>",
            "<head>",
            "  <meta charset='utf-8'>",
            "  <meta name='viewport' content='width=device-width, initial-scale=1'>",
            "  <title>Country comparison</title>",
            "  <style>",
            "    body { font-family: Arial, sans-serif; margin: 16px; color: #0f172a; }",
            "    table { border-collapse: collapse; width: 100%; max-width: 960px; }",
            "    th, td { border-bottom: 1px solid #e2e8f0; padding: 6px 8px; text-align: left; }",
            "    tr.group th { background: #f8fafc; font-size: 13px; color: #475569; }",
            "    td.higher { background: rgba(16, 185, 129, 0.12); }",
            "    td.lower { background: rgba(244, 63, 94, 0.10); }",
            "    .stale { color: #b45309; }",
            "    .error { color: #b22d2d; font-weight: 700; }",
            "    .meta { color: #64748b; font-size: 13px; }",
            "    ul.legend, ul.colors { list-style: none; padding: 0; }",
            "    .swatch {",
            "      display: inline-block;",
            "      width: 14px;",
            "      height: 14px;",
            "      margin-right: 6px;",
            "      vertical-align: middle;",
            "      border: 1px solid #cbd5e1;",
            "    }",
            "  </style>",
            "</head>",
            "<body>",
            "  <h1>Country comparison</h1>",
            *banner,
            *refreshed,
            "  <table>",
            "    <thead>",
            "      <tr>",
            "        <th>Metric</th>",
            f"        <th>{escape(header_name(ctx.record_a))}</th>",
            f"        <th>{escape(header_name(ctx.record_b))}</th>",
            "        <th>Difference (B − A)</th>",
            "      </tr>",
            "    </thead>",
            "    <tbody>",
            *_table_rows(ctx),
            "    </tbody>",
            "  </table>",
            *hidden,
            *_legend(ctx),
            *_country_colors(ctx),
            "</body>",
            "</html>",
            "",
        ]
    )


def write_report(ctx: ReportContext, output_html: Path) -> Path:
    output_html.parent.mkdir(parents=True, exist_ok=True)
    output_html.write_text(render_report(ctx), encoding="utf-8")
    return output_html
