"""Display formatters for indicator values.

Every function here is total: unusable input yields the ``PLACEHOLDER``
string instead of raising.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Callable, Literal

PLACEHOLDER = "—"

Relation = Literal["A", "B", "tie", "na"]


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(numeric):
        return None
    return numeric


def _truncate_to(value: float, digits: int) -> float:
    factor = 10**digits
    return math.trunc(value * factor) / factor


def _strip_zeros(text: str) -> str:
    if "." not in text:
        return text
    head, tail = text.split(".", 1)
    tail = tail.rstrip("0")
    return f"{head}.{tail}" if tail else head


def _plain(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return repr(value)


def number_fmt(value: Any) -> str:
    """Abbreviate large magnitudes: 1500 -> ``1.5K``, 2e6 -> ``2.0M``."""
    if value is None or value == "":
        return PLACEHOLDER
    numeric = _to_float(value)
    if numeric is None:
        return value if isinstance(value, str) else PLACEHOLDER

    magnitude = abs(numeric)
    for threshold, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K")):
        if magnitude >= threshold:
            return f"{numeric / threshold:.1f}{suffix}"
    return _plain(numeric)


def money_fmt(value: Any) -> str:
    if _to_float(value) is None:
        return PLACEHOLDER
    return "$" + number_fmt(value)


def small_number_fmt(value: Any, digits: int = 1) -> str:
    """Truncate (not round) to ``digits`` decimals and drop trailing zeros."""
    numeric = _to_float(value)
    if numeric is None:
        return PLACEHOLDER
    text = f"{_truncate_to(numeric, digits):.{digits}f}"
    text = _strip_zeros(text)
    return "0" if text == "-0" else text


def legend_fmt(value: Any) -> str:
    numeric = _to_float(value)
    if numeric is None:
        return PLACEHOLDER
    return number_fmt(numeric) if abs(numeric) >= 1e3 else small_number_fmt(numeric, 1)


def pct_fmt(value: Any) -> str:
    """Format a fraction as a signed percentage: 0.2 -> ``+20.0%``."""
    numeric = _to_float(value)
    if numeric is None:
        return PLACEHOLDER
    sign = "+" if numeric >= 0 else ""
    return f"{sign}{_truncate_to(numeric * 100, 1):.1f}%"


def percent_fmt(value: Any, digits: int = 1) -> str:
    """Format an absolute percentage: 20 -> ``20%``, 12.34 -> ``12.3%``."""
    numeric = _to_float(value)
    if numeric is None:
        return PLACEHOLDER
    return small_number_fmt(numeric, digits) + "%"


def fmt_time(timestamp_ms: Any) -> str:
    """Render an epoch-millisecond timestamp in local time with a 24h clock."""
    numeric = _to_float(timestamp_ms)
    if numeric is None:
        return str(timestamp_ms)
    try:
        return datetime.fromtimestamp(numeric / 1000).strftime("%b %d, %Y, %H:%M")
    except (OverflowError, OSError, ValueError):
        return str(timestamp_ms)


def relation(a: Any, b: Any) -> Relation:
    """Which of two values is larger: ``"A"``, ``"B"``, ``"tie"`` or ``"na"``."""
    an = _to_float(a)
    bn = _to_float(b)
    if an is None or bn is None:
        return "na"
    if an == bn:
        return "tie"
    return "A" if an > bn else "B"


def diff_fmt(a: Any, b: Any, suffix: str = "") -> tuple[str, str]:
    """Absolute and relative change from ``a`` to ``b``.

    Returns ``(absolute, percentage)``; either part is the placeholder
    when it cannot be computed.
    """
    an = _to_float(a)
    bn = _to_float(b)
    if an is None or bn is None:
        return (PLACEHOLDER, PLACEHOLDER)
    diff = bn - an
    sign = "+" if diff > 0 else ""
    magnitude = abs(diff)
    display = number_fmt(magnitude) if magnitude >= 1000 else small_number_fmt(magnitude, 1)
    if diff < 0 and display != "0":
        display = "-" + display
    pct = diff / an if an != 0 else None
    return (f"{sign}{display}{suffix}", pct_fmt(pct))


def iso2_to_flag_emoji(iso2: Any) -> str:
    if not isinstance(iso2, str) or len(iso2) != 2:
        return ""
    upper = iso2.upper()
    if any(ch < "A" or ch > "Z" for ch in upper):
        return ""
    return "".join(chr(0x1F1E6 + ord(ch) - ord("A")) for ch in upper)


def country_with_flag(name: Any, iso2: Any) -> str:
    base = name.strip() if isinstance(name, str) else ""
    flag = iso2_to_flag_emoji(iso2)
    if not base:
        return flag
    return f"{base} {flag}" if flag else base


FORMATTER_NAMES = ("number", "money", "percent", "small")


def resolve_formatter(name: str, digits: int = 1) -> Callable[[Any], str]:
    """Look up a named value formatter used by the metric catalog."""
    if name == "number":
        return number_fmt
    if name == "money":
        return money_fmt
    if name == "percent":
        return lambda value: percent_fmt(value, digits)
    if name == "small":
        return lambda value: small_number_fmt(value, digits)
    raise ValueError(f"Unknown formatter '{name}'; expected one of: {', '.join(FORMATTER_NAMES)}")
