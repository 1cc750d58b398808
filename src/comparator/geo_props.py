"""Boundary-file (Natural Earth GeoJSON) loading and property extraction."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from .models import BoundaryCountry, iso_code

_LOGGER = logging.getLogger("comparator.geo_props")

# Natural Earth marks missing codes with this literal.
NULL_SENTINEL = "-99"

ISO3_KEYS = (
    "ISO_A3",
    "iso_a3",
    "ISO_A3_EH",
    "iso_a3_eh",
    "ADM0_A3",
    "adm0_a3",
    "ISO3",
    "iso3",
)
ISO2_KEYS = (
    "ISO_A2",
    "iso_a2",
    "ISO_A2_EH",
    "iso_a2_eh",
    "WB_A2",
    "wb_a2",
)
NAME_KEYS = ("NAME", "name", "NAME_LONG", "name_long", "ADMIN")


class BoundaryDataError(RuntimeError):
    """The boundary file is missing or is not a usable FeatureCollection."""


def _first_present(props: Any, candidates: Sequence[str]) -> Any:
    if not isinstance(props, Mapping):
        return None
    for key in candidates:
        value = props.get(key)
        if value is not None:
            return value
    return None


def _code_or_none(raw: Any, expected_len: int) -> str | None:
    if raw is None or raw == "" or raw == NULL_SENTINEL:
        return None
    return iso_code(str(raw), expected_len)


def get_iso3(props: Any) -> str | None:
    """ISO-3 code from a feature's properties, or None when missing or malformed."""
    return _code_or_none(_first_present(props, ISO3_KEYS), expected_len=3)


def get_iso2(props: Any) -> str | None:
    return _code_or_none(_first_present(props, ISO2_KEYS), expected_len=2)


def get_name(props: Any) -> str:
    value = _first_present(props, NAME_KEYS)
    if value is None:
        return ""
    return str(value)


def load_boundaries(path: Path) -> dict[str, Any]:
    """Load the bundled GeoJSON and return it as a FeatureCollection."""
    if not path.exists():
        raise BoundaryDataError(f"Boundary file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)
    except (OSError, ValueError) as exc:
        raise BoundaryDataError(f"Failed reading boundary file {path}: {exc}") from exc

    if not isinstance(raw, Mapping) or not isinstance(raw.get("features"), list):
        raise BoundaryDataError("GeoJSON did not include a features array.")
    if raw.get("type") == "FeatureCollection":
        return dict(raw)
    return {"type": "FeatureCollection", "features": list(raw["features"])}


def boundary_countries(features: Iterable[Any]) -> list[BoundaryCountry]:
    """Country identities for every feature with a usable ISO-3 code."""
    out: list[BoundaryCountry] = []
    skipped = 0
    for feature in features:
        props = feature.get("properties") if isinstance(feature, Mapping) else None
        iso3 = get_iso3(props)
        if iso3 is None:
            skipped += 1
            continue
        out.append(BoundaryCountry(iso3=iso3, name=get_name(props), iso2=get_iso2(props)))
    if skipped:
        _LOGGER.debug("Skipped %d boundary features without an ISO-3 code", skipped)
    return out
