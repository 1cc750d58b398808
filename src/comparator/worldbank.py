"""World Bank v2 API client and indicator reduction."""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, Mapping

import requests

from .config import ApiConfig
from .models import IndicatorBundle, MetadataCountry, Observation, iso_code

_LOGGER = logging.getLogger("comparator.worldbank")

# Region id the API uses for aggregates ("World", "High income", ...).
_AGGREGATE_REGION_ID = "NA"


class WorldBankError(RuntimeError):
    """A World Bank request failed or returned an unexpected payload."""


def _coerce_value(raw: Any) -> float | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str) and not raw.strip():
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _coerce_year(raw: Any) -> int | None:
    try:
        return int(str(raw).strip()[:4])
    except (TypeError, ValueError):
        return None


def reduce_observations(rows: Iterable[Any]) -> IndicatorBundle:
    """Reduce raw indicator records to latest-value and per-year series maps.

    Within a country, the first value seen for a year is kept; the latest
    observation is only replaced by a strictly greater year.
    """
    latest: dict[str, Observation] = {}
    series: dict[str, dict[int, float]] = {}
    for row in rows:
        if not isinstance(row, Mapping):
            continue
        code = row.get("countryiso3code")
        if not code:
            continue
        iso3 = str(code).strip().upper()
        value = _coerce_value(row.get("value"))
        if value is None:
            continue
        year = _coerce_year(row.get("date"))
        if year is None:
            continue

        per_year = series.setdefault(iso3, {})
        if year not in per_year:
            per_year[year] = value

        previous = latest.get(iso3)
        if previous is None or year > previous.year:
            latest[iso3] = Observation(value=value, year=year)
    return IndicatorBundle(latest=latest, series=series)


def _records(payload: Any, what: str) -> list[Any]:
    # The API answers [pagination, records]; errors come back as [{"message": ...}].
    if not isinstance(payload, list) or not payload:
        raise WorldBankError(f"Unexpected {what} response shape")
    if len(payload) < 2:
        message = payload[0].get("message") if isinstance(payload[0], Mapping) else None
        raise WorldBankError(f"World Bank returned no {what} records: {message or payload[0]}")
    records = payload[1]
    if records is None:
        return []
    if not isinstance(records, list):
        raise WorldBankError(f"Unexpected {what} record list")
    return records


def parse_countries(records: Iterable[Any]) -> list[MetadataCountry]:
    """Country identities from the country list, aggregates excluded."""
    out: list[MetadataCountry] = []
    skipped = 0
    for item in records:
        if not isinstance(item, Mapping):
            continue
        region = item.get("region")
        if isinstance(region, Mapping) and region.get("id") == _AGGREGATE_REGION_ID:
            continue
        iso3 = iso_code(item.get("iso3Code"), 3)
        if iso3 is None:
            skipped += 1
            continue
        name = item.get("name")
        out.append(
            MetadataCountry(
                iso3=iso3,
                name=str(name) if name else "",
                iso2=iso_code(item.get("iso2Code"), 2),
            )
        )
    if skipped:
        _LOGGER.debug("Skipped %d country entries without a valid ISO-3 code", skipped)
    return out


class WorldBankClient:
    """Fetch country metadata and indicator series from the World Bank API."""

    def __init__(self, cfg: ApiConfig, session: requests.Session | None = None) -> None:
        self.cfg = cfg
        self._session = session if session is not None else requests.Session()
        self._session.headers.update({"User-Agent": cfg.user_agent})

    def fetch_countries(self) -> list[MetadataCountry]:
        payload = self._get_json(
            f"{self.cfg.base_url}/country",
            params={"format": "json", "per_page": self.cfg.countries_per_page},
        )
        countries = parse_countries(_records(payload, "country"))
        _LOGGER.info("Fetched %d countries from World Bank metadata", len(countries))
        return countries

    def fetch_indicator(self, code: str) -> IndicatorBundle:
        payload = self._get_json(
            f"{self.cfg.base_url}/country/all/indicator/{code}",
            params={
                "format": "json",
                "per_page": self.cfg.indicator_per_page,
                "MRV": self.cfg.most_recent_values,
            },
        )
        bundle = reduce_observations(_records(payload, f"indicator {code}"))
        _LOGGER.debug("Indicator %s: %d countries with data", code, len(bundle.latest))
        return bundle

    def _get_json(self, url: str, *, params: Mapping[str, Any]) -> Any:
        try:
            response = self._session.get(url, params=params, timeout=self.cfg.request_timeout_s)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            raise WorldBankError(f"Request to {url} failed: {exc}") from exc
        except ValueError as exc:
            raise WorldBankError(f"Invalid JSON from {url}: {exc}") from exc
