from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from comparator.config import AppConfig
from comparator.models import CountryRecord, IndicatorBundle, MetadataCountry
from comparator.worldbank import WorldBankError, reduce_observations


def _square(lon: float, lat: float, size: float) -> dict[str, Any]:
    return {
        "type": "Polygon",
        "coordinates": [
            [
                [lon, lat],
                [lon + size, lat],
                [lon + size, lat + size],
                [lon, lat + size],
                [lon, lat],
            ]
        ],
    }


def boundary_collection() -> dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"ISO_A3": "USA", "ISO_A2": "US", "NAME": "United States of America"},
                "geometry": _square(-120.0, 30.0, 40.0),
            },
            {
                "type": "Feature",
                "properties": {"iso_a3": "fra", "iso_a2": "fr", "name": "France"},
                "geometry": _square(0.0, 43.0, 6.0),
            },
            {
                "type": "Feature",
                "properties": {"ISO_A3": "-99", "NAME": "Somaliland"},
                "geometry": _square(44.0, 8.0, 4.0),
            },
        ],
    }


@pytest.fixture
def boundaries_path(tmp_path: Path) -> Path:
    path = tmp_path / "data" / "world.geojson"
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps(boundary_collection()), encoding="utf-8")
    return path


def config_mapping() -> dict[str, Any]:
    return {
        "api": {
            "base_url": "https://api.example.test/v2/",
            "countries_per_page": 400,
            "indicator_per_page": 20000,
            "most_recent_values": 10,
            "request_timeout_s": 5,
            "user_agent": "comparator-tests",
            "max_workers": 4,
        },
        "paths": {
            "boundaries": "data/world.geojson",
            "cache_dir": "build/cache",
            "state_file": "build/cache/state.json",
            "dataset_cache": "build/cache/dataset.json",
            "reports_dir": "build/reports",
            "logs_dir": "build/logs",
        },
        "map": {
            "width": 960,
            "height": 520,
            "min_zoom": 1,
            "max_zoom": 8,
            "zoom_step": 1.5,
            "initial_center": [0, 0],
            "initial_zoom": 1,
        },
        "refresh": {"interval_hours": 24},
        "colors": {"default_metric": "gdp_per_capita_usd", "default_scale": "quantile"},
        "metrics": [
            {
                "field": "population",
                "label": "Population",
                "code": "SP.POP.TOTL",
                "format": "number",
                "always_include": True,
                "category": "Population & Society",
            },
            {
                "field": "gdp_per_capita_usd",
                "label": "GDP per capita (USD)",
                "code": "NY.GDP.PCAP.CD",
                "format": "money",
                "always_include": True,
                "category": "Economy & Trade",
            },
            {
                "field": "inflation_cpi_pct",
                "label": "Inflation (CPI, %)",
                "code": "FP.CPI.TOTL.ZG",
                "format": "percent",
                "diff_suffix": "%",
                "min_coverage": 0.6,
                "category": "Economy & Trade",
            },
        ],
    }


@pytest.fixture
def app_config(tmp_path: Path, boundaries_path: Path) -> AppConfig:
    _ = boundaries_path
    return AppConfig.from_mapping(config_mapping(), tmp_path / "config.yaml")


INDICATOR_ROWS: dict[str, list[dict[str, Any]]] = {
    "SP.POP.TOTL": [
        {"countryiso3code": "USA", "value": 331000000, "date": "2020"},
        {"countryiso3code": "USA", "value": 328000000, "date": "2019"},
        {"countryiso3code": "FRA", "value": 67000000, "date": "2020"},
        {"countryiso3code": "WLD", "value": 7800000000, "date": "2020"},
    ],
    "NY.GDP.PCAP.CD": [
        {"countryiso3code": "USA", "value": "63000", "date": "2020"},
        {"countryiso3code": "FRA", "value": 39000.5, "date": "2020"},
        {"countryiso3code": "FRA", "value": 40000.0, "date": "2019"},
    ],
    "FP.CPI.TOTL.ZG": [
        {"countryiso3code": "USA", "value": 1.2, "date": "2020"},
        {"countryiso3code": "FRA", "value": None, "date": "2020"},
    ],
}


class FakeWorldBankClient:
    """In-memory stand-in for WorldBankClient."""

    def __init__(self, *, failing_codes: set[str] | None = None) -> None:
        self.failing_codes = failing_codes or set()
        self.indicator_calls: list[str] = []
        self.country_calls = 0

    def fetch_countries(self) -> list[MetadataCountry]:
        self.country_calls += 1
        return [
            MetadataCountry(iso3="USA", name="United States", iso2="US"),
            MetadataCountry(iso3="DEU", name="Germany", iso2="DE"),
        ]

    def fetch_indicator(self, code: str) -> IndicatorBundle:
        self.indicator_calls.append(code)
        if code in self.failing_codes:
            raise WorldBankError(f"Request for {code} failed")
        return reduce_observations(INDICATOR_ROWS.get(code, []))


@pytest.fixture
def fake_client() -> FakeWorldBankClient:
    return FakeWorldBankClient()


def make_record(iso3: str, name: str, **values: tuple[float, int]) -> CountryRecord:
    """Record whose metrics each carry a single (value, year) observation."""
    return CountryRecord(
        iso3=iso3,
        name=name,
        latest={key: value for key, (value, _) in values.items()},
        years={key: year for key, (_, year) in values.items()},
        series={key: {year: value} for key, (value, year) in values.items()},
    )
