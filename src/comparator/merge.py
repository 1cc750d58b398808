"""Join country identities from both name sources with every metric bundle."""

from __future__ import annotations

from typing import Iterable, Mapping

from .models import BoundaryCountry, CountryRecord, IndicatorBundle, MetadataCountry


def merge_countries(
    metadata: Iterable[MetadataCountry],
    boundaries: Iterable[BoundaryCountry],
    bundles: Mapping[str, IndicatorBundle],
) -> tuple[CountryRecord, ...]:
    """Build one record per ISO-3 known to either name source.

    `bundles` maps metric field -> fetched indicator. Countries that only
    appear in indicator data are dropped since they cannot be displayed or
    selected. The result is sorted by ISO-3 and depends only on the inputs.
    """
    meta_names: dict[str, str] = {}
    meta_iso2: dict[str, str] = {}
    for country in metadata:
        meta_names[country.iso3] = country.name
        if country.iso2:
            meta_iso2[country.iso3] = country.iso2

    geo_names: dict[str, str] = {}
    geo_iso2: dict[str, str] = {}
    for country in boundaries:
        geo_names[country.iso3] = country.name
        if country.iso2:
            geo_iso2[country.iso3] = country.iso2

    all_iso3: set[str] = set(meta_names) | set(geo_names)
    for bundle in bundles.values():
        all_iso3.update(bundle.latest)
    known = sorted(iso3 for iso3 in all_iso3 if iso3 in meta_names or iso3 in geo_names)

    records: list[CountryRecord] = []
    for iso3 in known:
        latest: dict[str, float] = {}
        years: dict[str, int] = {}
        series: dict[str, dict[int, float]] = {}
        for field_name in sorted(bundles):
            bundle = bundles[field_name]
            observation = bundle.latest.get(iso3)
            if observation is not None:
                latest[field_name] = observation.value
                years[field_name] = observation.year
            per_year = bundle.series.get(iso3)
            if per_year:
                series[field_name] = dict(per_year)

        records.append(
            CountryRecord(
                iso3=iso3,
                name=meta_names.get(iso3) or geo_names.get(iso3) or iso3,
                iso2=meta_iso2.get(iso3) or geo_iso2.get(iso3),
                latest=latest,
                years=years,
                series=series,
            )
        )
    return tuple(records)
