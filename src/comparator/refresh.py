"""Refresh orchestration: fetch everything, merge, and cache the result.

A refresh either commits a complete new dataset or nothing at all; the
previously cached dataset stays usable when any fetch fails.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

from .config import AppConfig
from .geo_props import BoundaryDataError, boundary_countries, load_boundaries
from .merge import merge_countries
from .models import BoundaryCountry, Dataset, IndicatorBundle, MetricDefinition
from .util import now_ms, read_json, write_json
from .worldbank import WorldBankClient, WorldBankError

_LOGGER = logging.getLogger("comparator.refresh")

DAY_MS = 24 * 60 * 60 * 1000
STATE_KEY = "wb:lastRefreshed"


class RefreshError(RuntimeError):
    """A refresh could not produce a complete dataset."""


@dataclass(frozen=True, slots=True)
class RefreshOutcome:
    dataset: Dataset | None
    refreshed: bool
    last_refreshed_ms: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def needs_refresh(
    last_ms: Any,
    now: int,
    *,
    has_data: bool,
    interval_ms: int = DAY_MS,
) -> bool:
    """Refresh unless a recent timestamp exists and cached data is present."""
    if not has_data:
        return True
    if last_ms is None or isinstance(last_ms, bool) or not isinstance(last_ms, (int, float)):
        return True
    if not math.isfinite(last_ms) or last_ms <= 0:
        return True
    return now - last_ms > interval_ms


class TimestampStore:
    """Last successful refresh time persisted under a single key.

    Storage failures are ignored: a failed read behaves like no timestamp.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def read(self) -> int | None:
        try:
            raw = read_json(self.path)
        except (OSError, ValueError) as exc:
            _LOGGER.debug("No usable refresh timestamp at %s: %s", self.path, exc)
            return None
        value = raw.get(STATE_KEY) if isinstance(raw, Mapping) else None
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return int(value) if math.isfinite(value) else None

    def write(self, timestamp_ms: int) -> None:
        try:
            write_json(self.path, {STATE_KEY: timestamp_ms})
        except OSError as exc:
            _LOGGER.debug("Could not persist refresh timestamp to %s: %s", self.path, exc)


def load_cached_dataset(path: Path) -> Dataset | None:
    if not path.exists():
        return None
    try:
        return Dataset.from_dict(read_json(path))
    except (OSError, ValueError, TypeError, AttributeError) as exc:
        _LOGGER.warning("Ignoring unreadable dataset cache %s: %s", path, exc)
        return None


def fetch_bundles(
    client: WorldBankClient,
    metrics: Sequence[MetricDefinition],
    *,
    max_workers: int = 8,
) -> dict[str, IndicatorBundle]:
    """Fetch every indicator concurrently; the first failure aborts the batch."""
    bundles: dict[str, IndicatorBundle] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [(metric, pool.submit(client.fetch_indicator, metric.code)) for metric in metrics]
        try:
            for metric, future in futures:
                bundles[metric.field] = future.result()
        except BaseException:
            for _, future in futures:
                future.cancel()
            raise
    return bundles


def load_boundary_countries(path: Path) -> list[BoundaryCountry]:
    """Boundary identities; an unusable boundary file yields none."""
    try:
        collection = load_boundaries(path)
    except BoundaryDataError as exc:
        _LOGGER.warning("%s; continuing without boundary names.", exc)
        return []
    geo = boundary_countries(collection["features"])
    _LOGGER.info("Loaded %d boundary countries from %s", len(geo), path)
    return geo


def build_dataset(
    client: WorldBankClient,
    boundaries_path: Path,
    metrics: Sequence[MetricDefinition],
    *,
    max_workers: int = 8,
    clock: Callable[[], int] = now_ms,
) -> Dataset:
    metadata = client.fetch_countries()
    geo = load_boundary_countries(boundaries_path)

    bundles = fetch_bundles(client, metrics, max_workers=max_workers)
    rows = merge_countries(metadata, geo, bundles)
    if not rows:
        raise RefreshError("No countries found in metadata or boundary data.")
    _LOGGER.info("Merged %d countries across %d metrics", len(rows), len(bundles))
    return Dataset(rows=rows, refreshed_at_ms=clock())


class Refresher:
    """Apply the refresh policy and keep the dataset cache current."""

    def __init__(
        self,
        cfg: AppConfig,
        *,
        client: WorldBankClient | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.cfg = cfg
        self.client = client if client is not None else WorldBankClient(cfg.api)
        self.clock = clock
        self.store = TimestampStore(cfg.paths.state_file)

    def run(self, *, force: bool = False) -> RefreshOutcome:
        cached = load_cached_dataset(self.cfg.paths.dataset_cache)
        last = self.store.read()
        now = self.clock()
        has_data = cached is not None and bool(cached.rows)

        if not force and not needs_refresh(
            last, now, has_data=has_data, interval_ms=self.cfg.refresh.interval_ms
        ):
            _LOGGER.info("Cached data is fresh; skipping refresh.")
            return RefreshOutcome(dataset=cached, refreshed=False, last_refreshed_ms=last)

        try:
            dataset = build_dataset(
                self.client,
                self.cfg.paths.boundaries,
                self.cfg.metrics,
                max_workers=self.cfg.api.max_workers,
                clock=self.clock,
            )
        except (WorldBankError, RefreshError) as exc:
            _LOGGER.error("Refresh failed: %s", exc)
            return RefreshOutcome(
                dataset=cached,
                refreshed=False,
                last_refreshed_ms=last,
                error=str(exc) or "Failed to fetch live data",
            )

        write_json(self.cfg.paths.dataset_cache, dataset.to_dict())
        self.store.write(dataset.refreshed_at_ms or now)
        return RefreshOutcome(
            dataset=dataset,
            refreshed=True,
            last_refreshed_ms=dataset.refreshed_at_ms,
        )
