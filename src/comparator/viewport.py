"""Map projection fitting and bounded pan/zoom.

External view state is always geographic (center lon/lat + zoom). Screen
translations are derived on demand and clamped so that zoomed content
keeps covering the viewport on every axis where it is larger than the
viewport, and stays centered on every axis where it is not.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterable, Mapping, Sequence

_LOGGER = logging.getLogger("comparator.viewport")

_EQUAL_EARTH = "+proj=eqearth +datum=WGS84 +units=m +no_defs"
# Points spanning the full globe outline, used when no geometry is available.
_GLOBE_OUTLINE = ((-180.0, 0.0), (180.0, 0.0), (0.0, 90.0), (0.0, -90.0))
# Tolerance below which a view update is considered unchanged.
_VIEW_EPSILON = 1e-3

Point = tuple[float, float]


def clamp_number(value: float, lo: float, hi: float) -> float:
    return min(max(value, lo), hi)


def _finite(*values: Any) -> bool:
    return all(isinstance(v, (int, float)) and math.isfinite(v) for v in values)


def clamp_lon_lat(lon: float, lat: float) -> Point:
    return (clamp_number(lon, -180.0, 180.0), clamp_number(lat, -90.0, 90.0))


@dataclass(frozen=True, slots=True)
class ScreenBounds:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


@dataclass(frozen=True, slots=True)
class MapProjection:
    """Equal Earth projection scaled and translated into a width x height viewport."""

    width: float
    height: float
    scale: float
    translate_x: float
    translate_y: float

    def project(self, lon: float, lat: float) -> Point | None:
        if not _finite(lon, lat):
            return None
        x, y = _require_equal_earth_transformer().transform(float(lon), float(lat))
        if not _finite(x, y):
            return None
        return (self.scale * x + self.translate_x, -self.scale * y + self.translate_y)

    def invert(self, sx: float, sy: float) -> Point | None:
        if not _finite(sx, sy) or self.scale == 0:
            return None
        x = (sx - self.translate_x) / self.scale
        y = -(sy - self.translate_y) / self.scale
        lon, lat = _require_equal_earth_transformer().transform(
            x, y, direction=_require_inverse_direction()
        )
        if not _finite(lon, lat):
            return None
        return (float(lon), float(lat))

    def to_screen_bounds(self, bounds: tuple[float, float, float, float]) -> ScreenBounds:
        min_x, min_y, max_x, max_y = bounds
        return ScreenBounds(
            min_x=self.scale * min_x + self.translate_x,
            min_y=-self.scale * max_y + self.translate_y,
            max_x=self.scale * max_x + self.translate_x,
            max_y=-self.scale * min_y + self.translate_y,
        )

    @classmethod
    def fit_bounds(
        cls,
        bounds: tuple[float, float, float, float],
        width: float,
        height: float,
    ) -> MapProjection:
        """Scale and center projected bounds to fill the viewport."""
        min_x, min_y, max_x, max_y = bounds
        dx = max_x - min_x
        dy = max_y - min_y
        if not _finite(dx, dy) or dx <= 0 or dy <= 0:
            raise ValueError("Cannot fit projection to empty or non-finite bounds")
        scale = min(width / dx, height / dy)
        return cls(
            width=width,
            height=height,
            scale=scale,
            translate_x=(width - scale * (min_x + max_x)) / 2,
            translate_y=(height + scale * (min_y + max_y)) / 2,
        )


def _globe_bounds() -> tuple[float, float, float, float]:
    transformer = _require_equal_earth_transformer()
    xs: list[float] = []
    ys: list[float] = []
    for lon, lat in _GLOBE_OUTLINE:
        x, y = transformer.transform(lon, lat)
        xs.append(x)
        ys.append(y)
    return (min(xs), min(ys), max(xs), max(ys))


def projected_bounds(features: Iterable[Any]) -> tuple[float, float, float, float] | None:
    """Equal Earth bounds of every usable feature geometry."""
    shape = _require_shapely_shape()
    transform = _require_shapely_transform()
    shapely_error = _require_shapely_error()
    transformer = _require_equal_earth_transformer()

    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    skipped = 0
    for feature in features:
        geometry = feature.get("geometry") if isinstance(feature, Mapping) else None
        if not geometry:
            skipped += 1
            continue
        try:
            projected = transform(transformer.transform, shape(geometry))
        except (shapely_error, ValueError, TypeError, KeyError, AttributeError, IndexError) as exc:
            _LOGGER.debug("Skipping unprojectable geometry: %s", exc)
            skipped += 1
            continue
        if projected.is_empty:
            continue
        bx0, by0, bx1, by1 = projected.bounds
        if not _finite(bx0, by0, bx1, by1):
            skipped += 1
            continue
        min_x, min_y = min(min_x, bx0), min(min_y, by0)
        max_x, max_y = max(max_x, bx1), max(max_y, by1)
    if skipped:
        _LOGGER.debug("Skipped %d features while computing map bounds", skipped)
    if not _finite(min_x, min_y, max_x, max_y):
        return None
    return (min_x, min_y, max_x, max_y)


def fit_projection(
    features: Sequence[Any] | None,
    width: float,
    height: float,
) -> tuple[MapProjection, ScreenBounds]:
    """Fit the projection to the boundary geometry and return its screen bounds.

    Without usable geometry the projection is fitted to the whole globe and
    the content bounds fall back to the viewport rectangle.
    """
    bounds = projected_bounds(features) if features else None
    if bounds is not None:
        try:
            projection = MapProjection.fit_bounds(bounds, width, height)
            return (projection, projection.to_screen_bounds(bounds))
        except ValueError as exc:
            _LOGGER.warning("Falling back to default map bounds: %s", exc)
    projection = MapProjection.fit_bounds(_globe_bounds(), width, height)
    return (projection, ScreenBounds(0.0, 0.0, width, height))


@dataclass(frozen=True, slots=True)
class ScreenPosition:
    x: float
    y: float
    zoom: float

    @property
    def transform(self) -> str:
        return f"translate({self.x} {self.y}) scale({self.zoom})"


@dataclass(frozen=True, slots=True)
class ViewState:
    center: Point = (0.0, 0.0)
    zoom: float = 1.0


class PanZoomClamper:
    """Convert between geographic view state and clamped screen translations."""

    def __init__(
        self,
        projection: MapProjection,
        bounds: ScreenBounds,
        *,
        min_zoom: float = 1.0,
        max_zoom: float = 8.0,
    ) -> None:
        if min_zoom <= 0 or max_zoom < min_zoom:
            raise ValueError("zoom bounds must satisfy 0 < min_zoom <= max_zoom")
        self.projection = projection
        self.bounds = bounds
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom

    @property
    def width(self) -> float:
        return self.projection.width

    @property
    def height(self) -> float:
        return self.projection.height

    def clamp_zoom(self, zoom: Any) -> float:
        if not _finite(zoom):
            return self.min_zoom
        return clamp_number(float(zoom), self.min_zoom, self.max_zoom)

    def _clamp_axis(
        self,
        current: float,
        min_coord: float,
        max_coord: float,
        viewport: float,
        zoom: float,
    ) -> float:
        if not _finite(min_coord, max_coord):
            return current if _finite(current) else 0.0

        if (max_coord - min_coord) * zoom <= viewport:
            return viewport / 2 - zoom * (min_coord + max_coord) / 2

        min_translate = viewport - zoom * max_coord
        max_translate = -zoom * min_coord
        if min_translate > max_translate:
            mid = (min_translate + max_translate) / 2
            min_translate = max_translate = mid

        base = current if _finite(current) else (min_translate + max_translate) / 2
        return clamp_number(base, min_translate, max_translate)

    def constrain_position(self, x: float, y: float, zoom: float) -> ScreenPosition:
        safe_zoom = self.clamp_zoom(zoom)
        b = self.bounds
        return ScreenPosition(
            x=self._clamp_axis(x, b.min_x, b.max_x, self.width, safe_zoom),
            y=self._clamp_axis(y, b.min_y, b.max_y, self.height, safe_zoom),
            zoom=safe_zoom,
        )

    def translation_for(self, center: Point, zoom: float) -> ScreenPosition:
        """Unclamped translation placing `center` in the middle of the viewport."""
        projected = self.projection.project(*center)
        if projected is None:
            return ScreenPosition(x=self.width / 2, y=self.height / 2, zoom=zoom)
        px, py = projected
        return ScreenPosition(
            x=self.width / 2 - px * zoom,
            y=self.height / 2 - py * zoom,
            zoom=zoom,
        )

    def center_for(self, position: ScreenPosition) -> Point | None:
        """Geographic point shown in the middle of the viewport."""
        return self.projection.invert(
            (self.width / 2 - position.x) / position.zoom,
            (self.height / 2 - position.y) / position.zoom,
        )

    def clamp_center(self, center: Sequence[float], zoom: float) -> Point:
        safe_zoom = self.clamp_zoom(zoom)
        lon, lat = (center[0], center[1]) if len(center) >= 2 else (0.0, 0.0)
        if not _finite(lon, lat):
            lon, lat = 0.0, 0.0
        initial = self.translation_for((lon, lat), safe_zoom)
        constrained = self.constrain_position(initial.x, initial.y, safe_zoom)
        adjusted = self.center_for(constrained)
        if adjusted is None:
            return clamp_lon_lat(lon, lat)
        return clamp_lon_lat(*adjusted)

    def set_view(self, state: ViewState, center: Sequence[float], zoom: float) -> ViewState:
        safe_zoom = self.clamp_zoom(zoom)
        safe_center = self.clamp_center(center, safe_zoom)
        next_zoom = state.zoom if abs(state.zoom - safe_zoom) < _VIEW_EPSILON else safe_zoom
        prev_lon, prev_lat = state.center
        if abs(prev_lon - safe_center[0]) < _VIEW_EPSILON and abs(prev_lat - safe_center[1]) < _VIEW_EPSILON:
            safe_center = state.center
        if next_zoom == state.zoom and safe_center == state.center:
            return state
        return ViewState(center=safe_center, zoom=next_zoom)

    def position(self, state: ViewState) -> ScreenPosition:
        """Clamped screen translation for a geographic view state."""
        raw = self.translation_for(state.center, self.clamp_zoom(state.zoom))
        return self.constrain_position(raw.x, raw.y, raw.zoom)

    def apply_position(self, state: ViewState, x: float, y: float, zoom: float) -> ViewState:
        """Commit a screen translation (end of a drag or wheel zoom)."""
        constrained = self.constrain_position(x, y, zoom)
        derived = self.center_for(constrained)
        if derived is None:
            return self.set_view(state, state.center, constrained.zoom)
        return self.set_view(state, derived, constrained.zoom)

    def drag(self, state: ViewState, dx: float, dy: float) -> ViewState:
        current = self.position(state)
        return self.apply_position(state, current.x + dx, current.y + dy, current.zoom)

    def zoom_by(self, state: ViewState, factor: float) -> ViewState:
        return self.set_view(state, state.center, state.zoom * factor)

    def zoom_at(
        self,
        state: ViewState,
        delta_y: float,
        pointer: Point,
        *,
        sensitivity: float = 0.025,
    ) -> ViewState:
        """Wheel zoom keeping the point under the pointer fixed on screen."""
        current = self.position(state)
        new_zoom = self.clamp_zoom(current.zoom - delta_y * sensitivity)
        px, py = pointer
        ratio = new_zoom / current.zoom
        raw_x = (current.x - px) * ratio + px
        raw_y = (current.y - py) * ratio + py
        return self.apply_position(state, raw_x, raw_y, new_zoom)

    def reset(self, center: Point = (0.0, 0.0), zoom: float = 1.0) -> ViewState:
        safe_zoom = self.clamp_zoom(zoom)
        return ViewState(center=self.clamp_center(center, safe_zoom), zoom=safe_zoom)


@lru_cache(maxsize=1)
def _require_equal_earth_transformer() -> Any:
    try:
        from pyproj import Transformer
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("pyproj is required for the Equal Earth map projection") from exc
    return Transformer.from_crs("EPSG:4326", _EQUAL_EARTH, always_xy=True)


@lru_cache(maxsize=1)
def _require_inverse_direction() -> Any:
    try:
        from pyproj.enums import TransformDirection
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("pyproj is required for the Equal Earth map projection") from exc
    return TransformDirection.INVERSE


def _require_shapely_shape() -> Any:
    try:
        from shapely.geometry import shape
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for boundary geometry bounds") from exc
    return shape


def _require_shapely_error() -> Any:
    try:
        from shapely.errors import ShapelyError
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for boundary geometry bounds") from exc
    return ShapelyError


def _require_shapely_transform() -> Any:
    try:
        from shapely.ops import transform
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for geometry projection") from exc
    return transform
