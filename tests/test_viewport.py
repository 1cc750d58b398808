from __future__ import annotations

import pytest

from comparator.viewport import (
    MapProjection,
    PanZoomClamper,
    ScreenBounds,
    ViewState,
    clamp_lon_lat,
    fit_projection,
)

from .conftest import boundary_collection

WIDTH = 960.0
HEIGHT = 520.0


@pytest.fixture
def globe_clamper() -> PanZoomClamper:
    projection, bounds = fit_projection(None, WIDTH, HEIGHT)
    return PanZoomClamper(projection, bounds, min_zoom=1.0, max_zoom=8.0)


def _flat_clamper(bounds: ScreenBounds) -> PanZoomClamper:
    projection = MapProjection(width=WIDTH, height=HEIGHT, scale=1.0, translate_x=0.0, translate_y=0.0)
    return PanZoomClamper(projection, bounds, min_zoom=1.0, max_zoom=8.0)


def test_clamp_zoom(globe_clamper: PanZoomClamper) -> None:
    assert globe_clamper.clamp_zoom(0.2) == 1.0
    assert globe_clamper.clamp_zoom(50) == 8.0
    assert globe_clamper.clamp_zoom(3.5) == 3.5
    assert globe_clamper.clamp_zoom(float("nan")) == 1.0
    assert globe_clamper.clamp_zoom("2") == 1.0


def test_small_content_is_centered_on_each_axis() -> None:
    clamper = _flat_clamper(ScreenBounds(100.0, 50.0, 500.0, 250.0))

    at_one = clamper.constrain_position(12345.0, -999.0, 1.0)
    assert at_one.x == pytest.approx(WIDTH / 2 - 300.0)
    assert at_one.y == pytest.approx(HEIGHT / 2 - 150.0)

    at_two = clamper.constrain_position(0.0, 0.0, 2.0)
    assert at_two.x == pytest.approx(480.0 - 2 * 300.0)
    assert at_two.y == pytest.approx(260.0 - 2 * 150.0)


def test_large_content_covers_viewport() -> None:
    clamper = _flat_clamper(ScreenBounds(100.0, 50.0, 500.0, 250.0))
    # At zoom 3 the content is 1200px wide: x must stay in [960 - 1500, -300].
    assert clamper.constrain_position(0.0, 0.0, 3.0).x == pytest.approx(-300.0)
    assert clamper.constrain_position(-1000.0, 0.0, 3.0).x == pytest.approx(-540.0)
    assert clamper.constrain_position(-400.0, 0.0, 3.0).x == pytest.approx(-400.0)
    # Height is 600px at zoom 3, larger than the viewport too.
    assert clamper.constrain_position(0.0, 500.0, 3.0).y == pytest.approx(-150.0)


def test_constrain_clamps_zoom() -> None:
    clamper = _flat_clamper(ScreenBounds(0.0, 0.0, WIDTH, HEIGHT))
    assert clamper.constrain_position(0.0, 0.0, 100.0).zoom == 8.0
    assert clamper.constrain_position(0.0, 0.0, 0.01).zoom == 1.0


def test_non_finite_bounds_keep_requested_translation() -> None:
    clamper = _flat_clamper(ScreenBounds(float("nan"), 0.0, float("nan"), HEIGHT))
    position = clamper.constrain_position(42.0, 0.0, 1.0)
    assert position.x == 42.0


def test_fallback_projection_uses_viewport_bounds() -> None:
    projection, bounds = fit_projection(None, WIDTH, HEIGHT)
    assert bounds == ScreenBounds(0.0, 0.0, WIDTH, HEIGHT)
    center = projection.project(0.0, 0.0)
    assert center is not None
    assert center[0] == pytest.approx(WIDTH / 2)
    assert center[1] == pytest.approx(HEIGHT / 2)


def test_unusable_geometry_falls_back_to_globe() -> None:
    features = [{"type": "Feature", "properties": {}, "geometry": None}]
    _, bounds = fit_projection(features, WIDTH, HEIGHT)
    assert bounds == ScreenBounds(0.0, 0.0, WIDTH, HEIGHT)


def test_fit_projection_fills_viewport_with_features() -> None:
    projection, bounds = fit_projection(boundary_collection()["features"], WIDTH, HEIGHT)
    fills_width = bounds.width == pytest.approx(WIDTH)
    fills_height = bounds.height == pytest.approx(HEIGHT)
    assert fills_width or fills_height
    assert bounds.width <= WIDTH + 1e-6
    assert bounds.height <= HEIGHT + 1e-6
    assert projection.scale > 0


def test_project_invert_round_trip() -> None:
    projection, _ = fit_projection(None, WIDTH, HEIGHT)
    screen = projection.project(12.5, 41.9)
    assert screen is not None
    lon, lat = projection.invert(*screen)  # type: ignore[misc]
    assert lon == pytest.approx(12.5, abs=1e-6)
    assert lat == pytest.approx(41.9, abs=1e-6)
    assert projection.project(float("nan"), 0.0) is None


def test_zoom_one_always_recenters(globe_clamper: PanZoomClamper) -> None:
    lon, lat = globe_clamper.clamp_center((100.0, 40.0), 1.0)
    assert lon == pytest.approx(0.0, abs=1e-6)
    assert lat == pytest.approx(0.0, abs=1e-6)


def test_clamped_view_keeps_viewport_covered(globe_clamper: PanZoomClamper) -> None:
    state = globe_clamper.set_view(ViewState(), (179.0, 85.0), 4.0)
    position = globe_clamper.position(state)
    b = globe_clamper.bounds
    assert position.x + position.zoom * b.min_x <= 1e-6
    assert position.x + position.zoom * b.max_x >= WIDTH - 1e-6
    assert position.y + position.zoom * b.min_y <= 1e-6
    assert position.y + position.zoom * b.max_y >= HEIGHT - 1e-6


def test_reset_and_zoom_steps(globe_clamper: PanZoomClamper) -> None:
    state = globe_clamper.reset()
    assert state.zoom == 1.0

    zoomed = globe_clamper.zoom_by(state, 1.5)
    assert zoomed.zoom == pytest.approx(1.5)
    assert globe_clamper.zoom_by(zoomed, 100.0).zoom == 8.0
    assert globe_clamper.zoom_by(zoomed, 0.001).zoom == 1.0


def test_set_view_ignores_tiny_changes(globe_clamper: PanZoomClamper) -> None:
    state = globe_clamper.set_view(ViewState(), (0.0, 0.0), 2.0)
    assert globe_clamper.set_view(state, state.center, state.zoom + 1e-5) is state


def test_drag_at_min_zoom_is_noop(globe_clamper: PanZoomClamper) -> None:
    state = globe_clamper.reset()
    assert globe_clamper.drag(state, 300.0, -120.0) == state


def test_drag_when_zoomed_moves_center(globe_clamper: PanZoomClamper) -> None:
    state = globe_clamper.set_view(ViewState(), (0.0, 0.0), 4.0)
    dragged = globe_clamper.drag(state, -100.0, 0.0)
    assert dragged.center[0] > state.center[0]
    assert dragged.zoom == state.zoom


def test_wheel_zoom_keeps_pointer_anchor(globe_clamper: PanZoomClamper) -> None:
    state = globe_clamper.set_view(ViewState(), (0.0, 0.0), 2.0)
    zoomed = globe_clamper.zoom_at(state, -40.0, (WIDTH / 2, HEIGHT / 2))
    assert zoomed.zoom == pytest.approx(3.0)
    assert zoomed.center[0] == pytest.approx(0.0, abs=1e-6)
    assert zoomed.center[1] == pytest.approx(0.0, abs=1e-6)


def test_invalid_zoom_bounds_rejected() -> None:
    projection = MapProjection(width=WIDTH, height=HEIGHT, scale=1.0, translate_x=0.0, translate_y=0.0)
    with pytest.raises(ValueError):
        PanZoomClamper(projection, ScreenBounds(0, 0, 1, 1), min_zoom=4.0, max_zoom=2.0)


def test_clamp_lon_lat() -> None:
    assert clamp_lon_lat(200.0, -100.0) == (180.0, -90.0)
