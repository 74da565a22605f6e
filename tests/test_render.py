from __future__ import annotations

import random

import numpy as np
import pytest
from PIL import ImageFont

from glyphwall import (
    Grid, Surface, SymbolCell, create_clusters, polygon_points, populate_grid, render_grid,
)

RED = [255, 0, 0, 255]
BLACK = [0, 0, 0, 255]


@pytest.fixture
def font():
    return ImageFont.load_default(size=16)


def _cell(x, y, fill=1.0, stroke=1.0):
    return SymbolCell("a", x, y, "#000000", "#ff0000", "#ff0000", 0.0, fill, stroke)


def _render(cfg, cells, font, width=100, height=100, scale=1.0, aa=1):
    cfg.canvas_size.width, cfg.canvas_size.height = width, height
    surface = Surface.create(width, height, scale, aa)
    render_grid(Grid([cells]), cfg, surface, font)
    return np.asarray(surface.to_image())


def test_polygon_first_vertex_points_up():
    pts = polygon_points(50, 50, 10, 4)
    assert pts[0] == pytest.approx((50, 40))
    assert pts[1] == pytest.approx((60, 50))
    assert pts[2] == pytest.approx((50, 60))


def test_circle_is_round(flat_config, font):
    flat_config.shape.corners = 2
    flat_config.shape.radius = 20
    arr = _render(flat_config, [_cell(50, 50)], font)
    for y, x in [(50, 68), (68, 50), (50, 32), (32, 50), (63, 63), (37, 37)]:
        assert arr[y, x].tolist() == RED
    for y, x in [(50, 73), (73, 50), (67, 67), (33, 33)]:
        assert arr[y, x].tolist() == BLACK


def test_square_has_vertex_up(flat_config, font):
    flat_config.shape.corners = 4
    flat_config.shape.radius = 20
    arr = _render(flat_config, [_cell(50, 50)], font)
    for y, x in [(50, 50), (33, 50), (50, 67), (67, 50), (50, 33)]:
        assert arr[y, x].tolist() == RED
    # the corners of an axis-aligned square stay empty
    for y, x in [(36, 36), (36, 64), (64, 36), (64, 64)]:
        assert arr[y, x].tolist() == BLACK


def test_no_shape_below_two_corners(flat_config, font):
    flat_config.shape.corners = 1
    arr = _render(flat_config, [_cell(50, 50)], font)
    assert (arr == BLACK).all()


def test_stroke_straddles_outline(flat_config, font):
    flat_config.shape.radius = 20
    flat_config.shape.stroke_width = 4
    arr = _render(flat_config, [_cell(50, 50, fill=0.0, stroke=1.0)], font)
    assert arr[50, 70].tolist() == RED
    assert arr[50, 30].tolist() == RED
    assert arr[50, 50].tolist() == BLACK
    assert arr[50, 76].tolist() == BLACK


def test_partial_opacity_blends(flat_config, font):
    arr = _render(flat_config, [_cell(50, 50, fill=0.5)], font)
    r, g, b, a = arr[50, 50].tolist()
    assert 120 <= r <= 135 and g == 0 and b == 0 and a == 255


def test_cells_off_canvas_are_clipped(flat_config, font):
    arr = _render(flat_config, [_cell(-10, -10), _cell(105, 50), _cell(400, 400)], font)
    assert arr[0, 0].tolist() == RED
    assert arr[50, 99].tolist() == RED
    assert arr[99, 0].tolist() == BLACK


def test_device_pixel_ratio_scales_layout(flat_config, font):
    arr = _render(flat_config, [_cell(50, 50)], font, scale=2.0)
    assert arr.shape == (200, 200, 4)
    assert arr[100, 136].tolist() == RED
    assert arr[100, 145].tolist() == BLACK


def test_supersampling_keeps_output_size(flat_config, font):
    arr = _render(flat_config, [_cell(50, 50)], font, aa=3)
    assert arr.shape == (100, 100, 4)
    assert arr[50, 50, 0] >= 250 and arr[50, 50, 1] <= 5
    assert arr[2, 2].tolist() == BLACK


def test_same_grid_renders_identically(small_config, font):
    rng = random.Random(4)
    small_config.symbols.default_icon_opacity = 0.8
    grid = populate_grid(small_config, create_clusters(small_config, rng), small_config.symbols.list, rng)
    a = Surface.create(200, 100)
    b = Surface.create(200, 100)
    render_grid(grid, small_config, a, font)
    render_grid(grid, small_config, b, font)
    assert np.array_equal(np.asarray(a.image), np.asarray(b.image))


def test_glyph_is_drawn(flat_config, font):
    flat_config.shape.corners = 0
    cell = SymbolCell("W", 50, 50, "#ffffff", "#ff0000", "#ff0000", 1.0, 1.0, 1.0)
    arr = _render(flat_config, [cell], font)
    assert arr[40:60, 40:60, 0].max() > 0
    assert (arr[:20, :, :3] == 0).all()


def test_surface_rejects_bad_factors():
    with pytest.raises(ValueError):
        Surface.create(10, 10, aa=0)
    with pytest.raises(ValueError):
        Surface.create(10, 10, scale=0)
