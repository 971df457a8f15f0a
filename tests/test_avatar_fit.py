import math

import numpy as np
import pytest

from avatar_fit import (
    INITIAL_COVERAGE, EllipseParams, apply_padding, avatar_fit,
    calculate_transform, contains_content_edge_check, general_shrinkwrap,
    initial_ellipse, plan_avatar_fit, round_robin_shrinkwrap, shrink_edge,
)
from bounds import ContentBounds, find_content_bounds
from pixels import content_mask
from imagegen import rect_image


def disk_image(size, cx, cy, radius):
    ys, xs = np.mgrid[0:size, 0:size]
    pixels = np.zeros((size, size, 4), dtype=np.uint8)
    pixels[(xs - cx) ** 2 + (ys - cy) ** 2 <= radius ** 2] = (10, 120, 200, 255)
    return pixels


def fraction_inside(pixels, ellipse, tolerance=127):
    ys, xs = np.nonzero(pixels[..., 3] > tolerance)
    dx = (xs - ellipse.center_x) / ellipse.radius_x
    dy = (ys - ellipse.center_y) / ellipse.radius_y
    return np.mean(dx * dx + dy * dy <= 1.0)


@pytest.mark.parametrize("pixels", [
    rect_image(100, 100, (30, 40, 69, 59)),
    rect_image(120, 80, (5, 10, 60, 70)),
    disk_image(100, 45, 55, 25),
])
def test_fitted_ellipse_contains_content(pixels):
    plan = plan_avatar_fit(pixels)
    assert fraction_inside(pixels, plan.ellipse) >= 0.99


def test_fit_is_tighter_than_initial_ellipse():
    pixels = rect_image(100, 100, (30, 40, 69, 59))
    plan = plan_avatar_fit(pixels)
    start = initial_ellipse(plan.bounds)
    assert plan.ellipse.radius_x < start.radius_x
    assert plan.ellipse.radius_y < start.radius_y
    assert plan.ellipse.area < start.area


def test_initial_ellipse_covers_bounds():
    bounds = ContentBounds(10, 20, 49, 39)
    ellipse = initial_ellipse(bounds)
    assert ellipse.center_x == bounds.center_x
    assert ellipse.center_y == bounds.center_y
    assert ellipse.radius_x == pytest.approx(20 * math.sqrt(2.5))
    assert ellipse.radius_y == pytest.approx(10 * math.sqrt(2.5))
    for x in (bounds.min_x, bounds.max_x):
        for y in (bounds.min_y, bounds.max_y):
            assert ellipse.contains(x, y)


@pytest.mark.parametrize("percentage", [0, 10, 25])
def test_padding_inflates_radii_by_percentage(percentage):
    ellipse = EllipseParams(50.0, 40.0, 20.0, 12.5)
    padded = apply_padding(ellipse, percentage)
    assert padded.radius_x == pytest.approx(20.0 * (1 + percentage / 100))
    assert padded.radius_y == pytest.approx(12.5 * (1 + percentage / 100))
    assert padded.radius_x >= ellipse.radius_x
    assert (padded.center_x, padded.center_y) == (ellipse.center_x, ellipse.center_y)


def test_plan_padding_uses_configured_percentage():
    pixels = rect_image(100, 100, (30, 40, 69, 59))
    plan = plan_avatar_fit(pixels, padding_percentage=20)
    assert plan.padded.radius_x == pytest.approx(plan.ellipse.radius_x * 1.2)
    assert plan.padded.radius_y == pytest.approx(plan.ellipse.radius_y * 1.2)


@pytest.mark.parametrize("rect", [
    (10, 20, 39, 59),
    (50, 5, 95, 30),
    (30, 40, 69, 59),
])
def test_rendered_content_is_centered(rect):
    pixels = rect_image(100, 100, rect)
    fitted = avatar_fit(pixels)
    bounds = find_content_bounds(fitted, 127)
    assert bounds is not None
    assert abs(bounds.center_x - 49.5) <= 1
    assert abs(bounds.center_y - 49.5) <= 1


def test_render_keeps_size_and_does_not_touch_input():
    pixels = rect_image(90, 70, (10, 10, 30, 50))
    original = pixels.copy()
    fitted = avatar_fit(pixels)
    assert fitted.shape == pixels.shape
    assert fitted.dtype == np.uint8
    assert fitted is not pixels
    assert np.array_equal(pixels, original)


def test_rendered_content_is_larger():
    pixels = rect_image(100, 100, (40, 40, 59, 59))
    fitted = avatar_fit(pixels)
    assert find_content_bounds(fitted, 127).width > 20


def test_no_content_passes_through():
    pixels = np.zeros((32, 32, 4), dtype=np.uint8)
    assert plan_avatar_fit(pixels) is None
    assert avatar_fit(pixels) is pixels


def test_translucent_content_below_tolerance_passes_through():
    pixels = rect_image(32, 32, (4, 4, 20, 20), alpha=100)
    assert avatar_fit(pixels) is pixels


def test_single_pixel_content_skips_shrinking():
    pixels = rect_image(50, 50, (20, 30, 20, 30))
    plan = plan_avatar_fit(pixels)
    expected = 0.5 * INITIAL_COVERAGE
    assert plan.ellipse.radius_x == pytest.approx(expected)
    assert plan.ellipse.radius_y == pytest.approx(expected)
    assert plan.padded.radius_x == pytest.approx(expected * 1.1)
    assert avatar_fit(pixels).shape == pixels.shape


def test_round_robin_moves_center_toward_content():
    # Disk on the left, small dot at the right middle
    pixels = disk_image(100, 30, 50, 20)
    pixels[49:51, 85:87] = (0, 0, 0, 255)

    plan = plan_avatar_fit(pixels)
    assert plan.ellipse.center_x < plan.bounds.center_x - 1
    assert fraction_inside(pixels, plan.ellipse) >= 0.99


def test_edge_check_detects_content_outside():
    pixels = rect_image(100, 100, (30, 30, 69, 69))
    mask = content_mask(pixels, 127)
    assert contains_content_edge_check(mask, EllipseParams(49.5, 49.5, 40.0, 40.0))
    assert not contains_content_edge_check(mask, EllipseParams(49.5, 49.5, 22.0, 22.0))


def test_shrink_phases_never_grow():
    pixels = disk_image(80, 40, 40, 20)
    mask = content_mask(pixels, 127)
    bounds = find_content_bounds(pixels, 127)
    start = initial_ellipse(bounds)

    uniform = general_shrinkwrap(mask, start)
    assert uniform.radius_x <= start.radius_x
    assert uniform.radius_y <= start.radius_y

    refined = round_robin_shrinkwrap(mask, uniform)
    assert refined.radius_x <= uniform.radius_x
    assert refined.radius_y <= uniform.radius_y
    assert refined.area <= uniform.area
    assert contains_content_edge_check(mask, refined)


def test_shrink_edge_keeps_opposite_edge():
    ellipse = EllipseParams(50.0, 50.0, 20.0, 10.0)

    right = shrink_edge(ellipse, 'right', 0.5)
    assert right.center_x - right.radius_x == pytest.approx(30.0)
    assert right.center_x + right.radius_x == pytest.approx(69.5)

    top = shrink_edge(ellipse, 'top', 0.5)
    assert top.center_y + top.radius_y == pytest.approx(60.0)
    assert top.center_y - top.radius_y == pytest.approx(40.5)

    with pytest.raises(ValueError):
        shrink_edge(ellipse, 'middle', 0.5)


def test_transform_scales_padded_ellipse_to_canvas():
    bounds = ContentBounds(10, 10, 29, 49)
    padded = EllipseParams(19.5, 29.5, 25.0, 40.0)
    transform = calculate_transform(bounds, padded, 100, 100)

    scale = min(100 / 50.0, 100 / 80.0)
    assert transform[0, 0] == pytest.approx(scale)
    assert transform[1, 1] == pytest.approx(scale)

    # Content box edges land symmetric around the canvas center
    left = transform @ np.array([bounds.min_x, bounds.min_y, 1.0])
    right = transform @ np.array([bounds.max_x + 1, bounds.max_y + 1, 1.0])
    assert (left[0] + right[0]) / 2 == pytest.approx(50.0)
    assert (left[1] + right[1]) / 2 == pytest.approx(50.0)
