import numpy as np

from colorimetry import color_delta_e
from gradients import (
    bucket_samples, collect_samples, detect, detect_solid_color, reconstruct_gradient,
    reconstruct_stops, score_angle, simplify_stops,
)
from bounds import find_content_bounds
from models import ColorStop, DetectionType
from imagegen import linear_gradient_image, rect_image


RED = (255, 0, 0)
BLUE = (0, 0, 255)


def angle_from_horizontal(angle):
    return min(angle % 180, 180 - angle % 180)


# =============================================================================
# Solid
# =============================================================================

def test_single_color_is_solid():
    pixels = rect_image(40, 40, (5, 5, 30, 30), color=(0, 166, 126))
    assert detect_solid_color(pixels) == (0, 166, 126)

    detection = detect(pixels)
    assert detection.type is DetectionType.SOLID
    assert detection.solid_color == (0, 166, 126)


def test_solid_ignores_translucent_pixels():
    pixels = rect_image(40, 40, (5, 5, 30, 30), color=(20, 40, 200))
    pixels[4, 5:31] = (20, 40, 200, 250)  # anti-aliased edge, same color
    pixels[35, 35] = (255, 255, 0, 100)  # translucent speck, different color
    assert detect_solid_color(pixels) == (20, 40, 200)


def test_near_identical_colors_are_solid():
    pixels = rect_image(20, 20, (0, 0, 19, 19), color=(100, 100, 100))
    pixels[10:, :] = (101, 100, 100, 255)
    assert detect_solid_color(pixels) == (100, 100, 100)


def test_two_regions_are_not_solid():
    pixels = rect_image(40, 20, (0, 0, 19, 19), color=RED)
    pixels[:, 20:] = (*BLUE, 255)
    assert color_delta_e(RED, BLUE) > 2.3
    assert detect_solid_color(pixels) is None
    assert detect(pixels).type is not DetectionType.SOLID


def test_transparent_image_is_none():
    pixels = np.zeros((30, 30, 4), dtype=np.uint8)
    assert detect_solid_color(pixels) is None
    assert reconstruct_gradient(pixels) is None
    assert detect(pixels).type is DetectionType.NONE


# =============================================================================
# Gradient
# =============================================================================

def test_horizontal_gradient_is_linear():
    pixels = linear_gradient_image(60, 60, RED, BLUE, axis='x')
    detection = detect(pixels)

    assert detection.type is DetectionType.LINEAR
    assert angle_from_horizontal(detection.angle) <= 5
    assert len(detection.stops) >= 2
    assert detection.stops[0].position == 0.0
    assert detection.stops[-1].position == 1.0

    first, last = detection.stops[0].color, detection.stops[-1].color
    if detection.angle < 90:
        assert color_delta_e(first, RED) < color_delta_e(first, BLUE)
        assert color_delta_e(last, BLUE) < color_delta_e(last, RED)


def test_vertical_gradient_angle():
    pixels = linear_gradient_image(50, 80, (250, 250, 20), (20, 20, 120), axis='y')
    detection = detect(pixels)
    assert detection.type is DetectionType.LINEAR
    assert abs(detection.angle - 90) <= 5


def test_stops_respect_max_stops():
    pixels = linear_gradient_image(60, 60, RED, BLUE, axis='x')
    detection = detect(pixels, max_stops=2)
    assert detection.type is DetectionType.LINEAR
    assert [s.position for s in detection.stops] == [0.0, 1.0]


def test_gradient_with_transparent_border():
    pixels = np.zeros((80, 80, 4), dtype=np.uint8)
    pixels[10:70, 10:70] = linear_gradient_image(60, 60, RED, BLUE, axis='x')
    detection = detect(pixels)
    assert detection.type is DetectionType.LINEAR
    assert angle_from_horizontal(detection.angle) <= 5


def test_checkerboard_is_not_a_gradient():
    ys, xs = np.mgrid[0:60, 0:60]
    pixels = np.zeros((60, 60, 4), dtype=np.uint8)
    pixels[...] = (*RED, 255)
    pixels[(xs + ys) % 2 == 1] = (*BLUE, 255)
    assert detect(pixels).type is DetectionType.NONE


def test_correct_angle_scores_higher_than_perpendicular():
    pixels = linear_gradient_image(60, 60, RED, BLUE, axis='x')
    samples = collect_samples(pixels, find_content_bounds(pixels, 30))
    along = score_angle(samples, 0)
    across = score_angle(samples, 90)
    assert along.score > across.score
    assert along.variance > 100
    assert across.variance < 1.0
    assert along.consistency >= 0.4


def test_samples_cover_about_ten_percent():
    pixels = linear_gradient_image(100, 100, RED, BLUE)
    samples = collect_samples(pixels, find_content_bounds(pixels, 30))
    assert 0.05 <= len(samples) / 10_000 <= 0.15


def test_bucket_samples_handles_flat_positions():
    positions = np.zeros(5)
    lab = np.zeros((5, 3))
    assert bucket_samples(positions, lab) is None


def test_reconstructed_stops_are_ordered():
    pixels = linear_gradient_image(60, 60, RED, BLUE)
    samples = collect_samples(pixels, find_content_bounds(pixels, 30))
    stops = reconstruct_stops(samples, 0)
    positions = [s.position for s in stops]
    assert positions == sorted(positions)
    assert positions[0] == 0.0 and positions[-1] == 1.0
    assert len(stops) == 20


# =============================================================================
# Stop simplification
# =============================================================================

def test_near_duplicate_interior_stops_are_merged():
    stops = [
        ColorStop(RED, 0.0),
        ColorStop((254, 1, 0), 0.3),
        ColorStop((0, 200, 0), 0.6),
        ColorStop(BLUE, 1.0),
    ]
    simplified = simplify_stops(stops, max_stops=4)
    assert [s.position for s in simplified] == [0.0, 0.6, 1.0]


def test_endpoints_survive_even_when_close():
    stops = [
        ColorStop((10, 10, 10), 0.0),
        ColorStop((11, 10, 10), 0.5),
        ColorStop((10, 11, 10), 1.0),
    ]
    simplified = simplify_stops(stops)
    assert [s.position for s in simplified] == [0.0, 1.0]


def test_cap_keeps_most_important_interior_stops():
    stops = [
        ColorStop((255, 255, 255), 0.0),
        ColorStop((255, 0, 0), 0.25),
        ColorStop((200, 200, 200), 0.5),
        ColorStop((150, 150, 150), 0.75),
        ColorStop((100, 100, 100), 1.0),
    ]
    simplified = simplify_stops(stops, max_stops=3)
    assert [s.position for s in simplified] == [0.0, 0.25, 1.0]

    assert [s.position for s in simplify_stops(stops, max_stops=2)] == [0.0, 1.0]


def test_cap_recomputes_neighbors_after_each_removal():
    # Red -> green -> blue sampled with in-between stops; the green turning
    # point only stands out once its olive neighbor is gone
    stops = [
        ColorStop(RED, 0.0),
        ColorStop((128, 128, 0), 0.25),
        ColorStop((0, 255, 0), 0.5),
        ColorStop((0, 128, 128), 0.75),
        ColorStop(BLUE, 1.0),
    ]
    simplified = simplify_stops(stops, max_stops=3)
    assert [s.position for s in simplified] == [0.0, 0.5, 1.0]
    assert simplified[1].color == (0, 255, 0)


def test_two_stops_are_returned_unchanged():
    stops = [ColorStop(RED, 0.0), ColorStop(RED, 1.0)]
    assert simplify_stops(stops) == stops
