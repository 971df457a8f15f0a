#!/usr/bin/env python3
"""
Classify a brand's reference color image as a solid color, a linear gradient,
or neither.

Approach:
1. Solid check: every near-opaque pixel within a Delta E tolerance of the first
2. Sample ~10% of the content area on an even grid, caching LAB per color
3. Score candidate angles (0-175 in 5 degree steps, then +/-4 at 1 degree)
   by projecting samples onto the direction and bucketing along it
4. Rebuild stops from LAB-averaged buckets along the winning angle
5. Merge near-duplicate stops and cap the count by local importance
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from bounds import ContentBounds, find_content_bounds
from colorimetry import JND, delta_e76, lab_to_rgb, rgb_to_lab, unique_lab
from models import ColorDetection, ColorStop
from pixels import alpha_channel, max_alpha, rgb_channels


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DELTA_E_TOLERANCE = JND  # Solid color tolerance
SOLID_ALPHA_RATIO = 0.95  # Fraction of max alpha a pixel needs for the solid check

TRANSPARENCY_THRESHOLD = 30
TARGET_SAMPLE_RATE = 0.1  # 10% of content-area pixels
MIN_SAMPLES = 10
BOUNDS_COARSE_STRIDE = 4

NUM_BUCKETS = 20
COARSE_ANGLE_STEP = 5
REFINE_ANGLE_RANGE = 4

MIN_VARIANCE = 1.0  # Delta E between first and last bucket
MIN_CONSISTENCY = 0.4

STOP_MERGE_DELTA_E = 5.0
DEFAULT_MAX_STOPS = 3


# =============================================================================
# Solid color
# =============================================================================

def detect_solid_color(pixels: np.ndarray, tolerance: float = DELTA_E_TOLERANCE,
                       alpha_ratio: float = SOLID_ALPHA_RATIO) -> Optional[tuple]:
    """
    Return the image's color if all near-opaque pixels share it, else None.

    A pixel takes part if its alpha is nonzero and at least alpha_ratio of the
    image's max alpha. The first such pixel (row-major) is the reference color.
    """
    alpha_threshold = max_alpha(pixels) * alpha_ratio
    alpha = alpha_channel(pixels).reshape(-1)
    accepted = np.flatnonzero((alpha > 0) & (alpha >= alpha_threshold))
    if len(accepted) == 0:
        return None

    rgb = rgb_channels(pixels).reshape(-1, 3)[accepted]
    first = rgb[0]
    first_lab = rgb_to_lab(first)

    colors = np.unique(rgb, axis=0)
    distances = delta_e76(rgb_to_lab(colors), first_lab)
    if np.any(distances > tolerance):
        return None

    return (int(first[0]), int(first[1]), int(first[2]))


# =============================================================================
# Sampling
# =============================================================================

@dataclass(frozen=True)
class SampleSet:
    """Evenly spaced content samples with cached LAB values."""
    xs: np.ndarray  # (n,)
    ys: np.ndarray  # (n,)
    rgb: np.ndarray  # (n, 3) uint8
    lab: np.ndarray  # (n, 3)
    center: tuple  # (x, y) of the content box
    stride: int

    def __len__(self):
        return len(self.xs)


def collect_samples(pixels: np.ndarray, bounds: ContentBounds,
                    sample_rate: float = TARGET_SAMPLE_RATE,
                    transparency_threshold: int = TRANSPARENCY_THRESHOLD) -> SampleSet:
    """Sample the content box on a grid sized so the count approximates sample_rate of its area."""
    target = max(1, int(bounds.area * sample_rate))
    stride = max(1, int(math.sqrt(bounds.area / target)))

    ys = np.arange(bounds.min_y, bounds.max_y + 1, stride)
    xs = np.arange(bounds.min_x, bounds.max_x + 1, stride)
    grid_y, grid_x = np.meshgrid(ys, xs, indexing='ij')
    grid_y, grid_x = grid_y.ravel(), grid_x.ravel()

    visible = pixels[grid_y, grid_x, 3] > transparency_threshold
    grid_y, grid_x = grid_y[visible], grid_x[visible]
    rgb = pixels[grid_y, grid_x, :3]

    return SampleSet(
        xs=grid_x.astype(np.float64),
        ys=grid_y.astype(np.float64),
        rgb=rgb,
        lab=unique_lab(rgb),
        center=(bounds.center_x, bounds.center_y),
        stride=stride,
    )


def project(samples: SampleSet, angle_degrees: float) -> np.ndarray:
    """Signed distance of each sample along the direction, relative to the content center."""
    angle = math.radians(angle_degrees)
    cx, cy = samples.center
    return (samples.xs - cx) * math.cos(angle) + (samples.ys - cy) * math.sin(angle)


# =============================================================================
# Bucketing
# =============================================================================

@dataclass(frozen=True)
class Buckets:
    """Non-empty buckets along a projection, in order."""
    indices: np.ndarray  # bucket index (0..NUM_BUCKETS-1) of each non-empty bucket
    means: np.ndarray  # (k, 3) average LAB
    spreads: np.ndarray  # (k,) mean Delta E of members from their bucket average
    counts: np.ndarray  # (k,)


def bucket_samples(positions: np.ndarray, lab: np.ndarray,
                   num_buckets: int = NUM_BUCKETS) -> Optional[Buckets]:
    """
    Split samples into equal-width bins over their position range.

    Returns None if all positions coincide.
    """
    lo, hi = positions.min(), positions.max()
    extent = hi - lo
    if extent <= 0:
        return None

    index = np.clip(((positions - lo) / extent * num_buckets).astype(np.int64), 0, num_buckets - 1)

    counts = np.bincount(index, minlength=num_buckets)
    sums = np.stack([np.bincount(index, weights=lab[:, ch], minlength=num_buckets) for ch in range(3)], axis=-1)

    nonempty = np.flatnonzero(counts)
    means = sums[nonempty] / counts[nonempty, None]

    # Spread: average distance of each sample from its own bucket mean
    full_means = np.zeros((num_buckets, 3))
    full_means[nonempty] = means
    member_dist = delta_e76(lab, full_means[index])
    spread_sums = np.bincount(index, weights=member_dist, minlength=num_buckets)
    spreads = spread_sums[nonempty] / counts[nonempty]

    return Buckets(indices=nonempty, means=means, spreads=spreads, counts=counts[nonempty])


# =============================================================================
# Angle scoring
# =============================================================================

@dataclass(frozen=True)
class AngleScore:
    angle: float  # degrees, [0, 180)
    variance: float
    consistency: float

    @property
    def score(self) -> float:
        return self.variance * self.consistency


def bucket_consistency(buckets: Buckets, variance: float) -> float:
    """
    How much the buckets look like a smooth ramp along the axis (0-1).

    Combines tightness (spread inside each bucket relative to the expected
    per-bucket color step) with smoothness (even, direct steps between
    consecutive bucket averages).
    """
    if len(buckets.means) < 2 or variance <= 0:
        return 0.0

    expected_step = variance / NUM_BUCKETS
    spread_ratio = float(np.average(buckets.spreads, weights=buckets.counts)) / expected_step
    tightness = 1.0 / (1.0 + spread_ratio)

    steps = delta_e76(buckets.means[1:], buckets.means[:-1])
    path_length = float(steps.sum())
    if path_length <= 0:
        return 0.0
    directness = variance / path_length
    step_cv = float(steps.std() / steps.mean())
    smoothness = directness / (1.0 + step_cv)

    return math.sqrt(tightness * smoothness)


def score_angle(samples: SampleSet, angle_degrees: float) -> AngleScore:
    angle = angle_degrees % 180
    buckets = bucket_samples(project(samples, angle), samples.lab)
    if buckets is None or len(buckets.means) < 2:
        return AngleScore(angle=angle, variance=0.0, consistency=0.0)

    variance = float(delta_e76(buckets.means[0], buckets.means[-1]))
    consistency = bucket_consistency(buckets, variance)
    return AngleScore(angle=angle, variance=variance, consistency=consistency)


def scan_angles(samples: SampleSet) -> list:
    """Coarse scores for 0..175 degrees in 5 degree steps."""
    return [score_angle(samples, angle) for angle in range(0, 180, COARSE_ANGLE_STEP)]


def _best(scores) -> AngleScore:
    best = None
    for s in scores:
        if best is None or s.score > best.score:
            best = s
    return best


def detect_gradient_angle(samples: SampleSet) -> AngleScore:
    """Best coarse angle, refined at 1 degree resolution within +/-4 degrees."""
    coarse = _best(scan_angles(samples))
    refined = [coarse] + [
        score_angle(samples, coarse.angle + offset)
        for offset in range(-REFINE_ANGLE_RANGE, REFINE_ANGLE_RANGE + 1)
        if offset != 0
    ]
    return _best(refined)


# =============================================================================
# Stops
# =============================================================================

def reconstruct_stops(samples: SampleSet, angle_degrees: float) -> list:
    """
    Stop candidates along angle: one per non-empty bucket, LAB-averaged,
    placed at the bucket center. The first and last are pinned to 0 and 1.
    """
    positions = project(samples, angle_degrees)
    lo, hi = positions.min(), positions.max()
    if hi - lo <= 0:
        return []
    normalized = (positions - lo) / (hi - lo)

    buckets = bucket_samples(normalized, samples.lab)
    if buckets is None:
        return []

    colors = lab_to_rgb(buckets.means)
    stops = []
    last = len(buckets.indices) - 1
    for i, (bucket, rgb) in enumerate(zip(buckets.indices, colors)):
        if i == 0:
            position = 0.0
        elif i == last:
            position = 1.0
        else:
            position = (bucket + 0.5) / NUM_BUCKETS
        stops.append(ColorStop(color=tuple(int(c) for c in rgb), position=position))
    return stops


def simplify_stops(stops: list, max_stops: int = DEFAULT_MAX_STOPS,
                   min_delta_e: float = STOP_MERGE_DELTA_E) -> list:
    """
    Merge near-duplicate stops, then cap the count.

    The first and last stops always survive. An interior stop is dropped if it
    is within min_delta_e of the last kept stop. While more than max_stops
    remain, the interior stop with the smallest Delta E to its current two
    neighbors is removed.
    """
    if len(stops) <= 2:
        return list(stops)

    labs = [rgb_to_lab(np.array(s.color)) for s in stops]

    kept = [0]
    for i in range(1, len(stops) - 1):
        if float(delta_e76(labs[i], labs[kept[-1]])) >= min_delta_e:
            kept.append(i)
    kept.append(len(stops) - 1)

    max_stops = max(2, max_stops)
    while len(kept) > max_stops:
        importance = [
            float(delta_e76(labs[kept[j]], labs[kept[j - 1]]) + delta_e76(labs[kept[j]], labs[kept[j + 1]]))
            for j in range(1, len(kept) - 1)
        ]
        # Neighbors change after each removal
        del kept[1 + int(np.argmin(importance))]

    return [stops[i] for i in kept]


# =============================================================================
# Gradient
# =============================================================================

def reconstruct_gradient(pixels: np.ndarray, max_stops: int = DEFAULT_MAX_STOPS) -> Optional[tuple]:
    """
    Recover a linear gradient from an image.

    Returns:
        (angle_degrees, stops) or None if the image doesn't look like a gradient
    """
    bounds = find_content_bounds(pixels, TRANSPARENCY_THRESHOLD, coarse_stride=BOUNDS_COARSE_STRIDE)
    if bounds is None:
        return None

    samples = collect_samples(pixels, bounds)
    if len(samples) < MIN_SAMPLES:
        logger.debug(f"Only {len(samples)} samples, not enough for gradient detection")
        return None

    best = detect_gradient_angle(samples)
    logger.debug(f"Best angle {best.angle:.0f}: variance={best.variance:.2f} consistency={best.consistency:.2f}")
    if best.variance < MIN_VARIANCE or best.consistency < MIN_CONSISTENCY:
        return None

    stops = simplify_stops(reconstruct_stops(samples, best.angle), max_stops)
    if len(stops) < 2:
        return None
    return best.angle, stops


def detect(pixels: np.ndarray, tolerance: float = DELTA_E_TOLERANCE,
           max_stops: int = DEFAULT_MAX_STOPS) -> ColorDetection:
    """Classify an image as solid, linear gradient, or none."""
    solid = detect_solid_color(pixels, tolerance)
    if solid is not None:
        return ColorDetection.solid(solid)

    gradient = reconstruct_gradient(pixels, max_stops)
    if gradient is not None:
        angle, stops = gradient
        return ColorDetection.linear(angle, stops)

    return ColorDetection.none()
