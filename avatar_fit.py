#!/usr/bin/env python3
"""
Avatar fit: re-project an icon so its visible content fills an ellipse
inscribed in the canvas.

Approach:
1. Start from an ellipse that strictly contains the content bounding box
2. Shrink both radii uniformly while the edge check still passes
3. Shrink each edge independently (round robin) so the ellipse can drift
   off-center toward the content
4. Inflate by a padding percentage
5. Scale + translate the original so the padded ellipse fills the canvas
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Optional

import numpy as np
from scipy.ndimage import affine_transform

from bounds import ContentBounds, find_content_bounds
from pixels import content_mask, freeze


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_PADDING_PERCENTAGE = 10
DEFAULT_ALPHA_TOLERANCE = 127

INITIAL_COVERAGE = math.sqrt(2.5)  # sqrt(2) would pass through the box corners
GENERAL_SHRINK_STEP = 0.5
ROUND_ROBIN_STEP = 0.25
MIN_RADIUS = 1.0

# Edge check sampling
EDGE_CHECK_RADIUS = 2  # pixels on either side of the boundary
EDGE_CHECK_ANGLE_STEP = math.pi / 360  # 0.5 degrees

_EDGE_ANGLES = np.arange(0.0, 2 * math.pi, EDGE_CHECK_ANGLE_STEP)
_EDGE_COS = np.cos(_EDGE_ANGLES)[:, None]
_EDGE_SIN = np.sin(_EDGE_ANGLES)[:, None]
_EDGE_OFFSETS = np.arange(-EDGE_CHECK_RADIUS, EDGE_CHECK_RADIUS + 1, dtype=np.float64)[None, :]

EDGES = ('left', 'right', 'top', 'bottom')


@dataclass(frozen=True)
class EllipseParams:
    center_x: float
    center_y: float
    radius_x: float
    radius_y: float

    def contains(self, x: float, y: float) -> bool:
        dx = (x - self.center_x) / self.radius_x
        dy = (y - self.center_y) / self.radius_y
        return dx * dx + dy * dy <= 1.0

    @property
    def area(self) -> float:
        return math.pi * self.radius_x * self.radius_y


@dataclass(frozen=True)
class AvatarFitPlan:
    """Everything computed before rendering, kept for inspection."""
    bounds: ContentBounds
    ellipse: EllipseParams  # before padding
    padded: EllipseParams
    transform: np.ndarray  # 3x3 affine, source -> canvas


# =============================================================================
# Ellipse fitting
# =============================================================================

def initial_ellipse(bounds: ContentBounds) -> EllipseParams:
    """Ellipse centered on the content box, strictly containing it."""
    return EllipseParams(
        center_x=bounds.center_x,
        center_y=bounds.center_y,
        radius_x=(bounds.width / 2.0) * INITIAL_COVERAGE,
        radius_y=(bounds.height / 2.0) * INITIAL_COVERAGE,
    )


def contains_content_edge_check(mask: np.ndarray, ellipse: EllipseParams) -> bool:
    """
    Approximate containment test.

    Samples points every half degree around the ellipse, a couple of pixels
    inside and outside the boundary, and fails if any sampled content pixel
    lies outside the ellipse. Content far from the boundary is never visited.
    """
    h, w = mask.shape
    factors = 1.0 - _EDGE_OFFSETS / max(ellipse.radius_x, ellipse.radius_y)

    xs = (ellipse.center_x + _EDGE_COS * ellipse.radius_x * factors).astype(np.int64).ravel()
    ys = (ellipse.center_y + _EDGE_SIN * ellipse.radius_y * factors).astype(np.int64).ravel()

    in_image = (xs >= 0) & (xs < w) & (ys >= 0) & (ys < h)
    xs, ys = xs[in_image], ys[in_image]

    hits = mask[ys, xs]
    if not hits.any():
        return True

    dx = (xs[hits] - ellipse.center_x) / ellipse.radius_x
    dy = (ys[hits] - ellipse.center_y) / ellipse.radius_y
    return bool(np.all(dx * dx + dy * dy <= 1.0))


def general_shrinkwrap(mask: np.ndarray, ellipse: EllipseParams,
                       step: float = GENERAL_SHRINK_STEP,
                       min_radius: float = MIN_RADIUS) -> EllipseParams:
    """Shrink both radii by step until the edge check fails or a radius hits the floor."""
    current = ellipse
    while current.radius_x > min_radius and current.radius_y > min_radius:
        candidate = replace(
            current,
            radius_x=current.radius_x - step,
            radius_y=current.radius_y - step,
        )
        if not contains_content_edge_check(mask, candidate):
            break
        current = candidate
    return current


def shrink_edge(ellipse: EllipseParams, edge: str, step: float) -> EllipseParams:
    """
    Pull one edge inward by step, keeping the opposite edge fixed.

    The center moves half a step away from the shrinking edge and the matching
    radius loses half a step.
    """
    half = step / 2
    if edge == 'left':
        return replace(ellipse, center_x=ellipse.center_x + half, radius_x=ellipse.radius_x - half)
    if edge == 'right':
        return replace(ellipse, center_x=ellipse.center_x - half, radius_x=ellipse.radius_x - half)
    if edge == 'top':
        return replace(ellipse, center_y=ellipse.center_y + half, radius_y=ellipse.radius_y - half)
    if edge == 'bottom':
        return replace(ellipse, center_y=ellipse.center_y - half, radius_y=ellipse.radius_y - half)
    raise ValueError(f"Unknown edge: {edge}")


def round_robin_shrinkwrap(mask: np.ndarray, ellipse: EllipseParams,
                           step: float = ROUND_ROBIN_STEP,
                           min_radius: float = MIN_RADIUS) -> EllipseParams:
    """Try each edge in turn, keeping every move that passes, until a full pass makes no progress."""
    current = ellipse
    progress = True
    while progress:
        progress = False
        for edge in EDGES:
            radius = current.radius_x if edge in ('left', 'right') else current.radius_y
            if radius <= min_radius:
                continue
            candidate = shrink_edge(current, edge, step)
            if contains_content_edge_check(mask, candidate):
                current = candidate
                progress = True
    return current


def apply_padding(ellipse: EllipseParams, padding_percentage: float = DEFAULT_PADDING_PERCENTAGE) -> EllipseParams:
    factor = 1.0 + padding_percentage / 100.0
    return replace(
        ellipse,
        radius_x=ellipse.radius_x * factor,
        radius_y=ellipse.radius_y * factor,
    )


def fit_ellipse(mask: np.ndarray, bounds: ContentBounds) -> EllipseParams:
    """Tightest ellipse (pre-padding) around the content in mask."""
    ellipse = initial_ellipse(bounds)
    ellipse = general_shrinkwrap(mask, ellipse)
    return round_robin_shrinkwrap(mask, ellipse)


# =============================================================================
# Transform and rendering
# =============================================================================

def calculate_transform(bounds: ContentBounds, padded: EllipseParams,
                        canvas_width: int, canvas_height: int) -> np.ndarray:
    """
    Uniform scale so the padded ellipse fills the canvas, plus the translation
    that puts the content box center on the canvas center.

    Returns a 3x3 affine matrix, translate composed with scale.
    """
    scale = min(
        canvas_width / (padded.radius_x * 2),
        canvas_height / (padded.radius_y * 2),
    )

    scaled_width = bounds.width * scale
    scaled_height = bounds.height * scale
    translate_x = (canvas_width - scaled_width) / 2.0 - bounds.min_x * scale
    translate_y = (canvas_height - scaled_height) / 2.0 - bounds.min_y * scale

    translate = np.array([
        [1.0, 0.0, translate_x],
        [0.0, 1.0, translate_y],
        [0.0, 0.0, 1.0],
    ])
    scaling = np.diag([scale, scale, 1.0])
    return translate @ scaling


def render_image(pixels: np.ndarray, transform: np.ndarray) -> np.ndarray:
    """
    Resample pixels through transform onto a transparent canvas of the same
    size, with bilinear interpolation on premultiplied alpha.
    """
    inverse = np.linalg.inv(transform)
    a, b, e = inverse[0]
    c, d, f = inverse[1]

    # Output (row, col, channel) -> input (row, col, channel), sampling at pixel centers
    matrix = np.array([
        [d, c, 0.0],
        [b, a, 0.0],
        [0.0, 0.0, 1.0],
    ])
    offset = np.array([
        0.5 * c + 0.5 * d + f - 0.5,
        0.5 * a + 0.5 * b + e - 0.5,
        0.0,
    ])

    rgba = pixels.astype(np.float64)
    alpha = rgba[..., 3:4] / 255.0
    premultiplied = np.concatenate([rgba[..., :3] * alpha, rgba[..., 3:4]], axis=-1)

    out = affine_transform(
        premultiplied, matrix, offset=offset,
        output_shape=premultiplied.shape,
        order=1, mode='grid-constant', cval=0.0,
    )

    out_alpha = out[..., 3:4]
    with np.errstate(divide='ignore', invalid='ignore'):
        rgb = np.where(out_alpha > 0, out[..., :3] * 255.0 / out_alpha, 0.0)

    result = np.concatenate([rgb, out_alpha], axis=-1)
    return freeze(np.clip(np.round(result), 0, 255).astype(np.uint8))


# =============================================================================
# Pipeline
# =============================================================================

def plan_avatar_fit(pixels: np.ndarray,
                    padding_percentage: float = DEFAULT_PADDING_PERCENTAGE,
                    alpha_tolerance: int = DEFAULT_ALPHA_TOLERANCE) -> Optional[AvatarFitPlan]:
    """Fit the ellipse and compute the transform. None if the image has no content."""
    bounds = find_content_bounds(pixels, alpha_tolerance)
    if bounds is None:
        return None

    mask = content_mask(pixels, alpha_tolerance)
    ellipse = fit_ellipse(mask, bounds)
    padded = apply_padding(ellipse, padding_percentage)

    h, w = pixels.shape[:2]
    transform = calculate_transform(bounds, padded, w, h)
    return AvatarFitPlan(bounds=bounds, ellipse=ellipse, padded=padded, transform=transform)


def avatar_fit(pixels: np.ndarray,
               padding_percentage: float = DEFAULT_PADDING_PERCENTAGE,
               alpha_tolerance: int = DEFAULT_ALPHA_TOLERANCE) -> np.ndarray:
    """
    Apply avatar fit to an RGBA image.

    Returns a new image of the same size, or the input unchanged if it has no
    content above alpha_tolerance.
    """
    plan = plan_avatar_fit(pixels, padding_percentage, alpha_tolerance)
    if plan is None:
        logger.debug(f"No content above alpha {alpha_tolerance}, skipping avatar fit")
        return pixels

    e = plan.ellipse
    logger.debug(
        f"Fitted ellipse center=({e.center_x:.1f}, {e.center_y:.1f}) "
        f"radii=({e.radius_x:.1f}, {e.radius_y:.1f})"
    )
    return render_image(pixels, plan.transform)
