#!/usr/bin/env python3
"""
Background rendering and compositing. Pure raster operations, no I/O.
"""

import math

import numpy as np
from PIL import Image

from models import ColorDetection, DetectionType
from pixels import freeze, new_canvas, to_pil


def create_solid(width: int, height: int, color: tuple) -> np.ndarray:
    """Opaque canvas filled with an RGB color."""
    return freeze(new_canvas(width, height, (*color[:3], 255)))


def gradient_line(width: int, height: int, angle: float) -> tuple:
    """
    Endpoints of the gradient axis: through the canvas center, diagonal/2 to
    either side along angle, so the ramp spans corner to corner at any rotation.

    Returns:
        ((start_x, start_y), (end_x, end_y))
    """
    angle_rad = math.radians(angle)
    dx, dy = math.cos(angle_rad), math.sin(angle_rad)
    half_diagonal = math.hypot(width, height) / 2

    cx, cy = width / 2, height / 2
    return (
        (cx - half_diagonal * dx, cy - half_diagonal * dy),
        (cx + half_diagonal * dx, cy + half_diagonal * dy),
    )


def create_gradient(width: int, height: int, angle: float, stops) -> np.ndarray:
    """
    Opaque linear gradient rendered as a raster.

    Args:
        width, height: Canvas size
        angle: Direction in degrees (0 = left to right, 90 = top to bottom)
        stops: ColorStops sorted by position
    """
    if not stops:
        raise ValueError("Gradient needs at least one stop")

    (sx, sy), (ex, ey) = gradient_line(width, height, angle)
    vx, vy = ex - sx, ey - sy
    length_sq = vx * vx + vy * vy

    ys, xs = np.mgrid[0:height, 0:width].astype(np.float64)
    t = ((xs + 0.5 - sx) * vx + (ys + 0.5 - sy) * vy) / length_sq
    t = np.clip(t, 0.0, 1.0)

    positions = np.array([s.position for s in stops], dtype=np.float64)
    colors = np.array([s.color[:3] for s in stops], dtype=np.float64)

    canvas = new_canvas(width, height, (0, 0, 0, 255))
    for ch in range(3):
        canvas[..., ch] = np.round(np.interp(t, positions, colors[:, ch]))
    return freeze(canvas)


def brand_background(detection: ColorDetection, width: int, height: int):
    """Background for a detection, or None for NONE."""
    if detection.type is DetectionType.SOLID:
        return create_solid(width, height, detection.solid_color)
    if detection.type is DetectionType.LINEAR:
        return create_gradient(width, height, detection.angle, detection.stops)
    return None


def composite(background: np.ndarray, foreground: np.ndarray) -> np.ndarray:
    """Alpha-over the foreground, centered, onto the background. Result has the background's size."""
    bh, bw = background.shape[:2]
    fh, fw = foreground.shape[:2]
    x = (bw - fw) // 2
    y = (bh - fh) // 2

    canvas = to_pil(background)
    if canvas.mode != 'RGBA':
        canvas = canvas.convert('RGBA')
    canvas.alpha_composite(
        to_pil(foreground),
        dest=(max(0, x), max(0, y)),
        source=(max(0, -x), max(0, -y)),
    )
    return freeze(np.array(canvas, dtype=np.uint8))
