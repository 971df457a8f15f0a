#!/usr/bin/env python3
"""
Bounding box of the visible content of an RGBA image.

Small images are scanned in full. Large images are first reduced to a grid of
block maxima, then scanned exactly inside the box of content blocks.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.ndimage import find_objects

from models import NoContent
from pixels import alpha_channel, content_mask


# Images above this many pixels get the coarse-then-refine scan
COARSE_SCAN_MIN_PIXELS = 1_000_000
DEFAULT_COARSE_STRIDE = 4


@dataclass(frozen=True)
class ContentBounds:
    """Inclusive pixel extent of content."""
    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    @property
    def center_x(self) -> float:
        return (self.min_x + self.max_x) / 2.0

    @property
    def center_y(self) -> float:
        return (self.min_y + self.max_y) / 2.0

    @property
    def area(self) -> int:
        return self.width * self.height


def _mask_bounds(mask: np.ndarray, offset_x: int = 0, offset_y: int = 0) -> Optional[ContentBounds]:
    """Bounding box of True cells, shifted by an offset."""
    objects = find_objects(mask.astype(np.int8))
    if not objects or objects[0] is None:
        return None
    rows, cols = objects[0]
    return ContentBounds(
        min_x=cols.start + offset_x,
        min_y=rows.start + offset_y,
        max_x=cols.stop - 1 + offset_x,
        max_y=rows.stop - 1 + offset_y,
    )


def _coarse_blocks(alpha: np.ndarray, alpha_tolerance: int, stride: int) -> np.ndarray:
    """One cell per stride x stride block, True if any pixel in the block is content."""
    h, w = alpha.shape
    padded = np.pad(alpha, ((0, -h % stride), (0, -w % stride)))
    bh, bw = padded.shape[0] // stride, padded.shape[1] // stride
    return padded.reshape(bh, stride, bw, stride).max(axis=(1, 3)) > alpha_tolerance


def find_content_bounds(pixels: np.ndarray, alpha_tolerance: int,
                        coarse_stride: Optional[int] = None) -> Optional[ContentBounds]:
    """
    Find the bounding box of pixels whose alpha exceeds alpha_tolerance.

    Args:
        pixels: RGBA array
        alpha_tolerance: Alpha value (0-255) a pixel must exceed to count as content
        coarse_stride: Block size for the coarse pass. None picks one from the
            image size; 1 forces a full scan.

    Returns:
        ContentBounds, or None if no pixel exceeds the tolerance
    """
    h, w = pixels.shape[:2]
    if coarse_stride is None:
        coarse_stride = DEFAULT_COARSE_STRIDE if h * w >= COARSE_SCAN_MIN_PIXELS else 1

    if coarse_stride <= 1:
        return _mask_bounds(content_mask(pixels, alpha_tolerance))

    # Every content pixel lies in a content block, so the block box always
    # covers the exact box
    coarse = _mask_bounds(_coarse_blocks(alpha_channel(pixels), alpha_tolerance, coarse_stride))
    if coarse is None:
        return None

    x0 = coarse.min_x * coarse_stride
    y0 = coarse.min_y * coarse_stride
    x1 = min(w, (coarse.max_x + 1) * coarse_stride)
    y1 = min(h, (coarse.max_y + 1) * coarse_stride)

    window = content_mask(pixels[y0:y1, x0:x1], alpha_tolerance)
    return _mask_bounds(window, offset_x=x0, offset_y=y0)


def require_content_bounds(pixels: np.ndarray, alpha_tolerance: int,
                           coarse_stride: Optional[int] = None) -> ContentBounds:
    """Like find_content_bounds, but raises NoContent instead of returning None."""
    bounds = find_content_bounds(pixels, alpha_tolerance, coarse_stride)
    if bounds is None:
        h, w = pixels.shape[:2]
        raise NoContent(f"No pixel above alpha {alpha_tolerance} in {w}x{h} image")
    return bounds
