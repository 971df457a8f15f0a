#!/usr/bin/env python3
"""
Pixel access and image I/O.

A raster image is a read-only uint8 numpy array of shape (height, width, 4)
in RGBA order. New images are always fresh arrays.
"""

from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from models import DecodeFailure, EncodeFailure


# Image size limits (security: prevent decompression bombs)
MAX_IMAGE_PIXELS = 50_000_000  # 50 megapixels
MAX_IMAGE_DIMENSION = 10_000  # 10k pixels per side

# Formats without an alpha channel get flattened on save
_OPAQUE_FORMATS = {'.jpg', '.jpeg', '.bmp'}


def freeze(pixels: np.ndarray) -> np.ndarray:
    """Mark an array read-only and return it."""
    pixels.setflags(write=False)
    return pixels


def to_raster(image: Image.Image) -> np.ndarray:
    """Convert a PIL image to a read-only RGBA array."""
    if image.mode != 'RGBA':
        image = image.convert('RGBA')
    return freeze(np.array(image, dtype=np.uint8))


def to_pil(pixels: np.ndarray) -> Image.Image:
    return Image.fromarray(np.array(pixels, dtype=np.uint8))


def new_canvas(width: int, height: int, color: tuple = (0, 0, 0, 0)) -> np.ndarray:
    """Writable canvas filled with an RGBA color."""
    canvas = np.empty((height, width, 4), dtype=np.uint8)
    canvas[...] = color
    return canvas


# =============================================================================
# Sampling
# =============================================================================

def alpha_channel(pixels: np.ndarray) -> np.ndarray:
    return pixels[..., 3]


def rgb_channels(pixels: np.ndarray) -> np.ndarray:
    return pixels[..., :3]


def max_alpha(pixels: np.ndarray) -> int:
    if pixels.size == 0:
        return 0
    return int(alpha_channel(pixels).max())


def content_mask(pixels: np.ndarray, alpha_tolerance: int) -> np.ndarray:
    """Boolean mask of pixels whose alpha exceeds the tolerance."""
    return alpha_channel(pixels) > alpha_tolerance


# =============================================================================
# I/O
# =============================================================================

def load_image(image_path) -> np.ndarray:
    """
    Decode an image file into a read-only RGBA array.

    Raises:
        DecodeFailure: If the file is missing, unreadable, or exceeds size limits
    """
    image_path = Path(image_path)
    try:
        with Image.open(image_path) as img:
            width, height = img.size
            if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
                raise DecodeFailure(
                    image_path,
                    f"dimensions {width}x{height} exceed maximum "
                    f"{MAX_IMAGE_DIMENSION}x{MAX_IMAGE_DIMENSION}"
                )
            if width * height > MAX_IMAGE_PIXELS:
                raise DecodeFailure(
                    image_path,
                    f"{width * height:,} pixels exceed maximum {MAX_IMAGE_PIXELS:,}"
                )
            return to_raster(img)
    except FileNotFoundError as e:
        raise DecodeFailure(image_path, "file not found") from e
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DecodeFailure(image_path, str(e)) from e


def save_image(pixels: np.ndarray, output_path) -> Path:
    """
    Encode an RGBA array to disk, format chosen by extension.

    Raises:
        EncodeFailure: If the image cannot be written
    """
    output_path = Path(output_path)
    try:
        img = to_pil(pixels)
        if output_path.suffix.lower() in _OPAQUE_FORMATS:
            img = img.convert('RGB')
        output_path.parent.mkdir(parents=True, exist_ok=True)
        img.save(output_path)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeFailure(output_path, str(e)) from e
    return output_path
